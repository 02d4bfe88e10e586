"""
Ingestion layer
---------------

Fetches indicator observations from the World Bank API and aggregates
them into an ordered, per-country IndicatorTable.
"""

from .indicator_table import (  # noqa: F401
    POSITION_COLUMN,
    IndicatorTable,
    aggregate_indicator_table,
    make_world_bank_fetcher,
)
from .world_bank_indicator import (  # noqa: F401
    IndicatorRecord,
    fetch_indicator_record,
    parse_indicator_payload,
    validate_country_key,
    validate_year,
)

__all__ = [
    "POSITION_COLUMN",
    "IndicatorRecord",
    "IndicatorTable",
    "aggregate_indicator_table",
    "fetch_indicator_record",
    "make_world_bank_fetcher",
    "parse_indicator_payload",
    "validate_country_key",
    "validate_year",
]
