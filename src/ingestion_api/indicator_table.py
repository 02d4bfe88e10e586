"""
Aggregate per-country indicator observations into one ordered table.

The position of each key in the request list (1-based) is the identifier
the primary dataset uses for nationality, so the table must always hold
exactly one record per requested key, in request order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import pandas as pd
import requests

from common.exceptions import MalformedResponseError, NetworkError
from settings import WORLD_BANK_API_BASE_URL

from .world_bank_indicator import (
    STATUS_FAILED,
    STATUS_NO_DATA,
    IndicatorRecord,
    fetch_indicator_record,
    validate_country_key,
    validate_year,
)

logger = logging.getLogger(__name__)

POSITION_COLUMN = "nationality_id"

Fetcher = Callable[[str, str, int], IndicatorRecord]


@dataclass
class IndicatorTable:
    """Ordered indicator records; position ``i`` (1-based) maps to ``records[i - 1]``."""

    indicator_code: str
    year: int
    records: List[IndicatorRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def country_keys(self) -> List[str]:
        return [r.country_code for r in self.records]

    @property
    def failed_keys(self) -> List[str]:
        return [r.country_code for r in self.records if r.status == STATUS_FAILED]

    @property
    def missing_keys(self) -> List[str]:
        return [r.country_code for r in self.records if r.is_missing]

    def value_for(self, position: int) -> Optional[float]:
        """Indicator value at a 1-based position, None when out of range or absent."""
        if position < 1 or position > len(self.records):
            return None
        return self.records[position - 1].value

    def to_dataframe(self, value_column: str = "value") -> pd.DataFrame:
        df = pd.DataFrame(
            {
                POSITION_COLUMN: pd.Series(range(1, len(self.records) + 1), dtype="int64"),
                "country_code": pd.Series(self.country_keys, dtype="string"),
                "year": pd.Series([r.year for r in self.records], dtype="int64"),
                value_column: pd.to_numeric(
                    pd.Series([r.value for r in self.records], dtype="object"),
                    errors="coerce",
                ).astype("float64"),
                "status": pd.Series([r.status for r in self.records], dtype="string"),
            }
        )
        return df


def _failed_record(key: str, indicator_code: str, year: int, exc: Exception) -> IndicatorRecord:
    return IndicatorRecord(
        country_code=key,
        indicator_code=indicator_code,
        year=year,
        value=None,
        status=STATUS_FAILED,
        error=f"{type(exc).__name__}: {exc}",
    )


def _fetch_isolated(
    fetcher: Fetcher,
    key: str,
    indicator_code: str,
    year: int,
) -> IndicatorRecord:
    try:
        return fetcher(key, indicator_code, year)
    except (NetworkError, MalformedResponseError) as exc:
        logger.warning("Fetching %s for %s failed, recording as missing: %s", indicator_code, key, exc)
        return _failed_record(key, indicator_code, year, exc)


def make_world_bank_fetcher(
    *,
    session: Optional[requests.Session] = None,
    base_url: str = WORLD_BANK_API_BASE_URL,
    timeout: float = 10,
    max_attempts: int = 1,
) -> Fetcher:
    """Bind HTTP settings to ``fetch_indicator_record``."""

    def fetcher(key: str, indicator_code: str, year: int) -> IndicatorRecord:
        return fetch_indicator_record(
            key,
            indicator_code,
            year,
            session=session,
            base_url=base_url,
            timeout=timeout,
            max_attempts=max_attempts,
        )

    return fetcher


def aggregate_indicator_table(
    keys: Sequence[str],
    indicator_code: str,
    year: int,
    *,
    fetcher: Optional[Fetcher] = None,
    max_workers: int = 1,
) -> IndicatorTable:
    """
    Fetch one record per key and return them as an IndicatorTable in key order.

    Network and malformed-response failures are isolated per key: the key is
    recorded with a missing value and the batch continues. With
    ``max_workers > 1`` fetches run in a thread pool and results are put back
    in key order before the table is built.
    """
    keys = list(keys)
    for key in keys:
        validate_country_key(key)
    validate_year(year)

    fetch = fetcher or make_world_bank_fetcher()

    if max_workers <= 1 or len(keys) <= 1:
        records = [_fetch_isolated(fetch, key, indicator_code, year) for key in keys]
    else:
        slots: List[Optional[IndicatorRecord]] = [None] * len(keys)
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {
                pool.submit(_fetch_isolated, fetch, key, indicator_code, year): idx
                for idx, key in enumerate(keys)
            }
            for future, idx in futures.items():
                slots[idx] = future.result()
        records = [r for r in slots if r is not None]

    table = IndicatorTable(indicator_code=indicator_code, year=year, records=records)

    no_data = [r.country_code for r in records if r.status == STATUS_NO_DATA]
    if no_data:
        logger.info("No %s data for %d in: %s", indicator_code, year, ", ".join(no_data))
    if table.failed_keys:
        logger.warning(
            "%d of %d key(s) failed and were recorded as missing: %s",
            len(table.failed_keys),
            len(keys),
            ", ".join(table.failed_keys),
        )
    return table


__all__ = [
    "POSITION_COLUMN",
    "IndicatorTable",
    "make_world_bank_fetcher",
    "aggregate_indicator_table",
]
