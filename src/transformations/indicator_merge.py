"""
Left join of an IndicatorTable onto the primary (student) dataset.

The primary dataset encodes nationality as a dense integer 1..N that
matches the order of the country keys requested from the API, so the
join key is the 1-based position in the IndicatorTable, not the ISO3 code.

Key policy, applied to every row:
- key column absent from the dataset -> MergeKeyError, nothing is merged.
- key missing, non-numeric or non-integral -> indicator NaN, row kept
  (MergeKeyError instead when ``strict=True``).
- key out of range [1, N] -> indicator NaN, row kept.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from common.exceptions import MergeKeyError, PrimaryDatasetError
from ingestion_api.indicator_table import IndicatorTable

logger = logging.getLogger(__name__)

DEFAULT_KEY_COLUMN = "Nacionality"
DEFAULT_VALUE_COLUMN = "life_expectancy"


def load_primary_dataset(
    path: Path | str,
    *,
    sep: str = ";",
    required_columns: Optional[Iterable[str]] = (DEFAULT_KEY_COLUMN,),
) -> pd.DataFrame:
    """
    Read the primary dataset from a delimited file.

    Every cell is kept as the literal text of the file (no type inference,
    no "NA" -> missing conversion) so the merged output reproduces the input
    columns exactly; the merge coerces the key column itself.
    """
    path = Path(path)
    if not path.exists():
        raise PrimaryDatasetError(f"Primary dataset not found: {path}")

    df = pd.read_csv(path, sep=sep, dtype=str, keep_default_na=False)
    # Some exports carry a trailing tab/space in header names.
    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in (required_columns or []) if c not in df.columns]
    if missing:
        raise PrimaryDatasetError(
            f"Primary dataset {path} is missing required column(s): {', '.join(missing)}"
        )
    logger.info("Loaded primary dataset %s: %d rows, %d columns", path, len(df), df.shape[1])
    return df


def _resolve_positions(keys: pd.Series) -> pd.Series:
    """Coerce key values to float positions; non-numeric or non-integral keys become NaN."""
    numeric = pd.to_numeric(keys, errors="coerce").astype("float64")
    return numeric.where(np.isfinite(numeric) & (numeric == np.floor(numeric)))


def merge_indicator_table(
    primary: pd.DataFrame,
    table: IndicatorTable,
    *,
    key_column: str = DEFAULT_KEY_COLUMN,
    value_column: str = DEFAULT_VALUE_COLUMN,
    strict: bool = False,
) -> pd.DataFrame:
    """
    Append ``value_column`` to ``primary`` by resolving ``key_column`` as a
    1-based position into ``table``.

    Row count, row order, index and every original column are preserved.
    """
    if key_column not in primary.columns:
        raise MergeKeyError(f"Merge key column {key_column!r} not found in primary dataset")
    if value_column in primary.columns:
        raise MergeKeyError(f"Column {value_column!r} already exists in primary dataset")

    positions = _resolve_positions(primary[key_column])
    unusable = positions.isna()

    if strict and unusable.any():
        bad_rows = list(primary.index[unusable.to_numpy()][:5])
        raise MergeKeyError(
            f"{int(unusable.sum())} row(s) have a missing or non-numeric {key_column!r} "
            f"(first rows: {bad_rows})"
        )

    in_range = ~unusable & (positions >= 1) & (positions <= len(table))
    out_of_range = ~unusable & ~in_range

    lookup = np.array(
        [np.nan if r.value is None else float(r.value) for r in table.records],
        dtype="float64",
    )
    values = np.full(len(primary), np.nan, dtype="float64")
    mask = in_range.to_numpy()
    values[mask] = lookup[positions.to_numpy()[mask].astype("int64") - 1]

    if unusable.any():
        logger.warning(
            "%d row(s) with missing or non-numeric %r merged with missing %s",
            int(unusable.sum()), key_column, value_column,
        )
    if out_of_range.any():
        logger.warning(
            "%d row(s) with %r outside [1, %d] merged with missing %s",
            int(out_of_range.sum()), key_column, len(table), value_column,
        )

    merged = primary.copy()
    merged[value_column] = values
    return merged


__all__ = [
    "DEFAULT_KEY_COLUMN",
    "DEFAULT_VALUE_COLUMN",
    "load_primary_dataset",
    "merge_indicator_table",
]
