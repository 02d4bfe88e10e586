"""
Transformations layer
----------------------

Loads the primary (student) dataset and left-joins the per-nationality
indicator table onto it.
"""

from .indicator_merge import (  # noqa: F401
    DEFAULT_KEY_COLUMN,
    DEFAULT_VALUE_COLUMN,
    load_primary_dataset,
    merge_indicator_table,
)

__all__ = [
    "DEFAULT_KEY_COLUMN",
    "DEFAULT_VALUE_COLUMN",
    "load_primary_dataset",
    "merge_indicator_table",
]
