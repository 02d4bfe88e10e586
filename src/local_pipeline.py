"""
Local orchestration entrypoint for the nationality indicator pipeline.

Runs, once, start to finish:

1. Primary dataset load (student records, nationality encoded 1..N)
2. World Bank indicator fetch, one call per nationality key (IndicatorTable)
3. Left join of the indicator onto the primary dataset
4. Merged dataset write (atomic: full file or nothing)
5. Indicator table persistence (traceability)
6. Exploratory outputs (frequency tables, plot, logistic regression)

Intended usage (local):

    PYTHONPATH=src python -m local_pipeline --primary data/dataset.csv

Defaults come from environment variables / ``.env`` (see ``settings``).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from adapters import LocalStorageAdapter, StorageAdapter
from analysis import build_analysis_outputs
from common.logging_config import create_logger
from ingestion_api import aggregate_indicator_table, make_world_bank_fetcher
from ingestion_api.indicator_table import Fetcher
from metadata import INDICATOR_MERGE_SCOPE, end_run, start_run
from settings import PipelineSettings
from transformations import load_primary_dataset, merge_indicator_table

logger = logging.getLogger(__name__)

INDICATOR_TABLE_PREFIX = "processed/indicator_table"
MERGED_OUTPUT_KEY = "merged/dataset_with_indicator.csv"
ANALYSIS_SUBDIR = "analysis"


def run_local_pipeline(
    settings: PipelineSettings,
    *,
    storage: Optional[StorageAdapter] = None,
    fetcher: Optional[Fetcher] = None,
    skip_analysis: bool = False,
) -> Dict[str, List[Path]]:
    """
    Run the full local pipeline end-to-end.

    Parameters
    ----------
    settings:
        Resolved pipeline settings (indicator, year, keys, paths).
    storage:
        Where every artefact (merged dataset, indicator table and analysis
        outputs) is written; defaults to ``settings.output_dir``.
    fetcher:
        Per-key fetch function; defaults to the World Bank API fetcher
        configured from ``settings``.

    Returns
    -------
    artefacts:
        Dictionary mapping step names to lists of generated Paths.
    """
    storage = storage or LocalStorageAdapter(settings.output_dir)
    fetcher = fetcher or make_world_bank_fetcher(
        base_url=settings.api_base_url,
        timeout=settings.timeout,
        max_attempts=settings.max_attempts,
    )
    artefacts: Dict[str, List[Path]] = {}

    run_id = start_run(
        INDICATOR_MERGE_SCOPE,
        {
            "indicator_code": settings.indicator_code,
            "year": settings.year,
            "country_keys": list(settings.country_keys),
            "primary_dataset_path": str(settings.primary_dataset_path),
        },
    )

    try:
        logger.info("[1/6] Loading primary dataset %s...", settings.primary_dataset_path)
        primary = load_primary_dataset(
            settings.primary_dataset_path,
            sep=settings.primary_dataset_sep,
            required_columns=[settings.nationality_column],
        )

        logger.info(
            "[2/6] Fetching %s for %d countries (year %d)...",
            settings.indicator_code, len(settings.country_keys), settings.year,
        )
        table = aggregate_indicator_table(
            settings.country_keys,
            settings.indicator_code,
            settings.year,
            fetcher=fetcher,
            max_workers=settings.max_workers,
        )

        logger.info("[3/6] Merging indicator onto %d primary rows...", len(primary))
        merged = merge_indicator_table(
            primary,
            table,
            key_column=settings.nationality_column,
            value_column=settings.value_column,
        )

        logger.info("[4/6] Writing merged dataset...")
        merged_path = storage.write_csv(merged, MERGED_OUTPUT_KEY, sep=settings.primary_dataset_sep)
        artefacts["merged"] = [Path(merged_path)]
        logger.info("      Merged file: %s", merged_path)

        logger.info("[5/6] Persisting indicator table...")
        table_key = f"{INDICATOR_TABLE_PREFIX}/{settings.indicator_code}_{settings.year}.csv"
        table_path = storage.write_csv(table.to_dataframe(settings.value_column), table_key)
        artefacts["indicator_table"] = [Path(table_path)]

        if skip_analysis:
            logger.info("[6/6] Skipping exploratory outputs.")
        else:
            logger.info("[6/6] Generating exploratory outputs...")
            artefacts["analysis"] = build_analysis_outputs(
                merged,
                value_column=settings.value_column,
                target=settings.target_column,
                storage=storage,
                key_prefix=ANALYSIS_SUBDIR,
            )

        end_run(
            run_id,
            status="SUCCESS",
            rows_processed=len(merged),
            missing_keys=table.missing_keys,
            failed_keys=table.failed_keys,
        )
    except Exception as exc:  # noqa: BLE001
        end_run(run_id, status="FAILED", error_message=str(exc))
        raise

    logger.info("Pipeline completed successfully.")
    return artefacts


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Enrich the student dataset with a per-nationality World Bank indicator.",
    )
    parser.add_argument("--primary", type=Path, default=None, help="Primary dataset path.")
    parser.add_argument("--output-dir", type=Path, default=None, help="Root directory for outputs.")
    parser.add_argument("--indicator", type=str, default=None, help="World Bank indicator code.")
    parser.add_argument("--year", type=int, default=None, help="Observation year.")
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Concurrent fetches (results are always kept in key order).",
    )
    parser.add_argument(
        "--skip-analysis",
        action="store_true",
        help="Only produce the merged dataset.",
    )

    args = parser.parse_args()
    settings = PipelineSettings.from_env().with_overrides(
        primary_dataset_path=args.primary,
        output_dir=args.output_dir,
        indicator_code=args.indicator,
        year=args.year,
        max_workers=args.max_workers,
    )
    create_logger(None, settings.log_level, settings.log_file)
    run_local_pipeline(settings, skip_analysis=args.skip_analysis)


__all__ = ["run_local_pipeline"]
