"""
Metadata module
---------------

Local JSON run log for the enrichment pipeline.

    from metadata import start_run, end_run, INDICATOR_MERGE_SCOPE

    run_id = start_run(INDICATOR_MERGE_SCOPE, {"indicator": "SP.DYN.LE00.IN", "year": 2019})
    # ... run the pipeline ...
    end_run(run_id, status="SUCCESS", rows_processed=4424, missing_keys=["STP"])
"""

from .store import (
    DEFAULT_METADATA_FILE,
    METADATA_LOCAL_FILE_ENV,
    end_run,
    get_last_run,
    list_runs,
    start_run,
)

INDICATOR_MERGE_SCOPE = "indicator_merge"

__all__ = [
    "DEFAULT_METADATA_FILE",
    "METADATA_LOCAL_FILE_ENV",
    "INDICATOR_MERGE_SCOPE",
    "start_run",
    "end_run",
    "get_last_run",
    "list_runs",
]
