import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4


# Environment variable to override local JSON path (useful for tests)
METADATA_LOCAL_FILE_ENV = "METADATA_LOCAL_FILE"

DEFAULT_METADATA_FILE = Path("local_metadata.json")


def _now_utc_iso() -> str:
    """Return current UTC time in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


def _get_metadata_file() -> Path:
    """Resolve the path to the local JSON file used as the run log."""
    env_value = os.getenv(METADATA_LOCAL_FILE_ENV)
    if env_value:
        return Path(env_value)
    return DEFAULT_METADATA_FILE


def _load_store() -> Dict[str, Any]:
    """
    Load the run log from the local JSON file.

    Structure:
    {
      "runs": [
        {
          "run_id": str,
          "run_scope": str,
          "start_ts": str,
          "end_ts": Optional[str],
          "status": str,
          "parameters": dict,
          "rows_processed": Optional[int],
          "missing_keys": list[str],
          "failed_keys": list[str],
          "error_message": Optional[str]
        },
        ...
      ]
    }
    """
    path = _get_metadata_file()
    if not path.exists():
        return {"runs": []}

    with path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"Metadata file {path} is corrupted") from exc

    if not isinstance(data, dict):
        raise RuntimeError(f"Metadata file {path} has invalid format (expected object)")

    data.setdefault("runs", [])
    if not isinstance(data["runs"], list):
        raise RuntimeError(f"Metadata file {path} has invalid structure")

    return data


def _save_store(store: Dict[str, Any]) -> None:
    """Persist the run log atomically to the local JSON file."""
    path = _get_metadata_file()
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(store, f, indent=2, ensure_ascii=False)

    tmp_path.replace(path)


def start_run(run_scope: str, parameters: Optional[Dict[str, Any]] = None) -> str:
    """
    Register the start of a pipeline run and return its identifier.

    ``parameters`` (indicator code, year, keys, ...) are stored as given and
    must be JSON serialisable.
    """
    store = _load_store()

    run_id = str(uuid4())
    store["runs"].append(
        {
            "run_id": run_id,
            "run_scope": run_scope,
            "start_ts": _now_utc_iso(),
            "end_ts": None,
            "status": "RUNNING",
            "parameters": dict(parameters or {}),
            "rows_processed": None,
            "missing_keys": [],
            "failed_keys": [],
            "error_message": None,
        }
    )
    _save_store(store)

    return run_id


def end_run(
    run_id: str,
    status: str = "SUCCESS",
    *,
    rows_processed: Optional[int] = None,
    missing_keys: Optional[Sequence[str]] = None,
    failed_keys: Optional[Sequence[str]] = None,
    error_message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Register the end of a run ("SUCCESS" or "FAILED") and return the record.
    """
    store = _load_store()
    runs: List[Dict[str, Any]] = store.get("runs", [])

    target_run: Optional[Dict[str, Any]] = None
    for run in reversed(runs):
        if run.get("run_id") == run_id:
            target_run = run
            break

    if target_run is None:
        raise KeyError(f"No run found with id={run_id!r}")

    target_run["end_ts"] = _now_utc_iso()
    target_run["status"] = status

    if rows_processed is not None:
        target_run["rows_processed"] = int(rows_processed)
    if missing_keys is not None:
        target_run["missing_keys"] = list(missing_keys)
    if failed_keys is not None:
        target_run["failed_keys"] = list(failed_keys)
    if error_message is not None:
        target_run["error_message"] = error_message

    _save_store(store)
    return target_run


def get_last_run(run_scope: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Most recent run record, optionally restricted to one scope."""
    runs = list_runs(run_scope)
    return runs[-1] if runs else None


def list_runs(run_scope: Optional[str] = None) -> List[Dict[str, Any]]:
    store = _load_store()
    runs: List[Dict[str, Any]] = store.get("runs", [])
    if run_scope is None:
        return list(runs)
    return [r for r in runs if r.get("run_scope") == run_scope]
