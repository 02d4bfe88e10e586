from __future__ import annotations

import io
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import pandas as pd


class StorageAdapter(ABC):
    """
    Abstraction over the underlying storage layer.

    Implementations map logical keys such as "output/merged_dataset.csv"
    to physical locations. Writes are all-or-nothing: a failed write never
    leaves a truncated file behind under the target key.
    """

    @abstractmethod
    def write_raw(self, key: str, content: bytes) -> str:
        """
        Persist arbitrary bytes at the given key.

        Returns the fully-qualified location string (for tracing/logging).
        """

    @abstractmethod
    def read_raw(self, key: str) -> bytes:
        """Read raw bytes previously stored at the given key."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Whether something is stored at the given key."""

    def write_csv(self, df: pd.DataFrame, key: str, *, sep: str = ",") -> str:
        """Serialise a DataFrame as CSV (no index) and store it at the given key."""
        buffer = io.StringIO()
        df.to_csv(buffer, index=False, sep=sep)
        return self.write_raw(key, buffer.getvalue().encode("utf-8"))

    def read_csv(self, key: str, *, sep: str = ",") -> pd.DataFrame:
        return pd.read_csv(io.BytesIO(self.read_raw(key)), sep=sep)


class LocalStorageAdapter(StorageAdapter):
    """
    Local filesystem-backed storage adapter.

    Keys are treated as relative paths under a root directory.
    Example:
        root_dir = Path("output")
        key      = "merged/dataset_with_life_expectancy.csv"
        -> actual path: ./output/merged/dataset_with_life_expectancy.csv
    """

    def __init__(self, root_dir: Path | str = ".") -> None:
        self.root_dir = Path(root_dir)

    def _resolve(self, key: str) -> Path:
        path = self.root_dir / key
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def write_raw(self, key: str, content: bytes) -> str:
        path = self._resolve(key)
        # Temp file in the destination directory so os.replace stays atomic.
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return str(path)

    def read_raw(self, key: str) -> bytes:
        path = self.root_dir / key
        with path.open("rb") as f:
            return f.read()

    def exists(self, key: str) -> bool:
        return (self.root_dir / key).is_file()
