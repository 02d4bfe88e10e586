"""
Adapters package
----------------

Storage abstraction so the pipeline writes its artefacts through one
interface; the local implementation maps logical keys to files under a
root directory.
"""

from .storage import (  # noqa: F401
    LocalStorageAdapter,
    StorageAdapter,
)

__all__ = [
    "StorageAdapter",
    "LocalStorageAdapter",
]
