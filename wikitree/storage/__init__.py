"""
Storage drivers for wikitree.

A driver maps virtual forward-slash paths (relative to the data root) onto
some backing store. FsStorage is the production driver, MemoryStorage has
identical semantics and backs the unit tests.

Failures surface as StorageNotFoundError, StorageExistsError,
StorageNotEmptyError or StorageIOError.
"""

from ..errors import (
    StorageError,
    StorageExistsError,
    StorageIOError,
    StorageNotEmptyError,
    StorageNotFoundError,
)
from .base import CONFIG_FILE, DirEntry, Storage, clean_path
from .fs import FsStorage
from .memory import MemoryStorage

__all__ = [
    "CONFIG_FILE",
    "DirEntry",
    "Storage",
    "clean_path",
    "FsStorage",
    "MemoryStorage",
    "StorageError",
    "StorageExistsError",
    "StorageIOError",
    "StorageNotEmptyError",
    "StorageNotFoundError",
]
