"""
In-memory storage driver with the same semantics as FsStorage.
"""

import posixpath
import threading
from typing import Dict, List, Set

from ..errors import (
    StorageExistsError,
    StorageIOError,
    StorageNotEmptyError,
    StorageNotFoundError,
)
from .base import DirEntry, Storage, clean_path


def _parents(path: str) -> List[str]:
    """Every directory above path, nearest last, root excluded."""
    parts = path.split("/")[:-1]
    return ["/".join(parts[: i + 1]) for i in range(len(parts))]


class MemoryStorage(Storage):
    """Keeps files in a dict and directories in a set."""

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        # The root "" always exists
        self.dirs: Set[str] = {""}
        self._lock = threading.RLock()

    def _is_dir(self, path: str) -> bool:
        return path in self.dirs

    def _children(self, path: str) -> List[str]:
        prefix = path + "/" if path else ""
        names = set()
        for candidate in list(self.files) + list(self.dirs):
            if candidate and candidate.startswith(prefix):
                rest = candidate[len(prefix):]
                if rest and "/" not in rest:
                    names.add(rest)
        return sorted(names)

    def _make_parents(self, path: str) -> None:
        for parent in _parents(path):
            if parent in self.files:
                raise StorageIOError(parent, "not a directory")
            self.dirs.add(parent)

    def exists(self, path: str) -> bool:
        path = clean_path(path)
        with self._lock:
            return path in self.files or path in self.dirs

    def read_file(self, path: str) -> bytes:
        path = clean_path(path)
        with self._lock:
            if path in self.dirs:
                raise StorageIOError(path, "is a directory")
            if path not in self.files:
                raise StorageNotFoundError(path)
            return self.files[path]

    def write_file(self, path: str, content: bytes) -> None:
        path = clean_path(path)
        with self._lock:
            if path in self.dirs:
                raise StorageIOError(path, "is a directory")
            self._make_parents(path)
            self.files[path] = bytes(content)

    def delete_file(self, path: str) -> None:
        path = clean_path(path)
        with self._lock:
            if path in self.dirs:
                raise StorageIOError(path, "is a directory")
            if path not in self.files:
                raise StorageNotFoundError(path)
            del self.files[path]

    def create_directory(self, path: str) -> None:
        path = clean_path(path)
        with self._lock:
            if path in self.files or path in self.dirs:
                raise StorageExistsError(path)
            if posixpath.dirname(path) not in self.dirs:
                raise StorageNotFoundError(path, "parent directory missing")
            self.dirs.add(path)

    def read_directory(self, path: str) -> List[DirEntry]:
        path = clean_path(path)
        with self._lock:
            if path in self.files:
                raise StorageIOError(path, "not a directory")
            if path not in self.dirs:
                raise StorageNotFoundError(path)
            prefix = path + "/" if path else ""
            return [
                DirEntry(name, (prefix + name) in self.dirs)
                for name in self._children(path)
            ]

    def delete_empty_directory(self, path: str) -> None:
        path = clean_path(path)
        with self._lock:
            if path not in self.dirs:
                raise StorageNotFoundError(path)
            if self._children(path):
                raise StorageNotEmptyError(path)
            self.dirs.discard(path)

    def delete_directory(self, path: str) -> None:
        path = clean_path(path)
        with self._lock:
            if path not in self.dirs:
                raise StorageNotFoundError(path)
            prefix = path + "/"
            for name in [f for f in self.files if f.startswith(prefix)]:
                del self.files[name]
            for name in [d for d in self.dirs if d.startswith(prefix)]:
                self.dirs.discard(name)
            if path:
                self.dirs.discard(path)

    def rename(self, old_path: str, new_path: str) -> None:
        old_path = clean_path(old_path)
        new_path = clean_path(new_path)
        with self._lock:
            if old_path not in self.files and old_path not in self.dirs:
                raise StorageNotFoundError(old_path)
            if new_path in self.files or new_path in self.dirs:
                raise StorageExistsError(new_path)
            if new_path.startswith(old_path + "/"):
                raise StorageIOError(new_path, "cannot move a directory into itself")
            self._make_parents(new_path)
            if old_path in self.files:
                self.files[new_path] = self.files.pop(old_path)
                return
            prefix = old_path + "/"
            for name in [f for f in self.files if f.startswith(prefix)]:
                self.files[new_path + "/" + name[len(prefix):]] = self.files.pop(name)
            for name in [d for d in self.dirs if d.startswith(prefix)]:
                self.dirs.discard(name)
                self.dirs.add(new_path + "/" + name[len(prefix):])
            self.dirs.discard(old_path)
            self.dirs.add(new_path)
