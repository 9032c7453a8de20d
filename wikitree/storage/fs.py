"""
Filesystem storage driver.

Files are written with mode 0600 and directories with 0700 since the data
directory holds password hashes and the JWT secret.
"""

import errno
import os
import shutil
import tempfile
from typing import List

from loguru import logger

from ..errors import (
    StorageExistsError,
    StorageIOError,
    StorageNotEmptyError,
    StorageNotFoundError,
)
from .base import DirEntry, Storage, clean_path

DIR_MODE = 0o700
TMP_SUFFIX = ".tmp"


class FsStorage(Storage):
    """Storage driver rooted at a directory on the host filesystem."""

    def __init__(self, data_dir: str) -> None:
        self.data_dir = os.path.abspath(data_dir)
        if not os.path.isdir(self.data_dir):
            os.makedirs(self.data_dir, mode=DIR_MODE, exist_ok=True)
            logger.info(f"Created data directory {self.data_dir}")

    def _abs(self, path: str) -> str:
        cleaned = clean_path(path)
        if not cleaned:
            return self.data_dir
        return os.path.join(self.data_dir, *cleaned.split("/"))

    def exists(self, path: str) -> bool:
        return os.path.exists(self._abs(path))

    def read_file(self, path: str) -> bytes:
        try:
            with open(self._abs(path), "rb") as f:
                return f.read()
        except FileNotFoundError as exc:
            raise StorageNotFoundError(path) from exc
        except OSError as exc:
            raise StorageIOError(path, str(exc)) from exc

    def write_file(self, path: str, content: bytes) -> None:
        target = self._abs(path)
        try:
            os.makedirs(os.path.dirname(target), mode=DIR_MODE, exist_ok=True)
            directory, name = os.path.split(target)
            # Readers never see a truncated file; mkstemp creates it with mode 0600
            fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=TMP_SUFFIX, dir=directory)
        except OSError as exc:
            raise StorageIOError(path, str(exc)) from exc
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_path, target)
        except OSError as exc:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise StorageIOError(path, str(exc)) from exc

    def delete_file(self, path: str) -> None:
        target = self._abs(path)
        if os.path.isdir(target):
            raise StorageIOError(path, "is a directory")
        try:
            os.remove(target)
        except FileNotFoundError as exc:
            raise StorageNotFoundError(path) from exc
        except OSError as exc:
            raise StorageIOError(path, str(exc)) from exc

    def create_directory(self, path: str) -> None:
        try:
            os.mkdir(self._abs(path), DIR_MODE)
        except FileExistsError as exc:
            raise StorageExistsError(path) from exc
        except FileNotFoundError as exc:
            raise StorageNotFoundError(path, "parent directory missing") from exc
        except OSError as exc:
            raise StorageIOError(path, str(exc)) from exc

    def read_directory(self, path: str) -> List[DirEntry]:
        try:
            with os.scandir(self._abs(path)) as it:
                entries = [DirEntry(e.name, e.is_dir()) for e in it]
        except FileNotFoundError as exc:
            raise StorageNotFoundError(path) from exc
        except OSError as exc:
            raise StorageIOError(path, str(exc)) from exc
        return sorted(entries, key=lambda e: e.name)

    def delete_empty_directory(self, path: str) -> None:
        try:
            os.rmdir(self._abs(path))
        except FileNotFoundError as exc:
            raise StorageNotFoundError(path) from exc
        except OSError as exc:
            if exc.errno in (errno.ENOTEMPTY, errno.EEXIST):
                raise StorageNotEmptyError(path) from exc
            raise StorageIOError(path, str(exc)) from exc

    def delete_directory(self, path: str) -> None:
        target = self._abs(path)
        if not os.path.isdir(target):
            raise StorageNotFoundError(path)
        try:
            shutil.rmtree(target)
        except OSError as exc:
            raise StorageIOError(path, str(exc)) from exc

    def rename(self, old_path: str, new_path: str) -> None:
        source = self._abs(old_path)
        target = self._abs(new_path)
        if not os.path.exists(source):
            raise StorageNotFoundError(old_path)
        if os.path.exists(target):
            raise StorageExistsError(new_path)
        try:
            os.makedirs(os.path.dirname(target), mode=DIR_MODE, exist_ok=True)
            os.rename(source, target)
        except OSError as exc:
            raise StorageIOError(old_path, str(exc)) from exc
