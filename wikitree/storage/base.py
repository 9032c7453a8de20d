"""Storage driver interface and shared YAML helpers."""

import posixpath
from abc import ABC, abstractmethod
from typing import Any, List, NamedTuple

import yaml

from ..errors import StorageIOError
from ..models.settings import AppConfig

CONFIG_FILE = "config.yml"


class DirEntry(NamedTuple):
    name: str
    is_dir: bool


def clean_path(path: str) -> str:
    """
    Normalize a virtual path; "" is the data root.

    Raises StorageIOError for paths escaping the root.
    """
    if ".." in path.split("/"):
        raise StorageIOError(path, "path escapes the data directory")
    return posixpath.normpath("/" + path).lstrip("/")


class Storage(ABC):
    """Interface shared by the storage drivers."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if a file or directory exists at path."""

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """Return the content of a file."""

    @abstractmethod
    def write_file(self, path: str, content: bytes) -> None:
        """Create or replace a file, creating missing parent directories."""

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """Remove a file."""

    @abstractmethod
    def create_directory(self, path: str) -> None:
        """Create one directory; the parent must exist."""

    @abstractmethod
    def read_directory(self, path: str) -> List[DirEntry]:
        """List the entries of a directory, sorted by name."""

    @abstractmethod
    def delete_empty_directory(self, path: str) -> None:
        """Remove a directory that has no entries."""

    @abstractmethod
    def delete_directory(self, path: str) -> None:
        """Remove a directory and everything below it."""

    @abstractmethod
    def rename(self, old_path: str, new_path: str) -> None:
        """
        Move a file or directory.

        The destination must not exist; missing parents of the destination
        are created.
        """

    def read_yaml(self, path: str) -> Any:
        raw = self.read_file(path)
        try:
            return yaml.safe_load(raw.decode("utf-8"))
        except (yaml.YAMLError, UnicodeDecodeError) as exc:
            raise StorageIOError(path, f"invalid YAML ({exc})") from exc

    def write_yaml(self, path: str, data: Any) -> None:
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        self.write_file(path, text.encode("utf-8"))

    def read_config(self) -> AppConfig:
        data = self.read_yaml(CONFIG_FILE) or {}
        return AppConfig.model_validate(data)

    def write_config(self, config: AppConfig) -> None:
        self.write_yaml(CONFIG_FILE, config.to_record())


