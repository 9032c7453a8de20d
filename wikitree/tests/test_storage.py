"""
Both storage drivers must behave the same, so every test runs against each.
"""

import pytest

from wikitree.errors import (
    StorageExistsError,
    StorageIOError,
    StorageNotEmptyError,
    StorageNotFoundError,
)
from wikitree.models.settings import AppConfig
from wikitree.storage import DirEntry, FsStorage, MemoryStorage, clean_path


@pytest.fixture(params=["memory", "fs"])
def driver(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    return FsStorage(str(tmp_path / "data"))


def test_clean_path():
    assert clean_path("") == ""
    assert clean_path("/a//b/") == "a/b"
    assert clean_path("a/./b") == "a/b"
    with pytest.raises(StorageIOError):
        clean_path("a/../../etc")


def test_write_and_read_file_creates_parents(driver):
    driver.write_file("a/b/c.txt", b"hello")
    assert driver.read_file("a/b/c.txt") == b"hello"
    assert driver.exists("a/b")
    assert driver.read_directory("a") == [DirEntry("b", True)]


def test_read_missing_file(driver):
    with pytest.raises(StorageNotFoundError):
        driver.read_file("missing.txt")


def test_delete_file(driver):
    driver.write_file("x.txt", b"1")
    driver.delete_file("x.txt")
    assert not driver.exists("x.txt")
    with pytest.raises(StorageNotFoundError):
        driver.delete_file("x.txt")


def test_create_directory_requires_parent(driver):
    driver.create_directory("top")
    assert driver.exists("top")
    with pytest.raises(StorageExistsError):
        driver.create_directory("top")
    with pytest.raises(StorageNotFoundError):
        driver.create_directory("nope/child")


def test_read_directory_sorted(driver):
    driver.write_file("d/b.md", b"")
    driver.write_file("d/a.md", b"")
    driver.create_directory("d/c")
    assert driver.read_directory("d") == [
        DirEntry("a.md", False),
        DirEntry("b.md", False),
        DirEntry("c", True),
    ]


def test_delete_empty_directory(driver):
    driver.write_file("d/f.txt", b"")
    with pytest.raises(StorageNotEmptyError):
        driver.delete_empty_directory("d")
    driver.delete_file("d/f.txt")
    driver.delete_empty_directory("d")
    assert not driver.exists("d")


def test_delete_directory_recursive(driver):
    driver.write_file("d/e/f.txt", b"")
    driver.delete_directory("d")
    assert not driver.exists("d/e/f.txt")
    assert not driver.exists("d")


def test_rename_moves_subtree(driver):
    driver.write_file("src/a/b.txt", b"b")
    driver.rename("src", "dst/inner")
    assert driver.read_file("dst/inner/a/b.txt") == b"b"
    assert not driver.exists("src")


def test_rename_refuses_existing_destination(driver):
    driver.write_file("a.txt", b"a")
    driver.write_file("b.txt", b"b")
    with pytest.raises(StorageExistsError):
        driver.rename("a.txt", "b.txt")
    with pytest.raises(StorageNotFoundError):
        driver.rename("missing.txt", "c.txt")


def test_yaml_and_config_helpers(driver):
    driver.write_yaml("list.yml", [{"id": "x", "userId": "u"}])
    assert driver.read_yaml("list.yml") == [{"id": "x", "userId": "u"}]

    config = AppConfig(app_title="Wiki", jwt_secret="s3cret", setup_mode=False)
    driver.write_config(config)
    loaded = driver.read_config()
    assert loaded.app_title == "Wiki"
    assert loaded.jwt_secret == "s3cret"
    assert loaded.setup_mode is False


def test_invalid_yaml_is_io_error(driver):
    driver.write_file("broken.yml", b"a: [unclosed")
    with pytest.raises(StorageIOError):
        driver.read_yaml("broken.yml")


def test_fs_storage_file_permissions(tmp_path):
    storage = FsStorage(str(tmp_path / "data"))
    storage.write_file("secret.yml", b"x")
    mode = (tmp_path / "data" / "secret.yml").stat().st_mode & 0o777
    assert mode == 0o600


def test_empty_config_does_not_reopen_setup(driver):
    driver.write_file("config.yml", b"")
    assert driver.read_config().setup_mode is False


def test_fs_storage_overwrite_replaces_file(tmp_path):
    storage = FsStorage(str(tmp_path / "data"))
    storage.write_file("config.yml", b"first")
    before = (tmp_path / "data" / "config.yml").stat().st_ino
    storage.write_file("config.yml", b"second")
    assert (tmp_path / "data" / "config.yml").stat().st_ino != before
    assert storage.read_file("config.yml") == b"second"
    assert storage.read_directory("") == [DirEntry("config.yml", False)]


def test_fs_storage_failed_write_keeps_old_content(tmp_path, monkeypatch):
    storage = FsStorage(str(tmp_path / "data"))
    storage.write_file("config.yml", b"appTitle: Wiki\n")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("wikitree.storage.fs.os.replace", broken_replace)
    with pytest.raises(StorageIOError):
        storage.write_file("config.yml", b"")
    monkeypatch.undo()

    assert storage.read_file("config.yml") == b"appTitle: Wiki\n"
    assert storage.read_directory("") == [DirEntry("config.yml", False)]
