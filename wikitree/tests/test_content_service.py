from datetime import datetime, timedelta, timezone
from functools import partial

import pytest

from wikitree.errors import (
    AlreadyExistsError,
    BadInputError,
    NotEmptyError,
    NotFoundError,
    ParentFolderNotFoundError,
)
from wikitree.models.content import AccessRule, ContentMeta
from wikitree.services.content_service import ContentService
from wikitree.services.search_index import SearchIndex

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds):
    return T0 + timedelta(seconds=seconds)


def test_initialize_creates_root_with_default_acl(content):
    root = content.read_folder("")
    assert root.meta.title == "Home"
    assert root.meta.acl == [AccessRule(subject="all", operations=["read", "write", "delete"])]
    assert root.content == []


def test_save_and_read_page(content):
    content.save_page("foo", "# Foo\n", ContentMeta(title="Foo"), author_id="u1", now=T0)
    page = content.read_page("foo")
    assert page.content == "# Foo\n"
    assert page.meta.title == "Foo"
    assert page.meta.modified_by == "u1"
    assert page.meta.modified_at == T0
    assert content.is_page("foo")
    assert not content.is_folder("foo")


def test_save_page_records_attic_revision(content):
    content.save_page("foo", "v1", ContentMeta(), now=at(0))
    content.save_page("foo", "v2", ContentMeta(), now=at(1))
    revisions = [e.rev for e in content.list_attic("foo")]
    assert revisions == [int(at(0).timestamp()), int(at(1).timestamp())]
    assert content.read_page("foo", revisions[0]).content == "v1"
    # Newest revision matches the live page
    assert content.read_page("foo", revisions[-1]).content == content.read_page("foo").content


def test_same_second_save_overwrites_revision(content):
    content.save_page("foo", "v1", ContentMeta(), now=at(0))
    content.save_page("foo", "v2", ContentMeta(), now=at(0))
    entries = content.list_attic("foo")
    assert len(entries) == 1
    assert content.read_page("foo", entries[0].rev).content == "v2"


def test_page_needs_parent_folder(content):
    with pytest.raises(ParentFolderNotFoundError):
        content.save_page("missing/foo", "", ContentMeta())


def test_page_and_folder_exclude_each_other(content):
    content.create_folder("docs", ContentMeta(title="Docs"))
    with pytest.raises(AlreadyExistsError):
        content.save_page("docs", "", ContentMeta())
    content.save_page("page", "", ContentMeta())
    with pytest.raises(AlreadyExistsError):
        content.create_folder("page", ContentMeta())


def test_invalid_url_is_rejected(content):
    with pytest.raises(BadInputError):
        content.save_page("Foo", "", ContentMeta())


def test_read_folder_lists_children(content):
    content.create_folder("docs", ContentMeta(title="Docs"))
    content.create_folder("docs/sub", ContentMeta(title="Sub"))
    content.save_page("docs/intro", "", ContentMeta(title="Intro"))
    folder = content.read_folder("docs")
    listing = {(e.url, e.title, e.is_folder) for e in folder.content}
    assert listing == {("docs/sub", "Sub", True), ("docs/intro", "Intro", False)}


def test_read_ancestors_meta_root_first(content):
    content.create_folder("a", ContentMeta(title="A"))
    content.create_folder("a/b", ContentMeta(title="B"))
    ancestors = content.read_ancestors_meta("a/b/c")
    assert [a.url for a in ancestors] == ["", "a", "a/b"]
    assert [a.meta.title for a in ancestors] == ["Home", "A", "B"]
    assert [a.url for a in content.read_ancestors_meta("Not Valid")] == [""]


def test_delete_and_restore_page_with_attic(content):
    content.save_page("foo", "v1", ContentMeta(title="Foo"), now=at(0))
    content.save_page("foo", "v2", ContentMeta(title="Foo"), now=at(1))
    before = content.storage.read_file("pages/foo.md")
    attic_before = content.list_attic("foo")

    entry = content.delete_page("foo", now=at(10))
    assert entry.deleted_at == int(at(10).timestamp())
    assert not content.is_page("foo")
    assert content.list_attic("foo") == []

    trash = content.list_trash()
    assert [(t.url, t.deleted_at, t.is_folder) for t in trash] == [
        ("foo", entry.deleted_at, False)
    ]
    assert content.read_trash_page("foo", entry.deleted_at).content == "v2"

    content.restore_from_trash("foo", entry.deleted_at)
    assert content.storage.read_file("pages/foo.md") == before
    assert content.list_attic("foo") == attic_before
    assert content.list_trash() == []


def test_trash_name_collision_bumps_deleted_at(content):
    content.save_page("foo", "", ContentMeta())
    first = content.delete_page("foo", now=T0)
    content.save_page("foo", "", ContentMeta())
    second = content.delete_page("foo", now=T0)
    assert second.deleted_at == first.deleted_at + 1
    assert len(content.list_trash()) == 2


def test_restore_refuses_occupied_url(content):
    content.save_page("foo", "old", ContentMeta())
    entry = content.delete_page("foo", now=T0)
    content.save_page("foo", "new", ContentMeta())
    with pytest.raises(AlreadyExistsError):
        content.restore_from_trash("foo", entry.deleted_at)


def test_restore_requires_parent_folder(content):
    content.create_folder("docs", ContentMeta())
    content.save_page("docs/a", "", ContentMeta())
    page_entry = content.delete_page("docs/a", now=at(0))
    content.delete_empty_folder("docs", now=at(1))
    with pytest.raises(ParentFolderNotFoundError):
        content.restore_from_trash("docs/a", page_entry.deleted_at)


def test_delete_empty_folder(content):
    content.create_folder("docs", ContentMeta())
    content.save_page("docs/a", "", ContentMeta())
    with pytest.raises(NotEmptyError):
        content.delete_empty_folder("docs")
    with pytest.raises(BadInputError):
        content.delete_empty_folder("")


def test_delete_folder_recursively_and_restore(content):
    content.create_folder("docs", ContentMeta(title="Docs"))
    content.create_folder("docs/sub", ContentMeta(title="Sub"))
    content.save_page("docs/sub/deep", "deep", ContentMeta(), now=at(0))
    content.save_page("docs/top", "top", ContentMeta(), now=at(1))

    entry = content.delete_folder("docs", now=at(5))
    assert entry.is_folder
    assert not content.is_folder("docs")
    assert not content.is_page("docs/sub/deep")

    content.restore_from_trash("docs", entry.deleted_at)
    assert content.read_folder("docs/sub").meta.title == "Sub"
    assert content.read_page("docs/sub/deep").content == "deep"
    assert [e.rev for e in content.list_attic("docs/top")] == [int(at(1).timestamp())]


def test_delete_trash_entry(content):
    content.save_page("foo", "", ContentMeta())
    entry = content.delete_page("foo", now=T0)
    content.delete_trash_entry("foo", entry.deleted_at)
    assert content.list_trash() == []
    with pytest.raises(NotFoundError):
        content.delete_trash_entry("foo", entry.deleted_at)


def test_move_page_keeps_attic(content):
    content.create_folder("dst", ContentMeta())
    content.save_page("src", "body", ContentMeta(), now=T0)
    content.move_page("src", "dst/page")
    assert not content.is_page("src")
    assert content.read_page("dst/page").content == "body"
    assert [e.rev for e in content.list_attic("dst/page")] == [int(T0.timestamp())]


def test_move_folder(content):
    content.create_folder("a", ContentMeta(title="A"))
    content.save_page("a/p", "p", ContentMeta(), now=T0)
    content.move_folder("a", "b")
    assert content.read_folder("b").meta.title == "A"
    assert content.read_page("b/p").content == "p"
    assert content.list_attic("b/p")
    with pytest.raises(BadInputError):
        content.move_folder("b", "b/inner")
    with pytest.raises(BadInputError):
        content.move_folder("", "x")


def test_move_refuses_existing_destination(content):
    content.save_page("a", "", ContentMeta())
    content.save_page("b", "", ContentMeta())
    with pytest.raises(AlreadyExistsError):
        content.move_page("a", "b")


def test_search_finds_titles_and_bodies(content):
    content.save_page("alpha", "the quick brown fox", ContentMeta(title="Alpha"))
    content.save_page("beta", "nothing here", ContentMeta(title="Foxes"))
    urls = {hit.url for hit in content.search("fox")}
    assert "alpha" in urls
    hit = next(h for h in content.search("quick") if h.url == "alpha")
    assert "<mark>quick</mark>" in hit.fragments["content"][0]
    assert hit.effective_acl == content.read_folder("").meta.acl


def test_search_index_follows_deletes(content):
    content.save_page("alpha", "unicorn", ContentMeta())
    content.delete_page("alpha")
    assert content.search("unicorn") == []


def test_index_is_rebuilt_from_storage(storage, content):
    content.save_page("alpha", "zebra", ContentMeta())
    fresh = ContentService(storage)
    assert [hit.url for hit in fresh.search("zebra")] == ["alpha"]


def test_fs_storage_backed_service(fs_storage):
    service = ContentService(fs_storage)
    service.create_folder("docs", ContentMeta(title="Docs"))
    service.save_page("docs/a", "hello", ContentMeta(title="A"))
    assert service.read_page("docs/a").content == "hello"
    entry = service.delete_folder("docs")
    service.restore_from_trash("docs", entry.deleted_at)
    assert service.read_page("docs/a").content == "hello"


def test_delete_all_resets_to_empty_root(content):
    content.save_page("foo", "", ContentMeta())
    content.delete_all()
    assert content.read_folder("").content == []
    assert content.list_trash() == []


def test_search_pages_through_rejected_hits(content, monkeypatch):
    monkeypatch.setattr(content.index, "search", partial(SearchIndex.search, content.index, pagelen=2))
    content.create_folder("vault", ContentMeta(title="Vault", acl=[]))
    for i in range(5):
        content.save_page(f"vault/z{i}", "zebra zebra zebra", ContentMeta(title="Zebra"))
    content.save_page("open", "a long page that mentions a zebra only once", ContentMeta(title="Open"))

    hits = content.search("zebra", accept=lambda hit: hit.effective_acl != [])
    assert [hit.url for hit in hits] == ["open"]


def test_search_stops_at_limit(content):
    for i in range(6):
        content.save_page(f"p{i}", "shared words", ContentMeta(title=f"P{i}"))
    assert len(content.search("shared", limit=3)) == 3
    assert len(content.search("shared")) == 6
