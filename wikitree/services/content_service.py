"""
Content service layer for wikitree.

Owns three subtrees of the data directory:

    pages/a/b/c.md            page a/b/c
    pages/a/b/_index.md       folder a/b
    attic/a/b/c.<rev>.md      revision <rev> of page a/b/c
    trash/<t>_<name>/         node deleted at unix time <t>

A trash entry name is the deletion time and the URL with "/" replaced by
"." (URLs never contain "."). Page entries hold page.md plus the page's
attic files under attic/; folder entries hold the subtree under folder/
and the subtree's attic under attic/.
"""

import re
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from loguru import logger

from ..errors import (
    AlreadyExistsError,
    BadInputError,
    NotEmptyError,
    NotFoundError,
    ParentFolderNotFoundError,
    StorageNotFoundError,
)
from ..models.content import (
    AccessRule,
    AncestorMeta,
    AtticEntry,
    ContentMeta,
    Folder,
    FolderEntry,
    Page,
    SearchHit,
    TrashEntry,
)
from ..storage import Storage
from ..utils.validation import (
    ancestor_urls,
    is_valid_url,
    join_url,
    parent_url,
    url_name,
)
from .acl import get_effective_acl
from .frontmatter import FrontmatterCodec
from .search_index import SearchIndex

PAGES_DIR = "pages"
ATTIC_DIR = "attic"
TRASH_DIR = "trash"
INDEX_FILE = "_index.md"
TRASH_PAGE_FILE = "page.md"
TRASH_FOLDER_DIR = "folder"

DEFAULT_ROOT_ACL = [AccessRule(subject="all", operations=["read", "write", "delete"])]

_TRASH_NAME_PATTERN = re.compile(r"^(\d+)_([a-z0-9_.-]+)$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _page_path(url: str) -> str:
    return f"{PAGES_DIR}/{url}.md"


def _folder_dir(url: str) -> str:
    return f"{PAGES_DIR}/{url}" if url else PAGES_DIR


def _folder_index(url: str) -> str:
    return f"{_folder_dir(url)}/{INDEX_FILE}"


def _attic_path(url: str, revision: int) -> str:
    return f"{ATTIC_DIR}/{url}.{revision}.md"


def _attic_dir(url: str) -> str:
    return f"{ATTIC_DIR}/{url}" if url else ATTIC_DIR


def _trash_name(url: str, deleted_at: int) -> str:
    return f"{deleted_at}_{url.replace('/', '.')}"


def _trash_dir(url: str, deleted_at: int) -> str:
    return f"{TRASH_DIR}/{_trash_name(url, deleted_at)}"


def _parse_trash_name(name: str) -> Optional[Tuple[str, int]]:
    match = _TRASH_NAME_PATTERN.match(name)
    if not match:
        return None
    url = match.group(2).replace(".", "/")
    if not url or not is_valid_url(url):
        return None
    return url, int(match.group(1))


def _revision_pattern(name: str) -> "re.Pattern[str]":
    return re.compile(rf"^{re.escape(name)}\.(\d+)\.md$")


class ContentService:
    """Page and folder storage with history and trash."""

    def __init__(self, storage: Storage, index: Optional[SearchIndex] = None) -> None:
        self.storage = storage
        self.index = index or SearchIndex()
        self.initialize()
        self.recreate_index()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the content subtrees and the root folder when missing."""
        for directory in (PAGES_DIR, ATTIC_DIR, TRASH_DIR):
            if not self.storage.exists(directory):
                self.storage.create_directory(directory)
        if not self.storage.exists(_folder_index("")):
            meta = ContentMeta(title="Home", acl=list(DEFAULT_ROOT_ACL))
            self._write_folder_index("", meta)
            logger.info("Created root folder with default ACL")

    def delete_all(self) -> None:
        """Wipe pages, attic and trash and start over with an empty root."""
        for directory in (PAGES_DIR, ATTIC_DIR, TRASH_DIR):
            if self.storage.exists(directory):
                self.storage.delete_directory(directory)
        self.index.clear()
        self.initialize()
        logger.warning("All content deleted")

    def recreate_index(self) -> None:
        """Rebuild the search index from the pages subtree."""
        self.index.clear()
        count = self._index_tree("")
        logger.info(f"[index] indexed {count} pages and folders")

    def _index_tree(self, url: str) -> int:
        count = 0
        if url:
            self.index.index_folder(url, self._read_meta(_folder_index(url)))
            count += 1
        for entry in self.storage.read_directory(_folder_dir(url)):
            if entry.is_dir:
                child = join_url(url, entry.name)
                if self.is_folder(child):
                    count += self._index_tree(child)
            elif self._is_page_file(entry.name):
                child = join_url(url, entry.name[:-3])
                try:
                    page = self.read_page(child)
                except Exception as exc:
                    logger.error(f"[index] cannot index {child}: {exc}")
                    continue
                self.index.index_page(child, page.meta, page.content)
                count += 1
        return count

    # ------------------------------------------------------------------
    # Existence checks
    # ------------------------------------------------------------------

    @staticmethod
    def _is_page_file(name: str) -> bool:
        return name.endswith(".md") and not name.startswith("_")

    def is_page(self, url: str) -> bool:
        if not url or not is_valid_url(url):
            return False
        return self.storage.exists(_page_path(url))

    def is_folder(self, url: str) -> bool:
        if not is_valid_url(url):
            return False
        return self.storage.exists(_folder_index(url))

    def is_attic_revision(self, url: str, revision: int) -> bool:
        if not url or not is_valid_url(url):
            return False
        return self.storage.exists(_attic_path(url, revision))

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _read_text(self, path: str) -> str:
        try:
            return self.storage.read_file(path).decode("utf-8")
        except StorageNotFoundError as exc:
            raise NotFoundError(f"{path} not found") from exc

    def _read_meta(self, path: str) -> ContentMeta:
        meta, _ = FrontmatterCodec.parse(self._read_text(path))
        return meta

    def read_page(self, url: str, revision: Optional[int] = None) -> Page:
        """Read the live page, or one attic revision of it."""
        if not url or not is_valid_url(url):
            raise NotFoundError(f"Page {url!r} not found")
        path = _page_path(url) if revision is None else _attic_path(url, revision)
        meta, body = FrontmatterCodec.parse(self._read_text(path))
        return Page(url=url, content=body, meta=meta)

    def read_folder(self, url: str) -> Folder:
        """Read a folder's metadata and list its direct children."""
        if not self.is_folder(url):
            raise NotFoundError(f"Folder {url!r} not found")
        meta = self._read_meta(_folder_index(url))
        entries: List[FolderEntry] = []
        for entry in self.storage.read_directory(_folder_dir(url)):
            if entry.is_dir:
                child = join_url(url, entry.name)
                if not self.is_folder(child):
                    continue
                child_meta = self._read_meta(_folder_index(child))
                entries.append(FolderEntry(url=child, title=child_meta.title, is_folder=True))
            elif self._is_page_file(entry.name):
                child = join_url(url, entry.name[:-3])
                if not is_valid_url(child):
                    continue
                child_meta = self._read_meta(_page_path(child))
                entries.append(FolderEntry(url=child, title=child_meta.title, is_folder=False))
        return Folder(url=url, content=entries, meta=meta)

    def read_ancestors_meta(self, url: str) -> List[AncestorMeta]:
        """
        Return the metadata of every existing folder above url, root first.

        Missing ancestors are skipped, so an invalid or dangling URL still
        yields at least the root.
        """
        ancestors = []
        candidates = ancestor_urls(url) if is_valid_url(url) else [""]
        for candidate in candidates:
            if not self.is_folder(candidate):
                continue
            ancestors.append(
                AncestorMeta(url=candidate, meta=self._read_meta(_folder_index(candidate)))
            )
        return ancestors

    def list_all_pages(self) -> List[str]:
        """Return the URL of every live page, depth first."""
        urls: List[str] = []
        self._collect_pages("", urls)
        return urls

    def _collect_pages(self, url: str, urls: List[str]) -> None:
        for entry in self.storage.read_directory(_folder_dir(url)):
            child_name = entry.name if entry.is_dir else entry.name[:-3]
            child = join_url(url, child_name)
            if entry.is_dir:
                if self.is_folder(child):
                    self._collect_pages(child, urls)
            elif self._is_page_file(entry.name) and is_valid_url(child):
                urls.append(child)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _check_writable_url(self, url: str) -> None:
        if not is_valid_url(url):
            raise BadInputError(f"Invalid URL {url!r}")
        if url and not self.is_folder(parent_url(url)):
            raise ParentFolderNotFoundError(f"Parent folder of {url!r} does not exist")

    def save_page(
        self,
        url: str,
        content: str,
        meta: ContentMeta,
        author_id: str = "",
        now: Optional[datetime] = None,
    ) -> Page:
        """
        Write a page and record the written bytes as a new attic revision.

        The revision is the save time in unix seconds; a second save within
        the same second replaces that revision.
        """
        self._check_writable_url(url)
        if not url or self.is_folder(url):
            raise AlreadyExistsError(f"A folder already exists at {url!r}")

        now = now or _utcnow()
        meta = meta.model_copy(
            update={
                "modified_at": now,
                "modified_by": author_id,
                "modified_by_username": "",
                "modified_by_display_name": "",
            }
        )
        serialized = FrontmatterCodec.serialize(meta, content).encode("utf-8")

        # Live file first, then history
        self.storage.write_file(_page_path(url), serialized)
        revision = int(now.timestamp())
        self.storage.write_file(_attic_path(url, revision), serialized)

        self.index.index_page(url, meta, content)
        logger.info(f"Saved page {url} (rev {revision})")
        return Page(url=url, content=content, meta=meta)

    def create_folder(self, url: str, meta: ContentMeta) -> None:
        self._check_writable_url(url)
        if not url or self.is_folder(url) or self.is_page(url):
            raise AlreadyExistsError(f"Content already exists at {url!r}")
        directory = _folder_dir(url)
        if not self.storage.exists(directory):
            self.storage.create_directory(directory)
        self._write_folder_index(url, meta)
        logger.info(f"Created folder {url}")

    def save_folder(self, url: str, meta: ContentMeta) -> None:
        if not is_valid_url(url):
            raise BadInputError(f"Invalid URL {url!r}")
        if not self.is_folder(url):
            raise NotFoundError(f"Folder {url!r} not found")
        self._write_folder_index(url, meta)

    def _write_folder_index(self, url: str, meta: ContentMeta) -> None:
        meta = meta.model_copy(
            update={"modified_by_username": "", "modified_by_display_name": ""}
        )
        self.storage.write_file(
            _folder_index(url), FrontmatterCodec.serialize(meta).encode("utf-8")
        )
        if url:
            self.index.index_folder(url, meta)

    # ------------------------------------------------------------------
    # Attic
    # ------------------------------------------------------------------

    def list_attic(self, url: str) -> List[AtticEntry]:
        """Return the revisions of a page, oldest first."""
        if not url or not is_valid_url(url):
            raise NotFoundError(f"Page {url!r} not found")
        directory = _attic_dir(parent_url(url))
        if not self.storage.exists(directory):
            return []
        pattern = _revision_pattern(url_name(url))
        revisions = []
        for entry in self.storage.read_directory(directory):
            match = pattern.match(entry.name)
            if match and not entry.is_dir:
                revisions.append(int(match.group(1)))
        return [AtticEntry(rev=rev) for rev in sorted(revisions)]

    def delete_attic_entry(self, url: str, revision: int) -> None:
        if not self.is_attic_revision(url, revision):
            raise NotFoundError(f"Revision {revision} of {url!r} not found")
        self.storage.delete_file(_attic_path(url, revision))

    # ------------------------------------------------------------------
    # Trash
    # ------------------------------------------------------------------

    def _new_trash_dir(self, url: str, now: Optional[datetime]) -> Tuple[str, int]:
        deleted_at = int((now or _utcnow()).timestamp())
        # Same node deleted twice within one second
        while self.storage.exists(_trash_dir(url, deleted_at)):
            deleted_at += 1
        return _trash_dir(url, deleted_at), deleted_at

    def delete_page(self, url: str, now: Optional[datetime] = None) -> TrashEntry:
        """Move a page and its attic into the trash."""
        if not self.is_page(url):
            raise NotFoundError(f"Page {url!r} not found")
        meta = self._read_meta(_page_path(url))
        entry_dir, deleted_at = self._new_trash_dir(url, now)

        self.storage.rename(_page_path(url), f"{entry_dir}/{TRASH_PAGE_FILE}")
        name = url_name(url)
        for entry in self.list_attic(url):
            self.storage.rename(
                _attic_path(url, entry.rev), f"{entry_dir}/{ATTIC_DIR}/{name}.{entry.rev}.md"
            )

        self.index.delete(url)
        logger.info(f"Moved page {url} to trash ({deleted_at})")
        return TrashEntry(url=url, deleted_at=deleted_at, meta=meta, is_folder=False)

    def delete_empty_folder(self, url: str, now: Optional[datetime] = None) -> TrashEntry:
        """Move a folder holding nothing but its index file into the trash."""
        self._check_deletable_folder(url)
        for entry in self.storage.read_directory(_folder_dir(url)):
            if entry.is_dir or entry.name != INDEX_FILE:
                raise NotEmptyError(f"Folder {url!r} is not empty")
        return self._trash_folder(url, now)

    def delete_folder(self, url: str, now: Optional[datetime] = None) -> TrashEntry:
        """Move a folder with its whole subtree and history into the trash."""
        self._check_deletable_folder(url)
        return self._trash_folder(url, now)

    def _check_deletable_folder(self, url: str) -> None:
        if url == "":
            raise BadInputError("The root folder cannot be deleted")
        if not self.is_folder(url):
            raise NotFoundError(f"Folder {url!r} not found")

    def _trash_folder(self, url: str, now: Optional[datetime]) -> TrashEntry:
        meta = self._read_meta(_folder_index(url))
        entry_dir, deleted_at = self._new_trash_dir(url, now)
        self.storage.rename(_folder_dir(url), f"{entry_dir}/{TRASH_FOLDER_DIR}")
        if self.storage.exists(_attic_dir(url)):
            self.storage.rename(_attic_dir(url), f"{entry_dir}/{ATTIC_DIR}")
        self.index.delete_tree(url)
        logger.info(f"Moved folder {url} to trash ({deleted_at})")
        return TrashEntry(url=url, deleted_at=deleted_at, meta=meta, is_folder=True)

    def list_trash(self) -> List[TrashEntry]:
        """Return every trash entry, newest deletion first."""
        entries: List[TrashEntry] = []
        for entry in self.storage.read_directory(TRASH_DIR):
            parsed = _parse_trash_name(entry.name) if entry.is_dir else None
            if not parsed:
                continue
            url, deleted_at = parsed
            entry_dir = f"{TRASH_DIR}/{entry.name}"
            is_folder = self.storage.exists(f"{entry_dir}/{TRASH_FOLDER_DIR}")
            meta_path = (
                f"{entry_dir}/{TRASH_FOLDER_DIR}/{INDEX_FILE}"
                if is_folder
                else f"{entry_dir}/{TRASH_PAGE_FILE}"
            )
            try:
                meta = self._read_meta(meta_path)
            except Exception as exc:
                logger.warning(f"Skipping unreadable trash entry {entry.name}: {exc}")
                continue
            entries.append(
                TrashEntry(url=url, deleted_at=deleted_at, meta=meta, is_folder=is_folder)
            )
        entries.sort(key=lambda e: (-e.deleted_at, e.url))
        return entries

    def _existing_trash_dir(self, url: str, deleted_at: int) -> str:
        if not is_valid_url(url) or not url:
            raise NotFoundError(f"Trash entry {url!r} not found")
        entry_dir = _trash_dir(url, deleted_at)
        if not self.storage.exists(entry_dir):
            raise NotFoundError(f"Trash entry {url!r} deleted at {deleted_at} not found")
        return entry_dir

    def read_trash_page(self, url: str, deleted_at: int) -> Page:
        entry_dir = self._existing_trash_dir(url, deleted_at)
        meta, body = FrontmatterCodec.parse(self._read_text(f"{entry_dir}/{TRASH_PAGE_FILE}"))
        return Page(url=url, content=body, meta=meta)

    def delete_trash_entry(self, url: str, deleted_at: int) -> None:
        entry_dir = self._existing_trash_dir(url, deleted_at)
        self.storage.delete_directory(entry_dir)
        logger.info(f"Purged trash entry {url} ({deleted_at})")

    def restore_from_trash(self, url: str, deleted_at: int) -> None:
        """
        Put a trashed node back at its original URL.

        The parent folder must exist and the URL must be free.
        """
        entry_dir = self._existing_trash_dir(url, deleted_at)
        if self.is_page(url) or self.is_folder(url):
            raise AlreadyExistsError(f"Content already exists at {url!r}")
        if not self.is_folder(parent_url(url)):
            raise ParentFolderNotFoundError(f"Parent folder of {url!r} does not exist")

        trashed_attic = f"{entry_dir}/{ATTIC_DIR}"
        if self.storage.exists(f"{entry_dir}/{TRASH_FOLDER_DIR}"):
            self.storage.rename(f"{entry_dir}/{TRASH_FOLDER_DIR}", _folder_dir(url))
            attic_target = _attic_dir(url)
        else:
            self.storage.rename(f"{entry_dir}/{TRASH_PAGE_FILE}", _page_path(url))
            attic_target = _attic_dir(parent_url(url))
        if self.storage.exists(trashed_attic):
            self._merge_move(trashed_attic, attic_target)
        self.storage.delete_directory(entry_dir)

        if self.is_folder(url):
            self._index_tree(url)
        else:
            page = self.read_page(url)
            self.index.index_page(url, page.meta, page.content)
        logger.info(f"Restored {url} from trash ({deleted_at})")

    def _merge_move(self, source: str, target: str) -> None:
        """Move every file below source to the same place below target."""
        if not self.storage.exists(target):
            self.storage.rename(source, target)
            return
        for entry in self.storage.read_directory(source):
            src = f"{source}/{entry.name}"
            dst = f"{target}/{entry.name}"
            if entry.is_dir:
                self._merge_move(src, dst)
                continue
            if self.storage.exists(dst):
                self.storage.delete_file(dst)
            self.storage.rename(src, dst)

    # ------------------------------------------------------------------
    # Moving
    # ------------------------------------------------------------------

    def _check_move_target(self, source: str, destination: str) -> None:
        if not source or source == destination:
            raise BadInputError("Invalid move")
        self._check_writable_url(destination)
        if not destination:
            raise BadInputError("Cannot move onto the root folder")
        if self.is_page(destination) or self.is_folder(destination):
            raise AlreadyExistsError(f"Content already exists at {destination!r}")

    def move_page(self, source: str, destination: str) -> None:
        """Rename a page together with its attic."""
        if not self.is_page(source):
            raise NotFoundError(f"Page {source!r} not found")
        self._check_move_target(source, destination)

        revisions = self.list_attic(source)
        self.storage.rename(_page_path(source), _page_path(destination))
        for entry in revisions:
            target = _attic_path(destination, entry.rev)
            if self.storage.exists(target):
                self.storage.delete_file(target)
            self.storage.rename(_attic_path(source, entry.rev), target)

        self.index.delete(source)
        page = self.read_page(destination)
        self.index.index_page(destination, page.meta, page.content)
        logger.info(f"Moved page {source} to {destination}")

    def move_folder(self, source: str, destination: str) -> None:
        """Rename a folder subtree together with its attic."""
        if source == "":
            raise BadInputError("The root folder cannot be moved")
        if not self.is_folder(source):
            raise NotFoundError(f"Folder {source!r} not found")
        if destination.startswith(source + "/"):
            raise BadInputError("Cannot move a folder into itself")
        self._check_move_target(source, destination)

        self.storage.rename(_folder_dir(source), _folder_dir(destination))
        if self.storage.exists(_attic_dir(source)):
            self._merge_move(_attic_dir(source), _attic_dir(destination))

        self.index.delete_tree(source)
        self._index_tree(destination)
        logger.info(f"Moved folder {source} to {destination}")

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        accept: Optional[Callable[[SearchHit], bool]] = None,
        limit: Optional[int] = None,
    ) -> List[SearchHit]:
        """
        Run a full-text query and annotate hits with their effective ACL.

        Hits whose content vanished since indexing are dropped, as are hits
        accept() rejects. The index is paged until limit hits are collected
        or it runs out.
        """
        hits: List[SearchHit] = []
        pagenum = 1
        while True:
            raw_page = self.index.search(query, pagenum)
            for raw in raw_page.hits:
                try:
                    if raw.is_folder:
                        meta = self._read_meta(_folder_index(raw.url))
                    else:
                        meta = self._read_meta(_page_path(raw.url))
                except NotFoundError:
                    continue
                ancestors = self.read_ancestors_meta(raw.url)
                hit = SearchHit(
                    url=raw.url,
                    meta=meta,
                    fragments=raw.fragments,
                    is_folder=raw.is_folder,
                    effective_acl=get_effective_acl(meta, ancestors),
                )
                if accept is not None and not accept(hit):
                    continue
                hits.append(hit)
                if limit is not None and len(hits) >= limit:
                    return hits
            if raw_page.is_last:
                return hits
            pagenum += 1

