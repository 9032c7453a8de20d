"""
Full-text index over page titles, tags and bodies.

The index lives in RAM and is rebuilt from the content store on startup;
the content store keeps it current on every mutation.
"""

import html
import threading
from typing import Dict, List, NamedTuple

from loguru import logger
from whoosh import highlight
from whoosh.fields import BOOLEAN, ID, KEYWORD, TEXT, Schema
from whoosh.filedb.filestore import RamStorage
from whoosh.qparser import MultifieldParser, OrGroup
from whoosh.query import Prefix

from ..models.content import ContentMeta

RAW_PAGE_SIZE = 100

# hit field name -> index field name
FRAGMENT_FIELDS = {"meta.title": "title", "meta.tags": "tags", "content": "content"}


class RawHit(NamedTuple):
    url: str
    is_folder: bool
    fragments: Dict[str, List[str]]


class RawPage(NamedTuple):
    hits: List[RawHit]
    is_last: bool


class MarkFormatter(highlight.Formatter):
    """Wraps matched terms in <mark> and escapes the rest."""

    between = " … "

    def _text(self, text):
        return html.escape(text, quote=False)

    def format_token(self, text, token, replace=False):
        ttext = self._text(highlight.get_text(text, token, replace))
        return f"<mark>{ttext}</mark>"


class SearchIndex:
    """Thread-safe wrapper around an in-memory Whoosh index."""

    def __init__(self) -> None:
        self.schema = Schema(
            url=ID(stored=True, unique=True),
            title=TEXT(stored=True, field_boost=2.0),
            tags=KEYWORD(stored=True, commas=True, lowercase=True, scorable=True),
            content=TEXT(stored=True),
            is_folder=BOOLEAN(stored=True),
        )
        self._lock = threading.Lock()
        self._ix = RamStorage().create_index(self.schema)

    def clear(self) -> None:
        with self._lock:
            self._ix = RamStorage().create_index(self.schema)

    def index_page(self, url: str, meta: ContentMeta, content: str) -> None:
        self._update(url, meta, content, is_folder=False)

    def index_folder(self, url: str, meta: ContentMeta) -> None:
        self._update(url, meta, "", is_folder=True)

    def _update(self, url: str, meta: ContentMeta, content: str, is_folder: bool) -> None:
        with self._lock:
            with self._ix.writer() as writer:
                writer.update_document(
                    url=url,
                    title=meta.title,
                    tags=",".join(meta.tags),
                    content=content,
                    is_folder=is_folder,
                )

    def delete(self, url: str) -> None:
        with self._lock:
            with self._ix.writer() as writer:
                writer.delete_by_term("url", url)

    def delete_tree(self, url: str) -> None:
        """Remove url and every document below it."""
        with self._lock:
            with self._ix.writer() as writer:
                writer.delete_by_term("url", url)
                writer.delete_by_query(Prefix("url", url + "/"))

    def search(self, query: str, pagenum: int = 1, pagelen: int = RAW_PAGE_SIZE) -> RawPage:
        """Return one page of hits, best first, with highlighted fragments."""
        if not query.strip():
            return RawPage([], True)
        parser = MultifieldParser(
            ["title", "tags", "content"], schema=self.schema, group=OrGroup
        )
        parsed = parser.parse(query)
        hits: List[RawHit] = []
        with self._ix.searcher() as searcher:
            page = searcher.search_page(parsed, pagenum, pagelen=pagelen)
            page.results.formatter = MarkFormatter()
            page.results.fragmenter = highlight.ContextFragmenter(maxchars=200, surround=40)
            for hit in page:
                fragments: Dict[str, List[str]] = {}
                for name, field in FRAGMENT_FIELDS.items():
                    snippet = hit.highlights(field, top=3)
                    if snippet:
                        fragments[name] = [snippet]
                hits.append(RawHit(hit["url"], bool(hit["is_folder"]), fragments))
            is_last = page.is_last_page()
        logger.debug(f"[index] query {query!r} page {pagenum} matched {len(hits)} documents")
        return RawPage(hits, is_last)
