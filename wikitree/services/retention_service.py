"""
Retention engine for wikitree.

Prunes old trash entries and surplus attic revisions according to the
retention policy in config.yml. Every per-item failure is logged and
skipped; a run never aborts halfway.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from loguru import logger

from ..models.settings import AtticRetention, TrashRetention
from ..storage import Storage
from .content_service import ContentService


def _cutoff(now: Optional[datetime], max_age_days: int) -> int:
    now = now or datetime.now(timezone.utc)
    return int((now - timedelta(days=max_age_days)).timestamp())


class RetentionService:
    """Applies trash and attic retention policies."""

    def __init__(self, content: ContentService, storage: Storage) -> None:
        self.content = content
        self.storage = storage
        self._stopping = threading.Event()

    def stop(self) -> None:
        """Ask a running attic pass to stop after the current page."""
        self._stopping.set()

    def cleanup_trash(self, policy: TrashRetention, now: Optional[datetime] = None) -> int:
        """Delete trash entries older than maxAgeDays. Returns the count."""
        if policy.max_age_days <= 0:
            return 0

        cutoff = _cutoff(now, policy.max_age_days)
        deleted = 0
        for entry in self.content.list_trash():
            if entry.deleted_at >= cutoff:
                continue
            try:
                self.content.delete_trash_entry(entry.url, entry.deleted_at)
            except Exception as exc:
                logger.warning(
                    f"[retention] Failed to delete trash entry {entry.url} "
                    f"(deleted at {entry.deleted_at}): {exc}"
                )
                continue
            logger.info(
                f"[retention] Deleted trash entry {entry.url} (deleted at {entry.deleted_at})"
            )
            deleted += 1
        return deleted

    def cleanup_attic(
        self,
        policy: AtticRetention,
        now: Optional[datetime] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> int:
        """
        Prune attic revisions of every page. Returns the count.

        A revision is removed when it is older than maxAgeDays or when it
        falls outside the newest maxVersions. The newest revision of a page
        is never removed.
        """
        if policy.max_age_days <= 0 and policy.max_versions <= 0:
            return 0

        deleted = 0
        for url in self.content.list_all_pages():
            if stop_event is not None and stop_event.is_set():
                logger.info("[retention] Attic cleanup interrupted")
                break
            try:
                deleted += self._cleanup_page_attic(url, policy, now)
            except Exception as exc:
                logger.warning(f"[retention] Failed to clean up attic for {url}: {exc}")
        return deleted

    def _cleanup_page_attic(
        self, url: str, policy: AtticRetention, now: Optional[datetime]
    ) -> int:
        entries = self.content.list_attic(url)
        if len(entries) <= 1:
            return 0

        deleted = 0
        if policy.max_age_days > 0:
            cutoff = _cutoff(now, policy.max_age_days)
            remaining = []
            newest = len(entries) - 1
            for i, entry in enumerate(entries):
                if entry.rev >= cutoff or i == newest:
                    remaining.append(entry)
                    continue
                if self._delete_revision(url, entry.rev, "too old"):
                    deleted += 1
                else:
                    remaining.append(entry)
            entries = remaining

        if policy.max_versions > 0 and len(entries) > policy.max_versions:
            for entry in entries[: len(entries) - policy.max_versions]:
                if self._delete_revision(url, entry.rev, "exceeds max versions"):
                    deleted += 1
        return deleted

    def _delete_revision(self, url: str, revision: int, reason: str) -> bool:
        try:
            self.content.delete_attic_entry(url, revision)
        except Exception as exc:
            logger.warning(f"[retention] Failed to delete attic entry {url} rev {revision}: {exc}")
            return False
        logger.info(f"[retention] Deleted attic entry {url} rev {revision} ({reason})")
        return True

    def cleanup(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """Run both passes with the policy currently in config.yml."""
        policy = self.storage.read_config().retention

        trash_deleted = 0
        try:
            trash_deleted = self.cleanup_trash(policy.trash, now)
        except Exception as exc:
            logger.error(f"[retention] Trash cleanup error: {exc}")
        if trash_deleted:
            logger.info(f"[retention] Trash cleanup: deleted {trash_deleted} items")

        attic_deleted = 0
        try:
            attic_deleted = self.cleanup_attic(policy.attic, now, stop_event=self._stopping)
        except Exception as exc:
            logger.error(f"[retention] Attic cleanup error: {exc}")
        if attic_deleted:
            logger.info(f"[retention] Attic cleanup: deleted {attic_deleted} versions")

        return trash_deleted, attic_deleted
