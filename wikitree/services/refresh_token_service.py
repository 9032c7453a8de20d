"""
Refresh token ledger for wikitree.

refresh_tokens.yml lists {id, userId} for every live token; each token's
timestamps live in refresh_tokens/<id>.yml. Index mutations are serialized
by one lock; reading or touching a single token file is lock-free.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..config import REFRESH_TOKEN_TTL_DAYS
from ..errors import NotFoundError, StorageNotFoundError
from ..models.token import RefreshToken
from ..storage import Storage
from ..utils.tokens import generate_random_string

INDEX_FILE = "refresh_tokens.yml"
TOKENS_DIR = "refresh_tokens"
TOKEN_ID_LENGTH = 32
REFRESH_TOKEN_VALIDITY = timedelta(days=REFRESH_TOKEN_TTL_DAYS)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RefreshTokenService:
    """Creates, validates and revokes opaque refresh tokens."""

    def __init__(self, storage: Storage, clock: Callable[[], datetime] = _utcnow) -> None:
        self.storage = storage
        self.clock = clock
        self._lock = threading.Lock()

        if not self.storage.exists(INDEX_FILE):
            self._save_index([])
        if not self.storage.exists(TOKENS_DIR):
            self.storage.create_directory(TOKENS_DIR)

    # Index helpers; caller holds the lock

    def _read_index(self) -> List[Dict[str, str]]:
        return self.storage.read_yaml(INDEX_FILE) or []

    def _save_index(self, index: List[Dict[str, str]]) -> None:
        self.storage.write_yaml(INDEX_FILE, index)

    @staticmethod
    def _token_path(token_id: str) -> str:
        return f"{TOKENS_DIR}/{token_id}.yml"

    def _read_token_data(self, token_id: str) -> Dict[str, Any]:
        # Token ids are generated from a URL-safe alphabet
        if not token_id or "/" in token_id or "." in token_id:
            raise NotFoundError("Refresh token not found")
        try:
            data = self.storage.read_yaml(self._token_path(token_id))
        except StorageNotFoundError as exc:
            raise NotFoundError("Refresh token not found") from exc
        if not isinstance(data, dict):
            raise NotFoundError("Refresh token not found")
        return data

    def _save_token_data(self, token_id: str, data: Dict[str, Any]) -> None:
        self.storage.write_yaml(self._token_path(token_id), data)

    def _delete_token_data(self, token_id: str) -> None:
        try:
            self.storage.delete_file(self._token_path(token_id))
        except StorageNotFoundError:
            pass

    def _is_expired(self, data: Dict[str, Any]) -> bool:
        return self.clock() > _as_utc(data["expiresAt"])

    # Public API

    def create(self, user_id: str) -> str:
        """Issue a new token for user_id and return its id."""
        with self._lock:
            token_id = generate_random_string(TOKEN_ID_LENGTH)
            now = self.clock()
            self._save_token_data(
                token_id,
                {
                    "userId": user_id,
                    "createdAt": now,
                    "lastUsedAt": now,
                    "expiresAt": now + REFRESH_TOKEN_VALIDITY,
                },
            )
            try:
                index = self._read_index()
                index.append({"id": token_id, "userId": user_id})
                self._save_index(index)
            except Exception:
                # No orphaned token files
                self._delete_token_data(token_id)
                raise
            return token_id

    def validate(self, token_id: str) -> str:
        """Return the user id of a live token; NotFoundError otherwise."""
        data = self._read_token_data(token_id)
        if self._is_expired(data):
            raise NotFoundError("Refresh token expired")
        return data["userId"]

    def refresh(self, token_id: str) -> None:
        """Slide the expiry of a live token forward."""
        data = self._read_token_data(token_id)
        if self._is_expired(data):
            raise NotFoundError("Refresh token expired")
        now = self.clock()
        data["lastUsedAt"] = now
        data["expiresAt"] = now + REFRESH_TOKEN_VALIDITY
        self._save_token_data(token_id, data)

    def delete(self, token_id: str) -> None:
        with self._lock:
            if token_id and "/" not in token_id and "." not in token_id:
                self._delete_token_data(token_id)
            index = self._read_index()
            self._save_index([entry for entry in index if entry.get("id") != token_id])

    def delete_all_for_user(self, user_id: str) -> int:
        """Revoke every token of a user. Returns the count."""
        with self._lock:
            index = self._read_index()
            remaining = []
            removed = 0
            for entry in index:
                if entry.get("userId") == user_id:
                    self._delete_token_data(entry["id"])
                    removed += 1
                else:
                    remaining.append(entry)
            self._save_index(remaining)
        if removed:
            logger.info(f"[tokens] Revoked {removed} refresh tokens of user {user_id}")
        return removed

    def get_tokens_for_user(self, user_id: str) -> List[RefreshToken]:
        with self._lock:
            index = self._read_index()
        tokens = []
        for entry in index:
            if entry.get("userId") != user_id:
                continue
            try:
                data = self._read_token_data(entry["id"])
            except NotFoundError:
                continue
            tokens.append(RefreshToken(id=entry["id"], **data))
        return tokens

    def cleanup_expired(self) -> int:
        """Remove expired or unreadable tokens. Returns the count."""
        with self._lock:
            index = self._read_index()
            remaining = []
            for entry in index:
                try:
                    data: Optional[Dict[str, Any]] = self._read_token_data(entry["id"])
                except Exception:
                    data = None
                if data is None or self._is_expired(data):
                    self._delete_token_data(entry["id"])
                else:
                    remaining.append(entry)
            self._save_index(remaining)
        removed = len(index) - len(remaining)
        if removed:
            logger.info(f"[tokens] Removed {removed} expired refresh tokens")
        return removed
