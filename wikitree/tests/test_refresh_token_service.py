from datetime import datetime, timedelta, timezone

import pytest

from wikitree.errors import NotFoundError
from wikitree.services.refresh_token_service import (
    INDEX_FILE,
    REFRESH_TOKEN_VALIDITY,
    RefreshTokenService,
)


class Clock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def tokens(storage, clock):
    return RefreshTokenService(storage, clock=clock)


def test_create_and_validate(tokens, storage):
    token_id = tokens.create("u1")
    assert len(token_id) == 32
    assert tokens.validate(token_id) == "u1"
    assert storage.read_yaml(INDEX_FILE) == [{"id": token_id, "userId": "u1"}]


def test_unknown_token(tokens):
    with pytest.raises(NotFoundError):
        tokens.validate("doesnotexist")
    with pytest.raises(NotFoundError):
        tokens.validate("../config")


def test_expired_token_is_rejected(tokens, clock):
    token_id = tokens.create("u1")
    clock.now += REFRESH_TOKEN_VALIDITY + timedelta(seconds=1)
    with pytest.raises(NotFoundError):
        tokens.validate(token_id)
    with pytest.raises(NotFoundError):
        tokens.refresh(token_id)


def test_refresh_slides_expiry(tokens, clock):
    token_id = tokens.create("u1")
    clock.now += timedelta(days=60)
    tokens.refresh(token_id)
    clock.now += timedelta(days=60)
    assert tokens.validate(token_id) == "u1"
    [token] = tokens.get_tokens_for_user("u1")
    assert token.last_used_at == datetime(2024, 3, 1, tzinfo=timezone.utc)


def test_delete(tokens):
    token_id = tokens.create("u1")
    tokens.delete(token_id)
    with pytest.raises(NotFoundError):
        tokens.validate(token_id)
    assert tokens.get_tokens_for_user("u1") == []


def test_delete_all_for_user(tokens):
    a = tokens.create("u1")
    tokens.create("u1")
    other = tokens.create("u2")
    assert tokens.delete_all_for_user("u1") == 2
    with pytest.raises(NotFoundError):
        tokens.validate(a)
    assert tokens.validate(other) == "u2"


def test_cleanup_expired(tokens, clock):
    old = tokens.create("u1")
    clock.now += timedelta(days=80)
    fresh = tokens.create("u1")
    clock.now += timedelta(days=20)
    assert tokens.cleanup_expired() == 1
    assert [t.id for t in tokens.get_tokens_for_user("u1")] == [fresh]
    with pytest.raises(NotFoundError):
        tokens.validate(old)


def test_failed_index_write_removes_token_file(tokens, storage, monkeypatch):
    def broken(index):
        raise OSError("disk full")

    monkeypatch.setattr(tokens, "_save_index", broken)
    with pytest.raises(OSError):
        tokens.create("u1")
    assert storage.read_directory("refresh_tokens") == []
