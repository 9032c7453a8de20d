"""
Test configuration for wikitree unit tests.

Ensures the project root is on sys.path so the wikitree package can be
imported without installing it, and provides shared fixtures.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest
from fastapi.testclient import TestClient

from wikitree.server import create_app
from wikitree.services.content_service import ContentService
from wikitree.services.settings_service import SettingsService
from wikitree.services.user_service import UserService
from wikitree.storage import FsStorage, MemoryStorage

DEFAULT_PASSWORD = "password123"


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def fs_storage(tmp_path):
    return FsStorage(str(tmp_path / "data"))


@pytest.fixture
def settings(storage):
    return SettingsService(storage)


@pytest.fixture
def content(storage, settings):
    return ContentService(storage)


@pytest.fixture
def users(storage):
    return UserService(storage)


@pytest.fixture
def app(tmp_path):
    return create_app(FsStorage(str(tmp_path / "data")), background_jobs=False)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def state(app):
    return app.state.wiki


def login(client, username, password=DEFAULT_PASSWORD):
    """Log in and return the Authorization header for the user."""
    response = client.post(
        "/_api/auth/login", json={"username": username, "password": password}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def admin_headers(client):
    """Register the first user, which leaves setup mode as global admin."""
    response = client.post(
        "/_api/auth/users",
        json={"username": "admin", "password": DEFAULT_PASSWORD, "displayName": "Admin"},
    )
    assert response.status_code == 200, response.text
    return login(client, "admin")


@pytest.fixture
def user_headers(client, state, admin_headers):
    """A regular user without global operations."""
    state.users.create("alice", DEFAULT_PASSWORD, "Alice")
    return login(client, "alice")

