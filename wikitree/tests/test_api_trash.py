"""
Trash API tests.
"""

from datetime import datetime, timezone

import pytest

from wikitree.models.content import ContentMeta

BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)


def at(seconds):
    return BASE.replace(second=seconds)


@pytest.fixture
def trashed(state, admin_headers):
    """Three trashed pages deleted one second apart: a, b, c."""
    content = state.content
    entries = []
    for i, name in enumerate(["a", "b", "c"]):
        content.save_page(name, f"body {name}", ContentMeta(title=name.upper()), now=at(i))
        entries.append(content.delete_page(name, now=at(10 + i)))
    return entries


def test_list_trash(client, admin_headers, trashed):
    body = client.get("/_api/trash", headers=admin_headers).json()
    assert body["totalCount"] == 3
    assert body["page"] == 1
    assert body["limit"] == 20
    assert [item["url"] for item in body["items"]] == ["c", "b", "a"]
    assert body["items"][0]["deletedAt"] == trashed[2].deleted_at
    assert body["items"][0]["meta"]["title"] == "C"
    assert body["items"][0]["isFolder"] is False


def test_list_trash_sorting_and_paging(client, admin_headers, trashed):
    params = {"sortBy": "url", "sortOrder": "asc", "limit": "2", "page": "2"}
    body = client.get("/_api/trash", params=params, headers=admin_headers).json()
    assert [item["url"] for item in body["items"]] == ["c"]
    assert body["limit"] == 2
    assert body["page"] == 2

    body = client.get("/_api/trash", params={"limit": "500"}, headers=admin_headers).json()
    assert body["limit"] == 20

    body = client.get("/_api/trash", params={"page": "zero"}, headers=admin_headers).json()
    assert body["page"] == 1


def test_trash_page_view(client, admin_headers, trashed):
    params = {"url": "b", "deletedAt": str(trashed[1].deleted_at)}
    body = client.get("/_api/trash/page", params=params, headers=admin_headers).json()
    assert body["page"]["content"] == "body b"

    assert client.get("/_api/trash/page", params={"url": "b"}, headers=admin_headers).status_code == 400
    params = {"url": "b", "deletedAt": "soon"}
    assert client.get("/_api/trash/page", params=params, headers=admin_headers).status_code == 400
    params = {"url": "b", "deletedAt": "1"}
    assert client.get("/_api/trash/page", params=params, headers=admin_headers).status_code == 404


def test_restore(client, state, admin_headers, trashed):
    items = [{"url": "a", "deletedAt": trashed[0].deleted_at}]
    response = client.post("/_api/trash/actions/restore", json={"items": items}, headers=admin_headers)
    assert response.status_code == 200
    assert client.get("/_api/pages/a", headers=admin_headers).json()["page"]["content"] == "body a"
    assert [entry.url for entry in state.content.list_trash()] == ["c", "b"]

    # Restoring the same entry again fails
    response = client.post("/_api/trash/actions/restore", json={"items": items}, headers=admin_headers)
    assert response.status_code == 404


def test_restore_onto_occupied_url(client, state, admin_headers, trashed):
    state.content.save_page("b", "new b", ContentMeta(title="B2"))
    items = [{"url": "b", "deletedAt": trashed[1].deleted_at}]
    response = client.post("/_api/trash/actions/restore", json={"items": items}, headers=admin_headers)
    assert response.status_code == 409


def test_purge(client, state, admin_headers, trashed):
    items = [{"url": entry.url, "deletedAt": entry.deleted_at} for entry in trashed[:2]]
    response = client.post("/_api/trash/actions/delete", json={"items": items}, headers=admin_headers)
    assert response.status_code == 200
    assert [entry.url for entry in state.content.list_trash()] == ["c"]


def test_trash_is_admin_only(client, user_headers, trashed):
    assert client.get("/_api/trash", headers=user_headers).status_code == 403
    assert client.get("/_api/trash").status_code == 401
    response = client.post("/_api/trash/actions/delete", json={"items": []}, headers=user_headers)
    assert response.status_code == 403
