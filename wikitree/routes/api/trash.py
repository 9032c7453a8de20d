"""
Trash routes for wikitree.
Browsing, purging and restoring deleted content (API, admin only).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from ...errors import BadInputError
from ...middleware.auth_middleware import AuthMiddleware
from ...models.api import TrashItemsRequest
from ...state import get_state
from .pages import present_meta

router = APIRouter(prefix="/trash", dependencies=[Depends(AuthMiddleware.require_admin)])

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _positive_int(value: Optional[str], default: int, maximum: Optional[int] = None) -> int:
    """Parse a paging parameter, falling back to default when out of range."""
    try:
        parsed = int(value) if value else default
    except ValueError:
        return default
    if parsed <= 0 or (maximum is not None and parsed > maximum):
        return default
    return parsed


@router.get("")
def list_trash(
    request: Request,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
):
    """Return one page of trash entries, sorted by url or deletion time."""
    state = get_state(request)
    page_num = _positive_int(page, 1)
    page_size = _positive_int(limit, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
    if sort_by not in ("url", "deletedAt"):
        sort_by = "deletedAt"
    descending = sort_order != "asc"

    entries = state.content.list_trash()
    if sort_by == "url":
        entries.sort(key=lambda e: e.url, reverse=descending)
    else:
        entries.sort(key=lambda e: e.deleted_at, reverse=descending)

    start = (page_num - 1) * page_size
    items = entries[start:start + page_size]
    items = [
        entry.model_copy(update={"meta": present_meta(state, entry.meta, True)})
        for entry in items
    ]

    return {
        "items": [item.model_dump(by_alias=True, mode="json") for item in items],
        "totalCount": len(entries),
        "page": page_num,
        "limit": page_size,
    }


@router.get("/page")
def get_trash_page(
    request: Request,
    url: str = "",
    deleted_at: str = Query("", alias="deletedAt"),
):
    """Return the content of a trashed page."""
    if not url:
        raise BadInputError("url parameter is required")
    if not deleted_at:
        raise BadInputError("deletedAt parameter is required")
    try:
        timestamp = int(deleted_at)
    except ValueError as exc:
        raise BadInputError("invalid deletedAt parameter") from exc

    state = get_state(request)
    page = state.content.read_trash_page(url, timestamp)
    page = page.model_copy(update={"meta": present_meta(state, page.meta, True)})
    return {"page": page.model_dump(by_alias=True, mode="json")}


@router.post("/actions/delete")
def delete_trash_items(body: TrashItemsRequest, request: Request):
    """Purge trash entries for good; stops at the first missing one."""
    state = get_state(request)
    for item in body.items:
        state.content.delete_trash_entry(item.url, item.deleted_at)
    return Response(status_code=200)


@router.post("/actions/restore")
def restore_trash_items(body: TrashItemsRequest, request: Request):
    """Move trash entries back to their original URLs."""
    state = get_state(request)
    for item in body.items:
        state.content.restore_from_trash(item.url, item.deleted_at)
    return Response(status_code=200)
