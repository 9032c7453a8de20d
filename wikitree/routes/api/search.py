"""
Search routes for wikitree.
Full-text search over pages and folders (API).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from loguru import logger

from ...config import SEARCH_MAX_RESULTS
from ...errors import RateLimitedError
from ...middleware.auth_middleware import AuthMiddleware
from ...middleware.rate_limiter import client_identifier
from ...services.acl import OP_READ
from ...state import get_state

router = APIRouter()


@router.post("/search")
def search_content(
    request: Request,
    q: str = "",
    user_id: Optional[str] = Depends(AuthMiddleware.get_current_user_id),
):
    """Search titles, tags and bodies; only readable hits are returned."""
    state = get_state(request)

    if user_id:
        limiter, key = state.search_limiter_by_user, user_id
    else:
        limiter, key = state.search_limiter_by_ip, client_identifier(request)
    allowed, retry_after = limiter.consume(key)
    if not allowed:
        logger.warning(f"Search rate limit hit for {key}")
        raise RateLimitedError(retry_after)

    if not q.strip():
        return []

    hits = state.content.search(
        q,
        accept=lambda hit: state.acl.has_content_permission(hit.effective_acl, user_id, OP_READ),
        limit=SEARCH_MAX_RESULTS,
    )
    results = []
    for hit in hits:
        hit.meta = hit.meta.model_copy(update={"acl": None})
        results.append(hit.model_dump(by_alias=True, mode="json"))
    return results
