"""
Application state for wikitree.

One WikiState per FastAPI app holds every service wired to the same
storage driver. Route handlers reach it through get_state().
"""

from dataclasses import dataclass

from fastapi import Request

from .config import (
    LOGIN_BURST,
    LOGIN_LIMITER_TTL_SECONDS,
    LOGIN_REFILL_SECONDS,
    SEARCH_IP_BURST,
    SEARCH_IP_REFILL_SECONDS,
    SEARCH_LIMITER_TTL_SECONDS,
    SEARCH_USER_BURST,
    SEARCH_USER_REFILL_SECONDS,
)
from .middleware.rate_limiter import TokenBucketLimiter
from .services import (
    AccessTokenService,
    AclService,
    ContentService,
    RefreshTokenService,
    RetentionService,
    SettingsService,
    UserService,
)
from .storage import Storage


@dataclass
class WikiState:
    storage: Storage
    settings: SettingsService
    content: ContentService
    users: UserService
    acl: AclService
    access_tokens: AccessTokenService
    refresh_tokens: RefreshTokenService
    retention: RetentionService
    login_limiter: TokenBucketLimiter
    search_limiter_by_ip: TokenBucketLimiter
    search_limiter_by_user: TokenBucketLimiter


def build_state(storage: Storage) -> WikiState:
    settings = SettingsService(storage)
    content = ContentService(storage)
    return WikiState(
        storage=storage,
        settings=settings,
        content=content,
        users=UserService(storage),
        acl=AclService(storage),
        access_tokens=AccessTokenService(settings.read().jwt_secret),
        refresh_tokens=RefreshTokenService(storage),
        retention=RetentionService(content, storage),
        login_limiter=TokenBucketLimiter(
            LOGIN_BURST, 1 / LOGIN_REFILL_SECONDS, LOGIN_LIMITER_TTL_SECONDS
        ),
        search_limiter_by_ip=TokenBucketLimiter(
            SEARCH_IP_BURST, 1 / SEARCH_IP_REFILL_SECONDS, SEARCH_LIMITER_TTL_SECONDS
        ),
        search_limiter_by_user=TokenBucketLimiter(
            SEARCH_USER_BURST, 1 / SEARCH_USER_REFILL_SECONDS, SEARCH_LIMITER_TTL_SECONDS
        ),
    )


def get_state(request: Request) -> WikiState:
    return request.app.state.wiki
