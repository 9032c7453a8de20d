"""
Services package for wikitree.
Contains business logic layer for the application.
"""

from .access_token_service import AccessTokenService
from .acl import AclService
from .content_service import ContentService
from .refresh_token_service import RefreshTokenService
from .retention_service import RetentionService
from .search_index import SearchIndex
from .settings_service import SettingsService
from .user_service import UserService

__all__ = [
    "AccessTokenService",
    "AclService",
    "ContentService",
    "RefreshTokenService",
    "RetentionService",
    "SearchIndex",
    "SettingsService",
    "UserService",
]
