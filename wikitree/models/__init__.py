"""
Models package for wikitree.
Contains data models and validation schemas.
"""

from .user import User
from .content import (
    AccessRule,
    AncestorMeta,
    AtticEntry,
    Breadcrumb,
    ContentMeta,
    Folder,
    FolderEntry,
    Page,
    SearchHit,
    TrashEntry,
)
from .settings import AppConfig, RetentionPolicy

__all__ = [
    "User",
    "AccessRule",
    "AncestorMeta",
    "AtticEntry",
    "Breadcrumb",
    "ContentMeta",
    "Folder",
    "FolderEntry",
    "Page",
    "SearchHit",
    "TrashEntry",
    "AppConfig",
    "RetentionPolicy",
]
