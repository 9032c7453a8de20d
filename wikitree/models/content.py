"""
Content data models for wikitree.

Pages and folders share ContentMeta. The wire format uses camelCase
aliases; the frontmatter codec owns the on-disk YAML keys.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .user import User


class AccessRule(BaseModel):
    """One ACL entry: a subject and the operations it may perform."""

    model_config = ConfigDict(populate_by_name=True)

    subject: str
    operations: List[str] = Field(default_factory=list, alias="ops")
    # Display join, filled for admins only
    user: Optional[User] = None


class ContentMeta(BaseModel):
    """Frontmatter shared by pages and folders."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    tags: List[str] = Field(default_factory=list)
    # None means inherit from the nearest ancestor
    acl: Optional[List[AccessRule]] = None
    modified_at: Optional[datetime] = Field(None, alias="modifiedAt")
    modified_by: str = Field("", alias="modifiedBy", exclude=True)
    modified_by_username: str = Field("", alias="modifiedByUsername")
    modified_by_display_name: str = Field("", alias="modifiedByDisplayName")

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, value):
        return value or []


class Page(BaseModel):
    url: str
    content: str = ""
    meta: ContentMeta = Field(default_factory=ContentMeta)


class FolderEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    title: str = ""
    is_folder: bool = Field(False, alias="isFolder")


class Folder(BaseModel):
    url: str
    content: List[FolderEntry] = Field(default_factory=list)
    meta: ContentMeta = Field(default_factory=ContentMeta)


class AncestorMeta(BaseModel):
    """The metadata of one folder above a node, used for ACL inheritance."""

    url: str
    meta: ContentMeta


class Breadcrumb(BaseModel):
    url: str
    title: str = ""
    name: str = ""


class AtticEntry(BaseModel):
    rev: int


class TrashEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    deleted_at: int = Field(alias="deletedAt")
    meta: ContentMeta = Field(default_factory=ContentMeta)
    is_folder: bool = Field(False, alias="isFolder")


class SearchHit(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    meta: ContentMeta = Field(default_factory=ContentMeta)
    fragments: Dict[str, List[str]] = Field(default_factory=dict)
    is_folder: bool = Field(False, alias="isFolder")
    effective_acl: Optional[List[AccessRule]] = Field(None, exclude=True)
