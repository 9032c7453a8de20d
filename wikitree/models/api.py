"""
Request bodies accepted by the JSON API.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .content import ContentMeta


class PageInput(BaseModel):
    content: str = ""
    meta: ContentMeta = Field(default_factory=ContentMeta)


class FolderInput(BaseModel):
    meta: ContentMeta = Field(default_factory=ContentMeta)


class PutContentRequest(BaseModel):
    """Exactly one of page/folder; a missing page means folder."""

    page: Optional[PageInput] = None
    folder: Optional[FolderInput] = None


class PatchOperation(BaseModel):
    op: str
    path: str
    value: Any = None


class MoveRequest(BaseModel):
    source: str
    destination: str


class TrashItemRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    deleted_at: int = Field(alias="deletedAt")


class TrashItemsRequest(BaseModel):
    items: List[TrashItemRef] = Field(default_factory=list)


class LoginRequest(BaseModel):
    username: str
    password: str


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str
    display_name: str = Field("", alias="displayName")


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field("", alias="currentPassword")
    new_password: str = Field(alias="newPassword")


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token_id: Optional[str] = Field(None, alias="refreshTokenId")
