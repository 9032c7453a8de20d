"""
Refresh token records.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RefreshToken(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(alias="userId")
    created_at: datetime = Field(alias="createdAt")
    last_used_at: datetime = Field(alias="lastUsedAt")
    expires_at: datetime = Field(alias="expiresAt")
