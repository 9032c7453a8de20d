"""
User data models for wikitree.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """A registered user. The password hash never leaves the server."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    display_name: str = Field("", alias="displayName")
    password_hash: str = Field("", alias="passwordHash", exclude=True)

    def to_record(self) -> Dict[str, Any]:
        """Return the users.yml representation, hash included."""
        record = self.model_dump(by_alias=True)
        record["passwordHash"] = self.password_hash
        return record
