"""
Runtime configuration model persisted as config.yml.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from .content import AccessRule


class TrashRetention(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_age_days: int = Field(0, alias="maxAgeDays")


class AtticRetention(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_age_days: int = Field(0, alias="maxAgeDays")
    max_versions: int = Field(0, alias="maxVersions")


class RetentionPolicy(BaseModel):
    """Values <= 0 disable the corresponding pass."""

    trash: TrashRetention = Field(default_factory=TrashRetention)
    attic: AtticRetention = Field(default_factory=AtticRetention)


class AppConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    app_title: str = Field("", alias="appTitle")
    jwt_secret: str = Field("", alias="jwtSecret", exclude=True)
    # A config.yml without the key never reopens setup
    setup_mode: bool = Field(False, alias="setupMode")
    acl: List[AccessRule] = Field(default_factory=list)
    retention: RetentionPolicy = Field(default_factory=RetentionPolicy)

    def to_record(self) -> Dict[str, Any]:
        """Return the config.yml representation, secret included."""
        record = self.model_dump(by_alias=True, mode="json")
        record["acl"] = [
            {"subject": rule.subject, "ops": list(rule.operations)} for rule in self.acl
        ]
        record["jwtSecret"] = self.jwt_secret
        return record
