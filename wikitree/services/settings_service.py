"""
Service for the runtime configuration stored in config.yml: the app title,
the JWT signing secret, setup mode, the global ACL and retention policies.
"""

import threading
from typing import Any, Dict, List, Sequence, Tuple

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from ..config import DEFAULT_APP_TITLE
from ..errors import BadInputError
from ..models.api import PatchOperation
from ..models.content import AccessRule
from ..models.settings import AppConfig
from ..storage import CONFIG_FILE, Storage
from ..utils.tokens import generate_random_string
from .acl import OP_ADMIN, user_subject, validate_config_acl

JWT_SECRET_LENGTH = 16

_ACL_ADAPTER = TypeAdapter(List[AccessRule])
_INT_ADAPTER = TypeAdapter(int)
_STR_ADAPTER = TypeAdapter(str)

# JSON pointer -> (retention section, field)
_RETENTION_PATHS: Dict[str, Tuple[str, str]] = {
    "/retention/trash/maxAgeDays": ("trash", "max_age_days"),
    "/retention/attic/maxAgeDays": ("attic", "max_age_days"),
    "/retention/attic/maxVersions": ("attic", "max_versions"),
}


class SettingsService:
    """Reads and writes config.yml under one lock."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self._lock = threading.Lock()
        self.initialize()

    def initialize(self) -> None:
        """Create config.yml with a fresh JWT secret on first boot."""
        with self._lock:
            if self.storage.exists(CONFIG_FILE):
                config = self.storage.read_config()
                if not config.jwt_secret:
                    config.jwt_secret = generate_random_string(JWT_SECRET_LENGTH)
                    self.storage.write_config(config)
                    logger.warning("config.yml had no jwtSecret, generated a new one")
                return
            config = AppConfig(
                app_title=DEFAULT_APP_TITLE,
                jwt_secret=generate_random_string(JWT_SECRET_LENGTH),
                setup_mode=True,
                acl=[],
            )
            self.storage.write_config(config)
        logger.info("Created config.yml, setup mode enabled")

    def read(self) -> AppConfig:
        return self.storage.read_config()

    def write(self, config: AppConfig) -> None:
        with self._lock:
            self.storage.write_config(config)

    def complete_setup(self, user_id: str) -> bool:
        """
        Leave setup mode and make user_id a global admin.

        Returns False when setup mode was already over.
        """
        with self._lock:
            config = self.storage.read_config()
            if not config.setup_mode:
                return False
            config.setup_mode = False
            config.acl.append(AccessRule(subject=user_subject(user_id), operations=[OP_ADMIN]))
            self.storage.write_config(config)
        logger.info(f"Setup completed, user {user_id} is now admin")
        return True

    def patch(self, operations: Sequence[PatchOperation]) -> AppConfig:
        """
        Apply JSON-patch style replace operations and persist the result.

        Raises:
            BadInputError: For non-replace operations, unknown paths or
                values of the wrong type
        """
        with self._lock:
            config = self.storage.read_config()
            for operation in operations:
                self._apply(config, operation)
            self.storage.write_config(config)
        return config

    @staticmethod
    def _validated(adapter: TypeAdapter, value: Any, path: str) -> Any:
        if value is None:
            raise BadInputError(f"Value missing for {path}")
        try:
            return adapter.validate_python(value)
        except ValidationError as exc:
            raise BadInputError(f"Invalid value for {path}") from exc

    def _apply(self, config: AppConfig, operation: PatchOperation) -> None:
        if operation.op != "replace":
            raise BadInputError(f"Unsupported operation {operation.op!r}")

        path = operation.path
        if path == "/appTitle":
            config.app_title = self._validated(_STR_ADAPTER, operation.value, path)
        elif path == "/acl":
            acl = self._validated(_ACL_ADAPTER, operation.value, path)
            validate_config_acl(acl)
            config.acl = [AccessRule(subject=r.subject, operations=r.operations) for r in acl]
        elif path in _RETENTION_PATHS:
            section, field = _RETENTION_PATHS[path]
            value = self._validated(_INT_ADAPTER, operation.value, path)
            setattr(getattr(config.retention, section), field, value)
        else:
            raise BadInputError(f"Unsupported path {path!r}")
