"""
User service layer for wikitree.
Contains business logic for the user directory stored in users.yml.
"""

import secrets
import threading
from typing import List, Optional, Sequence

from loguru import logger
from passlib.context import CryptContext

from ..errors import InvalidUsernameError, NotFoundError, UserExistsError
from ..models.content import AccessRule
from ..models.user import User
from ..storage import Storage
from ..utils.tokens import generate_random_string
from ..utils.validation import is_valid_username
from .acl import USER_SUBJECT_PREFIX

USERS_FILE = "users.yml"
USER_ID_LENGTH = 6

ARGON2_PREFIX = "argon2:"
PLAIN_PREFIX = "plain:"

# Password hashing context: argon2id, 64 MiB, one pass, two lanes
pwd_context = CryptContext(
    schemes=["argon2"],
    argon2__type="ID",
    argon2__memory_cost=65536,
    argon2__rounds=1,
    argon2__parallelism=2,
    argon2__salt_size=16,
    argon2__digest_size=32,
)


class UserService:
    """Service class for user-related operations."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self._lock = threading.RLock()
        if not self.storage.exists(USERS_FILE):
            self._save_all([])

    @staticmethod
    def hash_password(password: str) -> str:
        """
        Hash a password with Argon2id.

        Args:
            password: Plain text password

        Returns:
            Stored hash in the form "argon2:<phc string>"
        """
        return ARGON2_PREFIX + pwd_context.hash(password)

    @staticmethod
    def verify_password(user: User, password: str) -> bool:
        """
        Verify a password against the user's stored hash.

        Accepts "argon2:" hashes and legacy "plain:" passwords.
        """
        stored = user.password_hash
        if stored.startswith(PLAIN_PREFIX):
            return secrets.compare_digest(
                stored[len(PLAIN_PREFIX):].encode("utf-8"), password.encode("utf-8")
            )
        if stored.startswith(ARGON2_PREFIX):
            try:
                return pwd_context.verify(password, stored[len(ARGON2_PREFIX):])
            except (ValueError, TypeError):
                return False
        return False

    def read_all(self) -> List[User]:
        data = self.storage.read_yaml(USERS_FILE) or []
        return [User.model_validate(record) for record in data]

    def _save_all(self, users: Sequence[User]) -> None:
        self.storage.write_yaml(USERS_FILE, [user.to_record() for user in users])

    @staticmethod
    def _is_username_unique(
        users: Sequence[User], username: str, exclude_id: Optional[str] = None
    ) -> bool:
        folded = username.casefold()
        return not any(
            user.username.casefold() == folded and user.id != exclude_id for user in users
        )

    @staticmethod
    def set_username(user: User, username: str) -> None:
        if not is_valid_username(username):
            raise InvalidUsernameError(f"Invalid username {username!r}")
        user.username = username

    @classmethod
    def set_password_hash(cls, user: User, password: str) -> None:
        user.password_hash = cls.hash_password(password)

    def create(self, username: str, password: str, display_name: str = "") -> User:
        """
        Register a new user.

        Raises:
            InvalidUsernameError: If the username does not match the rules
            UserExistsError: If the username is taken (case-insensitive)
        """
        with self._lock:
            users = self.read_all()
            if not self._is_username_unique(users, username):
                raise UserExistsError(f"Username {username!r} is already taken")

            user = User(id=generate_random_string(USER_ID_LENGTH), username="")
            while any(existing.id == user.id for existing in users):
                user.id = generate_random_string(USER_ID_LENGTH)
            user.display_name = display_name
            self.set_username(user, username)
            self.set_password_hash(user, password)

            users.append(user)
            self._save_all(users)
        logger.info(f"Created user {user.username} ({user.id})")
        return user

    def get_by_username(self, username: str) -> User:
        folded = username.casefold()
        for user in self.read_all():
            if user.username.casefold() == folded:
                return user
        raise NotFoundError(f"User {username!r} not found")

    def get_by_id(self, user_id: str) -> User:
        for user in self.read_all():
            if user.id == user_id:
                return user
        raise NotFoundError(f"User {user_id!r} not found")

    def verify_credentials(self, username: str, password: str) -> Optional[User]:
        """
        Return the user for valid credentials, None otherwise.

        A legacy plain password is upgraded to Argon2 on first use.
        """
        try:
            user = self.get_by_username(username)
        except NotFoundError:
            return None

        if not self.verify_password(user, password):
            return None

        if user.password_hash.startswith(PLAIN_PREFIX):
            self.set_password_hash(user, password)
            self.save(user)
            logger.info(f"Upgraded plain password of user {user.username}")

        return user

    def save(self, user: User) -> None:
        """Persist username, display name and password hash of an existing user."""
        if not is_valid_username(user.username):
            raise InvalidUsernameError(f"Invalid username {user.username!r}")
        with self._lock:
            users = self.read_all()
            for i, existing in enumerate(users):
                if existing.id == user.id:
                    break
            else:
                raise NotFoundError(f"User {user.id!r} not found")
            if not self._is_username_unique(users, user.username, exclude_id=user.id):
                raise UserExistsError(f"Username {user.username!r} is already taken")
            users[i] = user.model_copy()
            self._save_all(users)

    def delete_by_username(self, username: str) -> User:
        with self._lock:
            users = self.read_all()
            folded = username.casefold()
            remaining = [user for user in users if user.username.casefold() != folded]
            if len(remaining) == len(users):
                raise NotFoundError(f"User {username!r} not found")
            self._save_all(remaining)
        deleted = next(user for user in users if user.username.casefold() == folded)
        logger.info(f"Deleted user {deleted.username} ({deleted.id})")
        return deleted

    def enhance_acl_with_user_info(
        self, acl: Optional[List[AccessRule]]
    ) -> Optional[List[AccessRule]]:
        """Return a copy of acl with user:<id> rules joined to their user."""
        if acl is None:
            return None
        users = {user.id: user for user in self.read_all()}
        enhanced = []
        for rule in acl:
            user = None
            if rule.subject.startswith(USER_SUBJECT_PREFIX):
                user = users.get(rule.subject[len(USER_SUBJECT_PREFIX):])
            enhanced.append(rule.model_copy(update={"user": user}))
        return enhanced
