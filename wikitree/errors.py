"""
Error types for wikitree.

Domain errors carry the HTTP status they map to so the API layer can
translate them with a single exception handler. Storage errors are raised
by the storage drivers and are translated by the content store before they
reach a caller.
"""

from typing import Optional


class WikiError(Exception):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or "")
        self.message = str(self)


class NotFoundError(WikiError):
    """Not found"""

    status_code = 404


class AlreadyExistsError(WikiError):
    """Already exists"""

    status_code = 409


class ParentFolderNotFoundError(WikiError):
    """Parent folder not found"""

    status_code = 400


class NotEmptyError(WikiError):
    """Folder is not empty"""

    status_code = 400


class InvalidUsernameError(WikiError):
    """Invalid username"""

    status_code = 400


class UserExistsError(WikiError):
    """User already exists"""

    status_code = 409


class InvalidACLSubjectError(WikiError):
    """Invalid ACL subject"""

    status_code = 400


class InvalidACLOperationError(WikiError):
    """Invalid ACL operation"""

    status_code = 400


class BadInputError(WikiError):
    """Bad input"""

    status_code = 400


class FrontmatterError(WikiError):
    """Malformed frontmatter"""

    status_code = 500


class AccessDeniedError(WikiError):
    """Access denied

    Raised with 401 when the caller is anonymous and 403 when an
    authenticated caller lacks the operation.
    """

    def __init__(self, status_code: int = 403, message: str = "") -> None:
        if not message:
            message = "Unauthorized" if status_code == 401 else "Forbidden"
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(WikiError):
    """Too many requests"""

    status_code = 429

    def __init__(self, retry_after: int, message: str = "") -> None:
        super().__init__(message)
        self.retry_after = max(1, int(retry_after))


class StorageError(Exception):
    """Base class for storage driver errors."""

    def __init__(self, path: str, message: Optional[str] = None) -> None:
        super().__init__(f"{message or self.__class__.__name__}: {path}")
        self.path = path


class StorageNotFoundError(StorageError):
    """The path does not exist."""


class StorageExistsError(StorageError):
    """The path already exists."""


class StorageNotEmptyError(StorageError):
    """The directory still has entries."""


class StorageIOError(StorageError):
    """Any other filesystem failure."""
