"""
Access control for wikitree.

Content nodes carry an optional ACL; a node without one inherits the ACL of
its nearest ancestor that has one. The global ACL in config.yml grants the
app-wide operations (admin, register). Holders of global admin pass every
content check.
"""

from typing import List, Optional, Sequence

from ..errors import AccessDeniedError, InvalidACLOperationError, InvalidACLSubjectError
from ..models.content import AccessRule, AncestorMeta, ContentMeta
from ..storage import Storage

OP_READ = "read"
OP_WRITE = "write"
OP_DELETE = "delete"
OP_ADMIN = "admin"
OP_REGISTER = "register"

CONTENT_OPS = (OP_READ, OP_WRITE, OP_DELETE)
CONFIG_OPS = (OP_ADMIN, OP_REGISTER)

SUBJECT_ANONYMOUS = "anonymous"
SUBJECT_ALL = "all"
USER_SUBJECT_PREFIX = "user:"


def user_subject(user_id: str) -> str:
    return USER_SUBJECT_PREFIX + user_id


def get_effective_acl(
    meta: ContentMeta, ancestors: Sequence[AncestorMeta]
) -> Optional[List[AccessRule]]:
    """
    Return the ACL that applies to a node.

    ancestors are ordered root first; the nearest one with an ACL wins.
    None means no rule applies anywhere, which grants nothing.
    """
    if meta.acl is not None:
        return meta.acl
    for ancestor in reversed(ancestors):
        if ancestor.meta.acl is not None:
            return ancestor.meta.acl
    return None


def _validate_subject(subject: str) -> None:
    if subject in (SUBJECT_ANONYMOUS, SUBJECT_ALL):
        return
    if subject.startswith(USER_SUBJECT_PREFIX) and len(subject) > len(USER_SUBJECT_PREFIX):
        return
    raise InvalidACLSubjectError(f"Invalid ACL subject {subject!r}")


def _validate_acl(acl: Sequence[AccessRule], valid_ops: Sequence[str]) -> None:
    for rule in acl:
        _validate_subject(rule.subject)
        for op in rule.operations:
            if op not in valid_ops:
                raise InvalidACLOperationError(f"Invalid ACL operation {op!r}")


def validate_content_acl(acl: Sequence[AccessRule]) -> None:
    """Content ACLs may only grant read, write and delete."""
    _validate_acl(acl, CONTENT_OPS)


def validate_config_acl(acl: Sequence[AccessRule]) -> None:
    """The global ACL may only grant admin and register."""
    _validate_acl(acl, CONFIG_OPS)


def _grants(acl: Sequence[AccessRule], subject: str, op: str) -> bool:
    # Only the first rule naming the subject counts
    for rule in acl:
        if rule.subject == subject:
            return op in rule.operations
    return False


class AclService:
    """Evaluates content and global permissions for a requester."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def _check(
        self,
        acl: Sequence[AccessRule],
        user_id: Optional[str],
        op: str,
        global_acl: Optional[Sequence[AccessRule]] = None,
    ) -> None:
        if _grants(acl, SUBJECT_ANONYMOUS, op):
            return
        if not user_id:
            raise AccessDeniedError(401)
        if _grants(acl, SUBJECT_ALL, op):
            return
        if _grants(acl, user_subject(user_id), op):
            return
        if global_acl is None:
            global_acl = self.storage.read_config().acl
        if _grants(global_acl, user_subject(user_id), OP_ADMIN):
            return
        raise AccessDeniedError(403)

    def check_content_permissions(
        self, acl: Optional[Sequence[AccessRule]], user_id: Optional[str], op: str
    ) -> None:
        """Raise AccessDeniedError (401 or 403) unless acl grants op."""
        self._check(acl or [], user_id, op)

    def check_app_permissions(self, user_id: Optional[str], op: str) -> None:
        """Raise AccessDeniedError unless the global ACL grants op."""
        global_acl = self.storage.read_config().acl
        self._check(global_acl, user_id, op, global_acl=global_acl)

    def has_content_permission(
        self, acl: Optional[Sequence[AccessRule]], user_id: Optional[str], op: str
    ) -> bool:
        try:
            self.check_content_permissions(acl, user_id, op)
        except AccessDeniedError:
            return False
        return True

    def is_admin(self, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        try:
            self.check_app_permissions(user_id, OP_ADMIN)
        except AccessDeniedError:
            return False
        return True
