import pytest

from wikitree.errors import AccessDeniedError, InvalidACLOperationError, InvalidACLSubjectError
from wikitree.models.content import AccessRule, AncestorMeta, ContentMeta
from wikitree.services.acl import (
    AclService,
    get_effective_acl,
    validate_config_acl,
    validate_content_acl,
)


def rule(subject, *ops):
    return AccessRule(subject=subject, operations=list(ops))


@pytest.fixture
def acl(storage, settings):
    return AclService(storage)


@pytest.fixture
def admin_id(settings):
    settings.complete_setup("boss01")
    return "boss01"


def test_effective_acl_prefers_own_acl():
    own = [rule("all", "read")]
    ancestors = [AncestorMeta(url="", meta=ContentMeta(acl=[rule("anonymous", "read")]))]
    assert get_effective_acl(ContentMeta(acl=own), ancestors) == own


def test_effective_acl_uses_nearest_ancestor():
    root = [rule("all", "read")]
    docs = [rule("user:abc", "read")]
    ancestors = [
        AncestorMeta(url="", meta=ContentMeta(acl=root)),
        AncestorMeta(url="docs", meta=ContentMeta(acl=docs)),
        AncestorMeta(url="docs/inner", meta=ContentMeta()),
    ]
    assert get_effective_acl(ContentMeta(), ancestors) == docs


def test_effective_acl_empty_list_is_not_inherit():
    ancestors = [AncestorMeta(url="", meta=ContentMeta(acl=[rule("all", "read")]))]
    assert get_effective_acl(ContentMeta(acl=[]), ancestors) == []


def test_effective_acl_none_when_nothing_set():
    assert get_effective_acl(ContentMeta(), []) is None


def test_anonymous_rule_needs_no_user(acl):
    acl.check_content_permissions([rule("anonymous", "read")], None, "read")


def test_missing_user_is_401(acl):
    with pytest.raises(AccessDeniedError) as exc_info:
        acl.check_content_permissions([rule("all", "read")], None, "read")
    assert exc_info.value.status_code == 401


def test_authenticated_without_grant_is_403(acl):
    with pytest.raises(AccessDeniedError) as exc_info:
        acl.check_content_permissions([rule("all", "read")], "u1", "write")
    assert exc_info.value.status_code == 403


def test_user_rule(acl):
    rules = [rule("user:u1", "read", "write")]
    acl.check_content_permissions(rules, "u1", "write")
    assert not acl.has_content_permission(rules, "u2", "read")


def test_first_matching_rule_wins(acl):
    rules = [rule("user:u1", "read"), rule("user:u1", "write")]
    assert not acl.has_content_permission(rules, "u1", "write")


def test_global_admin_passes_content_checks(acl, admin_id):
    acl.check_content_permissions([], admin_id, "delete")
    acl.check_content_permissions(None, admin_id, "write")
    assert acl.is_admin(admin_id)
    assert not acl.is_admin("someone")
    assert not acl.is_admin(None)


def test_app_permissions(acl, settings):
    config = settings.read()
    config.acl = [rule("all", "register")]
    settings.write(config)
    acl.check_app_permissions("u1", "register")
    with pytest.raises(AccessDeniedError) as exc_info:
        acl.check_app_permissions(None, "register")
    assert exc_info.value.status_code == 401


def test_validate_content_acl():
    validate_content_acl([rule("anonymous", "read"), rule("user:x", "write", "delete")])
    with pytest.raises(InvalidACLOperationError):
        validate_content_acl([rule("all", "admin")])
    with pytest.raises(InvalidACLSubjectError):
        validate_content_acl([rule("everyone", "read")])
    with pytest.raises(InvalidACLSubjectError):
        validate_content_acl([rule("user:", "read")])


def test_validate_config_acl():
    validate_config_acl([rule("all", "register"), rule("user:x", "admin")])
    with pytest.raises(InvalidACLOperationError):
        validate_config_acl([rule("all", "read")])
