import pytest

from wikitree.utils.tokens import generate_random_string
from wikitree.utils.validation import (
    ancestor_urls,
    is_valid_url,
    is_valid_username,
    join_url,
    parent_url,
    url_name,
)


@pytest.mark.parametrize(
    "url",
    ["", "foo", "foo/bar", "a-b/c_d", "0", "-dash", "deep/er/still/here"],
)
def test_valid_urls(url):
    assert is_valid_url(url)


@pytest.mark.parametrize(
    "url",
    ["Foo", "foo/", "/foo", "foo//bar", "_index", "foo/_bar", "foo.md", "../etc", "a b"],
)
def test_invalid_urls(url):
    assert not is_valid_url(url)


@pytest.mark.parametrize("username", ["alice", "Bob_1", "a.b-c", "x" * 21])
def test_valid_usernames(username):
    assert is_valid_username(username)


@pytest.mark.parametrize("username", ["", "abc", "_alice", "al ice", "x" * 22, ".alice"])
def test_invalid_usernames(username):
    assert not is_valid_username(username)


def test_url_helpers():
    assert parent_url("a/b/c") == "a/b"
    assert parent_url("a") == ""
    assert url_name("a/b/c") == "c"
    assert join_url("", "a") == "a"
    assert join_url("a/b", "c") == "a/b/c"


def test_ancestor_urls_root_first():
    assert ancestor_urls("") == []
    assert ancestor_urls("a") == [""]
    assert ancestor_urls("a/b/c") == ["", "a", "a/b"]


def test_generate_random_string():
    first = generate_random_string(32)
    second = generate_random_string(32)
    assert len(first) == 32
    assert first != second
    assert all(c.isalnum() or c in "-_" for c in first)
