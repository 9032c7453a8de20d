"""
Validation utilities for wikitree.
Contains the URL and username rules shared by the stores and the API.
"""

import posixpath
import re
from typing import List

# Lowercase segments of [a-z0-9_-], first char not "_", joined by "/".
# The empty string denotes the root folder.
_URL_PATTERN = re.compile(r"^[a-z0-9-][a-z0-9_-]*(/[a-z0-9-][a-z0-9_-]*)*$")
_USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]{3,20}$")


def is_valid_url(url: str) -> bool:
    """Return True for a content URL, including the empty root URL."""
    if url == "":
        return True
    return bool(_URL_PATTERN.fullmatch(url))


def is_valid_username(username: str) -> bool:
    """Validate a username against the allowed alphabet and length."""
    if not username:
        return False
    return bool(_USERNAME_PATTERN.fullmatch(username))


def parent_url(url: str) -> str:
    """Return the URL of the folder containing url ("" for top level)."""
    return posixpath.dirname(url)


def url_name(url: str) -> str:
    """Return the last segment of url."""
    return posixpath.basename(url)


def join_url(parent: str, name: str) -> str:
    """Join a folder URL and a child name."""
    return f"{parent}/{name}" if parent else name


def ancestor_urls(url: str) -> List[str]:
    """
    Return the URLs of every folder above url, root first.

    The root itself has no ancestors.
    """
    if url == "":
        return []
    parts = url.split("/")[:-1]
    ancestors = [""]
    for i in range(len(parts)):
        ancestors.append("/".join(parts[: i + 1]))
    return ancestors
