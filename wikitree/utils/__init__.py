"""
Utils package for wikitree.
Contains utility functions and helpers.
"""

from .validation import (
    is_valid_url,
    is_valid_username,
    parent_url,
    url_name,
    join_url,
    ancestor_urls,
)
from .tokens import generate_random_string

__all__ = [
    'is_valid_url',
    'is_valid_username',
    'parent_url',
    'url_name',
    'join_url',
    'ancestor_urls',
    'generate_random_string',
]
