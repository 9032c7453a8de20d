"""
API routes package for wikitree.
This package contains API route modules that return JSON responses.
"""

from . import app, auth, pages, search, trash

__all__ = ["app", "auth", "pages", "search", "trash"]
