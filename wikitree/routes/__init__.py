"""
Routes package for wikitree.
This package contains all the route modules for the application.
"""

from .api import app, auth, pages, search, trash

__all__ = ["app", "auth", "pages", "search", "trash"]
