"""
Static file serving for the single-page frontend.
"""

from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import API_PREFIX

INDEX_FILE = "index.html"


class SPAStaticFiles(StaticFiles):
    """Serve built frontend assets, falling back to index.html for client routes."""

    async def get_response(self, path: str, scope):
        try:
            return await super().get_response(path, scope)
        except StarletteHTTPException as exc:
            # Unknown API paths stay 404
            if exc.status_code != 404 or ("/" + path).startswith(API_PREFIX):
                raise
            return await super().get_response(INDEX_FILE, scope)
