"""
Authentication middleware for wikitree.
Resolves the Bearer access token of a request to a user id.
"""

from typing import Optional

from fastapi import HTTPException, Request
from loguru import logger

from ..services.access_token_service import InvalidAccessTokenError
from ..state import get_state


class AuthMiddleware:
    """Dependencies for handling authentication."""

    @staticmethod
    def get_current_user_id(request: Request) -> Optional[str]:
        """
        Get the current user id from the Authorization header.

        Args:
            request: FastAPI request object

        Returns:
            User id if a valid token was sent, None for anonymous requests

        Raises:
            HTTPException: 400 for a malformed header, 401 for a bad token
        """
        if hasattr(request.state, "user_id"):
            return request.state.user_id

        header = request.headers.get("authorization")
        if not header:
            request.state.user_id = None
            return None

        parts = header.split(" ")
        if len(parts) != 2 or parts[0] != "Bearer":
            raise HTTPException(
                status_code=400,
                detail="Authorization header has wrong format, expected: Bearer <token>",
            )

        try:
            user_id = get_state(request).access_tokens.validate(parts[1])
        except InvalidAccessTokenError as exc:
            logger.debug("Rejected access token: {}", exc)
            raise HTTPException(status_code=401, detail="Invalid access token")

        request.state.user_id = user_id
        return user_id

    @staticmethod
    def require_auth(request: Request) -> str:
        """
        Require authentication for a request.

        Raises:
            HTTPException: If user is not authenticated
        """
        user_id = AuthMiddleware.get_current_user_id(request)
        if not user_id:
            raise HTTPException(status_code=401, detail="Authentication required")
        return user_id

    @staticmethod
    def require_admin(request: Request) -> str:
        """Require a user holding the global admin operation."""
        user_id = AuthMiddleware.require_auth(request)
        if not get_state(request).acl.is_admin(user_id):
            raise HTTPException(status_code=403, detail="Forbidden")
        return user_id
