"""
Short-lived access tokens (HS256 JWTs) for wikitree.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from ..config import ACCESS_TOKEN_TTL_SECONDS

JWT_ALGORITHM = "HS256"


class InvalidAccessTokenError(Exception):
    """The token is malformed, expired or signed with another secret."""


class AccessTokenService:
    def __init__(self, jwt_secret: str) -> None:
        self.jwt_secret = jwt_secret

    def create(self, user_id: str, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=ACCESS_TOKEN_TTL_SECONDS)).timestamp()),
        }
        return jwt.encode(payload, self.jwt_secret, algorithm=JWT_ALGORITHM)

    def validate(self, token: str) -> str:
        """Return the user id carried by a valid token."""
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except (jwt.ExpiredSignatureError, jwt.InvalidTokenError) as exc:
            raise InvalidAccessTokenError(str(exc)) from exc
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidAccessTokenError("missing subject")
        return subject
