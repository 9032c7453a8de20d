"""
Authentication routes for wikitree.
Handles the user directory, login, token refresh and logout (API).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from loguru import logger

from ...config import REFRESH_COOKIE_NAME, REFRESH_COOKIE_PATH, REFRESH_TOKEN_TTL_DAYS
from ...errors import AccessDeniedError, BadInputError, NotFoundError, RateLimitedError
from ...middleware.auth_middleware import AuthMiddleware
from ...middleware.rate_limiter import client_identifier
from ...models.api import (
    ChangePasswordRequest,
    CreateUserRequest,
    LoginRequest,
    PatchOperation,
    RefreshRequest,
)
from ...models.user import User
from ...services.acl import OP_REGISTER
from ...state import WikiState, get_state
from ...utils.error_utils import error_response

router = APIRouter(prefix="/auth")

REFRESH_COOKIE_MAX_AGE = REFRESH_TOKEN_TTL_DAYS * 24 * 60 * 60


def _user_json(user: User) -> dict:
    return user.model_dump(by_alias=True, mode="json")


def _is_secure(request: Request) -> bool:
    if request.url.scheme == "https":
        return True
    return request.headers.get("x-forwarded-proto", "").lower() == "https"


def set_refresh_cookie(response: Response, request: Request, token_id: str) -> None:
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=token_id,
        max_age=REFRESH_COOKIE_MAX_AGE,
        path=REFRESH_COOKIE_PATH,
        httponly=True,
        secure=_is_secure(request),
        samesite="lax",
    )


def clear_refresh_cookie(response: Response, request: Request) -> None:
    response.delete_cookie(
        key=REFRESH_COOKIE_NAME,
        path=REFRESH_COOKIE_PATH,
        httponly=True,
        secure=_is_secure(request),
        samesite="lax",
    )


def _refresh_token_id(request: Request, body: Optional[RefreshRequest]) -> Optional[str]:
    if body is not None and body.refresh_token_id:
        return body.refresh_token_id
    return request.cookies.get(REFRESH_COOKIE_NAME)


def _resolve_managed_user(state: WikiState, username: str, user_id: str) -> User:
    """
    Return the user a caller may modify.

    Admins may modify anyone who exists (404 otherwise); everyone else only
    themselves (403 otherwise, so that usernames cannot be probed).
    """
    is_admin = state.acl.is_admin(user_id)
    try:
        user = state.users.get_by_username(username)
    except NotFoundError:
        if is_admin:
            raise
        raise AccessDeniedError(403)
    if not is_admin and user.id != user_id:
        raise AccessDeniedError(403)
    return user


@router.get("/users")
def list_users(request: Request, _: str = Depends(AuthMiddleware.require_admin)):
    """List all users (admin only)."""
    state = get_state(request)
    return [_user_json(user) for user in state.users.read_all()]


@router.get("/users/{username}")
def get_user(username: str, request: Request, _: str = Depends(AuthMiddleware.require_admin)):
    state = get_state(request)
    return _user_json(state.users.get_by_username(username))


@router.post("/users")
def create_user(
    body: CreateUserRequest,
    request: Request,
    user_id: Optional[str] = Depends(AuthMiddleware.get_current_user_id),
):
    """
    Register a user.

    While the wiki is in setup mode anyone may register, and the first user
    becomes the global admin. Afterwards the global register operation is
    required.
    """
    state = get_state(request)
    setup_mode = state.settings.read().setup_mode
    if not setup_mode:
        state.acl.check_app_permissions(user_id, OP_REGISTER)

    user = state.users.create(body.username, body.password, body.display_name)

    if setup_mode:
        state.settings.complete_setup(user.id)

    return _user_json(user)


@router.patch("/users/{username}")
def patch_user(
    username: str,
    operations: List[PatchOperation],
    request: Request,
    user_id: str = Depends(AuthMiddleware.require_auth),
):
    """Change the username or display name (JSON-patch style replace)."""
    state = get_state(request)
    user = _resolve_managed_user(state, username, user_id)

    for operation in operations:
        if operation.op != "replace":
            raise BadInputError(f"Operation {operation.op} not supported")
        if operation.value is None:
            raise BadInputError("Value missing")
        if not isinstance(operation.value, str):
            raise BadInputError(f"Value for {operation.path} must be a string")

        if operation.path == "/username":
            state.users.set_username(user, operation.value)
        elif operation.path == "/displayName":
            user.display_name = operation.value
        else:
            raise BadInputError(f"Path {operation.path} not supported")

    state.users.save(user)
    return Response(status_code=200)


@router.delete("/users/{username}")
@router.post("/users/{username}/delete")
def delete_user(
    username: str,
    request: Request,
    user_id: str = Depends(AuthMiddleware.require_auth),
):
    """Delete a user; non-admins may only delete themselves."""
    state = get_state(request)
    user = _resolve_managed_user(state, username, user_id)
    state.users.delete_by_username(user.username)
    state.refresh_tokens.delete_all_for_user(user.id)
    return Response(status_code=200)


@router.post("/users/{username}/password")
def change_password(
    username: str,
    body: ChangePasswordRequest,
    request: Request,
    user_id: str = Depends(AuthMiddleware.require_auth),
):
    """
    Change a password.

    The caller confirms with their own current password; admins may then
    change any user's password. All refresh tokens of the target are revoked.
    """
    state = get_state(request)
    try:
        caller = state.users.get_by_id(user_id)
    except NotFoundError:
        raise AccessDeniedError(401)

    if not state.users.verify_password(caller, body.current_password):
        raise AccessDeniedError(403, "Current password is wrong")

    if username.casefold() == caller.username.casefold():
        target = caller
    else:
        if not state.acl.is_admin(user_id):
            raise AccessDeniedError(403)
        target = state.users.get_by_username(username)

    state.users.set_password_hash(target, body.new_password)
    state.users.save(target)

    try:
        state.refresh_tokens.delete_all_for_user(target.id)
    except Exception as exc:
        # The password change itself has been stored
        logger.error(f"[tokens] Could not revoke refresh tokens of user {target.id}: {exc}")

    return Response(status_code=200)


@router.post("/login")
def login(body: LoginRequest, request: Request, response: Response):
    """
    Exchange credentials for an access token and a refresh token.

    Only failed attempts cost a token of the per-client login bucket.
    """
    state = get_state(request)
    client = client_identifier(request)

    allowed, retry_after = state.login_limiter.allow(client)
    if not allowed:
        logger.warning(f"Login rate limit hit for {client}")
        raise RateLimitedError(retry_after)

    user = state.users.verify_credentials(body.username, body.password)
    if user is None:
        state.login_limiter.on_failure(client)
        raise AccessDeniedError(401, "Invalid username or password")

    token = state.access_tokens.create(user.id)
    refresh_token_id = state.refresh_tokens.create(user.id)
    set_refresh_cookie(response, request, refresh_token_id)
    logger.info(f"User {user.username} logged in")

    return {"token": token, "refreshTokenId": refresh_token_id, "user": _user_json(user)}


@router.post("/refresh")
def refresh(request: Request, response: Response, body: Optional[RefreshRequest] = None):
    """Issue a new access token for a live refresh token and slide its expiry."""
    state = get_state(request)
    token_id = _refresh_token_id(request, body)
    if not token_id:
        return error_response(401, "Unauthorized")

    try:
        user_id = state.refresh_tokens.validate(token_id)
        user = state.users.get_by_id(user_id)
    except NotFoundError:
        # Expired token or deleted user
        state.refresh_tokens.delete(token_id)
        failed = error_response(401, "Unauthorized")
        clear_refresh_cookie(failed, request)
        return failed

    state.refresh_tokens.refresh(token_id)
    set_refresh_cookie(response, request, token_id)
    return {"token": state.access_tokens.create(user.id), "user": _user_json(user)}


@router.post("/logout")
def logout(request: Request, body: Optional[RefreshRequest] = None):
    """Revoke the refresh token, if any, and clear the cookie."""
    state = get_state(request)
    token_id = _refresh_token_id(request, body)
    if token_id:
        state.refresh_tokens.delete(token_id)
    response = Response(status_code=200)
    clear_refresh_cookie(response, request)
    return response
