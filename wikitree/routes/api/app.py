"""
App routes for wikitree.
Public app info and the admin-only runtime configuration (API).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Request

from ...config import VERSION
from ...errors import AccessDeniedError
from ...middleware.auth_middleware import AuthMiddleware
from ...models.api import PatchOperation
from ...models.settings import AppConfig
from ...services.acl import OP_ADMIN, OP_REGISTER
from ...state import WikiState, get_state

router = APIRouter()


def _config_json(state: WikiState, config: AppConfig) -> dict:
    config = config.model_copy(update={"acl": state.users.enhance_acl_with_user_info(config.acl)})
    return config.model_dump(by_alias=True, mode="json")


def _allowed(state: WikiState, user_id: Optional[str], op: str) -> bool:
    try:
        state.acl.check_app_permissions(user_id, op)
    except AccessDeniedError:
        return False
    return True


@router.get("/app")
def get_app(
    request: Request,
    user_id: Optional[str] = Depends(AuthMiddleware.get_current_user_id),
):
    """Public app info plus what the caller may do globally."""
    state = get_state(request)
    config = state.settings.read()
    return {
        "appTitle": config.app_title,
        "setupMode": config.setup_mode,
        "allowRegister": _allowed(state, user_id, OP_REGISTER),
        "allowAdmin": _allowed(state, user_id, OP_ADMIN),
        "version": VERSION,
    }


@router.get("/config")
def get_config(request: Request, _: str = Depends(AuthMiddleware.require_admin)):
    state = get_state(request)
    return _config_json(state, state.settings.read())


@router.patch("/config")
def patch_config(
    operations: List[PatchOperation],
    request: Request,
    _: str = Depends(AuthMiddleware.require_admin),
):
    """Apply replace operations to the runtime config and return the result."""
    state = get_state(request)
    return _config_json(state, state.settings.patch(operations))
