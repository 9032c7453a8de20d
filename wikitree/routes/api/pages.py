"""
Content routes for wikitree.
Pages, folders, their attic revisions, and moves (API).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError

from ...errors import AlreadyExistsError, BadInputError, NotFoundError, ParentFolderNotFoundError
from ...middleware.auth_middleware import AuthMiddleware
from ...models.api import MoveRequest, PatchOperation, PutContentRequest
from ...models.content import AccessRule, AncestorMeta, Breadcrumb, ContentMeta, Folder, Page
from ...services.acl import OP_DELETE, OP_READ, OP_WRITE, get_effective_acl, validate_content_acl
from ...state import WikiState, get_state
from ...utils.validation import is_valid_url, parent_url, url_name

router = APIRouter()

_ACL_ADAPTER = TypeAdapter(List[AccessRule])


@dataclass
class ContentContext:
    """The node addressed by a request plus the metadata of its ancestors."""

    url: str
    page: Optional[Page]
    folder: Optional[Folder]
    ancestors: List[AncestorMeta]

    @property
    def meta(self) -> ContentMeta:
        if self.page is not None:
            return self.page.meta
        if self.folder is not None:
            return self.folder.meta
        return ContentMeta()

    @property
    def exists(self) -> bool:
        return self.page is not None or self.folder is not None


def load_content(state: WikiState, url: str) -> ContentContext:
    page = None
    folder = None
    if is_valid_url(url):
        if state.content.is_page(url):
            page = state.content.read_page(url)
        elif state.content.is_folder(url):
            folder = state.content.read_folder(url)
    return ContentContext(url, page, folder, state.content.read_ancestors_meta(url))


def require_content_permission(
    state: WikiState, ctx: ContentContext, user_id: Optional[str], op: str
) -> None:
    """Raise AccessDeniedError unless the node's effective ACL grants op."""
    acl = get_effective_acl(ctx.meta, ctx.ancestors)
    state.acl.check_content_permissions(acl, user_id, op)


def build_breadcrumbs(ctx: ContentContext) -> List[Breadcrumb]:
    crumbs = [
        Breadcrumb(url=a.url, title=a.meta.title, name=url_name(a.url))
        for a in ctx.ancestors
        if a.url
    ]
    if ctx.url and ctx.exists:
        crumbs.append(Breadcrumb(url=ctx.url, title=ctx.meta.title, name=url_name(ctx.url)))
    return crumbs


def present_meta(state: WikiState, meta: ContentMeta, is_admin: bool) -> ContentMeta:
    """Hide the ACL from non-admins and join the author's names."""
    update: Dict[str, Any] = {}
    if is_admin:
        update["acl"] = state.users.enhance_acl_with_user_info(meta.acl)
    else:
        update["acl"] = None
    if meta.modified_by:
        try:
            author = state.users.get_by_id(meta.modified_by)
        except NotFoundError:
            author = None
        if author is not None:
            update["modified_by_username"] = author.username
            update["modified_by_display_name"] = author.display_name
    return meta.model_copy(update=update)


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


@router.post("/pages/actions/move")
def move_content(
    body: MoveRequest,
    request: Request,
    user_id: Optional[str] = Depends(AuthMiddleware.get_current_user_id),
):
    """
    Move a page or folder.

    Needs delete on the source, write on its parent and write at the target.
    """
    state = get_state(request)
    source = load_content(state, body.source)
    if not source.exists or not body.source:
        raise NotFoundError(f"{body.source!r} not found")
    require_content_permission(state, source, user_id, OP_DELETE)
    source_parent_acl = get_effective_acl(ContentMeta(), source.ancestors)
    state.acl.check_content_permissions(source_parent_acl, user_id, OP_WRITE)

    target = load_content(state, body.destination)
    require_content_permission(state, target, user_id, OP_WRITE)
    if target.exists:
        raise AlreadyExistsError(f"Content already exists at {body.destination!r}")

    if source.page is not None:
        state.content.move_page(body.source, body.destination)
    else:
        state.content.move_folder(body.source, body.destination)
    return Response(status_code=200)


@router.get("/pages/{url:path}")
def get_content(
    url: str,
    request: Request,
    user_id: Optional[str] = Depends(AuthMiddleware.get_current_user_id),
):
    """Return a page or folder with the caller's permissions on its parent."""
    state = get_state(request)
    ctx = load_content(state, url)
    require_content_permission(state, ctx, user_id, OP_READ)

    parent_acl = get_effective_acl(ContentMeta(), ctx.ancestors)
    allow_write = state.acl.has_content_permission(parent_acl, user_id, OP_WRITE)
    allow_delete = state.acl.has_content_permission(parent_acl, user_id, OP_DELETE)
    is_admin = state.acl.is_admin(user_id)

    response: Dict[str, Any] = {
        "page": None,
        "folder": None,
        "allowWrite": allow_write,
        "allowDelete": allow_delete,
        "breadcrumbs": [_dump(b) for b in build_breadcrumbs(ctx)],
    }

    if ctx.page is not None:
        page = ctx.page.model_copy(update={"meta": present_meta(state, ctx.page.meta, is_admin)})
        response["page"] = _dump(page)
        return response
    if ctx.folder is not None:
        folder = ctx.folder.model_copy(
            update={"meta": present_meta(state, ctx.folder.meta, is_admin)}
        )
        response["folder"] = _dump(folder)
        return response

    # Creating here is only possible below an existing folder
    if not is_valid_url(url) or not url or not state.content.is_folder(parent_url(url)):
        response["allowWrite"] = False
    if not response["allowWrite"]:
        response["breadcrumbs"] = None
    return JSONResponse(response, status_code=404)


@router.put("/pages/{url:path}")
def put_content(
    url: str,
    body: PutContentRequest,
    request: Request,
    user_id: Optional[str] = Depends(AuthMiddleware.get_current_user_id),
):
    """Create or overwrite a page, or create or update a folder."""
    state = get_state(request)
    ctx = load_content(state, url)
    require_content_permission(state, ctx, user_id, OP_WRITE)

    if not is_valid_url(url):
        raise BadInputError(f"Invalid URL {url!r}")

    try:
        if body.page is not None:
            # ACLs only change through PATCH
            acl = ctx.page.meta.acl if ctx.page is not None else None
            meta = body.page.meta.model_copy(update={"acl": acl})
            state.content.save_page(url, body.page.content, meta, author_id=user_id or "")
        else:
            meta = body.folder.meta if body.folder is not None else ContentMeta()
            if ctx.folder is not None:
                state.content.save_folder(url, meta.model_copy(update={"acl": ctx.folder.meta.acl}))
            else:
                state.content.create_folder(url, meta.model_copy(update={"acl": None}))
    except (ParentFolderNotFoundError, AlreadyExistsError) as exc:
        raise BadInputError(exc.message) from exc

    return Response(status_code=200)


@router.patch("/pages/{url:path}")
def patch_content(
    url: str,
    operations: List[PatchOperation],
    request: Request,
    user_id: Optional[str] = Depends(AuthMiddleware.get_current_user_id),
):
    """Replace the ACL of a page or folder (JSON-patch style)."""
    state = get_state(request)
    ctx = load_content(state, url)
    require_content_permission(state, ctx, user_id, OP_WRITE)

    if not is_valid_url(url) or not ctx.exists:
        raise NotFoundError(f"{url!r} not found")

    acl_path = "/folder/meta/acl" if ctx.folder is not None else "/page/meta/acl"
    meta = ctx.meta
    for operation in operations:
        if operation.op != "replace":
            raise BadInputError(f"Operation {operation.op} not supported")
        if operation.path != acl_path:
            raise BadInputError(f"Path {operation.path} not supported")

        acl: Optional[List[AccessRule]] = None
        if operation.value is not None:
            try:
                parsed = _ACL_ADAPTER.validate_python(operation.value)
            except ValidationError as exc:
                raise BadInputError("Invalid ACL") from exc
            validate_content_acl(parsed)
            acl = [AccessRule(subject=r.subject, operations=r.operations) for r in parsed]
        meta = meta.model_copy(update={"acl": acl})

    if ctx.folder is not None:
        state.content.save_folder(url, meta)
    else:
        state.content.save_page(url, ctx.page.content, meta, author_id=user_id or "")
    return Response(status_code=200)


@router.delete("/pages/{url:path}")
def delete_content(
    url: str,
    request: Request,
    recursive: bool = False,
    user_id: Optional[str] = Depends(AuthMiddleware.get_current_user_id),
):
    """Move a page or folder to the trash."""
    state = get_state(request)
    ctx = load_content(state, url)
    require_content_permission(state, ctx, user_id, OP_DELETE)

    if not is_valid_url(url) or not ctx.exists:
        raise NotFoundError(f"{url!r} not found")

    if ctx.page is not None:
        state.content.delete_page(url)
    elif recursive:
        state.content.delete_folder(url)
    else:
        state.content.delete_empty_folder(url)
    return Response(status_code=200)


@router.get("/attic/{url:path}")
def get_attic(
    url: str,
    request: Request,
    rev: Optional[str] = None,
    user_id: Optional[str] = Depends(AuthMiddleware.get_current_user_id),
):
    """List the revisions of a page, or return one revision with ?rev=."""
    state = get_state(request)
    ctx = load_content(state, url)
    require_content_permission(state, ctx, user_id, OP_READ)

    if ctx.page is None:
        raise NotFoundError(f"Page {url!r} not found")

    breadcrumbs = [_dump(b) for b in build_breadcrumbs(ctx)]

    if rev is None or rev == "":
        entries = state.content.list_attic(url)
        return {"entries": [_dump(e) for e in entries], "breadcrumbs": breadcrumbs}

    try:
        revision = int(rev)
    except ValueError as exc:
        raise BadInputError(f"Invalid revision {rev!r}") from exc
    if not state.content.is_attic_revision(url, revision):
        raise NotFoundError(f"Revision {revision} of {url!r} not found")

    page = state.content.read_page(url, revision)
    is_admin = state.acl.is_admin(user_id)
    page = page.model_copy(update={"meta": present_meta(state, page.meta, is_admin)})
    return {"page": _dump(page), "breadcrumbs": breadcrumbs}
