"""
web/routes.py -- Jinja2 template routes for the PageDesk manager UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same identity module and content store) but return HTML instead of
JSON.

Route registration order matters. FastAPI resolves same-level paths in order:
  - GET /manager/page/add must be registered before GET /manager/page/{page_id}.
    The uuid convertor would reject "add" anyway, but keeping the literal
    path first makes the intent obvious.

Routes:
  GET  /manager                      -- redirect to /manager/pages
  GET  /manager/login                -- login form
  POST /manager/login                -- handle password login (CSRF-protected)
  POST /manager/logout               -- sign out, redirect to login (CSRF-protected)
  GET  /manager/pages                -- page list
  GET  /manager/page/add             -- empty edit form for a new page
  GET  /manager/page/{page_id:uuid}  -- edit form for one page
  POST /manager/page/save            -- save; 303 to list or re-render form (CSRF-protected)
  POST /manager/page/delete          -- delete; 303 to list, 404 if missing (CSRF-protected)

Every page route requires a signed-in user holding the Admin claim.
Anonymous users go to CookieOptions.login_path, signed-in users without the
claim go to CookieOptions.access_denied_path.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import get_user_claims, try_get_current_user
from auth.policies import Permission, permission_claim
from content.store import ContentStore
from web.csrf import get_csrf_token, validate_csrf
from web.models import PageEditModel, PageListModel

logger = logging.getLogger("pagedesk.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# Layout calls these with the request from the template context, so route
# handlers do not have to pass current_user / csrf tokens explicitly.
templates.env.globals["try_get_current_user"] = try_get_current_user
templates.env.globals["csrf_token"] = get_csrf_token
router = APIRouter()

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= query params on the login page.
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted error query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid username or password.",
    "access_denied": "Your account does not have access to the manager.",
}

_ADMIN_CLAIM = permission_claim(Permission.ADMIN)


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    Rejects absolute URLs and protocol-relative URLs ("//host") so the login
    form cannot be used as an open redirect.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/manager/pages"


def _is_manager(request: Request, user) -> bool:
    return _ADMIN_CLAIM in get_user_claims(request, user)


def _require_manager(request: Request) -> Optional[RedirectResponse]:
    """Check that the request comes from a signed-in manager user.

    Returns a RedirectResponse if not, None if OK. Call at the top of
    protected route handlers:
        if redirect := _require_manager(request):
            return redirect
    """
    cookie = request.app.state.identity.cookie
    user = try_get_current_user(request)
    if user is None:
        return RedirectResponse(f"{cookie.login_path}?next={quote(request.url.path)}", status_code=302)
    if not _is_manager(request, user):
        return RedirectResponse(f"{cookie.access_denied_path}?error=access_denied", status_code=302)
    return None


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/manager", include_in_schema=False)
def manager_root() -> RedirectResponse:
    return RedirectResponse("/manager/pages", status_code=302)


@router.get("/manager/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page."""
    user = try_get_current_user(request)
    # Signed-in managers skip the form. Signed-in users without the Admin
    # claim land here as the access-denied page, so they must see it.
    if user is not None and _is_manager(request, user):
        return RedirectResponse(_safe_next(request.query_params.get("next")), status_code=302)

    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error_msg": error_msg, "next": _safe_next(request.query_params.get("next"))},
    )


@router.post("/manager/login", response_class=HTMLResponse)
async def login_post(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    next: Optional[str] = Form(default=None),
    csrf_token: Optional[str] = Form(default=None),
) -> RedirectResponse:
    """Handle username/password login form submission."""
    validate_csrf(request, csrf_token)
    next_url = _safe_next(next)
    resp = RedirectResponse(next_url, status_code=302)
    if not await request.app.state.identity.security.sign_in(resp, username, password):
        return RedirectResponse(
            f"/manager/login?error=bad_credentials&next={quote(next_url)}",
            status_code=302,
        )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/manager/logout")
async def logout(request: Request, csrf_token: Optional[str] = Form(default=None)) -> RedirectResponse:
    """Sign out and redirect to the login page."""
    validate_csrf(request, csrf_token)
    resp = RedirectResponse(request.app.state.identity.cookie.login_path, status_code=302)
    await request.app.state.identity.security.sign_out(resp)
    return resp


# ---------------------------------------------------------------------------
# GET /manager/pages -- page list
# ---------------------------------------------------------------------------


@router.get("/manager/pages", response_class=HTMLResponse)
def page_list(request: Request) -> HTMLResponse:
    if redirect := _require_manager(request):
        return redirect
    content: ContentStore = request.app.state.content
    return templates.TemplateResponse(request, "pages/list.html", {"model": PageListModel.get(content)})


# ---------------------------------------------------------------------------
# GET /manager/page/add -- new page form (registered BEFORE /manager/page/{page_id})
# ---------------------------------------------------------------------------


@router.get("/manager/page/add", response_class=HTMLResponse)
def page_add(request: Request) -> HTMLResponse:
    if redirect := _require_manager(request):
        return redirect
    return templates.TemplateResponse(request, "pages/edit.html", {"model": PageEditModel.create()})


# ---------------------------------------------------------------------------
# GET /manager/page/{page_id} -- edit form
# ---------------------------------------------------------------------------


@router.get("/manager/page/{page_id:uuid}", response_class=HTMLResponse)
def page_edit(request: Request, page_id: uuid.UUID) -> HTMLResponse:
    if redirect := _require_manager(request):
        return redirect
    content: ContentStore = request.app.state.content
    model = PageEditModel.get_by_id(content, page_id)
    if model is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Page not found."})
    return templates.TemplateResponse(request, "pages/edit.html", {"model": model})


# ---------------------------------------------------------------------------
# POST /manager/page/save -- save, 303 to list on success
# ---------------------------------------------------------------------------


@router.post("/manager/page/save", response_class=HTMLResponse)
async def page_save(
    request: Request,
    id: Optional[str] = Form(default=None),
    title: str = Form(default=""),
    slug: str = Form(default=""),
    navigation_title: str = Form(default=""),
    meta_keywords: str = Form(default=""),
    meta_description: str = Form(default=""),
    body: str = Form(default=""),
    sort_order: str = Form(default="0"),
    published: Optional[str] = Form(default=None),
    csrf_token: Optional[str] = Form(default=None),
) -> HTMLResponse:
    """Persist the submitted page. Invalid input re-renders the same form."""
    if redirect := _require_manager(request):
        return redirect
    validate_csrf(request, csrf_token)

    model = PageEditModel(
        id=id or None,
        title=title,
        slug=slug,
        navigation_title=navigation_title,
        meta_keywords=meta_keywords,
        meta_description=meta_description,
        body=body,
        sort_order=sort_order,
        published=published is not None,
    )
    content: ContentStore = request.app.state.content
    if model.save(content):
        logger.info("Saved page %s (%s)", model.id, model.slug)
        return RedirectResponse("/manager/pages", status_code=303)
    return templates.TemplateResponse(request, "pages/edit.html", {"model": model})


# ---------------------------------------------------------------------------
# POST /manager/page/delete -- remove a page, 303 to list
# ---------------------------------------------------------------------------


@router.post("/manager/page/delete")
async def page_delete(
    request: Request,
    id: str = Form(default=""),
    csrf_token: Optional[str] = Form(default=None),
) -> RedirectResponse:
    if redirect := _require_manager(request):
        return redirect
    validate_csrf(request, csrf_token)

    content: ContentStore = request.app.state.content
    if not content.delete_page(id):
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Page not found."})
    logger.info("Deleted page %s", id)
    return RedirectResponse("/manager/pages", status_code=303)
