"""Server-rendered, role-gated web UI.

Every page talks to the REST API through the service wrappers, exactly like
an external client would. The bearer token lives in an HTTP-only cookie.
"""
import logging
from pathlib import Path
from typing import NamedTuple

import requests
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from . import pages
from .config import get_settings
from .roles import Role, display_name
from .services import ApiClient, Services
from .session import Access, SessionContext
from .table import ASC
from .utils import format_date, format_datetime, format_rating, rounded_stars

logger = logging.getLogger(__name__)

router = APIRouter()

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


def url_with(request: Request, **params) -> str:
    url = request.url.include_query_params(**params)
    return f"{url.path}?{url.query}"


templates.env.globals.update(
    url_with=url_with,
    display_name=display_name,
    format_rating=format_rating,
    format_date=format_date,
    format_datetime=format_datetime,
    rounded_stars=rounded_stars,
    Role=Role,
)

_http = requests.Session()


def get_api_client() -> ApiClient:
    return ApiClient(get_settings().api_base_url, http=_http)


class CookieTokenStore:
    """Token store backed by the session cookie; changes are written on the response."""

    def __init__(self, request: Request):
        self.cookie = get_settings().session_cookie
        self.token = request.cookies.get(self.cookie)
        self._pending = None

    def get(self) -> str | None:
        return self.token

    def set(self, token: str):
        self.token = token
        self._pending = token

    def clear(self):
        self.token = None
        self._pending = ""

    def apply(self, response):
        if self._pending:
            response.set_cookie(self.cookie, self._pending, httponly=True, samesite="lax",
                                max_age=get_settings().jwt_expiration_seconds)
        elif self._pending == "":
            response.delete_cookie(self.cookie)
        return response


class UiContext(NamedTuple):
    request: Request
    session: SessionContext
    services: Services
    tokens: CookieTokenStore


async def get_context(request: Request, api: ApiClient = Depends(get_api_client)) -> UiContext:
    tokens = CookieTokenStore(request)
    services = Services(api)
    session = SessionContext(services.auth, tokens)
    await run_in_threadpool(session.init)
    return UiContext(request, session, services, tokens)


class AccessDenied(Exception):
    def __init__(self, ctx: UiContext, access: Access):
        super().__init__(access.value)
        self.ctx = ctx
        self.access = access


def require_roles(*roles: Role):
    async def dependency(ctx: UiContext = Depends(get_context)) -> UiContext:
        access = ctx.session.check_access(roles)
        if access != Access.ALLOWED:
            raise AccessDenied(ctx, access)
        return ctx
    return dependency


def render(ctx: UiContext, name: str, status_code: int = 200, **context):
    context.setdefault("user", ctx.session.current_user)
    response = templates.TemplateResponse(ctx.request, name, context, status_code=status_code)
    return ctx.tokens.apply(response)


def redirect(ctx: UiContext, url: str):
    return ctx.tokens.apply(RedirectResponse(url=url, status_code=303))


def not_found(request: Request, user=None):
    return templates.TemplateResponse(request, "not_found.html", {"user": user}, status_code=404)


async def access_denied_handler(request: Request, exc: AccessDenied):
    if exc.access == Access.LOGIN:
        return redirect(exc.ctx, "/login")
    logger.info("Route hidden from role", extra={"path": request.url.path,
                                                   "role": exc.ctx.session.current_user.role.value})
    return exc.ctx.tokens.apply(not_found(request, exc.ctx.session.current_user))


def _list_args(request: Request, filters: tuple) -> dict:
    params = request.query_params
    return {
        "filters": {name: params.get(name, "") for name in filters},
        "sort": params.get("sort") or None,
        "direction": params.get("order") or ASC,
    }


def _page_number(request: Request) -> int:
    page = request.query_params.get("page", "1")
    return int(page) if page.isdigit() else 1


async def _form(request: Request) -> dict:
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


# -------------------- Public --------------------

@router.get("/")
async def landing(ctx: UiContext = Depends(get_context)):
    if ctx.session.is_authenticated:
        return redirect(ctx, ctx.session.home_path)
    return render(ctx, "landing.html")


@router.get("/login")
async def login_form(ctx: UiContext = Depends(get_context)):
    if ctx.session.is_authenticated:
        return redirect(ctx, ctx.session.home_path)
    return render(ctx, "login.html", page=pages.LoginPage(ctx.session, ctx.services))


@router.post("/login")
async def login(ctx: UiContext = Depends(get_context)):
    page = pages.LoginPage(ctx.session, ctx.services)
    result = await run_in_threadpool(page.submit, await _form(ctx.request))
    if result is not None and result.ok:
        return redirect(ctx, ctx.session.home_path)
    return render(ctx, "login.html", status_code=400, page=page)


@router.get("/register")
async def register_form(ctx: UiContext = Depends(get_context)):
    if ctx.session.is_authenticated:
        return redirect(ctx, ctx.session.home_path)
    return render(ctx, "register.html", page=pages.RegisterPage(ctx.session, ctx.services))


@router.post("/register")
async def register(ctx: UiContext = Depends(get_context)):
    page = pages.RegisterPage(ctx.session, ctx.services)
    result = await run_in_threadpool(page.submit, await _form(ctx.request))
    if result is not None and result.ok:
        return redirect(ctx, ctx.session.home_path)
    return render(ctx, "register.html", status_code=400, page=page)


@router.post("/logout")
async def logout(ctx: UiContext = Depends(get_context)):
    await run_in_threadpool(ctx.session.logout)
    return redirect(ctx, "/login")


@router.get("/password-update")
async def password_form(ctx: UiContext = Depends(require_roles(*Role))):
    return render(ctx, "password_update.html", page=pages.PasswordUpdatePage(ctx.session, ctx.services))


@router.post("/password-update")
async def password_update(ctx: UiContext = Depends(require_roles(*Role))):
    page = pages.PasswordUpdatePage(ctx.session, ctx.services)
    ok = await run_in_threadpool(page.submit, await _form(ctx.request))
    return render(ctx, "password_update.html", status_code=200 if ok else 400, page=page,
                  redirect_to=ctx.session.home_path if ok else None)


# -------------------- Admin --------------------

@router.get("/admin/dashboard")
async def admin_dashboard(ctx: UiContext = Depends(require_roles(Role.SYSTEM_ADMIN))):
    page = pages.AdminDashboardPage(ctx.session, ctx.services)
    await run_in_threadpool(page.mount)
    return render(ctx, "admin_dashboard.html", page=page)


def _users_page(ctx: UiContext) -> pages.AdminUsersPage:
    page = pages.AdminUsersPage(ctx.session, ctx.services, **_list_args(ctx.request, pages.AdminUsersPage.FILTERS))
    return page


@router.get("/admin/users")
async def admin_users(ctx: UiContext = Depends(require_roles(Role.SYSTEM_ADMIN))):
    page = _users_page(ctx)
    await run_in_threadpool(page.mount)
    page.table.go_to(_page_number(ctx.request))
    return render(ctx, "admin_users.html", page=page)


@router.post("/admin/users")
async def admin_create_user(ctx: UiContext = Depends(require_roles(Role.SYSTEM_ADMIN))):
    page = _users_page(ctx)
    values = await _form(ctx.request)
    created = await run_in_threadpool(page.create_user, values)
    if not created:
        await run_in_threadpool(page.mount)
    return render(ctx, "admin_users.html", status_code=201 if created else 400, page=page, show_form=not created)


@router.get("/admin/users/{user_id}")
async def admin_user_detail(user_id: int, ctx: UiContext = Depends(require_roles(Role.SYSTEM_ADMIN))):
    page = pages.AdminUsersPage(ctx.session, ctx.services)
    await run_in_threadpool(page.view_user, user_id)
    status_code = 200 if page.selected_user is not None else 404
    return render(ctx, "admin_user_detail.html", status_code=status_code, page=page)


def _stores_page(ctx: UiContext) -> pages.AdminStoresPage:
    page = pages.AdminStoresPage(ctx.session, ctx.services, **_list_args(ctx.request, pages.AdminStoresPage.FILTERS))
    return page


@router.get("/admin/stores")
async def admin_stores(ctx: UiContext = Depends(require_roles(Role.SYSTEM_ADMIN))):
    page = _stores_page(ctx)
    await run_in_threadpool(page.mount)
    page.table.go_to(_page_number(ctx.request))
    return render(ctx, "admin_stores.html", page=page)


@router.post("/admin/stores")
async def admin_create_store(ctx: UiContext = Depends(require_roles(Role.SYSTEM_ADMIN))):
    page = _stores_page(ctx)
    values = await _form(ctx.request)
    created = await run_in_threadpool(page.create_store, values)
    if not created:
        await run_in_threadpool(page.mount)
    return render(ctx, "admin_stores.html", status_code=201 if created else 400, page=page, show_form=not created)


# -------------------- Normal user --------------------

async def _mounted_user_stores(ctx: UiContext) -> pages.UserStoresPage:
    page = pages.UserStoresPage(ctx.session, ctx.services, **_list_args(ctx.request, pages.UserStoresPage.FILTERS))
    await run_in_threadpool(page.mount)
    page.table.go_to(_page_number(ctx.request))
    return page


@router.get("/stores")
async def user_stores(ctx: UiContext = Depends(require_roles(Role.NORMAL_USER))):
    return render(ctx, "user_stores.html", page=await _mounted_user_stores(ctx))


@router.post("/stores/{store_id}/rating")
async def rate_store(store_id: int, ctx: UiContext = Depends(require_roles(Role.NORMAL_USER))):
    value = (await _form(ctx.request)).get("value", "")
    page = await _mounted_user_stores(ctx)
    widget = await page.rate(store_id, int(value) if value.isdigit() else 0)
    ok = widget is not None and widget.message.kind == "success"
    return render(ctx, "user_stores.html", status_code=200 if ok else 400, page=page)


# -------------------- Store owner --------------------

@router.get("/owner/dashboard")
async def owner_dashboard(ctx: UiContext = Depends(require_roles(Role.STORE_OWNER))):
    args = _list_args(ctx.request, ())
    page = pages.OwnerDashboardPage(ctx.session, ctx.services, sort=args["sort"], direction=args["direction"])
    await run_in_threadpool(page.mount)
    page.table.go_to(_page_number(ctx.request))
    return render(ctx, "owner_dashboard.html", page=page)
