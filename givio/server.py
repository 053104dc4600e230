from __future__ import annotations
import sys

import os
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from .config import ConfigurationError, Settings, logger
from .helpers import now_ts, ct_equal
from .infra.sql import make_async_engine
from .adminsession import (
    COOKIE_NAME, SESSION_TTL_SECONDS, check_password, create_token,
    is_safe_next, verify_token,
)
from .model.db import Base
from .model.discountcodes import (
    DiscountCodeStore, row_to_discount, row_to_json, row_to_record,
)
from .model.loginthrottle import LoginThrottle
from .pricing import (
    DEFAULT_CATALOG, PARTNER_TIERED, build_quote, evaluate_discount,
    merge_code_update, normalize_code, parse_cart, parse_new_code,
    price_partner_order,
)
from .pricing.errors import InvalidDiscountConfig, PricingError

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import (
    HTMLResponse, ORJSONResponse, PlainTextResponse, RedirectResponse,
)
from fastapi import Form
from fastapi.templating import Jinja2Templates

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_303_SEE_OTHER

import redis.asyncio as redis

templates = Jinja2Templates(
    directory=os.path.join(os.path.dirname(__file__), "templates")
)

# ----------------------------
# Config & Constants
# ----------------------------
DATABASE_URL = os.environ.get("DATABASE_URL", None)

if DATABASE_URL is None:
    logger.error("NEED DATABASE_URL! e.g. sqlite:///./givio.db")
    sys.exit(1)

REDIS_URL = os.environ.get("REDIS_URL", "")

# reachable without a session: the login form and the endpoints it talks to
PUBLIC_ADMIN_PATHS = {"/admin/login", "/api/admin/login", "/api/admin/logout"}
# routes that scripts may call with the `xadmintoken` header instead of a cookie
SYNC_TOKEN_PATHS = {"/api/admin/discount-codes"}


engine, SessionAsync = make_async_engine(DATABASE_URL)


async def get_db() -> AsyncSession:
    async with SessionAsync() as session:
        yield session


def discount_codes(db: AsyncSession = Depends(get_db)) -> DiscountCodeStore:
    return DiscountCodeStore(db)


app = FastAPI(
    title="Givio Cards",
    default_response_class=ORJSONResponse,
)
app.state.settings = Settings.from_env()
app.state.catalog = DEFAULT_CATALOG
app.state.login_throttle = None


# ---
# startup / shutdown
# ---
@app.on_event("startup")
async def _say_hello():
    settings: Settings = app.state.settings
    logger.info("Givio Cards is starting up...")
    logger.info("   - Admin session secret: %s",
                "set" if settings.admin_session_secret else "MISSING")
    logger.info("   - Login throttle: %s",
                "redis" if REDIS_URL else "disabled")


@app.on_event("startup")
async def _db_init():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.on_event("startup")
async def _redis_start():
    if REDIS_URL:
        settings: Settings = app.state.settings
        app.state.redis = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
            retry_on_timeout=True,
        )
        app.state.login_throttle = LoginThrottle(
            app.state.redis,
            max_attempts=settings.login_max_attempts,
            window_seconds=settings.login_window_seconds,
        )


@app.on_event("shutdown")
async def _redis_stop():
    r = getattr(app.state, "redis", None)
    if r is not None:
        await r.aclose()
        app.state.redis = None
        app.state.login_throttle = None


@app.on_event("shutdown")
async def _db_stop():
    await engine.dispose()


# ----------------------------
# Errors
# ----------------------------
@app.exception_handler(PricingError)
async def _pricing_error(request: Request, exc: PricingError):
    return ORJSONResponse(
        {"ok": False, "error": exc.message, "code": exc.code},
        status_code=400,
    )


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return ORJSONResponse(
        {"ok": False, "error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def _db_error(request: Request, exc: SQLAlchemyError):
    logger.exception("[%s] database error", request.url.path)
    return ORJSONResponse(
        {"ok": False, "error": "Server error"}, status_code=500
    )


# ----------------------------
# Helpers
# ----------------------------
def is_admin_path(path: str) -> bool:
    return (
        path == "/admin" or path.startswith("/admin/")
        or path == "/api/admin" or path.startswith("/api/admin/")
    )


def login_redirect(dest: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"/admin/login?{urlencode({'next': dest})}",
        status_code=307,
    )


async def json_body(request: Request) -> Optional[Dict[str, Any]]:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def row_envelope(row) -> Dict[str, Any]:
    data = row_to_json(row)
    return {"ok": True, "row": data, "code": data, "data": data}


# ----------------------------
# Admin gate
# ----------------------------
@app.middleware("http")
async def admin_gate(request: Request, call_next):
    path = request.url.path
    if not is_admin_path(path) or path in PUBLIC_ADMIN_PATHS:
        return await call_next(request)

    is_api = path.startswith("/api/")
    settings: Settings = request.app.state.settings
    try:
        secret = settings.require_session_secret()
    except ConfigurationError as e:
        # fail closed: no secret, no admin
        logger.error("admin gate: %s", e)
        if is_api:
            return ORJSONResponse({"error": str(e)}, status_code=500)
        return PlainTextResponse(
            "Admin auth is not configured", status_code=500
        )

    if path in SYNC_TOKEN_PATHS and settings.admin_sync_token:
        header_token = request.headers.get("xadmintoken", "")
        if header_token and ct_equal(header_token, settings.admin_sync_token):
            return await call_next(request)

    token = request.cookies.get(COOKIE_NAME, "")
    if token and verify_token(token, secret, now_ts()):
        return await call_next(request)

    if is_api:
        return ORJSONResponse({"error": "Unauthorized"}, status_code=401)
    # preserve where we wanted to go
    return login_redirect(path)


# ----------------------------
# Shop: discount preview + quote
# ----------------------------
@app.post("/api/discount/preview")
async def discount_preview(
    request: Request,
    store: DiscountCodeStore = Depends(discount_codes),
):
    body = await json_body(request) or {}
    code = normalize_code(body.get("code"))
    cart = parse_cart(body.get("items"))

    row = await store.get_by_code(code)
    record = row_to_discount(row) if row is not None else None
    catalog = request.app.state.catalog

    if record is not None and record.discount_type == PARTNER_TIERED:
        quote = price_partner_order(
            cart, code, record, now=now_ts(), catalog=catalog
        )
        return quote.to_dict()

    preview = evaluate_discount(
        cart, code, record, now=now_ts(), catalog=catalog
    )
    return preview.to_dict()


@app.post("/api/shop/quote")
async def shop_quote(
    request: Request,
    store: DiscountCodeStore = Depends(discount_codes),
):
    body = await json_body(request) or {}
    cart = parse_cart(body.get("items"))

    code = None
    record = None
    raw_code = body.get("code")
    if isinstance(raw_code, str) and raw_code.strip():
        code = normalize_code(raw_code)
        row = await store.get_by_code(code)
        record = row_to_discount(row) if row is not None else None

    settings: Settings = request.app.state.settings
    return build_quote(
        cart, code, record,
        now=now_ts(),
        catalog=request.app.state.catalog,
        shipping_cents=settings.shipping_cents,
    )


# ----------------------------
# Admin: login / logout
# ----------------------------
@app.get("/admin/login", response_class=HTMLResponse)
async def admin_login_get(
    request: Request, next: str | None = "/admin", error: str | None = None
):
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "next": next if is_safe_next(next) else "/admin",
            "error": "Invalid password." if error else None,
        },
    )


@app.post("/api/admin/login")
async def admin_login_post(
    request: Request,
    password: str = Form(""),
    next: str = Form("/admin"),
):
    settings: Settings = request.app.state.settings
    try:
        expected = settings.require_admin_password()
        secret = settings.require_session_secret()
    except ConfigurationError as e:
        logger.error("admin login: %s", e)
        return ORJSONResponse(
            {"error": "Admin auth is not configured"}, status_code=500
        )

    who = client_id(request)
    throttle: Optional[LoginThrottle] = request.app.state.login_throttle
    if throttle is not None and not await throttle.hit(who):
        logger.warning("admin login throttled for %s", who)
        return templates.TemplateResponse(
            request,
            "login.html",
            {
                "next": next if is_safe_next(next) else "/admin",
                "error": "Too many attempts. Try again later.",
            },
            status_code=429,
        )

    if not check_password(password, expected):
        logger.info("admin login failed from %s", who)
        params = {"error": "1"}
        if is_safe_next(next):
            params["next"] = next
        return RedirectResponse(
            url=f"/admin/login?{urlencode(params)}",
            status_code=HTTP_303_SEE_OTHER,
        )

    if throttle is not None:
        await throttle.reset(who)

    resp = RedirectResponse(
        url=next if is_safe_next(next) else "/admin",
        status_code=HTTP_303_SEE_OTHER,
    )
    resp.set_cookie(
        COOKIE_NAME,
        create_token(secret, now_ts()),
        max_age=SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.production,
    )
    return resp


@app.api_route("/api/admin/logout", methods=["GET", "POST"])
async def admin_logout(request: Request):
    settings: Settings = request.app.state.settings
    resp = RedirectResponse(
        url="/admin/login", status_code=HTTP_303_SEE_OTHER
    )
    resp.set_cookie(
        COOKIE_NAME,
        "",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.production,
    )
    return resp


# ----------------------------
# Admin page: discount codes
# ----------------------------
@app.get("/admin", response_class=HTMLResponse)
async def admin_page(
    request: Request,
    store: DiscountCodeStore = Depends(discount_codes),
):
    rows = await store.list_codes(include_inactive=True)
    return templates.TemplateResponse(
        request,
        "admin.html",
        {
            "codes": [row_to_json(r) for r in rows],
            "site_name": "Givio Cards",
        },
    )


@app.get("/api/admin/discount-codes")
async def api_admin_list_codes(
    includeInactive: str | None = None,
    store: DiscountCodeStore = Depends(discount_codes),
):
    rows = await store.list_codes(include_inactive=(includeInactive == "1"))
    items = [row_to_json(r) for r in rows]
    return {"ok": True, "rows": items, "codes": items, "data": items}


@app.post("/api/admin/discount-codes")
async def api_admin_create_code(
    request: Request,
    store: DiscountCodeStore = Depends(discount_codes),
):
    body = await json_body(request)
    if body is None:
        raise InvalidDiscountConfig("Invalid JSON")
    row = await store.create(parse_new_code(body))
    logger.info("discount code %s created (%s)", row.code, row.discount_type)
    return row_envelope(row)


def _code_id(request: Request, body: Optional[Dict[str, Any]]) -> str:
    code_id = request.query_params.get("id") or (body or {}).get("id")
    if not code_id or not isinstance(code_id, str):
        raise HTTPException(400, detail="Missing id")
    return code_id


@app.patch("/api/admin/discount-codes")
async def api_admin_update_code(
    request: Request,
    store: DiscountCodeStore = Depends(discount_codes),
):
    body = await json_body(request)
    code_id = _code_id(request, body)

    current = await store.get(code_id)
    if current is None:
        raise HTTPException(404, detail="discount code not found")

    changes = merge_code_update(row_to_record(current), body or {})
    if not changes:
        return row_envelope(current)

    row = await store.update(code_id, changes)
    if row is None:
        raise HTTPException(404, detail="discount code not found")
    logger.info("discount code %s updated: %s", row.code, sorted(changes))
    return row_envelope(row)


@app.delete("/api/admin/discount-codes")
async def api_admin_deactivate_code(
    request: Request,
    store: DiscountCodeStore = Depends(discount_codes),
):
    body = await json_body(request)
    code_id = _code_id(request, body)

    row = await store.deactivate(code_id)
    if row is None:
        raise HTTPException(404, detail="discount code not found")
    logger.info("discount code %s deactivated", row.code)
    return row_envelope(row)
