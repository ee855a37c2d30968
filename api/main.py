"""
api/main.py -- FastAPI application entry point for PageDesk.

Exposes identity administration (roles, users, sessions) over HTTP. The
manager UI in web/ shares the same app and the same identity module.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- method, path, status and latency per request
  2. sliding_session       -- re-issues an aging auth cookie
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  6. SessionMiddleware     -- signed session cookie holding the CSRF token

Identity is registered at import time with add_identity_with_seed(); the
lifespan opens the identity store and the content store on startup and
closes both on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from starlette.middleware.sessions import SessionMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.roles import router as roles_router
from api.routes.v1.users import router as users_router
from auth.dependencies import get_current_user
from auth.identity import add_identity, add_identity_with_seed
from auth.models import User
from auth.options import DbOptions
from auth.validators import IdentityError
from content.store import ContentStore
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("pagedesk.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the identity and content stores on startup, close them on shutdown.

    The identity module must be started before the first request: routes
    reach the store, sign-in manager and security adapter through
    app.state.identity.
    """
    logger.info("PageDesk starting up")
    app.state.identity.start()
    app.state.content = ContentStore(settings.content_database_url)
    logger.info("Stores initialized")

    yield

    app.state.content.close()
    app.state.identity.stop()
    logger.info("PageDesk shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="PageDesk API",
    description="Page management and identity administration.",
    version=__version__,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)


def _configure_db(options: DbOptions) -> None:
    options.url = settings.identity_database_url


if settings.seed_identity:
    add_identity_with_seed(app, _configure_db)
else:
    add_identity(app, _configure_db)
app.state.identity.cookie.secure = settings.secure_cookies

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() prepends, so the last registration is the outermost layer
# at the ASGI level. Requests meet them in the order listed at the top of
# this module.
# ---------------------------------------------------------------------------

app.add_middleware(SessionMiddleware, secret_key=settings.secret_key, https_only=settings.secure_cookies)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
    max_age=3600,
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Sliding session middleware
#
# Re-issues the auth cookie on any response once less than half of its
# lifetime remains. The sign-in manager skips responses that already set or
# clear the cookie.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def sliding_session(request: Request, call_next):
    response = await call_next(request)
    sign_in_manager = getattr(request.app.state.identity, "sign_in_manager", None)
    if sign_in_manager is not None:
        sign_in_manager.refresh_sign_in(request, response)
    return response


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(roles_router, prefix="/api/v1", tags=["Roles"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
# The manager UI router is mounted by asgi.py; api/ never imports web/.


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(user: User = Depends(get_current_user)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="PageDesk API")


@app.get("/redoc", include_in_schema=False)
async def redoc(user: User = Depends(get_current_user)):
    return get_redoc_html(openapi_url="/openapi.json", title="PageDesk API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same ErrorResponse envelope.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(IdentityError)
async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    """Identity rule violations that a route did not translate itself."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="identity_error",
                message="Identity validation failed.",
                detail="; ".join(exc.errors),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict it becomes the error field
    as-is; str(dict) would produce a Python repr, not JSON.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Not rate limited; load balancers poll it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return liveness, version and a ping of each database."""
    components = {
        "identity_db": _ping(request.app.state.identity.store),
        "content_db": _ping(getattr(request.app.state, "content", None)),
    }
    status = "healthy" if all(v == "ok" for v in components.values()) else "degraded"
    return HealthResponse(status=status, version=__version__, components=components)


def _ping(store) -> str:
    if store is None:
        return "unavailable"
    try:
        with store.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check failed for %s", type(store).__name__)
        return "error"
    return "ok"
