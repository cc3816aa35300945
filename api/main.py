"""
api/main.py -- FastAPI application factory for Gatehouse.

Run with:      uvicorn asgi:app --reload

create_app() takes an explicit Settings object (and optionally a prebuilt
repository and password hasher) so tests can run the real stack with their
own secret and an in-memory database. asgi.py calls it with get_settings().

Middleware stack (outermost to innermost):
  1. log_requests          -- access log line per request
  2. route_guard           -- edge cookie check and page redirects
  3. SlowAPIMiddleware     -- per-route rate limits from api.limiter
  4. CORSMiddleware        -- CORS headers for allowed browser origins
  5. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan builds the auth components once and stores them on app.state; the
Depends() getters in auth/dependencies.py hand them to route handlers.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.user import router as user_router
from auth.authenticator import RequestAuthenticator
from auth.errors import MESSAGES, AuthError, ErrorCode, Unauthorized, ValidationError
from auth.guard import RouteGuard, route_guard
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserRepository, UserStore
from auth.tokens import TokenCodec
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gatehouse.api")

_STATUS_BY_CODE = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
}


def create_app(
    settings: Optional[Settings] = None,
    *,
    repository: Optional[UserRepository] = None,
    hasher: Optional[PasswordHasher] = None,
) -> FastAPI:
    settings = settings or get_settings()

    # -----------------------------------------------------------------------
    # Lifespan
    # -----------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Wire the auth components on startup; dispose the store on shutdown.

        A repository passed to create_app() belongs to the caller and is not
        closed here.
        """
        logger.info("Gatehouse API starting up (environment=%s)", settings.environment)
        owned_store = None
        repo = repository
        if repo is None:
            owned_store = UserStore(settings.database_url)
            repo = owned_store

        codec = TokenCodec(settings)
        app.state.codec = codec
        app.state.user_store = repo
        app.state.auth_service = AuthService(
            repository=repo,
            hasher=hasher or PasswordHasher(),
            codec=codec,
            settings=settings,
        )
        app.state.authenticator = RequestAuthenticator(codec, repo)
        app.state.route_guard = RouteGuard()
        logger.info("Auth initialized")

        yield

        if owned_store is not None:
            owned_store.close()
        logger.info("Gatehouse API shutdown complete")

    app = FastAPI(
        title="Gatehouse API",
        description="Registration, login and token-protected account endpoints.",
        version=VERSION,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # -----------------------------------------------------------------------
    # Middleware stack
    #
    # Starlette wraps each add_middleware() call around everything registered
    # before it, so the last registration is the outermost layer.
    # -----------------------------------------------------------------------

    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Authorization"],
        allow_credentials=True,
        max_age=3600,
    )
    app.add_middleware(SlowAPIMiddleware)

    # SlowAPI looks for app.state.limiter by convention.
    app.state.limiter = limiter

    app.middleware("http")(route_guard)

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

    # -----------------------------------------------------------------------
    # Router registration
    # -----------------------------------------------------------------------

    app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
    app.include_router(user_router, prefix="/api/v1", tags=["User"])
    # Web pages are mounted by asgi.py, not here.

    # -----------------------------------------------------------------------
    # Exception handlers
    #
    # All handlers return the same ErrorResponse envelope so API clients can
    # parse errors uniformly.
    # -----------------------------------------------------------------------

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        """Map the auth taxonomy to HTTP statuses.

        Only exc.message reaches the client. Internal causes were already
        logged (or deliberately not) at the service boundary.
        """
        detail = exc.reason.value if isinstance(exc, Unauthorized) else None
        errors = exc.errors if isinstance(exc, ValidationError) else None
        response = JSONResponse(
            status_code=_STATUS_BY_CODE[exc.code],
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code.value, message=exc.message, detail=detail, errors=errors)
            ).model_dump(exclude_none=True),
        )
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Return 429 with a structured error and a Retry-After hint."""
        retry_after = int(getattr(exc, "retry_after", 60))
        response = JSONResponse(
            status_code=429,
            content=ErrorResponse(
                error=ErrorDetail(code="TOO_MANY_REQUESTS", message="Too many requests.", detail=str(exc))
            ).model_dump(exclude_none=True),
        )
        response.headers["Retry-After"] = str(retry_after)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed request bodies are BAD_REQUEST, same as any other caller input error."""
        errors = [f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}" for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error=ErrorDetail(
                    code=ErrorCode.BAD_REQUEST.value,
                    message="Request validation failed.",
                    errors=errors,
                )
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = ErrorCode.NOT_FOUND.value if exc.status_code == 404 else f"HTTP_{exc.status_code}"
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=ErrorDetail(code=code, message=str(exc.detail))).model_dump(
                exclude_none=True
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected server errors.

        The raw exception goes to the log only, never to the response body.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(
                    code=ErrorCode.INTERNAL_SERVER_ERROR.value,
                    message=MESSAGES["INTERNAL_ERROR"],
                )
            ).model_dump(exclude_none=True),
        )

    # -----------------------------------------------------------------------
    # Health endpoint
    #
    # Defined here (not in a router) so it is always reachable. No rate limit.
    # -----------------------------------------------------------------------

    @app.get("/api/v1/health", tags=["Health"])
    async def health() -> HealthResponse:
        """Return API liveness and current version."""
        return HealthResponse(version=VERSION)

    return app
