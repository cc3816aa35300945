"""
api/routes/v1/auth.py -- Registration, login and session endpoints.

Routes:
  POST /api/v1/auth/register   -- create an account; 201
  POST /api/v1/auth/login      -- password login; returns the token and stores
                                  the credential cookie
  POST /api/v1/auth/logout     -- clears the credential cookie
  GET  /api/v1/auth/me         -- identity behind the bearer token

Security:
  POST /register and /login are rate-limited per client IP.
  Cache-Control: no-store on login responses.
  Login failures for unknown email and wrong password are indistinguishable
  (same code, same message) -- AuthService guarantees this.

Register and login are sync handlers on purpose: FastAPI runs them on its
threadpool, so bcrypt never blocks the event loop.

No `from __future__ import annotations` in this module: FastAPI resolves the
rate-limited handlers' annotations against the slowapi wrapper's globals, so
they must be real objects, not strings.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter, login_rate_key, login_rate_limit
from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
)
from auth.authenticator import AuthContext
from auth.dependencies import get_auth_context, get_auth_service, get_token_store
from auth.errors import MESSAGES
from auth.models import Identity
from auth.service import AuthService
from auth.storage import TokenStore
from auth.tokens import TOKEN_TTL_SECONDS

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - POST /api/v1/auth/logout:   public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:       requires bearer auth (get_auth_context)
router = APIRouter()


# @router must be outermost so FastAPI registers the rate-limited wrapper.
@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(login_rate_limit, key_func=login_rate_key)
def register(
    request: Request,
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """Create an account. Weak passwords fail with every violated rule listed."""
    user = service.register(body.email, body.password)
    return RegisterResponse(message=MESSAGES["REGISTRATION_SUCCESS"], user=UserResponse.from_public(user))


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit, key_func=login_rate_key)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    token_store: TokenStore = Depends(get_token_store),
) -> LoginResponse:
    """Authenticate with email and password.

    The token is returned in the body for API clients (Authorization: Bearer)
    and also written to the credential cookie that the page guard reads.
    """
    result = service.login(body.email, body.password)
    token_store.store(result.token, Identity(user_id=result.user.id, email=result.user.email))
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(
        message=MESSAGES["LOGIN_SUCCESS"],
        token=result.token,
        expires_in=TOKEN_TTL_SECONDS,
        user=UserResponse.from_public(result.user),
    )


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(token_store: TokenStore = Depends(get_token_store)) -> MessageResponse:
    """Delete the credential cookie. The token itself stays valid until it expires."""
    token_store.clear()
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=MeResponse)
async def me(auth: AuthContext = Depends(get_auth_context)) -> MeResponse:
    return MeResponse(user_id=auth.user_id, email=auth.user.email)
