"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_auth_context() is the procedure guard for protected API routes. It reads
the Authorization header (falling back to X-Authorization for older clients)
and delegates to the RequestAuthenticator stored on app.state. Failures are
raised as auth.errors.Unauthorized; api/main.py maps them to 401 responses.

The other getters hand route handlers the components wired in the lifespan,
so handlers never build their own.

Layer rule: may import from fastapi (part of the DI system) and auth/; no
imports from api/ or web/.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request, Response

from auth.authenticator import AuthContext, RequestAuthenticator
from auth.service import AuthService
from auth.storage import StarletteCookieBackend, TokenStore


def get_authorization_header(request: Request) -> Optional[str]:
    return request.headers.get("Authorization") or request.headers.get("X-Authorization") or None


def get_auth_context(request: Request) -> AuthContext:
    """Require a valid bearer credential.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(auth: AuthContext = Depends(get_auth_context)): ...
    """
    authenticator: RequestAuthenticator = request.app.state.authenticator
    return authenticator.authenticate(get_authorization_header(request))


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_token_store(request: Request, response: Response) -> TokenStore:
    """TokenStore bound to this request's cookies and the outgoing response."""
    return TokenStore(
        request.app.state.codec,
        StarletteCookieBackend(request, response),
        request.app.state.settings,
    )
