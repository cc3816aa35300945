"""
auth/guard.py -- Edge route guard.

Runs in front of every page request WITHOUT the signing secret, so it can only
do cheap structural checks on the credential cookie (parseable JSON, required
fields, three-segment token). It exists to bounce obviously unauthenticated
visitors to /login and to clear visibly broken cookies before they reach
anything else. Real verification happens in RequestAuthenticator and
TokenStore.retrieve().

Decision table (first matching row wins):
  cookie present, structurally broken      -> clear cookie, 302 /login
  no valid cookie, protected route         -> 302 /login?redirect=<path>&reason=auth-required
  no valid cookie, admin route             -> 302 /login?redirect=<path>&reason=admin-required
  valid cookie, public-only route          -> 302 to ?redirect= (if path-relative) or /dashboard
  valid cookie, protected route            -> continue + security headers
  everything else                          -> continue unmodified

Routes are classified by prefix match, so /dashboard/settings is protected
because /dashboard is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import RedirectResponse

from auth.credential import Malformed, parse_credential
from auth.storage import COOKIE_NAME, COOKIE_PATH

PROTECTED_ROUTES = ("/dashboard", "/profile", "/settings", "/datasets", "/chat")
PUBLIC_ONLY_ROUTES = ("/login", "/register")
ADMIN_ROUTES = ("/admin",)

LOGIN_PATH = "/login"
DEFAULT_LANDING_PATH = "/dashboard"

# Paths the guard never looks at: API calls carry bearer tokens instead of the
# page cookie, and static assets need no protection.
_EXCLUDED_PREFIXES = ("/api/", "/static/", "/favicon.ico")

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class RouteClass(str, Enum):
    PROTECTED = "protected"
    PUBLIC_ONLY = "public_only"
    ADMIN = "admin"
    UNCLASSIFIED = "unclassified"


class Action(str, Enum):
    CONTINUE = "continue"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardDecision:
    action: Action
    location: Optional[str] = None
    clear_cookie: bool = False
    headers: dict[str, str] = field(default_factory=dict)


def safe_redirect_target(target: Optional[str]) -> Optional[str]:
    """Return target if it is a server-local path, else None.

    Rejects absolute URLs and protocol-relative ones (//evil.example), which
    would turn the post-login redirect into an open redirect.
    """
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


def _login_url(params: dict[str, str]) -> str:
    return f"{LOGIN_PATH}?{urlencode(params, safe='/')}"


class RouteGuard:
    def __init__(
        self,
        protected: Sequence[str] = PROTECTED_ROUTES,
        public_only: Sequence[str] = PUBLIC_ONLY_ROUTES,
        admin: Sequence[str] = ADMIN_ROUTES,
    ) -> None:
        self.protected = tuple(protected)
        self.public_only = tuple(public_only)
        self.admin = tuple(admin)

    @staticmethod
    def applies_to(path: str) -> bool:
        if path.startswith(_EXCLUDED_PREFIXES):
            return False
        last_segment = path.rsplit("/", 1)[-1]
        return "." not in last_segment

    def classify(self, path: str) -> RouteClass:
        if path.startswith(self.protected):
            return RouteClass.PROTECTED
        if path.startswith(self.public_only):
            return RouteClass.PUBLIC_ONLY
        if path.startswith(self.admin):
            return RouteClass.ADMIN
        return RouteClass.UNCLASSIFIED

    def decide(self, path: str, cookie: Optional[str], redirect_param: Optional[str] = None) -> GuardDecision:
        authenticated = False
        if cookie:
            if isinstance(parse_credential(cookie), Malformed):
                return GuardDecision(Action.REDIRECT, location=LOGIN_PATH, clear_cookie=True)
            authenticated = True

        route_class = self.classify(path)

        if not authenticated and route_class is RouteClass.PROTECTED:
            return GuardDecision(Action.REDIRECT, location=_login_url({"redirect": path, "reason": "auth-required"}))
        if not authenticated and route_class is RouteClass.ADMIN:
            return GuardDecision(Action.REDIRECT, location=_login_url({"redirect": path, "reason": "admin-required"}))
        if authenticated and route_class is RouteClass.PUBLIC_ONLY:
            target = safe_redirect_target(redirect_param) or DEFAULT_LANDING_PATH
            return GuardDecision(Action.REDIRECT, location=target)
        if authenticated and route_class is RouteClass.PROTECTED:
            return GuardDecision(Action.CONTINUE, headers=dict(SECURITY_HEADERS))
        return GuardDecision(Action.CONTINUE)


_default_guard = RouteGuard()


async def route_guard(request: Request, call_next):
    """HTTP middleware applying RouteGuard decisions.

    Register with:  app.middleware("http")(route_guard)
    """
    path = request.url.path
    if not RouteGuard.applies_to(path):
        return await call_next(request)

    guard: RouteGuard = getattr(request.app.state, "route_guard", _default_guard)
    decision = guard.decide(path, request.cookies.get(COOKIE_NAME), request.query_params.get("redirect"))

    if decision.action is Action.REDIRECT:
        response = RedirectResponse(decision.location, status_code=302)
        if decision.clear_cookie:
            response.delete_cookie(COOKIE_NAME, path=COOKIE_PATH)
        return response

    response = await call_next(request)
    for name, value in decision.headers.items():
        response.headers[name] = value
    return response
