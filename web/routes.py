"""
web/routes.py -- Jinja2 template routes behind the edge route guard.

The real UI lives elsewhere; these pages exist so the guard's redirect targets
resolve and so the dashboard can demonstrate the full credential check:

  The route guard only proves the cookie is well-formed. /dashboard goes one
  step further and asks TokenStore.retrieve() to verify the signature, expiry
  and identity match. A cookie that passes the guard but fails verification
  is purged and the visitor is sent back to /login.

Routes:
  GET /login      -- login page (guard bounces authenticated visitors away)
  GET /register   -- registration page (same)
  GET /dashboard  -- authenticated landing page
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.guard import DEFAULT_LANDING_PATH, safe_redirect_target
from auth.passwords import MIN_LENGTH
from auth.storage import StarletteCookieBackend, TokenStore

logger = logging.getLogger("gatehouse.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# Whitelist mapping for ?reason= query params on /login.
# The raw query param is NEVER passed to templates -- only the message from
# this dict is.
_REASON_MESSAGES: dict[str, str] = {
    "auth-required": "Please sign in to continue.",
    "admin-required": "An administrator account is required.",
}


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    notice = _REASON_MESSAGES.get(request.query_params.get("reason", ""))
    redirect_to = safe_redirect_target(request.query_params.get("redirect")) or DEFAULT_LANDING_PATH
    return templates.TemplateResponse(
        "login.html",
        {"request": request, "notice": notice, "redirect_to": redirect_to},
    )


@router.get("/register", response_class=HTMLResponse)
def register_page(request: Request):
    return templates.TemplateResponse("register.html", {"request": request, "min_length": MIN_LENGTH})


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request):
    # The store writes to the redirect, so a purge during retrieve() lands on
    # the response we return when verification fails.
    redirect = RedirectResponse("/login?reason=auth-required", status_code=302)
    store = TokenStore(request.app.state.codec, StarletteCookieBackend(request, redirect), request.app.state.settings)
    bundle = store.retrieve()
    if bundle is None:
        logger.info("Dashboard visit without a verifiable credential")
        return redirect

    expiring = store.is_near_expiry()
    response = templates.TemplateResponse(
        "dashboard.html",
        {"request": request, "email": bundle.user.email, "expiring": expiring},
    )
    if expiring:
        response.headers["X-Session-Expiring"] = "1"
    return response
