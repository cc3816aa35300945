"""
auth/storage.py -- Client-side persistence of the credential bundle.

TokenStore writes the bundle (signed token + the identity it was issued for)
to a cookie-like backend and re-validates it against the TokenCodec every time
it is read back. Anything that fails to parse, fails verification, or whose
unsigned identity copy disagrees with the signed claims is purged on sight.

Cookie attributes (TokenStore.store):
  max_age=86400    -- matches the token lifetime so both die together.
  secure           -- on in every environment except development.
  samesite=strict  -- never sent on cross-site requests (CSRF mitigation).
  path=/           -- available site-wide, including to the edge route guard.

Backends:
  MemoryCookieBackend   -- a dict, for scripted clients and tests.
  StarletteCookieBackend -- reads the incoming request's cookies and writes
                            Set-Cookie headers on the outgoing response.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from starlette.requests import Request
from starlette.responses import Response

from auth.credential import Malformed, StoredCredential, parse_credential
from auth.errors import MESSAGES, StorageError, TokenError
from auth.models import Identity
from auth.tokens import TOKEN_TTL_SECONDS, TokenCodec
from core.config import Settings

logger = logging.getLogger("gatehouse.auth.storage")

COOKIE_NAME = "auth-token"
COOKIE_PATH = "/"
COOKIE_SAMESITE = "strict"
NEAR_EXPIRY_SECONDS = 15 * 60


class CredentialBackend(Protocol):
    def get(self, name: str) -> Optional[str]: ...

    def set(self, name: str, value: str, *, max_age: int, secure: bool, samesite: str, path: str) -> None: ...

    def delete(self, name: str, *, path: str) -> None: ...


@dataclass
class CookieRecord:
    value: str
    max_age: int
    secure: bool
    samesite: str
    path: str


class MemoryCookieBackend:
    """In-process cookie jar. Keeps the attributes so callers can inspect them."""

    def __init__(self) -> None:
        self.cookies: dict[str, CookieRecord] = {}

    def get(self, name: str) -> Optional[str]:
        record = self.cookies.get(name)
        return record.value if record is not None else None

    def set(self, name: str, value: str, *, max_age: int, secure: bool, samesite: str, path: str) -> None:
        self.cookies[name] = CookieRecord(value=value, max_age=max_age, secure=secure, samesite=samesite, path=path)

    def delete(self, name: str, *, path: str) -> None:
        self.cookies.pop(name, None)


class StarletteCookieBackend:
    """Cookie backend bound to one request/response pair.

    Writes made during the request are remembered locally so a read after
    store() or clear() sees the new state rather than the stale request cookie.
    """

    def __init__(self, request: Request, response: Response) -> None:
        self._request = request
        self._response = response
        self._overrides: dict[str, Optional[str]] = {}

    def get(self, name: str) -> Optional[str]:
        if name in self._overrides:
            return self._overrides[name]
        return self._request.cookies.get(name)

    def set(self, name: str, value: str, *, max_age: int, secure: bool, samesite: str, path: str) -> None:
        self._response.set_cookie(name, value=value, max_age=max_age, secure=secure, samesite=samesite, path=path)
        self._overrides[name] = value

    def delete(self, name: str, *, path: str) -> None:
        self._response.delete_cookie(name, path=path)
        self._overrides[name] = None


class TokenStore:
    """Persist and re-validate the credential bundle.

    Usage:
        store = TokenStore(codec, MemoryCookieBackend(), settings)
        store.store(token, Identity(user_id, email))
        bundle = store.retrieve()    # StoredCredential or None
        store.clear()
    """

    def __init__(self, codec: TokenCodec, backend: CredentialBackend, settings: Settings) -> None:
        self._codec = codec
        self._backend = backend
        self._settings = settings

    def store(self, token: str, user: Identity) -> None:
        bundle = StoredCredential(token=token, user=user)
        try:
            self._backend.set(
                COOKIE_NAME,
                bundle.to_json(),
                max_age=TOKEN_TTL_SECONDS,
                secure=self._settings.secure_cookies,
                samesite=COOKIE_SAMESITE,
                path=COOKIE_PATH,
            )
        except Exception as exc:
            logger.error("Failed to store authentication token: %s", type(exc).__name__)
            raise StorageError(MESSAGES["STORAGE_ERROR"]) from exc

    def retrieve(self) -> Optional[StoredCredential]:
        """Return the stored bundle if it still verifies, else purge it and return None.

        Never raises: a backend that cannot be read is treated as holding no
        credential.
        """
        try:
            raw = self._backend.get(COOKIE_NAME)
        except Exception as exc:
            logger.warning("Failed to read stored credential (%s), clearing token", type(exc).__name__)
            self._purge()
            return None
        if not raw:
            return None

        parsed = parse_credential(raw)
        if isinstance(parsed, Malformed):
            logger.warning("Invalid stored credential (%s), clearing token", parsed.reason)
            self._purge()
            return None
        bundle = parsed.credential

        try:
            payload = self._codec.verify(bundle.token)
        except TokenError as exc:
            logger.warning("Token validation failed (%s), clearing token", exc)
            self._purge()
            return None

        if payload.identity != bundle.user:
            logger.warning("Token payload mismatch, clearing token")
            self._purge()
            return None

        return bundle

    def is_authenticated(self) -> bool:
        return self.retrieve() is not None

    def current_user(self) -> Optional[Identity]:
        bundle = self.retrieve()
        return bundle.user if bundle is not None else None

    def auth_token(self) -> Optional[str]:
        bundle = self.retrieve()
        return bundle.token if bundle is not None else None

    def clear(self) -> None:
        self._backend.delete(COOKIE_NAME, path=COOKIE_PATH)

    def _purge(self) -> None:
        try:
            self.clear()
        except Exception:
            logger.warning("Failed to clear stored credential", exc_info=True)

    def is_near_expiry(self) -> bool:
        """True when a valid stored token has at most 15 minutes left. Never raises."""
        try:
            bundle = self.retrieve()
            if bundle is None:
                return False
            payload = self._codec.verify(bundle.token)
            remaining = payload.expires_at - self._codec.now()
            return 0 < remaining <= NEAR_EXPIRY_SECONDS
        except Exception:
            logger.debug("Near-expiry check failed", exc_info=True)
            return False
