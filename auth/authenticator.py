"""
auth/authenticator.py -- Server-side bearer credential verification.

RequestAuthenticator is the full check that the edge route guard cannot do:
signature and expiry via TokenCodec, then a fresh repository lookup so a
deleted account loses access even while its token is still in date.

Outcome mapping:
  no header                     -> Unauthorized(MISSING_HEADER)
  "Bearer " with nothing after  -> Unauthorized(INVALID_FORMAT)
  TokenExpired                  -> Unauthorized(TOKEN_EXPIRED)
  TokenInvalid                  -> Unauthorized(TOKEN_INVALID)
  any other TokenError          -> Unauthorized(AUTHENTICATION_FAILED)
  user gone                     -> Unauthorized(USER_NOT_FOUND)
  user email != token email     -> Unauthorized(PAYLOAD_MISMATCH)
  repository blew up            -> InternalError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from auth.errors import (
    InternalError,
    TokenError,
    TokenExpired,
    TokenInvalid,
    Unauthorized,
    UnauthorizedReason,
)
from auth.models import PublicUser, sanitize
from auth.store import UserRepository
from auth.tokens import TokenCodec

logger = logging.getLogger("gatehouse.auth")

_BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthContext:
    user: PublicUser
    user_id: str


def extract_token(authorization: Optional[str]) -> str:
    """Return the token from `Bearer <token>` or a bare token header value."""
    if not authorization:
        raise Unauthorized(UnauthorizedReason.MISSING_HEADER, "Authorization header is required")
    token = authorization[len(_BEARER_PREFIX) :] if authorization.startswith(_BEARER_PREFIX) else authorization
    token = token.strip()
    if not token:
        raise Unauthorized(
            UnauthorizedReason.INVALID_FORMAT,
            "Invalid authorization format. Expected: Bearer <token>",
        )
    return token


class RequestAuthenticator:
    def __init__(self, codec: TokenCodec, repository: UserRepository) -> None:
        self.codec = codec
        self.repository = repository

    def authenticate(self, authorization: Optional[str]) -> AuthContext:
        token = extract_token(authorization)

        try:
            payload = self.codec.verify(token)
        except TokenExpired as exc:
            raise Unauthorized(UnauthorizedReason.TOKEN_EXPIRED, "Token has expired") from exc
        except TokenInvalid as exc:
            raise Unauthorized(UnauthorizedReason.TOKEN_INVALID, "Invalid token") from exc
        except TokenError as exc:
            logger.info("Token rejected: %s", exc)
            raise Unauthorized(UnauthorizedReason.AUTHENTICATION_FAILED, "Authentication failed") from exc

        try:
            user = self.repository.find_by_id(payload.user_id)
        except Exception as exc:
            logger.exception("User lookup failed during authentication")
            raise InternalError("Authentication middleware failed") from exc

        if user is None:
            raise Unauthorized(UnauthorizedReason.USER_NOT_FOUND, "User not found or account deactivated")
        if user.email != payload.email:
            raise Unauthorized(UnauthorizedReason.PAYLOAD_MISMATCH, "Token payload does not match user data")

        return AuthContext(user=sanitize(user), user_id=user.id)
