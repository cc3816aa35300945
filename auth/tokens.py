"""
auth/tokens.py -- JWT signing, verification and diagnostic decoding.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry userId, email, iat and exp; the
       lifetime is a fixed policy constant (24 hours). The payload is signed,
       not encrypted -- anyone can read it, only the secret holder can mint it.

  Failure kinds: verify() raises one of three distinguishable exceptions.
       TokenMalformed -- structural (segment count, undecodable header/claims).
       TokenInvalid   -- cryptographic (wrong secret, tampered payload or
                         signature, unexpected algorithm).
       TokenExpired   -- temporal (now >= exp).
       The signature is checked before expiry, so an expired token with a bad
       signature is reported as invalid.

  Expiry: checked here against the injected clock rather than by jose, so the
       boundary is inclusive (a token is dead AT its exp second) and tests can
       move time without sleeping.

  SECRET: taken from the Settings object handed to the constructor. A blank
       secret fails every sign/verify call with SecretMissing; payload
       validation in sign() runs first so bad input is reported as such even
       on a misconfigured server.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from jose import JWTError, jwt

from auth.errors import InvalidPayload, SecretMissing, TokenExpired, TokenInvalid, TokenMalformed
from auth.models import Identity
from core.config import Settings

ALGORITHM = "HS256"
TOKEN_TTL_SECONDS = 24 * 60 * 60

Clock = Callable[[], float]


@dataclass(frozen=True)
class TokenPayload:
    user_id: str
    email: str
    issued_at: int
    expires_at: int

    @property
    def identity(self) -> Identity:
        return Identity(user_id=self.user_id, email=self.email)


def has_token_shape(token: Any) -> bool:
    """Return True if token is a string of exactly three non-empty dot-separated segments.

    Shape only -- says nothing about the signature. Shared by the codec and
    the edge route guard, which has no access to the secret.
    """
    if not isinstance(token, str):
        return False
    segments = token.split(".")
    return len(segments) == 3 and all(segments)


def _payload_from_claims(claims: Any) -> Optional[TokenPayload]:
    if not isinstance(claims, dict):
        return None
    user_id = claims.get("userId")
    email = claims.get("email")
    iat = claims.get("iat")
    exp = claims.get("exp")
    if not isinstance(user_id, str) or not isinstance(email, str):
        return None
    if not isinstance(iat, int) or not isinstance(exp, int):
        return None
    return TokenPayload(user_id=user_id, email=email, issued_at=iat, expires_at=exp)


def _coerce_identity(payload: Union[Identity, Mapping[str, Any], Any]) -> Identity:
    if isinstance(payload, Identity):
        user_id, email = payload.user_id, payload.email
    elif isinstance(payload, Mapping):
        user_id = payload.get("userId", payload.get("user_id"))
        email = payload.get("email")
    else:
        raise InvalidPayload("Invalid payload: payload must be an object")

    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidPayload("Invalid payload: userId is required and must be a non-empty string")
    if not isinstance(email, str) or not email.strip():
        raise InvalidPayload("Invalid payload: email is required and must be a non-empty string")
    return Identity(user_id=user_id, email=email)


class TokenCodec:
    """Signs and verifies the compact credential issued at login.

    Usage:
        codec = TokenCodec(settings)
        token = codec.sign({"userId": user.id, "email": user.email})
        payload = codec.verify(token)   # TokenPayload, or raises a TokenError
    """

    def __init__(self, settings: Settings, clock: Clock = time.time) -> None:
        self._settings = settings
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def _secret(self) -> str:
        secret = self._settings.jwt_secret
        if not secret or not secret.strip():
            raise SecretMissing()
        return secret

    def sign(self, payload: Union[Identity, Mapping[str, Any]]) -> str:
        identity = _coerce_identity(payload)
        secret = self._secret()
        issued_at = self.now()
        claims = {
            "userId": identity.user_id,
            "email": identity.email,
            "iat": issued_at,
            "exp": issued_at + TOKEN_TTL_SECONDS,
        }
        return jwt.encode(claims, secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenPayload:
        secret = self._secret()
        if not has_token_shape(token):
            raise TokenMalformed()

        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenMalformed() from exc

        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise TokenInvalid() from exc

        payload = _payload_from_claims(claims)
        if payload is None:
            raise TokenMalformed("Token payload is incomplete")
        if self.now() >= payload.expires_at:
            raise TokenExpired()
        return payload

    @staticmethod
    def decode(token: str) -> Optional[TokenPayload]:
        """Read the claims without checking the signature. Diagnostics only -- never authorize on this."""
        if not has_token_shape(token):
            return None
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return None
        return _payload_from_claims(claims)
