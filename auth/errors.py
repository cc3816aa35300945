"""
auth/errors.py -- Exception taxonomy for the auth subsystem.

Two families live here:

  AuthError and subclasses -- service-level outcomes. Each carries an
      ErrorCode (the RPC error surface the API layer maps to HTTP statuses)
      and a message that is always safe to show to the client.

  TokenError and subclasses -- token codec outcomes. Callers that need to
      tell a structural failure from a cryptographic or temporal one catch
      TokenMalformed / TokenInvalid / TokenExpired individually.

Layer rule: stdlib only. No imports from api/ or web/.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class UnauthorizedReason(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    MISSING_HEADER = "missing_header"
    INVALID_FORMAT = "invalid_format"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    AUTHENTICATION_FAILED = "authentication_failed"
    USER_NOT_FOUND = "user_not_found"
    PAYLOAD_MISMATCH = "payload_mismatch"


# Client-facing messages. Kept in one place so the two login failure paths
# cannot drift apart.
MESSAGES = {
    "PASSWORD_STRENGTH_ERROR": "Password does not meet strength requirements",
    "USER_EXISTS": "User with this email already exists",
    "EMAIL_IN_USE": "Email address is already in use",
    "USER_NOT_FOUND": "User not found",
    "REGISTRATION_SUCCESS": "User registered successfully",
    "REGISTRATION_ERROR": "An unexpected error occurred during registration",
    "INVALID_CREDENTIALS": "Invalid email or password",
    "LOGIN_SUCCESS": "Login successful",
    "LOGIN_ERROR": "An unexpected error occurred during login",
    "STORAGE_ERROR": "Failed to store authentication token",
    "INTERNAL_ERROR": "An unexpected error occurred.",
}


# ---------------------------------------------------------------------------
# Service taxonomy
# ---------------------------------------------------------------------------


class AuthError(Exception):
    """Base class for every error the auth subsystem raises on purpose."""

    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthError):
    """Caller input is malformed. `errors` lists every violated rule, in order."""

    code = ErrorCode.BAD_REQUEST

    def __init__(self, message: str, errors: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.errors: list[str] = list(errors) if errors else [message]


class Unauthorized(AuthError):
    code = ErrorCode.UNAUTHORIZED

    def __init__(self, reason: UnauthorizedReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class Conflict(AuthError):
    code = ErrorCode.CONFLICT


class NotFound(AuthError):
    code = ErrorCode.NOT_FOUND


class InternalError(AuthError):
    code = ErrorCode.INTERNAL_SERVER_ERROR


class StorageError(InternalError):
    """The credential persistence backend failed."""


class RegistrationError(InternalError):
    def __init__(self) -> None:
        super().__init__(MESSAGES["REGISTRATION_ERROR"])


class LoginError(InternalError):
    def __init__(self) -> None:
        super().__init__(MESSAGES["LOGIN_ERROR"])


# ---------------------------------------------------------------------------
# Token codec taxonomy
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for token codec failures."""


class SecretMissing(TokenError):
    def __init__(self) -> None:
        super().__init__("JWT secret is not configured")


class InvalidPayload(TokenError):
    pass


class TokenMalformed(TokenError):
    def __init__(self, message: str = "Token is malformed") -> None:
        super().__init__(message)


class TokenInvalid(TokenError):
    def __init__(self, message: str = "Token is invalid") -> None:
        super().__init__(message)


class TokenExpired(TokenError):
    def __init__(self) -> None:
        super().__init__("Token has expired")
