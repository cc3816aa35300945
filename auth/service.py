"""
auth/service.py -- Registration, login and account lifecycle orchestration.

AuthService holds no state of its own beyond its collaborators; every call is
an independent request/response step.

Error policy:
  Domain outcomes are raised as the taxonomy in auth/errors.py. Any foreign
  exception that reaches a public method is wrapped into the generic kind for
  that operation (RegistrationError, LoginError, InternalError), so driver
  messages, stack traces and secret-configuration problems never reach the
  client. The original exception is logged with its traceback outside
  production only.

Login failure messages:
  An unknown email and a wrong password produce the same Unauthorized reason
  and message, so the response body does not reveal which emails exist. The
  unknown-email path returns before running bcrypt, so response latency still
  differs between the two cases. That asymmetry is a known residual risk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from auth.errors import (
    MESSAGES,
    AuthError,
    Conflict,
    InternalError,
    LoginError,
    RegistrationError,
    Unauthorized,
    UnauthorizedReason,
    ValidationError,
)
from auth.models import Identity, PublicUser, sanitize
from auth.passwords import PasswordHasher
from auth.store import UserRepository
from auth.tokens import TokenCodec
from core.config import Settings

logger = logging.getLogger("gatehouse.auth")


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: PublicUser


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _invalid_credentials() -> Unauthorized:
    return Unauthorized(UnauthorizedReason.INVALID_CREDENTIALS, MESSAGES["INVALID_CREDENTIALS"])


class AuthService:
    def __init__(
        self,
        *,
        repository: UserRepository,
        hasher: PasswordHasher,
        codec: TokenCodec,
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.hasher = hasher
        self.codec = codec
        self.settings = settings

    # --------- Core operations ----------

    def register(self, email: str, password: str) -> PublicUser:
        """Create an account and return it without the password hash.

        Raises ValidationError (weak password, persistence untouched), Conflict
        (email taken) or RegistrationError (anything unexpected).
        """
        strength = self.hasher.validate_strength(password)
        if not strength.is_valid:
            raise ValidationError(MESSAGES["PASSWORD_STRENGTH_ERROR"], strength.errors)

        email = normalize_email(email)
        try:
            if self.repository.find_by_email(email) is not None:
                raise Conflict(MESSAGES["USER_EXISTS"])
            password_hash = self.hasher.hash(password)
            user = self.repository.create(email, password_hash)
        except AuthError:
            raise
        except Exception as exc:
            self._log_failure("Registration", exc)
            raise RegistrationError() from exc

        logger.info("Registered user %s", user.id)
        return sanitize(user)

    def login(self, email: str, password: str) -> LoginResult:
        """Verify credentials and issue a signed token.

        Raises Unauthorized(INVALID_CREDENTIALS) for an unknown email or a wrong
        password (identical in both cases), LoginError for anything unexpected.
        """
        email = normalize_email(email)
        try:
            user = self.repository.find_by_email(email)
            if user is None:
                raise _invalid_credentials()
            if not self.hasher.verify(password, user.password_hash):
                raise _invalid_credentials()
            token = self.codec.sign(Identity(user_id=user.id, email=user.email))
        except AuthError:
            raise
        except Exception as exc:
            self._log_failure("Login", exc)
            raise LoginError() from exc

        logger.info("User %s logged in", user.id)
        return LoginResult(token=token, user=sanitize(user))

    # --------- Account lifecycle ----------

    def update_profile(self, user_id: str, email: Optional[str] = None) -> PublicUser:
        """Change the account email (if given) and stamp updated_at.

        Raises Conflict if another account already uses the email, NotFound if
        the account is gone.
        """
        fields: dict[str, str] = {}
        try:
            if email:
                email = normalize_email(email)
                existing = self.repository.find_by_email(email)
                if existing is not None and existing.id != user_id:
                    raise Conflict(MESSAGES["EMAIL_IN_USE"])
                fields["email"] = email
            user = self.repository.update(user_id, **fields)
        except AuthError:
            raise
        except Exception as exc:
            self._log_failure("Profile update", exc)
            raise InternalError("Failed to update profile") from exc
        return sanitize(user)

    def delete_account(self, user_id: str) -> PublicUser:
        """Delete the account. Outstanding tokens stay valid until they expire
        but fail at the request authenticator, which re-fetches the user."""
        try:
            user = self.repository.delete(user_id)
        except AuthError:
            raise
        except Exception as exc:
            self._log_failure("Account deletion", exc)
            raise InternalError("Failed to delete account") from exc
        logger.info("Deleted user %s", user.id)
        return sanitize(user)

    # --------- Helpers ----------

    def _log_failure(self, operation: str, exc: Exception) -> None:
        if self.settings.is_production:
            logger.error("%s failed (%s)", operation, type(exc).__name__)
        else:
            logger.exception("%s failed", operation)
