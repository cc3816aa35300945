"""
tests/test_service.py -- Unit tests for AuthService.

Runs against a real in-memory UserStore plus a deliberately broken repository
for the "unexpected failure" paths.

Coverage:
  - register: strength errors listed, duplicate email, normalization, no hash leak
  - login: identical errors for unknown email and wrong password
  - Foreign exceptions wrapped as RegistrationError / LoginError / InternalError
    with no internal detail in the message
  - update_profile / delete_account
"""

from __future__ import annotations

import pytest

from auth.errors import (
    MESSAGES,
    Conflict,
    InternalError,
    LoginError,
    NotFound,
    RegistrationError,
    Unauthorized,
    UnauthorizedReason,
    ValidationError,
)
from auth.models import PublicUser
from auth.passwords import PASSWORD_TOO_SHORT, PasswordHasher
from auth.service import AuthService, normalize_email
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import Settings

PASSWORD = "Strong1!"


class _ExplodingRepository:
    """Repository whose every call fails the way a dead database would."""

    def _boom(self, *args, **kwargs):
        raise RuntimeError("connection to db-primary:5432 refused")

    find_by_email = find_by_id = create = update = delete = _boom


@pytest.fixture
def service(user_store: UserStore, hasher: PasswordHasher, codec: TokenCodec, settings: Settings) -> AuthService:
    return AuthService(repository=user_store, hasher=hasher, codec=codec, settings=settings)


def _broken_service(hasher: PasswordHasher, codec: TokenCodec, settings: Settings) -> AuthService:
    return AuthService(repository=_ExplodingRepository(), hasher=hasher, codec=codec, settings=settings)


def test_normalize_email() -> None:
    assert normalize_email("  Alice@Example.COM ") == "alice@example.com"


class TestRegister:
    def test_success_returns_sanitized_user(self, service: AuthService) -> None:
        user = service.register("alice@example.com", PASSWORD)
        assert isinstance(user, PublicUser)
        assert user.email == "alice@example.com"
        assert user.id
        assert not hasattr(user, "password_hash")

    def test_password_is_stored_hashed(self, service: AuthService, user_store: UserStore, hasher) -> None:
        service.register("alice@example.com", PASSWORD)
        stored = user_store.find_by_email("alice@example.com")
        assert stored.password_hash != PASSWORD
        assert hasher.verify(PASSWORD, stored.password_hash)

    def test_email_is_normalized(self, service: AuthService) -> None:
        assert service.register("  Alice@Example.com ", PASSWORD).email == "alice@example.com"

    def test_weak_password_lists_violations(self, service: AuthService, user_store: UserStore) -> None:
        """Weak1! has every character class but is too short."""
        with pytest.raises(ValidationError) as exc_info:
            service.register("alice@example.com", "Weak1!")
        assert exc_info.value.message == MESSAGES["PASSWORD_STRENGTH_ERROR"]
        assert exc_info.value.errors == [PASSWORD_TOO_SHORT]
        assert user_store.find_by_email("alice@example.com") is None

    def test_duplicate_email_conflicts(self, service: AuthService) -> None:
        service.register("alice@example.com", PASSWORD)
        with pytest.raises(Conflict) as exc_info:
            service.register("ALICE@example.com", PASSWORD)
        assert exc_info.value.message == MESSAGES["USER_EXISTS"]

    def test_repository_failure_is_wrapped(self, hasher, codec, settings) -> None:
        with pytest.raises(RegistrationError) as exc_info:
            _broken_service(hasher, codec, settings).register("alice@example.com", PASSWORD)
        assert exc_info.value.message == MESSAGES["REGISTRATION_ERROR"]
        assert "5432" not in exc_info.value.message


class TestLogin:
    def test_success_issues_verifiable_token(self, service: AuthService, codec: TokenCodec) -> None:
        registered = service.register("alice@example.com", PASSWORD)
        result = service.login("alice@example.com", PASSWORD)
        assert result.user == registered
        payload = codec.verify(result.token)
        assert payload.user_id == registered.id
        assert payload.email == "alice@example.com"

    def test_login_is_case_insensitive_on_email(self, service: AuthService) -> None:
        service.register("alice@example.com", PASSWORD)
        assert service.login("ALICE@EXAMPLE.COM", PASSWORD).user.email == "alice@example.com"

    def test_unknown_email_and_wrong_password_are_indistinguishable(self, service: AuthService) -> None:
        service.register("alice@example.com", PASSWORD)

        with pytest.raises(Unauthorized) as unknown:
            service.login("nobody@example.com", PASSWORD)
        with pytest.raises(Unauthorized) as wrong:
            service.login("alice@example.com", "Wrong1!pass")

        assert unknown.value.reason == wrong.value.reason == UnauthorizedReason.INVALID_CREDENTIALS
        assert unknown.value.message == wrong.value.message == MESSAGES["INVALID_CREDENTIALS"]
        assert unknown.value.code == wrong.value.code

    def test_missing_secret_is_login_error(self, user_store: UserStore, hasher, make_codec, settings) -> None:
        """A misconfigured server fails with the generic login error, not a config leak."""
        service = AuthService(repository=user_store, hasher=hasher, codec=make_codec(""), settings=settings)
        service.register("alice@example.com", PASSWORD)
        with pytest.raises(LoginError) as exc_info:
            service.login("alice@example.com", PASSWORD)
        assert "secret" not in exc_info.value.message.lower()

    def test_repository_failure_is_wrapped(self, hasher, codec, settings) -> None:
        with pytest.raises(LoginError) as exc_info:
            _broken_service(hasher, codec, settings).login("alice@example.com", PASSWORD)
        assert exc_info.value.message == MESSAGES["LOGIN_ERROR"]


class TestAccountLifecycle:
    def test_update_email(self, service: AuthService) -> None:
        user = service.register("alice@example.com", PASSWORD)
        updated = service.update_profile(user.id, email="Alice.New@example.com")
        assert updated.email == "alice.new@example.com"
        assert updated.id == user.id
        assert updated.updated_at >= user.updated_at

    def test_update_to_taken_email_conflicts(self, service: AuthService) -> None:
        alice = service.register("alice@example.com", PASSWORD)
        service.register("bob@example.com", PASSWORD)
        with pytest.raises(Conflict) as exc_info:
            service.update_profile(alice.id, email="bob@example.com")
        assert exc_info.value.message == MESSAGES["EMAIL_IN_USE"]

    def test_update_to_own_email_is_allowed(self, service: AuthService) -> None:
        alice = service.register("alice@example.com", PASSWORD)
        assert service.update_profile(alice.id, email="alice@example.com").email == "alice@example.com"

    def test_update_missing_user(self, service: AuthService) -> None:
        with pytest.raises(NotFound):
            service.update_profile("no-such-id", email="ghost@example.com")

    def test_update_repository_failure_is_wrapped(self, hasher, codec, settings) -> None:
        with pytest.raises(InternalError) as exc_info:
            _broken_service(hasher, codec, settings).update_profile("u1", email="a@example.com")
        assert exc_info.value.message == "Failed to update profile"

    def test_delete_account(self, service: AuthService, user_store: UserStore) -> None:
        user = service.register("alice@example.com", PASSWORD)
        deleted = service.delete_account(user.id)
        assert deleted.id == user.id
        assert user_store.find_by_id(user.id) is None

    def test_delete_missing_account(self, service: AuthService) -> None:
        with pytest.raises(NotFound):
            service.delete_account("no-such-id")
