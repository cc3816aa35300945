"""
tests/test_authenticator.py -- Unit tests for RequestAuthenticator.

Each test drives one row of the outcome table in auth/authenticator.py.
"""

from __future__ import annotations

import pytest

from auth.authenticator import AuthContext, RequestAuthenticator, extract_token
from auth.errors import InternalError, Unauthorized, UnauthorizedReason
from auth.models import Identity
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TOKEN_TTL_SECONDS, TokenCodec


@pytest.fixture
def alice(user_store: UserStore, hasher: PasswordHasher):
    return user_store.create("alice@example.com", hasher.hash("Strong1!"))


@pytest.fixture
def authenticator(codec: TokenCodec, user_store: UserStore) -> RequestAuthenticator:
    return RequestAuthenticator(codec, user_store)


def _reason(exc_info) -> UnauthorizedReason:
    return exc_info.value.reason


class TestExtractToken:
    def test_bearer_prefix_is_stripped(self) -> None:
        assert extract_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_bare_token_is_accepted(self) -> None:
        assert extract_token("abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.parametrize("header", [None, ""])
    def test_missing_header(self, header) -> None:
        with pytest.raises(Unauthorized) as exc_info:
            extract_token(header)
        assert _reason(exc_info) == UnauthorizedReason.MISSING_HEADER

    def test_empty_bearer(self) -> None:
        with pytest.raises(Unauthorized) as exc_info:
            extract_token("Bearer    ")
        assert _reason(exc_info) == UnauthorizedReason.INVALID_FORMAT


class TestAuthenticate:
    def test_valid_token_yields_context(self, authenticator, codec, alice) -> None:
        token = codec.sign(Identity(user_id=alice.id, email=alice.email))
        context = authenticator.authenticate(f"Bearer {token}")
        assert isinstance(context, AuthContext)
        assert context.user_id == alice.id
        assert context.user.email == "alice@example.com"
        assert not hasattr(context.user, "password_hash")

    def test_expired_token(self, authenticator, codec, alice, clock) -> None:
        token = codec.sign(Identity(user_id=alice.id, email=alice.email))
        clock.advance(TOKEN_TTL_SECONDS)
        with pytest.raises(Unauthorized) as exc_info:
            authenticator.authenticate(f"Bearer {token}")
        assert _reason(exc_info) == UnauthorizedReason.TOKEN_EXPIRED
        assert exc_info.value.message == "Token has expired"

    def test_foreign_secret(self, authenticator, make_codec, alice) -> None:
        token = make_codec("someone-elses-secret").sign(Identity(user_id=alice.id, email=alice.email))
        with pytest.raises(Unauthorized) as exc_info:
            authenticator.authenticate(f"Bearer {token}")
        assert _reason(exc_info) == UnauthorizedReason.TOKEN_INVALID
        assert exc_info.value.message == "Invalid token"

    def test_malformed_token(self, authenticator) -> None:
        with pytest.raises(Unauthorized) as exc_info:
            authenticator.authenticate("Bearer not-a-token")
        assert _reason(exc_info) == UnauthorizedReason.AUTHENTICATION_FAILED

    def test_deleted_user(self, authenticator, codec, alice, user_store) -> None:
        """A still-valid token loses access once the account is gone."""
        token = codec.sign(Identity(user_id=alice.id, email=alice.email))
        user_store.delete(alice.id)
        with pytest.raises(Unauthorized) as exc_info:
            authenticator.authenticate(f"Bearer {token}")
        assert _reason(exc_info) == UnauthorizedReason.USER_NOT_FOUND

    def test_email_changed_since_issue(self, authenticator, codec, alice, user_store) -> None:
        token = codec.sign(Identity(user_id=alice.id, email=alice.email))
        user_store.update(alice.id, email="alice.new@example.com")
        with pytest.raises(Unauthorized) as exc_info:
            authenticator.authenticate(f"Bearer {token}")
        assert _reason(exc_info) == UnauthorizedReason.PAYLOAD_MISMATCH

    def test_repository_failure_is_internal(self, codec) -> None:
        class DownRepository:
            def find_by_id(self, user_id):
                raise RuntimeError("db unreachable")

        token = codec.sign(Identity(user_id="u1", email="a@example.com"))
        with pytest.raises(InternalError) as exc_info:
            RequestAuthenticator(codec, DownRepository()).authenticate(token)
        assert exc_info.value.message == "Authentication middleware failed"
