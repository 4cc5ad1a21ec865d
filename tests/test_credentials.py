"""Unit tests for the credential store (auth/store.py) and login (auth/tokens.py).

Covers:
- register_user() normalizes email, hides the hash, rejects duplicates
- field validation messages for username/email/password
- authenticate_user() gives the same error for unknown email and wrong password
- authenticate_user() runs bcrypt for unknown emails (timing equalization)
- change_password() rotation
- list_users() ordering
"""

from unittest.mock import patch

import pytest

from auth.models import ROLE_ADMIN
from auth.tokens import authenticate_user, verify_password
from core.errors import DuplicateIdentity, InvalidCredentials, ValidationError


class TestRegister:
    def test_email_normalized_and_hash_hidden(self, user_store):
        user = user_store.register_user("  alice ", "  Alice@Example.COM ", "secret123")
        assert user.id is not None
        assert user.username == "alice"
        assert user.email == "alice@example.com"
        assert user.role == "user"
        assert user.hashed_password is None

        fetched = user_store.get_by_email("ALICE@example.com")
        assert fetched.id == user.id
        assert fetched.hashed_password is None

    def test_hash_stored_not_plaintext(self, user_store):
        user = user_store.register_user("alice", "alice@example.com", "secret123")
        stored = user_store.get_by_id(user.id, with_secret=True)
        assert stored.hashed_password != "secret123"
        assert verify_password("secret123", stored.hashed_password)

    def test_duplicate_email_case_insensitive(self, user_store):
        user_store.register_user("alice", "alice@example.com", "secret123")
        with pytest.raises(DuplicateIdentity):
            user_store.register_user("alice2", "ALICE@example.com", "secret456")

    @pytest.mark.parametrize(
        ("username", "email", "password", "field"),
        [
            ("al", "alice@example.com", "secret123", "username"),
            ("a" * 31, "alice@example.com", "secret123", "username"),
            ("alice", "not-an-email", "secret123", "email"),
            ("alice", "alice@example.com", "short", "password"),
            ("alice", "alice@example.com", "x" * 73, "password"),
        ],
    )
    def test_field_validation(self, user_store, username, email, password, field):
        with pytest.raises(ValidationError) as exc_info:
            user_store.register_user(username, email, password)
        assert field in exc_info.value.fields

    def test_admin_role(self, user_store):
        admin = user_store.register_user("root", "root@example.com", "secret123", role=ROLE_ADMIN)
        assert admin.is_admin


class TestAuthenticate:
    def test_success(self, user_store):
        user_store.register_user("alice", "alice@example.com", "secret123")
        user = authenticate_user(user_store, "Alice@Example.com", "secret123")
        assert user.username == "alice"

    def test_unknown_email_and_wrong_password_indistinguishable(self, user_store):
        user_store.register_user("alice", "alice@example.com", "secret123")
        with pytest.raises(InvalidCredentials) as unknown:
            authenticate_user(user_store, "nobody@example.com", "secret123")
        with pytest.raises(InvalidCredentials) as wrong:
            authenticate_user(user_store, "alice@example.com", "wrongpass")
        assert unknown.value.message == wrong.value.message
        assert unknown.value.code == wrong.value.code

    def test_unknown_email_still_runs_bcrypt(self, user_store):
        with patch("auth.tokens.bcrypt.checkpw", return_value=False) as checkpw:
            with pytest.raises(InvalidCredentials):
                authenticate_user(user_store, "nobody@example.com", "secret123")
        assert checkpw.call_count == 1


class TestChangePassword:
    def test_rotation(self, user_store):
        user = user_store.register_user("alice", "alice@example.com", "secret123")
        user_store.change_password(user.id, "secret123", "newsecret456")
        authenticate_user(user_store, "alice@example.com", "newsecret456")
        with pytest.raises(InvalidCredentials):
            authenticate_user(user_store, "alice@example.com", "secret123")

    def test_wrong_current_password(self, user_store):
        user = user_store.register_user("alice", "alice@example.com", "secret123")
        with pytest.raises(InvalidCredentials):
            user_store.change_password(user.id, "nope-nope", "newsecret456")

    def test_new_password_validated(self, user_store):
        user = user_store.register_user("alice", "alice@example.com", "secret123")
        with pytest.raises(ValidationError) as exc_info:
            user_store.change_password(user.id, "secret123", "123")
        assert "new_password" in exc_info.value.fields


def test_list_users_ordered_by_username(user_store):
    user_store.register_user("zed", "zed@example.com", "secret123")
    user_store.register_user("amy", "amy@example.com", "secret123")
    assert [u.username for u in user_store.list_users()] == ["amy", "zed"]
