"""Unit tests for auth/store.py -- the UserStore repository.

Covers:
- create_user() / get_by_* round trip and timestamps
- ConflictError on duplicate username or email
- The store refuses plaintext in password_hash (it never hashes)
- update_user() field whitelist, status coercion, missing-row result
- Soft delete hides the user from every lookup and from list_users()
- list_users() pagination and defaults
- require_* variants raise NotFoundError
"""

import pytest

from auth.models import User, UserStatus
from core.errors import ConflictError, InvalidHashFormatError, InvalidInputError, NotFoundError


@pytest.fixture
def encoded(hasher) -> str:
    return hasher.hash("Secret123!")


def _user(encoded: str, username: str = "alice", email: str = "alice@x.com") -> User:
    return User(username=username, email=email, password_hash=encoded)


# ---------------------------------------------------------------------------
# TestCreateAndLookup
# ---------------------------------------------------------------------------


class TestCreateAndLookup:
    def test_round_trip(self, user_store, encoded):
        user_id = user_store.create_user(_user(encoded))
        by_id = user_store.get_by_id(user_id)
        assert by_id.username == "alice"
        assert by_id.status == UserStatus.ACTIVE
        assert by_id.created_at is not None
        assert user_store.get_by_username("alice").id == user_id
        assert user_store.get_by_email("alice@x.com").id == user_id

    def test_missing_returns_none(self, user_store):
        assert user_store.get_by_id(404) is None
        assert user_store.get_by_username("nobody") is None
        assert user_store.get_by_email("nobody@x.com") is None

    def test_require_variants_raise(self, user_store):
        with pytest.raises(NotFoundError):
            user_store.require_by_id(404)
        with pytest.raises(NotFoundError):
            user_store.require_by_username("nobody")
        with pytest.raises(NotFoundError):
            user_store.require_by_email("nobody@x.com")

    def test_duplicate_username(self, user_store, encoded):
        user_store.create_user(_user(encoded))
        with pytest.raises(ConflictError):
            user_store.create_user(_user(encoded, email="other@x.com"))

    def test_duplicate_email(self, user_store, encoded):
        user_store.create_user(_user(encoded))
        with pytest.raises(ConflictError):
            user_store.create_user(_user(encoded, username="bob"))

    def test_plaintext_rejected(self, user_store):
        with pytest.raises(InvalidHashFormatError):
            user_store.create_user(User(username="alice", email="alice@x.com", password_hash="Secret123!"))


# ---------------------------------------------------------------------------
# TestUpdate
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_update_fields(self, user_store, encoded):
        user_id = user_store.create_user(_user(encoded))
        assert user_store.update_user(user_id, status=UserStatus.DISABLED, phone="555-0100")
        user = user_store.get_by_id(user_id)
        assert user.status == UserStatus.DISABLED
        assert user.phone == "555-0100"
        assert not user.is_active

    def test_unknown_field_rejected(self, user_store, encoded):
        user_id = user_store.create_user(_user(encoded))
        with pytest.raises(InvalidInputError):
            user_store.update_user(user_id, username="mallory")

    def test_plaintext_password_rejected(self, user_store, encoded):
        user_id = user_store.create_user(_user(encoded))
        with pytest.raises(InvalidHashFormatError):
            user_store.update_user(user_id, password_hash="NewSecret1!")

    def test_missing_row(self, user_store):
        assert user_store.update_user(404, phone="1") is False

    def test_update_last_login(self, user_store, encoded):
        user_id = user_store.create_user(_user(encoded))
        assert user_store.get_by_id(user_id).last_login_at is None
        user_store.update_last_login(user_id)
        assert user_store.get_by_id(user_id).last_login_at is not None


# ---------------------------------------------------------------------------
# TestSoftDeleteAndList
# ---------------------------------------------------------------------------


class TestSoftDeleteAndList:
    def test_soft_delete_hides_user(self, user_store, encoded):
        user_id = user_store.create_user(_user(encoded))
        assert user_store.delete_user(user_id)
        assert user_store.get_by_id(user_id) is None
        assert user_store.get_by_username("alice") is None
        assert user_store.delete_user(user_id) is False
        assert user_store.update_user(user_id, phone="1") is False

    def test_pagination(self, user_store, encoded):
        for i in range(12):
            user_store.create_user(_user(encoded, username=f"user{i}", email=f"user{i}@x.com"))
        first, total = user_store.list_users(1, 5)
        third, _ = user_store.list_users(3, 5)
        assert total == 12
        assert [u.username for u in first] == [f"user{i}" for i in range(5)]
        assert [u.username for u in third] == ["user10", "user11"]

    def test_pagination_defaults_and_deleted_excluded(self, user_store, encoded):
        ids = [user_store.create_user(_user(encoded, username=f"u{i}", email=f"u{i}@x.com")) for i in range(12)]
        user_store.delete_user(ids[0])
        users, total = user_store.list_users(0, 0)
        assert total == 11
        assert len(users) == 10
        assert users[0].username == "u1"
