"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Services never
touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The store never hashes. password_hash must already be an encoded
  PasswordHasher value; create_user/update_user reject anything that is not
  structurally one (is_encoded_hash) instead of guessing and hashing it.

Soft delete: delete_user() stamps deleted_at. Every lookup filters on
deleted_at IS NULL, so a deleted user behaves like a missing one. Username
and email stay reserved by the UNIQUE constraints after deletion.

Layer rule: no imports from rbac/.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User, UserStatus
from core.config import get_settings
from core.db import DEFAULT_PAGE_SIZE, make_engine, normalize_page, now_iso
from core.errors import ConflictError, InvalidHashFormatError, InvalidInputError, NotFoundError
from passwords.hasher import is_encoded_hash

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(64), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("status", Integer, nullable=False, server_default=str(int(UserStatus.ACTIVE))),
    Column("phone", String(32)),
    Column("last_login_at", String(32)),
    Column("invitation_code", String(16)),
    Column("invited_by", Integer),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("deleted_at", String(32)),
)

# Columns update_user() may touch. Anything else is rejected before SQL runs.
_UPDATABLE = {"email", "password_hash", "status", "phone", "last_login_at", "invitation_code", "invited_by"}


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user_id = store.create_user(User(username="alice", email="alice@x.com", password_hash=encoded))
        store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_one(self, condition) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(condition & _users.c.deleted_at.is_(None))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        return self._get_one(_users.c.id == user_id)

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        return self._get_one(_users.c.username == username)

    def get_by_email(self, email: str) -> User | None:
        return self._get_one(_users.c.email == email)

    def require_by_id(self, user_id: int) -> User:
        """Like get_by_id() but raises NotFoundError on a miss."""
        user = self.get_by_id(user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def require_by_username(self, username: str) -> User:
        user = self.get_by_username(username)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def require_by_email(self, email: str) -> User:
        user = self.get_by_email(email)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def list_users(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> tuple[list[User], int]:
        """Return one page of live users ordered by id, plus the total live count."""
        page, page_size = normalize_page(page, page_size)
        live = _users.c.deleted_at.is_(None)
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_users).where(live)).scalar()
            rows = conn.execute(
                _users.select().where(live).order_by(_users.c.id).limit(page_size).offset((page - 1) * page_size)
            ).fetchall()
        return [_row_to_user(r) for r in rows], total or 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises InvalidHashFormatError if password_hash is not an encoded hash,
        and ConflictError if the username or email is already taken.
        """
        if not is_encoded_hash(user.password_hash):
            raise InvalidHashFormatError("password_hash must be an encoded hash; hash the password first")
        now = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        email=user.email,
                        password_hash=user.password_hash,
                        status=int(user.status),
                        phone=user.phone,
                        invitation_code=user.invitation_code,
                        invited_by=user.invited_by,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError("username or email exists") from exc
        return result.inserted_primary_key[0]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on a live user.

        Accepted fields: email, password_hash, status, phone, last_login_at,
        invitation_code, invited_by. Unknown fields raise InvalidInputError
        before any SQL runs. Returns True if a row was updated, False if
        user_id was not found.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise InvalidInputError(f"Unknown user fields: {sorted(unknown)!r}")
        if "password_hash" in fields and not is_encoded_hash(fields["password_hash"]):
            raise InvalidHashFormatError("password_hash must be an encoded hash; hash the password first")
        if "status" in fields:
            fields["status"] = int(fields["status"])
        fields["updated_at"] = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.update()
                    .where((_users.c.id == user_id) & _users.c.deleted_at.is_(None))
                    .values(**fields)
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError("email exists") from exc
        return result.rowcount > 0

    def update_last_login(self, user_id: int) -> None:
        """Stamp the current UTC timestamp as last_login_at for the given user."""
        self.update_user(user_id, last_login_at=now_iso())

    def delete_user(self, user_id: int) -> bool:
        """Soft-delete a user. Returns True if deleted, False if not found or already deleted."""
        now = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & _users.c.deleted_at.is_(None))
                .values(deleted_at=now, updated_at=now)
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        """Dispose the engine connection pool."""
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        status=row.status,
        phone=row.phone,
        last_login_at=row.last_login_at,
        invitation_code=row.invitation_code,
        invited_by=row.invited_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )
