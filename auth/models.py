"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services
do the work; these only own the shape.

Layer rule: no imports from rbac/ or passwords/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum


class UserStatus(IntEnum):
    ACTIVE = 1
    DISABLED = 2


@dataclass
class User:
    """A local account.

    password_hash is always an encoded PasswordHasher value; the store never
    hashes, so whoever writes this field hashes first.

    Timestamps are ISO 8601 UTC strings, the same text form the store writes.
    deleted_at is set by a soft delete; soft-deleted users are invisible to
    every store lookup.
    """

    username: str
    email: str
    password_hash: str
    id: int | None = None
    status: int = UserStatus.ACTIVE
    phone: str | None = None
    last_login_at: str | None = None
    invitation_code: str | None = None
    invited_by: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    deleted_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


@dataclass
class TokenClaims:
    """Claims carried by a signed access token.

    expires_at is None only for tokens minted elsewhere without an exp claim;
    TokenService always sets it.
    """

    user_id: int
    jti: str
    issuer: str
    subject: str
    issued_at: datetime | None = None
    not_before: datetime | None = None
    expires_at: datetime | None = None
