"""
auth/reset.py -- Single-use, expiring password reset codes.

A reset code is secrets.token_hex(32) (256 bits), held in process memory
with its owner and expiry. consume() removes the code in the same critical
section that checks it, so a code can be redeemed at most once even under
concurrent confirmations. Issuing a new code for a user voids the user's
previous code.

Like the token revocation maps, this state is per instance and single-process
only. Delivery of the code (email, SMS) is the caller's concern.

Layer rule: no imports from rbac/.
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from core.errors import InvalidIdentityError, InvalidTTLError, UnauthorizedError

logger = logging.getLogger("authcore.auth")


@dataclass(frozen=True)
class ResetCode:
    code: str
    user_id: int
    expires_at: datetime


class ResetCodeStore:
    def __init__(self, ttl: timedelta = timedelta(minutes=15)) -> None:
        if ttl <= timedelta(0):
            raise InvalidTTLError("Reset code lifetime must be greater than zero.")
        self.ttl = ttl
        self._codes: dict[str, ResetCode] = {}
        self._by_user: dict[int, str] = {}
        self._lock = threading.Lock()

    def issue(self, user_id: int) -> ResetCode:
        if user_id <= 0:
            raise InvalidIdentityError()
        record = ResetCode(
            code=secrets.token_hex(32),
            user_id=user_id,
            expires_at=datetime.now(timezone.utc) + self.ttl,
        )
        with self._lock:
            previous = self._by_user.pop(user_id, None)
            if previous is not None:
                self._codes.pop(previous, None)
            self._codes[record.code] = record
            self._by_user[user_id] = record.code
        return record

    def peek(self, code: str) -> int:
        """Return the user ID for a live code without redeeming it.

        Raises UnauthorizedError if the code is unknown, already used or expired.
        """
        with self._lock:
            record = self._codes.get(code)
        if record is None or record.expires_at <= datetime.now(timezone.utc):
            raise UnauthorizedError("invalid or expired reset code")
        return record.user_id

    def consume(self, code: str) -> int:
        """Redeem code and return its user ID.

        Raises UnauthorizedError if the code is unknown, already used or expired.
        An expired code is discarded on the way out.
        """
        with self._lock:
            record = self._codes.pop(code, None)
            if record is not None and self._by_user.get(record.user_id) == code:
                del self._by_user[record.user_id]
        if record is None or record.expires_at <= datetime.now(timezone.utc):
            raise UnauthorizedError("invalid or expired reset code")
        return record.user_id

    def purge_expired(self) -> int:
        """Drop expired codes and return how many were removed."""
        now = datetime.now(timezone.utc)
        with self._lock:
            stale = [code for code, record in self._codes.items() if record.expires_at <= now]
            for code in stale:
                record = self._codes.pop(code)
                if self._by_user.get(record.user_id) == code:
                    del self._by_user[record.user_id]
        if stale:
            logger.debug("Purged %d expired reset code(s)", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)
