"""
passwords/history.py -- Per-identity password history to prevent reuse.

MemoryHistoryStorage keeps an append-only list per user_id (oldest first) and
returns it newest first. It is the only in-tree HistoryStorage; a
database-backed store only needs the same three methods.

PasswordHistoryManager checks a candidate plaintext against every stored hash
with the hasher's constant-time verify(). The order of the scan only affects
how soon a match is found, never the result.

Layer rule: no imports from auth/ or rbac/.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from core.errors import EmptyInputError, InvalidHashError, InvalidIdentityError
from core.interfaces import Hasher, HistoryStorage
from passwords.models import HistoryEntry


def _check_user_id(user_id: int) -> None:
    if user_id <= 0:
        raise InvalidIdentityError()


class MemoryHistoryStorage:
    """Thread-safe in-memory HistoryStorage."""

    def __init__(self) -> None:
        self._histories: dict[int, list[HistoryEntry]] = {}
        self._lock = threading.Lock()

    def add(self, user_id: int, password_hash: str) -> None:
        _check_user_id(user_id)
        if not password_hash:
            raise InvalidHashError()
        entry = HistoryEntry(user_id=user_id, password_hash=password_hash, created_at=datetime.now(timezone.utc))
        with self._lock:
            self._histories.setdefault(user_id, []).append(entry)

    def get_history(self, user_id: int, limit: int = 0) -> list[HistoryEntry]:
        """Return up to `limit` entries newest first (all entries when limit <= 0)."""
        _check_user_id(user_id)
        with self._lock:
            entries = list(reversed(self._histories.get(user_id, [])))
        return entries[:limit] if limit > 0 else entries

    def cleanup(self, user_id: int, keep_count: int) -> None:
        """Drop all but the keep_count most recent entries. No-op when already within bound."""
        _check_user_id(user_id)
        keep_count = max(0, keep_count)
        with self._lock:
            entries = self._histories.get(user_id)
            if entries is None or len(entries) <= keep_count:
                return
            self._histories[user_id] = entries[len(entries) - keep_count :]


class PasswordHistoryManager:
    def __init__(self, storage: HistoryStorage, hasher: Hasher) -> None:
        self.storage = storage
        self.hasher = hasher

    def add_to_history(self, user_id: int, password_hash: str) -> None:
        self.storage.add(user_id, password_hash)

    def check_history(self, user_id: int, password: str) -> bool:
        """Return True if password matches any stored hash for user_id."""
        if not password:
            raise EmptyInputError()
        return any(self.hasher.verify(password, entry.password_hash) for entry in self.storage.get_history(user_id))

    def cleanup(self, user_id: int, keep_count: int) -> None:
        self.storage.cleanup(user_id, keep_count)

    def get_history(self, user_id: int, limit: int = 0) -> list[HistoryEntry]:
        return self.storage.get_history(user_id, limit)
