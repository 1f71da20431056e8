"""
core/interfaces.py -- Narrow capability interfaces between authcore layers.

Each service depends on one of these Protocols rather than on a concrete
class, so an alternate backing (a shared revocation store, a remote
permission oracle, a database-backed password history) can be dropped in
without touching callers. Each Protocol has exactly one in-tree
implementation:

  Hasher           -> passwords.hasher.PasswordHasher
  HistoryStorage   -> passwords.history.MemoryHistoryStorage
  TokenIssuer      -> auth.tokens.TokenService
  PermissionOracle -> rbac.service.AuthorizationService

Distributed deployments: TokenService keeps revocation state in process
memory, so it is correct for a single instance only. A multi-instance
deployment needs a TokenIssuer backed by a shared TTL-capable key-value
store keyed by JTI, with the in-process maps as a local cache at most.

Layer rule: no imports from auth/, passwords/, or rbac/ at runtime.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from passwords.models import HistoryEntry


class Hasher(Protocol):
    def hash(self, password: str) -> str: ...

    def verify(self, password: str, encoded: str) -> bool: ...


class HistoryStorage(Protocol):
    def add(self, user_id: int, password_hash: str) -> None: ...

    def get_history(self, user_id: int, limit: int = 0) -> list[HistoryEntry]: ...

    def cleanup(self, user_id: int, keep_count: int) -> None: ...


class TokenIssuer(Protocol):
    def generate(self, user_id: int, ttl: timedelta) -> str: ...

    def validate(self, token: str) -> int: ...

    def revoke(self, token: str) -> None: ...

    def refresh(self, token: str) -> str: ...

    def revoke_all(self, user_id: int) -> None: ...


class PermissionOracle(Protocol):
    def has_permission(self, user_id: int, resource: str, action: str) -> bool: ...

    def has_role(self, user_id: int, role_name: str) -> bool: ...
