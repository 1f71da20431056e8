"""
auth/tokens.py -- TokenService: issue, validate, revoke and refresh JWTs.

Security design decisions:
  Signing: python-jose with HS256, compact three-segment JWS. Claims are
       user_id, jti, iat, nbf, exp, iss and sub ("user:<id>"). The JTI is
       secrets.token_hex(16) -- 128 random bits, unguessable and unique per
       issuance with overwhelming probability.

  Expiry: exp is rounded UP to the next whole second so a fresh token is
       never born expired. python-jose compares exp against whole seconds,
       which would let a token live up to one extra second, so parse() also
       checks exp against the fractional clock itself.

  Revocation: a token is revoked exactly while it has an entry in _revoked.
       cleanup_expired() only drops entries whose token has already expired,
       so a revocation stays effective until the token would have died anyway.

  Refresh lineage: _refresh_counts[token] counts how many refreshes produced
       this token. A refresh writes count + 1 under the NEW token and revokes
       the old one in the same critical section. If the old token was revoked
       concurrently, the new token is unwound and the refresh fails: the
       caller either gets a new token and a revoked predecessor, or nothing.

Concurrency:
  One threading.Lock per instance guards _revoked, _user_tokens,
  _token_users and _refresh_counts for reads and writes alike. Every
  critical section is a handful of dict operations. Signing and parsing run
  outside the lock.

State is per instance, never module-global. Multi-instance deployments
need a shared revocation store (see core/interfaces.py).

Layer rule: no imports from rbac/.
"""

from __future__ import annotations

import logging
import math
import secrets
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import TokenClaims
from core.errors import (
    EmptyTokenError,
    InvalidIdentityError,
    InvalidInputError,
    InvalidTTLError,
    NoExpiryError,
    RefreshDisabledError,
    RefreshLimitExceededError,
    RefreshTooEarlyError,
    TokenExpiredError,
    TokenParseError,
    TokenRevokedError,
)

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("authcore.tokens")

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenConfig:
    secret_key: str
    issuer: str = "authcore"
    lifetime: timedelta = timedelta(hours=24)
    refresh_window: timedelta = timedelta(days=7)
    allow_refresh: bool = True
    max_refresh_count: int = 5

    def __post_init__(self) -> None:
        if not self.secret_key:
            raise InvalidInputError("Token signing secret must not be empty.")

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            secret_key=settings.secret_key,
            issuer=settings.token_issuer,
            lifetime=timedelta(seconds=settings.token_expire_seconds),
            refresh_window=timedelta(seconds=settings.refresh_window_seconds),
            allow_refresh=settings.allow_refresh,
            max_refresh_count=settings.max_refresh_count,
        )


def generate_jti() -> str:
    """Return a fresh 128-bit random token ID as 32 hex characters."""
    return secrets.token_hex(16)


def _from_timestamp(value) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _claims_from_payload(payload: dict) -> TokenClaims:
    user_id = payload.get("user_id")
    # bool is an int subclass; a JSON true must not pass as user 1.
    if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
        raise TokenParseError("Token carries no valid user_id claim.")
    exp = payload.get("exp")
    if exp is not None and not isinstance(exp, (int, float)):
        raise TokenParseError("Token exp claim is not numeric.")
    return TokenClaims(
        user_id=user_id,
        jti=str(payload.get("jti", "")),
        issuer=str(payload.get("iss", "")),
        subject=str(payload.get("sub", "")),
        issued_at=_from_timestamp(payload.get("iat")),
        not_before=_from_timestamp(payload.get("nbf")),
        expires_at=_from_timestamp(exp),
    )


class TokenService:
    """Stateful JWT engine with revocation and refresh bookkeeping.

    Usage:
        service = TokenService(TokenConfig(secret_key=settings.secret_key))
        token = service.generate(42, timedelta(hours=1))
        service.validate(token)     # 42
        new = service.refresh(token)
        service.is_revoked(token)   # True
    """

    def __init__(self, config: TokenConfig) -> None:
        self.config = config
        self._lock = threading.Lock()
        self._revoked: dict[str, datetime] = {}
        self._user_tokens: dict[int, set[str]] = {}
        self._token_users: dict[str, int] = {}
        self._refresh_counts: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def generate(self, user_id: int, ttl: timedelta) -> str:
        """Sign a token for user_id valid for ttl and index it under the user."""
        if user_id <= 0:
            raise InvalidIdentityError()
        if ttl <= timedelta(0):
            raise InvalidTTLError()

        now = time.time()
        jti = generate_jti()
        payload = {
            "user_id": user_id,
            "jti": jti,
            "iat": int(now),
            "nbf": int(now),
            "exp": math.ceil(now + ttl.total_seconds()),
            "iss": self.config.issuer,
            "sub": f"user:{user_id}",
        }
        token = jwt.encode(payload, self.config.secret_key, algorithm=_ALGORITHM)

        with self._lock:
            self._user_tokens.setdefault(user_id, set()).add(token)
            self._token_users[token] = user_id

        logger.debug("Issued token jti=%s for user %d (ttl=%ss)", jti, user_id, ttl.total_seconds())
        return token

    def generate_default(self, user_id: int) -> str:
        """generate() with the configured default lifetime."""
        return self.generate(user_id, self.config.lifetime)

    # ------------------------------------------------------------------
    # Parsing / validation
    # ------------------------------------------------------------------

    def parse(self, token: str) -> TokenClaims:
        """Verify signature, issuer and time claims and return the claims.

        Raises TokenExpiredError for an expired token and TokenParseError for
        anything else that fails to verify. Does not consult revocation.
        """
        if not token:
            raise EmptyTokenError()
        try:
            payload = jwt.decode(
                token,
                self.config.secret_key,
                algorithms=[_ALGORITHM],
                issuer=self.config.issuer,
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except JWTError as exc:
            raise TokenParseError() from exc

        claims = _claims_from_payload(payload)
        if claims.expires_at is not None and claims.expires_at.timestamp() <= time.time():
            raise TokenExpiredError()
        return claims

    def validate(self, token: str) -> int:
        """Return the user ID a live, unrevoked token was issued to."""
        if not token:
            raise EmptyTokenError()
        if self.is_revoked(token):
            raise TokenRevokedError()
        return self.parse(token).user_id

    def remaining_ttl(self, token: str) -> timedelta:
        """Return the time left before token expires.

        Raises NoExpiryError when the token has no exp claim and
        TokenExpiredError once it has expired. Revocation is not consulted.
        """
        if not token:
            raise EmptyTokenError()
        claims = self.parse(token)
        if claims.expires_at is None:
            raise NoExpiryError()
        remaining = claims.expires_at - datetime.now(timezone.utc)
        if remaining <= timedelta(0):
            raise TokenExpiredError()
        return remaining

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    def is_revoked(self, token: str) -> bool:
        with self._lock:
            return token in self._revoked

    def revoke(self, token: str) -> None:
        """Revoke token. Revoking an already-revoked or unknown token is not an error."""
        if not token:
            raise EmptyTokenError()
        with self._lock:
            user_id = self._revoke_locked(token, datetime.now(timezone.utc))
        logger.info("Revoked token for user %s", user_id if user_id is not None else "<unindexed>")

    def revoke_all(self, user_id: int) -> None:
        """Revoke every token currently indexed for user_id."""
        if user_id <= 0:
            raise InvalidIdentityError()
        now = datetime.now(timezone.utc)
        with self._lock:
            tokens = self._user_tokens.pop(user_id, set())
            for token in tokens:
                self._revoke_locked(token, now)
        if tokens:
            logger.info("Revoked %d token(s) for user %d", len(tokens), user_id)

    def _revoke_locked(self, token: str, now: datetime) -> int | None:
        """Record the revocation and drop the token from every index. Caller holds _lock."""
        self._revoked.setdefault(token, now)
        return self._unindex_locked(token)

    def _unindex_locked(self, token: str) -> int | None:
        self._refresh_counts.pop(token, None)
        user_id = self._token_users.pop(token, None)
        if user_id is not None:
            owned = self._user_tokens.get(user_id)
            if owned is not None:
                owned.discard(token)
                if not owned:
                    del self._user_tokens[user_id]
        return user_id

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, token: str) -> str:
        """Exchange token for a fresh one and revoke the original.

        Raises RefreshDisabledError, EmptyTokenError, TokenRevokedError,
        TokenParseError / TokenExpiredError, RefreshLimitExceededError or
        RefreshTooEarlyError. No bookkeeping changes unless a new token is
        returned.
        """
        if not self.config.allow_refresh:
            raise RefreshDisabledError()
        if not token:
            raise EmptyTokenError()
        if self.is_revoked(token):
            raise TokenRevokedError()

        claims = self.parse(token)

        with self._lock:
            count = self._refresh_counts.get(token, 0)
        if count >= self.config.max_refresh_count:
            raise RefreshLimitExceededError()
        if claims.expires_at is None:
            raise NoExpiryError()
        if datetime.now(timezone.utc) < claims.expires_at - self.config.refresh_window:
            raise RefreshTooEarlyError()

        new_token = self.generate(claims.user_id, self.config.lifetime)

        with self._lock:
            if token in self._revoked:
                # Lost a race with revoke()/refresh() on the same token.
                self._unindex_locked(new_token)
                raise TokenRevokedError()
            self._refresh_counts[new_token] = count + 1
            self._revoke_locked(token, datetime.now(timezone.utc))

        logger.info("Refreshed token jti=%s for user %d (lineage count %d)", claims.jti, claims.user_id, count + 1)
        return new_token

    # ------------------------------------------------------------------
    # Housekeeping / introspection
    # ------------------------------------------------------------------

    def cleanup_expired(self) -> int:
        """Drop revocation entries whose token has expired or cannot be read.

        Tokens are read without signature verification since only exp is
        needed. Returns the number of entries removed.
        """
        with self._lock:
            candidates = list(self._revoked)

        now = time.time()
        expired = []
        for token in candidates:
            try:
                exp = jwt.get_unverified_claims(token).get("exp")
            except JWTError:
                expired.append(token)
                continue
            if isinstance(exp, (int, float)) and exp <= now:
                expired.append(token)

        with self._lock:
            removed = sum(1 for token in expired if self._revoked.pop(token, None) is not None)
        if removed:
            logger.debug("Cleaned up %d expired revocation entries", removed)
        return removed

    def active_tokens(self, user_id: int) -> set[str]:
        """Return a copy of the unrevoked tokens currently indexed for user_id."""
        with self._lock:
            return set(self._user_tokens.get(user_id, ()))

    def refresh_count(self, token: str) -> int:
        """Return how many refreshes led to token (0 for a freshly issued token)."""
        with self._lock:
            return self._refresh_counts.get(token, 0)
