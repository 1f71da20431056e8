"""
auth/service.py -- Registration, login, session and password flows.

AuthService composes the user store, the token engine and the password
manager. It owns the flow rules; each collaborator owns its own state.

Security design decisions:
  Uniform credential failures: an unknown username and a wrong password both
       raise InvalidCredentialsError("invalid username or password"). For an
       unknown username the hasher still runs against a dummy hash so the
       response time does not reveal whether the account exists.

  Disabled accounts: checked only AFTER the password verifies, so the
       distinct AccountDisabledError is never shown to someone who does not
       know the password.

  Hashing is explicit: every path that stores a password hashes it here or
       is told via password_hashed=True that the value is already encoded. The
       store never guesses.

  Password change and reset revoke every outstanding token for the user.

Layer rule: no imports from rbac/.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from auth.models import User, UserStatus
from auth.reset import ResetCodeStore
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenService
from core.errors import (
    AccountDisabledError,
    ConflictError,
    EmptyInputError,
    InvalidCredentialsError,
    InvalidInputError,
    NotFoundError,
    PolicyViolationError,
    UnauthorizedError,
)
from passwords.hasher import decode
from passwords.manager import PasswordManager, PasswordManagerConfig

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("authcore.auth")

INVITATION_CODE_LENGTH = 8


def validate_invitation_code(code: str) -> bool:
    """An invitation code is optional; when given it must be exactly 8 characters."""
    return not code or len(code) == INVITATION_CODE_LENGTH


class AuthService:
    """Account lifecycle on top of UserStore, TokenService and PasswordManager.

    Usage:
        service = AuthService.from_settings(get_settings())
        user, token = service.register("alice", "alice@x.com", "Secret123!")
        user, token = service.login("alice", "Secret123!")
        service.authenticate(token).id == user.id
    """

    def __init__(
        self,
        store: UserStore,
        tokens: TokenService,
        passwords: PasswordManager,
        reset_codes: ResetCodeStore | None = None,
        enforce_policy: bool = False,
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.passwords = passwords
        self.reset_codes = reset_codes if reset_codes is not None else ResetCodeStore()
        self.enforce_policy = enforce_policy
        # Same cost as real hashes, so an unknown-username login costs the same.
        self._dummy_hash = passwords.hash_password("authcore_timing_dummy")

    @classmethod
    def from_settings(cls, settings: Settings, store: UserStore | None = None) -> AuthService:
        return cls(
            store if store is not None else UserStore(settings.database_url),
            TokenService(TokenConfig.from_settings(settings)),
            PasswordManager(PasswordManagerConfig.from_settings(settings)),
            ResetCodeStore(timedelta(seconds=settings.reset_code_expire_seconds)),
            enforce_policy=settings.enforce_password_policy,
        )

    def _timing_hash(self) -> str:
        # Track cost changes so the dummy verify keeps matching real hashes.
        if decode(self._dummy_hash)[0] != self.passwords.hasher.cost:
            self._dummy_hash = self.passwords.hash_password("authcore_timing_dummy")
        return self._dummy_hash

    # ------------------------------------------------------------------
    # Availability / validation
    # ------------------------------------------------------------------

    def is_username_available(self, username: str) -> bool:
        return self.store.get_by_username(username) is None

    def is_email_available(self, email: str) -> bool:
        return self.store.get_by_email(email) is None

    def validate_invitation_code(self, code: str) -> bool:
        return validate_invitation_code(code)

    def _check_policy(self, password: str) -> None:
        if not self.enforce_policy:
            return
        result = self.passwords.validate_with_default_policy(password)
        if not result.valid:
            raise PolicyViolationError(violations=result.violations)

    # ------------------------------------------------------------------
    # Registration / login
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str, invitation_code: str = "") -> tuple[User, str]:
        """Create an active account and issue its first token.

        Raises InvalidInputError for a blank username/email or a malformed
        invitation code, EmptyInputError for an empty password,
        ConflictError("username exists") / ConflictError("email exists"),
        and PolicyViolationError when policy enforcement is on.
        """
        if not username or not email:
            raise InvalidInputError("username and email are required")
        if not password:
            raise EmptyInputError()
        if not validate_invitation_code(invitation_code):
            raise InvalidInputError("invalid invitation code")
        if not self.is_username_available(username):
            raise ConflictError("username exists")
        if not self.is_email_available(email):
            raise ConflictError("email exists")
        self._check_policy(password)

        encoded = self.passwords.hash_password(password)
        user_id = self.store.create_user(
            User(
                username=username,
                email=email,
                password_hash=encoded,
                status=UserStatus.ACTIVE,
                invitation_code=invitation_code or None,
            )
        )
        self.passwords.add_to_history(user_id, encoded)
        token = self.tokens.generate_default(user_id)
        logger.info("Registered user %d (%s)", user_id, username)
        return self.store.require_by_id(user_id), token

    def login(self, username: str, password: str) -> tuple[User, str]:
        user = self.store.get_by_username(username)
        if user is None:
            # Equalize timing: do NOT return before running the hasher.
            self.passwords.verify_password(password, self._timing_hash())
            logger.info("Failed login for unknown username")
            raise InvalidCredentialsError()
        if not self.passwords.verify_password(password, user.password_hash):
            logger.info("Failed login for user %d", user.id)
            raise InvalidCredentialsError()
        if not user.is_active:
            logger.info("Rejected login for disabled user %d", user.id)
            raise AccountDisabledError()

        self.store.update_last_login(user.id)
        token = self.tokens.generate_default(user.id)
        return self.store.require_by_id(user.id), token

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def authenticate(self, token: str) -> User:
        """Resolve a token to its live, active user."""
        user_id = self.tokens.validate(token)
        user = self.store.get_by_id(user_id)
        if user is None:
            raise UnauthorizedError("user no longer exists")
        if not user.is_active:
            raise AccountDisabledError()
        return user

    def refresh(self, token: str) -> str:
        return self.tokens.refresh(token)

    def logout(self, token: str) -> None:
        self.tokens.revoke(token)

    def logout_all(self, user_id: int) -> None:
        self.tokens.revoke_all(user_id)

    # ------------------------------------------------------------------
    # Password changes
    # ------------------------------------------------------------------

    def _prepare_new_password(self, user_id: int, new_password: str) -> str:
        """Run every gate for new_password and return its hash. Mutates nothing."""
        if not new_password:
            raise EmptyInputError()
        self._check_policy(new_password)
        return self.passwords.prepare_password(user_id, new_password)

    def _commit_new_password(self, user_id: int, encoded: str) -> None:
        """Store encoded, then record it in history and revoke the user's tokens."""
        if not self.store.update_user(user_id, password_hash=encoded):
            raise NotFoundError("user not found")
        self.passwords.record_password(user_id, encoded)
        self.tokens.revoke_all(user_id)

    def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        """Replace a password after verifying the current one. Revokes all tokens."""
        user = self.store.require_by_id(user_id)
        if not self.passwords.verify_password(old_password, user.password_hash):
            raise UnauthorizedError("old password is incorrect")
        encoded = self._prepare_new_password(user_id, new_password)
        self._commit_new_password(user_id, encoded)
        logger.info("Password changed for user %d", user_id)

    def set_password(self, user_id: int, password: str, *, password_hashed: bool = False) -> None:
        """Administrative overwrite, without strength or history gates.

        password_hashed=True means `password` is already an encoded hash and
        is stored as given. Otherwise it is hashed here.
        """
        if not password:
            raise EmptyInputError()
        encoded = password if password_hashed else self.passwords.hash_password(password)
        if not self.store.update_user(user_id, password_hash=encoded):
            raise NotFoundError("user not found")
        self.passwords.add_to_history(user_id, encoded)
        self.tokens.revoke_all(user_id)

    def request_password_reset(self, email: str) -> str:
        """Issue a single-use reset code for the account with this email."""
        user = self.store.require_by_email(email)
        record = self.reset_codes.issue(user.id)
        logger.info("Issued password reset code for user %d", user.id)
        return record.code

    def confirm_password_reset(self, code: str, new_password: str) -> None:
        """Redeem a reset code and set the new password. Revokes all tokens.

        Every password gate (strength, history, policy) runs before the code
        is consumed, so a rejected password does not burn the code.
        """
        user_id = self.reset_codes.peek(code)
        encoded = self._prepare_new_password(user_id, new_password)
        if self.reset_codes.consume(code) != user_id:
            raise UnauthorizedError("invalid or expired reset code")
        self._commit_new_password(user_id, encoded)
        logger.info("Password reset completed for user %d", user_id)
