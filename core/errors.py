"""
core/errors.py -- Typed error taxonomy shared by every authcore layer.

Every error carries a stable machine-readable ``code`` and belongs to exactly
one kind (the direct subclass of AuthCoreError). Callers branch on the kind;
logs and tests can branch on the concrete class.

Kinds:
  InvalidInputError    caller-fixable input problem, never retried
  NotFoundError        lookup miss in a store, propagated unchanged
  ConflictError        uniqueness violation, surfaced verbatim
  UnauthorizedError    failed credentials, disabled account, bad token
  PolicyViolationError password rejected by strength/policy/history checks
  LimitExceededError   a configured cap was reached
  InternalError        library or collaborator failure not caused by input

Credential failures are deliberately uniform ("invalid username or
password"). Token failures are distinguishable (revoked / malformed /
expired) because they do not leak credential validity.

Layer rule: no imports from auth/, passwords/, or rbac/.
"""

from __future__ import annotations


class AuthCoreError(Exception):
    """Base class for all authcore errors."""

    default_message = "authcore error"
    code = "error"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# InvalidInput
# ---------------------------------------------------------------------------


class InvalidInputError(AuthCoreError):
    default_message = "Invalid input."
    code = "invalid_input"


class EmptyInputError(InvalidInputError):
    default_message = "Password must not be empty."
    code = "empty_input"


class InvalidIdentityError(InvalidInputError):
    default_message = "User ID must be a positive integer."
    code = "invalid_identity"


class InvalidTTLError(InvalidInputError):
    default_message = "Token lifetime must be greater than zero."
    code = "invalid_ttl"


class EmptyTokenError(InvalidInputError):
    default_message = "Token must not be empty."
    code = "empty_token"


class InvalidOptionsError(InvalidInputError):
    default_message = "Invalid password generation options."
    code = "invalid_options"


class InvalidHashError(InvalidInputError):
    default_message = "Password hash must not be empty."
    code = "invalid_hash"


class InvalidHashFormatError(InvalidInputError):
    default_message = "Malformed password hash encoding."
    code = "invalid_hash_format"


class RefreshDisabledError(InvalidInputError):
    default_message = "Token refresh is disabled."
    code = "refresh_disabled"


# ---------------------------------------------------------------------------
# NotFound / Conflict
# ---------------------------------------------------------------------------


class NotFoundError(AuthCoreError):
    default_message = "Record not found."
    code = "not_found"


class ConflictError(AuthCoreError):
    default_message = "Record already exists."
    code = "conflict"


class DuplicateAssignmentError(ConflictError):
    default_message = "Assignment already exists."
    code = "duplicate_assignment"


# ---------------------------------------------------------------------------
# Unauthorized
# ---------------------------------------------------------------------------


class UnauthorizedError(AuthCoreError):
    default_message = "Unauthorized."
    code = "unauthorized"


class InvalidCredentialsError(UnauthorizedError):
    default_message = "invalid username or password"
    code = "invalid_credentials"


class AccountDisabledError(UnauthorizedError):
    default_message = "account is disabled"
    code = "account_disabled"


class TokenRevokedError(UnauthorizedError):
    default_message = "Token has been revoked."
    code = "token_revoked"


class TokenParseError(UnauthorizedError):
    default_message = "Token could not be parsed or its signature is invalid."
    code = "token_invalid"


class TokenExpiredError(UnauthorizedError):
    default_message = "Token has expired."
    code = "token_expired"


class NoExpiryError(UnauthorizedError):
    default_message = "Token carries no expiry claim."
    code = "token_no_expiry"


class RefreshTooEarlyError(UnauthorizedError):
    default_message = "Token is not yet inside its refresh window."
    code = "refresh_too_early"


# ---------------------------------------------------------------------------
# PolicyViolation / LimitExceeded / Internal
# ---------------------------------------------------------------------------


class PolicyViolationError(AuthCoreError):
    default_message = "Password does not satisfy the password policy."
    code = "policy_violation"

    def __init__(self, message: str = "", violations: list[str] | None = None) -> None:
        super().__init__(message)
        self.violations: list[str] = list(violations or [])


class LimitExceededError(AuthCoreError):
    default_message = "Limit exceeded."
    code = "limit_exceeded"


class RefreshLimitExceededError(LimitExceededError):
    default_message = "Token refresh limit reached."
    code = "refresh_limit_exceeded"


class InternalError(AuthCoreError):
    default_message = "Internal error."
    code = "internal"


class LookupFailureError(InternalError):
    default_message = "Authorization lookup failed."
    code = "lookup_failure"
