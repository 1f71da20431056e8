"""
passwords/policy.py -- Validate a password against a declarative PasswordPolicy.

Each predicate is independent. A violated predicate appends one readable
message and subtracts its weight from a 100-point score (clamped at 0):

  min length           -20      required class (each)   -15
  max length           -10      min unique characters   -10
  max identical run    -15      forbidden substring     -20 each

valid is True exactly when no predicate was violated. The score is advisory
and independent of validity.

Layer rule: no imports from auth/ or rbac/.
"""

from __future__ import annotations

from passwords.models import DIGIT_CHARS, LOWER_CHARS, SYMBOL_CHARS, UPPER_CHARS, PasswordPolicy, PolicyResult
from passwords.strength import contains_any, max_run_length

WEIGHT_MIN_LENGTH = 20
WEIGHT_MAX_LENGTH = 10
WEIGHT_REQUIRED_CLASS = 15
WEIGHT_UNIQUE_CHARS = 10
WEIGHT_REPEATED_CHARS = 15
WEIGHT_FORBIDDEN_PATTERN = 20


class PasswordPolicyValidator:
    def validate(self, password: str, policy: PasswordPolicy) -> PolicyResult:
        violations: list[str] = []
        score = 100

        length = len(password)
        if policy.min_length > 0 and length < policy.min_length:
            violations.append(f"Password must be at least {policy.min_length} characters long.")
            score -= WEIGHT_MIN_LENGTH
        if policy.max_length > 0 and length > policy.max_length:
            violations.append(f"Password must be at most {policy.max_length} characters long.")
            score -= WEIGHT_MAX_LENGTH

        required = (
            (policy.require_lower, LOWER_CHARS, "a lowercase letter"),
            (policy.require_upper, UPPER_CHARS, "an uppercase letter"),
            (policy.require_digits, DIGIT_CHARS, "a digit"),
            (policy.require_symbols, SYMBOL_CHARS, "a symbol"),
        )
        for enabled, charset, label in required:
            if enabled and not contains_any(password, charset):
                violations.append(f"Password must contain {label}.")
                score -= WEIGHT_REQUIRED_CLASS

        if policy.min_unique_chars > 0 and len(set(password)) < policy.min_unique_chars:
            violations.append(f"Password must contain at least {policy.min_unique_chars} different characters.")
            score -= WEIGHT_UNIQUE_CHARS

        if policy.max_repeated_chars > 0 and max_run_length(password) > policy.max_repeated_chars:
            violations.append(
                f"Password must not repeat a character more than {policy.max_repeated_chars} times in a row."
            )
            score -= WEIGHT_REPEATED_CHARS

        lowered = password.lower()
        for pattern in policy.forbidden_patterns:
            if pattern and pattern.lower() in lowered:
                violations.append(f"Password must not contain '{pattern}'.")
                score -= WEIGHT_FORBIDDEN_PATTERN

        return PolicyResult(valid=not violations, violations=violations, score=max(0, score))
