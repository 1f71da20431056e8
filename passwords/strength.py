"""
passwords/strength.py -- Password strength scoring, entropy and crack-time estimate.

Scoring (0-100, clamped):
  Length        <8: +0 (feedback)   8-11: +20   12-15: +30   16+: +40
  Diversity     +10 per class present (lower, upper, digit, symbol);
                each missing class adds a suggestion
  Uniqueness    +10 unless fewer than len/2 distinct characters (feedback)
  Penalties     -10 each: ascending run ("abc", "123"), keyboard trigram
                ("qwe", "asd"), 3+ identical characters in a row
  Dictionary    -20 for an exact, case-insensitive common-password match
                (only when the dictionary check is enabled)

Levels: <30 Weak, <60 Medium, <80 Strong, otherwise VeryStrong.

Entropy is length * log2(size of the character classes actually used). The
crack-time label is a step function of entropy meant for user feedback only.

Layer rule: no imports from auth/ or rbac/.
"""

from __future__ import annotations

import math
import re

from passwords.models import (
    DIGIT_CHARS,
    LOWER_CHARS,
    STRENGTH_MEDIUM,
    STRENGTH_STRONG,
    STRENGTH_VERY_STRONG,
    STRENGTH_WEAK,
    SYMBOL_CHARS,
    UPPER_CHARS,
    StrengthResult,
)

# Short list on purpose; deployments wanting a real breach corpus pass their own set.
COMMON_PASSWORDS: frozenset[str] = frozenset(
    {
        "password",
        "123456",
        "123456789",
        "qwerty",
        "abc123",
        "password123",
        "admin",
        "letmein",
        "welcome",
        "monkey",
        "dragon",
        "master",
        "shadow",
        "superman",
        "michael",
        "football",
        "baseball",
        "liverpool",
    }
)

_SEQUENTIAL_RE = re.compile(
    "abc|bcd|cde|def|efg|fgh|ghi|hij|ijk|jkl|klm|lmn|mno|nop|opq|pqr|qrs|rst|stu|tuv|uvw|vwx|wxy|xyz"
    "|012|123|234|345|456|567|678|789"
)
_KEYBOARD_RE = re.compile("qwe|wer|ert|rty|tyu|yui|uio|iop|asd|sdf|dfg|fgh|ghj|hjk|jkl|zxc|xcv|cvb|vbn|bnm")

# (upper bound in bits, label); anything at or above the last bound is "centuries".
_CRACK_TIME_STEPS: tuple[tuple[int, str], ...] = (
    (20, "seconds"),
    (30, "minutes"),
    (40, "hours"),
    (50, "days"),
    (60, "months"),
    (70, "years"),
)


def contains_any(password: str, charset: str) -> bool:
    return any(ch in charset for ch in password)


def has_repeated_chars(password: str, run: int = 3) -> bool:
    """Return True if any character repeats `run` or more times consecutively."""
    return max_run_length(password) >= run


def max_run_length(password: str) -> int:
    """Length of the longest run of one identical character (0 for "")."""
    if not password:
        return 0
    longest = current = 1
    for prev, ch in zip(password, password[1:]):
        current = current + 1 if ch == prev else 1
        longest = max(longest, current)
    return longest


def calculate_entropy(password: str) -> float:
    charset_size = 0
    for charset in (LOWER_CHARS, UPPER_CHARS, DIGIT_CHARS, SYMBOL_CHARS):
        if contains_any(password, charset):
            charset_size += len(charset)
    if charset_size == 0:
        return 0.0
    return len(password) * math.log2(charset_size)


def estimate_time_to_crack(entropy: float) -> str:
    for bound, label in _CRACK_TIME_STEPS:
        if entropy < bound:
            return label
    return "centuries"


def strength_level(score: int) -> str:
    if score < 30:
        return STRENGTH_WEAK
    if score < 60:
        return STRENGTH_MEDIUM
    if score < 80:
        return STRENGTH_STRONG
    return STRENGTH_VERY_STRONG


class PasswordStrengthChecker:
    def __init__(self, enable_dictionary_check: bool = True, common_passwords: frozenset[str] = COMMON_PASSWORDS):
        self.enable_dictionary_check = enable_dictionary_check
        self._common = frozenset(p.lower() for p in common_passwords)

    def is_common_password(self, password: str) -> bool:
        return password.lower() in self._common

    def check_strength(self, password: str) -> StrengthResult:
        """Score a password. Pure function of (password, dictionary setting)."""
        if not password:
            return StrengthResult(
                score=0,
                level=STRENGTH_WEAK,
                feedback=["Password must not be empty."],
                entropy=0.0,
                time_to_crack="instantly",
            )

        score = 0
        feedback: list[str] = []

        length = len(password)
        if length < 8:
            feedback.append("Use at least 8 characters.")
        elif length < 12:
            score += 20
        elif length < 16:
            score += 30
        else:
            score += 40

        classes = (
            (LOWER_CHARS, "Add lowercase letters."),
            (UPPER_CHARS, "Add uppercase letters."),
            (DIGIT_CHARS, "Add digits."),
            (SYMBOL_CHARS, "Add symbols."),
        )
        for charset, suggestion in classes:
            if contains_any(password, charset):
                score += 10
            else:
                feedback.append(suggestion)

        if len(set(password)) < length // 2:
            feedback.append("Too many repeated characters.")
        else:
            score += 10

        lowered = password.lower()
        if _SEQUENTIAL_RE.search(lowered):
            score -= 10
            feedback.append("Avoid sequences such as 'abc' or '123'.")
        if has_repeated_chars(password):
            score -= 10
            feedback.append("Avoid repeating the same character three or more times.")
        if _KEYBOARD_RE.search(lowered):
            score -= 10
            feedback.append("Avoid keyboard patterns such as 'qwe' or 'asd'.")

        if self.enable_dictionary_check and self.is_common_password(password):
            score -= 20
            feedback.append("Avoid common passwords.")

        score = max(0, min(100, score))
        entropy = calculate_entropy(password)
        return StrengthResult(
            score=score,
            level=strength_level(score),
            feedback=feedback,
            entropy=entropy,
            time_to_crack=estimate_time_to_crack(entropy),
        )
