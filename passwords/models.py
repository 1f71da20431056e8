"""
passwords/models.py -- Domain dataclasses for the password engine.

Pattern: Data class (pure data container, zero logic). The checker,
generator, validator and history manager do the work; these shapes are what
they accept and return.

Layer rule: no imports from auth/ or rbac/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

LOWER_CHARS = "abcdefghijklmnopqrstuvwxyz"
UPPER_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DIGIT_CHARS = "0123456789"
SYMBOL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
AMBIGUOUS_CHARS = "0O1lI|`"

STRENGTH_WEAK = "Weak"
STRENGTH_MEDIUM = "Medium"
STRENGTH_STRONG = "Strong"
STRENGTH_VERY_STRONG = "VeryStrong"


@dataclass
class StrengthResult:
    """Outcome of PasswordStrengthChecker.check_strength().

    score is 0-100; level is one of the STRENGTH_* constants. entropy and
    time_to_crack are user-facing estimates only, not a cryptographic
    guarantee.
    """

    score: int
    level: str
    feedback: list[str] = field(default_factory=list)
    entropy: float = 0.0
    time_to_crack: str = ""


@dataclass
class GenerateOptions:
    """Options for PasswordGenerator.generate().

    custom_charset, when non-empty, overrides the four class flags.
    """

    length: int = 12
    include_lower: bool = True
    include_upper: bool = True
    include_digits: bool = True
    include_symbols: bool = True
    exclude_ambiguous: bool = True
    custom_charset: str = ""


@dataclass(frozen=True)
class PasswordPolicy:
    """Declarative password policy. Zero on a numeric bound means "no bound"."""

    min_length: int = 0
    max_length: int = 0
    require_lower: bool = False
    require_upper: bool = False
    require_digits: bool = False
    require_symbols: bool = False
    min_unique_chars: int = 0
    max_repeated_chars: int = 0
    forbidden_patterns: tuple[str, ...] = ()


@dataclass
class PolicyResult:
    valid: bool
    violations: list[str] = field(default_factory=list)
    score: int = 100


@dataclass
class HistoryEntry:
    """One previously used password hash for an identity."""

    user_id: int
    password_hash: str
    created_at: datetime
