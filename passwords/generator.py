"""
passwords/generator.py -- Cryptographically random password generation.

Every character is drawn with secrets.choice(), which selects uniformly over
the resolved character set without modulo bias.

Class guarantee: when the caller asks for several classes, a uniform draw can
still miss one (likely for short passwords). The generator redraws up to
MAX_ATTEMPTS times; if every attempt misses, it overwrites the first
characters with one character from each missing class. The patch trades
perfect uniformity for the guarantee that every requested class appears
whenever length >= number of requested classes.

Layer rule: no imports from auth/ or rbac/.
"""

from __future__ import annotations

import logging
import secrets

from core.errors import InvalidOptionsError
from passwords.models import AMBIGUOUS_CHARS, DIGIT_CHARS, LOWER_CHARS, SYMBOL_CHARS, UPPER_CHARS, GenerateOptions
from passwords.strength import contains_any

logger = logging.getLogger("authcore.passwords")

MAX_LENGTH = 256
MAX_ATTEMPTS = 10


def _strip_ambiguous(charset: str) -> str:
    return "".join(ch for ch in charset if ch not in AMBIGUOUS_CHARS)


def requested_classes(options: GenerateOptions) -> list[str]:
    """Return the full character class strings selected by the option flags."""
    flags = (
        (options.include_lower, LOWER_CHARS),
        (options.include_upper, UPPER_CHARS),
        (options.include_digits, DIGIT_CHARS),
        (options.include_symbols, SYMBOL_CHARS),
    )
    return [charset for enabled, charset in flags if enabled]


class PasswordGenerator:
    def validate_options(self, options: GenerateOptions) -> None:
        if options.length <= 0 or options.length > MAX_LENGTH:
            raise InvalidOptionsError(f"Password length must be between 1 and {MAX_LENGTH}.")
        if not options.custom_charset and not requested_classes(options):
            raise InvalidOptionsError("Select at least one character class or provide a custom charset.")

    def build_charset(self, options: GenerateOptions) -> str:
        charset = options.custom_charset or "".join(requested_classes(options))
        if options.exclude_ambiguous:
            charset = _strip_ambiguous(charset)
        # Dedupe while keeping order so a repeated custom character is not weighted double.
        return "".join(dict.fromkeys(charset))

    def meets_requirements(self, password: str, options: GenerateOptions) -> bool:
        if options.custom_charset:
            return True
        return all(contains_any(password, charset) for charset in requested_classes(options))

    def generate(self, options: GenerateOptions | None = None) -> str:
        """Generate a password for options (defaults: 12 chars, all classes, no ambiguous chars).

        Raises InvalidOptionsError for a non-positive or oversized length, or
        when the resolved character set is empty.
        """
        options = options or GenerateOptions()
        self.validate_options(options)
        charset = self.build_charset(options)
        if not charset:
            raise InvalidOptionsError("Character set is empty after removing ambiguous characters.")

        password = ""
        for _ in range(MAX_ATTEMPTS):
            password = "".join(secrets.choice(charset) for _ in range(options.length))
            if self.meets_requirements(password, options):
                return password

        logger.debug("Generated password missed a requested class after %d attempts; patching", MAX_ATTEMPTS)
        return self._ensure_requirements(password, options)

    def _ensure_requirements(self, password: str, options: GenerateOptions) -> str:
        classes = requested_classes(options)
        chars = list(password)

        def replaceable(index: int) -> bool:
            # A slot may be overwritten unless it holds the last character of its class.
            owner = next((c for c in classes if chars[index] in c), None)
            return owner is None or sum(1 for ch in chars if ch in owner) > 1

        for charset in classes:
            if any(ch in charset for ch in chars):
                continue
            slot = next((i for i in range(len(chars)) if replaceable(i)), None)
            if slot is None:
                break
            pool = _strip_ambiguous(charset) if options.exclude_ambiguous else charset
            chars[slot] = secrets.choice(pool)
        return "".join(chars)
