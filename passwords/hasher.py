"""
passwords/hasher.py -- Salted password hashing with constant-time verification.

Security design decisions:
  KDF: bcrypt_pbkdf via bcrypt.kdf(). It is bcrypt-class (Blowfish key
       schedule, deliberately expensive) but takes an explicit salt and
       returns raw key bytes, which lets us own the storage format. The round
       count is linear like PBKDF2; bcrypt itself warns below 50 rounds, so
       that is the floor.

  Format: base64(rounds + salt) + "$" + base64(hash). Exactly one separator,
       two standard-alphabet base64 segments. The first segment starts with
       the round count as a 2-byte big-endian integer, so verify() derives
       with the cost the hash was written at. Changing the cost only affects
       new hashes; existing credentials keep verifying.

  Salt: 16 bytes from secrets.token_bytes() per call. Hashing the same
       password twice therefore always yields two different encodings.

  Compare: hmac.compare_digest() on the derived and stored bytes. It never
       short-circuits on the first differing byte, so verification time does
       not reveal how much of the hash matched.

Layer rule: no imports from auth/ or rbac/.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import logging
import secrets

import bcrypt

from core.errors import EmptyInputError, InvalidHashFormatError

logger = logging.getLogger("authcore.passwords")

MIN_ROUNDS = 50
MAX_ROUNDS = 1024
DEFAULT_ROUNDS = 64

SALT_BYTES = 16
KEY_BYTES = 32
ROUNDS_BYTES = 2
SEPARATOR = "$"


def _clamp_rounds(rounds: int) -> int:
    return max(MIN_ROUNDS, min(MAX_ROUNDS, rounds))


def encode(rounds: int, salt: bytes, digest: bytes) -> str:
    params = rounds.to_bytes(ROUNDS_BYTES, "big") + salt
    return base64.b64encode(params).decode("ascii") + SEPARATOR + base64.b64encode(digest).decode("ascii")


def decode(encoded: str) -> tuple[int, bytes, bytes]:
    """Split an encoded credential into (rounds, salt, hash).

    Raises InvalidHashFormatError when the separator count is wrong, either
    segment is not valid base64, either segment is empty, or the embedded
    round count is outside [MIN_ROUNDS, MAX_ROUNDS].
    """
    parts = encoded.split(SEPARATOR)
    if len(parts) != 2:
        raise InvalidHashFormatError("Expected exactly one '$' separator in password hash.")
    try:
        params = base64.b64decode(parts[0], validate=True)
        digest = base64.b64decode(parts[1], validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidHashFormatError("Password hash segments must be valid base64.") from exc
    if len(params) <= ROUNDS_BYTES or not digest:
        raise InvalidHashFormatError("Password hash segments must not be empty.")
    # bcrypt.kdf() cannot derive more than 512 bytes.
    if len(digest) > 512:
        raise InvalidHashFormatError("Password hash segment is too long.")
    rounds = int.from_bytes(params[:ROUNDS_BYTES], "big")
    if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
        raise InvalidHashFormatError(f"Password hash round count {rounds} is out of range.")
    return rounds, params[ROUNDS_BYTES:], digest


def is_encoded_hash(value: str) -> bool:
    """Return True if value is structurally a credential produced by PasswordHasher.

    This is a format check only. It must never be used to decide whether an
    incoming value still needs hashing -- a long plaintext password can
    contain '$' and valid base64 on both sides. Callers pass an explicit
    password_hashed flag instead.
    """
    try:
        _, salt, _ = decode(value)
    except InvalidHashFormatError:
        return False
    return len(salt) >= SALT_BYTES


class PasswordHasher:
    """Hash and verify passwords with a runtime-adjustable cost.

    The cost applies to new hashes. verify() uses the round count stored in
    each encoding, so existing hashes survive a cost change.

    Usage:
        hasher = PasswordHasher(rounds=64)
        encoded = hasher.hash("Secret123!")
        hasher.verify("Secret123!", encoded)   # True
        hasher.cost = 10_000                   # clamped to MAX_ROUNDS
        hasher.verify("Secret123!", encoded)   # still True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self._rounds = _clamp_rounds(rounds)

    @property
    def cost(self) -> int:
        return self._rounds

    @cost.setter
    def cost(self, rounds: int) -> None:
        clamped = _clamp_rounds(rounds)
        if clamped != rounds:
            logger.warning("Hash cost %d outside [%d, %d]; using %d", rounds, MIN_ROUNDS, MAX_ROUNDS, clamped)
        self._rounds = clamped

    @staticmethod
    def _derive(password: str, salt: bytes, key_bytes: int, rounds: int) -> bytes:
        return bcrypt.kdf(
            password=password.encode("utf-8"),
            salt=salt,
            desired_key_bytes=key_bytes,
            rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Return base64(rounds + salt)$base64(hash) for password. Raises EmptyInputError on ""."""
        if not password:
            raise EmptyInputError()
        rounds = self._rounds
        salt = secrets.token_bytes(SALT_BYTES)
        return encode(rounds, salt, self._derive(password, salt, KEY_BYTES, rounds))

    def verify(self, password: str, encoded: str) -> bool:
        """Return True if password matches encoded.

        Malformed encodings and empty inputs return False; nothing here raises.
        """
        if not password or not encoded:
            return False
        try:
            rounds, salt, expected = decode(encoded)
        except InvalidHashFormatError:
            logger.debug("Rejected malformed password hash during verify")
            return False
        candidate = self._derive(password, salt, len(expected), rounds)
        return hmac.compare_digest(candidate, expected)
