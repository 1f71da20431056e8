"""
passwords/manager.py -- PasswordManager facade over the password engine.

One object wires the hasher, strength checker, generator, policy validator
and history manager together under a single PasswordManagerConfig.

Live reconfiguration: the config is a frozen dataclass. update_config()
builds a fresh snapshot (config + strength checker) and swaps one reference
under a lock, so an operation that read the snapshot never observes a
half-applied update. The hasher cost is applied in the same critical section.

Layer rule: no imports from auth/ or rbac/.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from core.errors import PolicyViolationError
from passwords.generator import PasswordGenerator
from passwords.hasher import DEFAULT_ROUNDS, PasswordHasher
from passwords.history import MemoryHistoryStorage, PasswordHistoryManager
from passwords.models import GenerateOptions, HistoryEntry, PasswordPolicy, PolicyResult, StrengthResult
from passwords.policy import PasswordPolicyValidator
from passwords.strength import PasswordStrengthChecker

if TYPE_CHECKING:
    from core.config import Settings
    from core.interfaces import HistoryStorage

logger = logging.getLogger("authcore.passwords")

DEFAULT_POLICY = PasswordPolicy(
    min_length=8,
    max_length=128,
    require_lower=True,
    require_upper=True,
    require_digits=True,
    require_symbols=False,
    min_unique_chars=6,
    max_repeated_chars=3,
    forbidden_patterns=("password", "123456", "qwerty", "admin"),
)


@dataclass(frozen=True)
class PasswordManagerConfig:
    hash_rounds: int = DEFAULT_ROUNDS
    min_strength_score: int = 60
    enable_dictionary_check: bool = True
    default_length: int = 12
    default_policy: PasswordPolicy = field(default_factory=lambda: DEFAULT_POLICY)
    history_count: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> PasswordManagerConfig:
        return cls(
            hash_rounds=settings.hash_rounds,
            min_strength_score=settings.min_strength_score,
            enable_dictionary_check=settings.enable_dictionary_check,
            default_length=settings.generated_password_length,
            default_policy=PasswordPolicy(
                min_length=settings.policy_min_length,
                max_length=settings.policy_max_length,
                require_lower=settings.policy_require_lower,
                require_upper=settings.policy_require_upper,
                require_digits=settings.policy_require_digits,
                require_symbols=settings.policy_require_symbols,
                min_unique_chars=settings.policy_min_unique_chars,
                max_repeated_chars=settings.policy_max_repeated_chars,
                forbidden_patterns=tuple(settings.policy_forbidden_patterns),
            ),
            history_count=settings.password_history_count,
        )


@dataclass(frozen=True)
class _Snapshot:
    config: PasswordManagerConfig
    checker: PasswordStrengthChecker


class PasswordManager:
    """Hash, score, generate, validate and track passwords.

    Usage:
        manager = PasswordManager(PasswordManagerConfig(hash_rounds=50))
        encoded = manager.change_password(user_id=7, new_password="Tr1cky-Orbit-92")
        manager.verify_password("Tr1cky-Orbit-92", encoded)   # True
    """

    def __init__(self, config: PasswordManagerConfig | None = None, history_storage: HistoryStorage | None = None):
        config = config if config is not None else PasswordManagerConfig()
        self.hasher = PasswordHasher(config.hash_rounds)
        self.generator = PasswordGenerator()
        self.policy_validator = PasswordPolicyValidator()
        self.history = PasswordHistoryManager(
            history_storage if history_storage is not None else MemoryHistoryStorage(), self.hasher
        )
        self._lock = threading.Lock()
        self._snapshot = _Snapshot(config, PasswordStrengthChecker(config.enable_dictionary_check))

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> PasswordManagerConfig:
        return self._snapshot.config

    def update_config(self, config: PasswordManagerConfig) -> None:
        snapshot = _Snapshot(config, PasswordStrengthChecker(config.enable_dictionary_check))
        with self._lock:
            self.hasher.cost = config.hash_rounds
            self._snapshot = snapshot
        logger.info("Password manager configuration updated (rounds=%d)", self.hasher.cost)

    # ------------------------------------------------------------------
    # Hashing / strength / generation / policy
    # ------------------------------------------------------------------

    def hash_password(self, password: str) -> str:
        return self.hasher.hash(password)

    def verify_password(self, password: str, encoded: str) -> bool:
        return self.hasher.verify(password, encoded)

    def check_strength(self, password: str) -> StrengthResult:
        return self._snapshot.checker.check_strength(password)

    def is_password_strong(self, password: str) -> bool:
        snapshot = self._snapshot
        return snapshot.checker.check_strength(password).score >= snapshot.config.min_strength_score

    def generate_password(self, options: GenerateOptions) -> str:
        return self.generator.generate(options)

    def generate_with_defaults(self) -> str:
        return self.generator.generate(GenerateOptions(length=self._snapshot.config.default_length))

    def validate_policy(self, password: str, policy: PasswordPolicy) -> PolicyResult:
        return self.policy_validator.validate(password, policy)

    def validate_with_default_policy(self, password: str) -> PolicyResult:
        return self.policy_validator.validate(password, self._snapshot.config.default_policy)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_to_history(self, user_id: int, password_hash: str) -> None:
        self.history.add_to_history(user_id, password_hash)

    def check_history(self, user_id: int, password: str) -> bool:
        return self.history.check_history(user_id, password)

    def cleanup_history(self, user_id: int, keep_count: int) -> None:
        self.history.cleanup(user_id, keep_count)

    def get_password_history(self, user_id: int, limit: int = 0) -> list[HistoryEntry]:
        return self.history.get_history(user_id, limit)

    def prepare_password(self, user_id: int, new_password: str) -> str:
        """Gate new_password on strength and history and return its encoded hash.

        Nothing is recorded; call record_password() once the hash is stored.
        Raises PolicyViolationError when the password is too weak or was used
        recently.
        """
        snapshot = self._snapshot
        strength = snapshot.checker.check_strength(new_password)
        if strength.score < snapshot.config.min_strength_score:
            raise PolicyViolationError("Password is too weak.", violations=strength.feedback)
        if self.history.check_history(user_id, new_password):
            raise PolicyViolationError(
                "Password was used recently.", violations=["Choose a password you have not used recently."]
            )
        return self.hasher.hash(new_password)

    def record_password(self, user_id: int, encoded: str) -> None:
        """Append encoded to the user's history and prune to the retention count."""
        self.history.add_to_history(user_id, encoded)
        self.history.cleanup(user_id, self._snapshot.config.history_count)

    def change_password(self, user_id: int, new_password: str) -> str:
        """prepare_password() followed by record_password(). Returns the new encoded hash."""
        encoded = self.prepare_password(user_id, new_password)
        self.record_password(user_id, encoded)
        return encoded
