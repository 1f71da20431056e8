"""
tests/conftest.py -- Shared test fixtures for authcore.

This module provides:
  - hasher / password_manager: fast-cost password engine instances
  - token_config / token_service: a TokenService with a fixed test secret
  - user_store / role_store: isolated in-memory SQLite repositories
  - auth_service / rbac: services wired over the fixtures above

Design: plain sqlite:///:memory: URLs are enough here. Every store owns its
engine and the tests that touch a store run on a single thread, so each
fixture gets its own blank database.

The DEBUG env var must be set before any core import so get_settings() can
auto-generate SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator

# CRITICAL: Set DEBUG before any authcore import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest

from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenService
from passwords.hasher import MIN_ROUNDS, PasswordHasher
from passwords.manager import PasswordManager, PasswordManagerConfig
from rbac.service import AuthorizationService
from rbac.store import RoleStore

TEST_SECRET = "authcore-test-secret-key-0123456789abcdef"


# ---------------------------------------------------------------------------
# Password engine
# ---------------------------------------------------------------------------


@pytest.fixture
def hasher() -> PasswordHasher:
    """Hasher at the lowest allowed cost to keep the suite fast."""
    return PasswordHasher(MIN_ROUNDS)


@pytest.fixture
def password_manager() -> PasswordManager:
    return PasswordManager(PasswordManagerConfig(hash_rounds=MIN_ROUNDS))


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(secret_key=TEST_SECRET)


@pytest.fixture
def token_service(token_config: TokenConfig) -> TokenService:
    return TokenService(token_config)


# ---------------------------------------------------------------------------
# Stores and services
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def role_store() -> Generator[RoleStore, None, None]:
    store = RoleStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def auth_service(user_store: UserStore, token_service: TokenService, password_manager: PasswordManager) -> AuthService:
    return AuthService(user_store, token_service, password_manager)


@pytest.fixture
def rbac(role_store: RoleStore) -> AuthorizationService:
    return AuthorizationService(role_store)
