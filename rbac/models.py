"""
rbac/models.py -- Domain dataclasses for roles and permissions.

Layer rule: no imports from auth/ or passwords/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class RoleStatus(IntEnum):
    ACTIVE = 1
    DISABLED = 2


@dataclass
class Role:
    name: str  # unique, e.g. "admin"
    display_name: str
    description: str = ""
    status: int = RoleStatus.ACTIVE
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Permission:
    """A grant to perform `action` on `resource`, e.g. ("users", "read").

    name is the unique handle ("users:read"); resource + action are what
    AuthorizationService.has_permission() matches on.
    """

    name: str
    display_name: str
    resource: str
    action: str
    description: str = ""
    id: int | None = None
    created_at: str | None = None
