"""
rbac/service.py -- AuthorizationService: role/permission CRUD and access checks.

Read side: has_permission() and has_role() are pure queries. They never
mutate state and only fail when the store itself fails; any SQLAlchemyError
surfaces as LookupFailureError so callers can tell "denied" (False) from
"could not decide" (exception).

Write side: assignments are unique pairs. Assigning an existing pair raises
DuplicateAssignmentError; the UNIQUE constraints catch the race where two
callers assign the same pair at once. Removing a missing pair is a no-op.

Layer rule: no imports from auth/ or passwords/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import (
    ConflictError,
    DuplicateAssignmentError,
    InvalidIdentityError,
    InvalidInputError,
    LookupFailureError,
    NotFoundError,
)
from rbac.models import Permission, Role
from rbac.store import RoleStore

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("authcore.rbac")


class AuthorizationService:
    """Role-based access control over a RoleStore.

    Usage:
        rbac = AuthorizationService(RoleStore(settings.database_url))
        admin = rbac.create_role(Role(name="admin", display_name="Administrator"))
        read = rbac.create_permission(Permission("users:read", "Read users", "users", "read"))
        rbac.assign_permission_to_role(admin.id, read.id)
        rbac.assign_role_to_user(7, admin.id)
        rbac.has_permission(7, "users", "read")   # True
    """

    def __init__(self, store: RoleStore) -> None:
        self.store = store

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthorizationService:
        return cls(RoleStore(settings.database_url))

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------

    def has_permission(self, user_id: int, resource: str, action: str) -> bool:
        try:
            return self.store.user_has_permission(user_id, resource, action)
        except SQLAlchemyError as exc:
            logger.error("Permission lookup failed for user %s: %s", user_id, exc)
            raise LookupFailureError() from exc

    def has_role(self, user_id: int, role_name: str) -> bool:
        try:
            return self.store.user_has_role(user_id, role_name)
        except SQLAlchemyError as exc:
            logger.error("Role lookup failed for user %s: %s", user_id, exc)
            raise LookupFailureError() from exc

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(self, role: Role) -> Role:
        """Create a role and return it with its ID. Raises ConflictError on a duplicate name."""
        if not role.name or not role.display_name:
            raise InvalidInputError("role name and display_name are required")
        if self.store.get_role_by_name(role.name) is not None:
            raise ConflictError("role name exists")
        try:
            role_id = self.store.create_role(role)
        except IntegrityError as exc:
            raise ConflictError("role name exists") from exc
        logger.info("Created role %r (id=%d)", role.name, role_id)
        return self.get_role(role_id)

    def get_role(self, role_id: int) -> Role:
        role = self.store.get_role(role_id)
        if role is None:
            raise NotFoundError("role not found")
        return role

    def get_role_by_name(self, name: str) -> Role:
        role = self.store.get_role_by_name(name)
        if role is None:
            raise NotFoundError("role not found")
        return role

    def update_role(self, role_id: int, **fields) -> Role:
        """Update name, display_name, description or status and return the updated role."""
        unknown = set(fields) - {"name", "display_name", "description", "status"}
        if unknown:
            raise InvalidInputError(f"Unknown role fields: {sorted(unknown)!r}")
        self.get_role(role_id)
        if "name" in fields:
            other = self.store.get_role_by_name(fields["name"])
            if other is not None and other.id != role_id:
                raise ConflictError("role name exists")
        try:
            self.store.update_role(role_id, **fields)
        except IntegrityError as exc:
            raise ConflictError("role name exists") from exc
        return self.get_role(role_id)

    def delete_role(self, role_id: int) -> None:
        """Delete a role and its permission links.

        Raises NotFoundError for an unknown role and ConflictError while any
        user still holds it.
        """
        self.get_role(role_id)
        if self.store.count_role_users(role_id) > 0:
            raise ConflictError("role is assigned to users and cannot be deleted")
        self.store.delete_role(role_id)
        logger.info("Deleted role id=%d", role_id)

    def list_roles(self, page: int = 1, page_size: int = 10) -> tuple[list[Role], int]:
        return self.store.list_roles(page, page_size)

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def create_permission(self, permission: Permission) -> Permission:
        if not permission.name or not permission.resource or not permission.action:
            raise InvalidInputError("permission name, resource and action are required")
        if self.store.get_permission_by_name(permission.name) is not None:
            raise ConflictError("permission name exists")
        try:
            permission_id = self.store.create_permission(permission)
        except IntegrityError as exc:
            raise ConflictError("permission name exists") from exc
        logger.info("Created permission %r (id=%d)", permission.name, permission_id)
        return self.get_permission(permission_id)

    def get_permission(self, permission_id: int) -> Permission:
        permission = self.store.get_permission(permission_id)
        if permission is None:
            raise NotFoundError("permission not found")
        return permission

    def list_permissions(self, page: int = 1, page_size: int = 10) -> tuple[list[Permission], int]:
        return self.store.list_permissions(page, page_size)

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def assign_permission_to_role(self, role_id: int, permission_id: int) -> None:
        self.get_role(role_id)
        self.get_permission(permission_id)
        if self.store.has_role_permission(role_id, permission_id):
            raise DuplicateAssignmentError("permission already assigned to role")
        try:
            self.store.add_role_permission(role_id, permission_id)
        except IntegrityError as exc:
            raise DuplicateAssignmentError("permission already assigned to role") from exc

    def remove_permission_from_role(self, role_id: int, permission_id: int) -> None:
        self.store.remove_role_permission(role_id, permission_id)

    def get_role_permissions(self, role_id: int) -> list[Permission]:
        return self.store.role_permissions(role_id)

    def assign_role_to_user(self, user_id: int, role_id: int) -> None:
        if user_id <= 0:
            raise InvalidIdentityError()
        self.get_role(role_id)
        if self.store.has_user_role(user_id, role_id):
            raise DuplicateAssignmentError("role already assigned to user")
        try:
            self.store.add_user_role(user_id, role_id)
        except IntegrityError as exc:
            raise DuplicateAssignmentError("role already assigned to user") from exc
        logger.info("Assigned role id=%d to user %d", role_id, user_id)

    def remove_role_from_user(self, user_id: int, role_id: int) -> None:
        if self.store.remove_user_role(user_id, role_id):
            logger.info("Removed role id=%d from user %d", role_id, user_id)

    def get_user_roles(self, user_id: int) -> list[Role]:
        return self.store.user_roles(user_id)

    def get_users_with_role(self, role_id: int) -> list[int]:
        """Return the IDs of users holding role_id, ascending."""
        return self.store.role_user_ids(role_id)
