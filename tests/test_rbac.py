"""Tests for rbac/service.py and rbac/store.py -- roles, permissions, access checks.

Covers:
- has_permission / has_role through the user -> role -> permission joins
- DuplicateAssignmentError on repeated assignment; removal of a missing pair is a no-op
- Role CRUD: duplicate names, update, delete blocked while assigned, cascade of links
- Permission CRUD and pagination defaults
- Store failures surface as LookupFailureError
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from core.errors import (
    ConflictError,
    DuplicateAssignmentError,
    InvalidIdentityError,
    InvalidInputError,
    LookupFailureError,
    NotFoundError,
)
from rbac.models import Permission, Role, RoleStatus


@pytest.fixture
def seeded(rbac):
    """admin role with users:read + users:write; viewer role with users:read. User 7 is admin."""
    admin = rbac.create_role(Role(name="admin", display_name="Administrator"))
    viewer = rbac.create_role(Role(name="viewer", display_name="Viewer"))
    read = rbac.create_permission(Permission("users:read", "Read users", "users", "read"))
    write = rbac.create_permission(Permission("users:write", "Write users", "users", "write"))
    rbac.assign_permission_to_role(admin.id, read.id)
    rbac.assign_permission_to_role(admin.id, write.id)
    rbac.assign_permission_to_role(viewer.id, read.id)
    rbac.assign_role_to_user(7, admin.id)
    return admin, viewer, read, write


# ---------------------------------------------------------------------------
# TestAccessChecks
# ---------------------------------------------------------------------------


class TestAccessChecks:
    def test_has_permission(self, rbac, seeded):
        assert rbac.has_permission(7, "users", "read")
        assert rbac.has_permission(7, "users", "write")
        assert not rbac.has_permission(7, "users", "delete")
        assert not rbac.has_permission(8, "users", "read")

    def test_has_role(self, rbac, seeded):
        assert rbac.has_role(7, "admin")
        assert not rbac.has_role(7, "viewer")
        assert not rbac.has_role(8, "admin")

    def test_permission_through_second_role(self, rbac, seeded):
        _, viewer, _, _ = seeded
        rbac.assign_role_to_user(8, viewer.id)
        assert rbac.has_permission(8, "users", "read")
        assert not rbac.has_permission(8, "users", "write")

    def test_revoking_role_removes_permission(self, rbac, seeded):
        admin, _, _, _ = seeded
        rbac.remove_role_from_user(7, admin.id)
        assert not rbac.has_permission(7, "users", "read")
        assert not rbac.has_role(7, "admin")

    def test_lookup_failure(self, rbac):
        with patch.object(rbac.store, "user_has_permission", side_effect=OperationalError("SELECT", {}, Exception())):
            with pytest.raises(LookupFailureError):
                rbac.has_permission(1, "users", "read")
        with patch.object(rbac.store, "user_has_role", side_effect=OperationalError("SELECT", {}, Exception())):
            with pytest.raises(LookupFailureError):
                rbac.has_role(1, "admin")


# ---------------------------------------------------------------------------
# TestAssignments
# ---------------------------------------------------------------------------


class TestAssignments:
    def test_duplicate_role_assignment(self, rbac, seeded):
        admin, _, _, _ = seeded
        with pytest.raises(DuplicateAssignmentError):
            rbac.assign_role_to_user(7, admin.id)

    def test_duplicate_permission_assignment(self, rbac, seeded):
        admin, _, read, _ = seeded
        with pytest.raises(DuplicateAssignmentError):
            rbac.assign_permission_to_role(admin.id, read.id)

    def test_duplicate_is_a_conflict(self, rbac, seeded):
        admin, _, _, _ = seeded
        with pytest.raises(ConflictError):
            rbac.assign_role_to_user(7, admin.id)

    def test_remove_missing_pair_is_noop(self, rbac, seeded):
        admin, viewer, _, write = seeded
        rbac.remove_role_from_user(99, admin.id)
        rbac.remove_permission_from_role(viewer.id, write.id)

    def test_assign_unknown_role_or_permission(self, rbac, seeded):
        admin, _, read, _ = seeded
        with pytest.raises(NotFoundError):
            rbac.assign_role_to_user(7, 999)
        with pytest.raises(NotFoundError):
            rbac.assign_permission_to_role(admin.id, 999)
        with pytest.raises(NotFoundError):
            rbac.assign_permission_to_role(999, read.id)

    def test_assign_zero_identity(self, rbac, seeded):
        admin, _, _, _ = seeded
        with pytest.raises(InvalidIdentityError):
            rbac.assign_role_to_user(0, admin.id)

    def test_listings(self, rbac, seeded):
        admin, viewer, read, write = seeded
        rbac.assign_role_to_user(3, admin.id)
        assert [r.name for r in rbac.get_user_roles(7)] == ["admin"]
        assert [p.name for p in rbac.get_role_permissions(admin.id)] == ["users:read", "users:write"]
        assert rbac.get_users_with_role(admin.id) == [3, 7]
        assert rbac.get_users_with_role(viewer.id) == []


# ---------------------------------------------------------------------------
# TestRoleCrud
# ---------------------------------------------------------------------------


class TestRoleCrud:
    def test_duplicate_name(self, rbac, seeded):
        with pytest.raises(ConflictError):
            rbac.create_role(Role(name="admin", display_name="Again"))

    def test_missing_fields(self, rbac):
        with pytest.raises(InvalidInputError):
            rbac.create_role(Role(name="", display_name="Nameless"))

    def test_get_by_id_and_name(self, rbac, seeded):
        admin, _, _, _ = seeded
        assert rbac.get_role(admin.id).name == "admin"
        assert rbac.get_role_by_name("admin").id == admin.id
        with pytest.raises(NotFoundError):
            rbac.get_role(999)
        with pytest.raises(NotFoundError):
            rbac.get_role_by_name("ghost")

    def test_update(self, rbac, seeded):
        _, viewer, _, _ = seeded
        updated = rbac.update_role(viewer.id, display_name="Read-only", status=RoleStatus.DISABLED)
        assert updated.display_name == "Read-only"
        assert updated.status == RoleStatus.DISABLED

    def test_update_to_taken_name(self, rbac, seeded):
        _, viewer, _, _ = seeded
        with pytest.raises(ConflictError):
            rbac.update_role(viewer.id, name="admin")

    def test_update_unknown_field(self, rbac, seeded):
        _, viewer, _, _ = seeded
        with pytest.raises(InvalidInputError):
            rbac.update_role(viewer.id, id=5)

    def test_delete_blocked_while_assigned(self, rbac, seeded):
        admin, _, _, _ = seeded
        with pytest.raises(ConflictError):
            rbac.delete_role(admin.id)
        assert rbac.get_role(admin.id)

    def test_delete_cascades_permission_links(self, rbac, seeded):
        _, viewer, _, _ = seeded
        rbac.delete_role(viewer.id)
        with pytest.raises(NotFoundError):
            rbac.get_role(viewer.id)
        assert rbac.get_role_permissions(viewer.id) == []

    def test_delete_unknown(self, rbac):
        with pytest.raises(NotFoundError):
            rbac.delete_role(999)

    def test_list_roles_pagination(self, rbac):
        for i in range(13):
            rbac.create_role(Role(name=f"role{i}", display_name=f"Role {i}"))
        roles, total = rbac.list_roles()
        assert total == 13
        assert len(roles) == 10
        second, _ = rbac.list_roles(2, 10)
        assert [r.name for r in second] == ["role10", "role11", "role12"]


# ---------------------------------------------------------------------------
# TestPermissionCrud
# ---------------------------------------------------------------------------


class TestPermissionCrud:
    def test_duplicate_name(self, rbac, seeded):
        with pytest.raises(ConflictError):
            rbac.create_permission(Permission("users:read", "Again", "users", "read"))

    def test_missing_fields(self, rbac):
        with pytest.raises(InvalidInputError):
            rbac.create_permission(Permission("x", "X", "", "read"))

    def test_get_and_list(self, rbac, seeded):
        _, _, read, _ = seeded
        assert rbac.get_permission(read.id).resource == "users"
        with pytest.raises(NotFoundError):
            rbac.get_permission(999)
        permissions, total = rbac.list_permissions(page=0, page_size=-1)
        assert total == 2
        assert [p.name for p in permissions] == ["users:read", "users:write"]
