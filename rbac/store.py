"""
rbac/store.py -- SQLAlchemy Core persistence for roles, permissions and assignments.

Pattern: Repository + Data Mapper (same as auth/store.py).
RoleStore owns four tables:

  roles             role records, UNIQUE(name)
  permissions       permission records, UNIQUE(name)
  role_permissions  join table, UNIQUE(role_id, permission_id)
  user_roles        join table, UNIQUE(user_id, role_id)

The store is mechanical: it raises sqlalchemy.exc.IntegrityError on a
uniqueness violation and lets the service decide what that means.

user_roles.user_id references users.id by value only; the users table
belongs to auth/store.py and rbac/ does not import it.

Layer rule: no imports from auth/ or passwords/.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, UniqueConstraint, func, select
from sqlalchemy.engine import Engine

from core.config import get_settings
from core.db import DEFAULT_PAGE_SIZE, make_engine, normalize_page, now_iso
from rbac.models import Permission, Role

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False, unique=True),
    Column("display_name", String(100), nullable=False),
    Column("description", String(255), nullable=False, server_default=""),
    Column("status", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_permissions = Table(
    "permissions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("display_name", String(100), nullable=False),
    Column("resource", String(100), nullable=False),
    Column("action", String(50), nullable=False),
    Column("description", String(255), nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
)

_role_permissions = Table(
    "role_permissions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role_id", Integer, nullable=False, index=True),
    Column("permission_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("role_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("user_id", "role_id", name="uq_user_role"),
)

_ROLE_FIELDS = {"name", "display_name", "description", "status"}


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RoleStore:
    """Repository for Role / Permission records and their join tables.

    Usage:
        store = RoleStore("sqlite:///:memory:")
        role_id = store.create_role(Role(name="admin", display_name="Administrator"))
        perm_id = store.create_permission(Permission("users:read", "Read users", "users", "read"))
        store.add_role_permission(role_id, perm_id)
        store.add_user_role(7, role_id)
        store.user_has_permission(7, "users", "read")   # True
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(self, role: Role) -> int:
        """Insert a role and return its ID. Raises IntegrityError on a duplicate name."""
        now = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _roles.insert().values(
                    name=role.name,
                    display_name=role.display_name,
                    description=role.description,
                    status=int(role.status),
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_role(self, role_id: int) -> Role | None:
        """Return the role with role_id, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    def get_role_by_name(self, name: str) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.name == name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def update_role(self, role_id: int, **fields) -> bool:
        """Update name, display_name, description or status. Returns False if role_id is unknown."""
        unknown = set(fields) - _ROLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown role fields: {sorted(unknown)!r}")
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_roles.update().where(_roles.c.id == role_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_role(self, role_id: int) -> bool:
        """Delete a role and its permission links in one transaction.

        Does not check user assignments; the service refuses to delete a role
        that is still assigned.
        """
        with self.engine.connect() as conn:
            conn.execute(_role_permissions.delete().where(_role_permissions.c.role_id == role_id))
            result = conn.execute(_roles.delete().where(_roles.c.id == role_id))
            conn.commit()
        return result.rowcount > 0

    def list_roles(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> tuple[list[Role], int]:
        """Return one page of roles ordered by ID, plus the total role count."""
        page, page_size = normalize_page(page, page_size)
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_roles)).scalar()
            rows = conn.execute(
                _roles.select().order_by(_roles.c.id).limit(page_size).offset((page - 1) * page_size)
            ).fetchall()
        return [_row_to_role(r) for r in rows], total or 0

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def create_permission(self, permission: Permission) -> int:
        """Insert a permission and return its ID. Raises IntegrityError on a duplicate name."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _permissions.insert().values(
                    name=permission.name,
                    display_name=permission.display_name,
                    resource=permission.resource,
                    action=permission.action,
                    description=permission.description,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_permission(self, permission_id: int) -> Permission | None:
        """Return the permission with permission_id, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(_permissions.select().where(_permissions.c.id == permission_id)).fetchone()
        return _row_to_permission(row) if row is not None else None

    def get_permission_by_name(self, name: str) -> Permission | None:
        with self.engine.connect() as conn:
            row = conn.execute(_permissions.select().where(_permissions.c.name == name)).fetchone()
        return _row_to_permission(row) if row is not None else None

    def list_permissions(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> tuple[list[Permission], int]:
        """Return one page of permissions ordered by ID, plus the total count."""
        page, page_size = normalize_page(page, page_size)
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_permissions)).scalar()
            rows = conn.execute(
                _permissions.select().order_by(_permissions.c.id).limit(page_size).offset((page - 1) * page_size)
            ).fetchall()
        return [_row_to_permission(r) for r in rows], total or 0

    # ------------------------------------------------------------------
    # Role <-> permission links
    # ------------------------------------------------------------------

    def has_role_permission(self, role_id: int, permission_id: int) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_role_permissions.c.id).where(
                    (_role_permissions.c.role_id == role_id) & (_role_permissions.c.permission_id == permission_id)
                )
            ).fetchone()
        return row is not None

    def add_role_permission(self, role_id: int, permission_id: int) -> None:
        """Link a permission to a role. Raises IntegrityError if already linked."""
        with self.engine.connect() as conn:
            conn.execute(
                _role_permissions.insert().values(role_id=role_id, permission_id=permission_id, created_at=now_iso())
            )
            conn.commit()

    def remove_role_permission(self, role_id: int, permission_id: int) -> bool:
        """Unlink a permission from a role. Returns False if the pair was not linked."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _role_permissions.delete().where(
                    (_role_permissions.c.role_id == role_id) & (_role_permissions.c.permission_id == permission_id)
                )
            )
            conn.commit()
        return result.rowcount > 0

    def role_permissions(self, role_id: int) -> list[Permission]:
        """Return the permissions linked to role_id, ordered by ID."""
        query = (
            select(_permissions)
            .select_from(_permissions.join(_role_permissions, _permissions.c.id == _role_permissions.c.permission_id))
            .where(_role_permissions.c.role_id == role_id)
            .order_by(_permissions.c.id)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_permission(r) for r in rows]

    # ------------------------------------------------------------------
    # User <-> role links
    # ------------------------------------------------------------------

    def has_user_role(self, user_id: int, role_id: int) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_user_roles.c.id).where((_user_roles.c.user_id == user_id) & (_user_roles.c.role_id == role_id))
            ).fetchone()
        return row is not None

    def add_user_role(self, user_id: int, role_id: int) -> None:
        """Assign a role to a user. Raises IntegrityError if already assigned."""
        with self.engine.connect() as conn:
            conn.execute(_user_roles.insert().values(user_id=user_id, role_id=role_id, created_at=now_iso()))
            conn.commit()

    def remove_user_role(self, user_id: int, role_id: int) -> bool:
        """Unassign a role. Returns False if the user did not hold it."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _user_roles.delete().where((_user_roles.c.user_id == user_id) & (_user_roles.c.role_id == role_id))
            )
            conn.commit()
        return result.rowcount > 0

    def count_role_users(self, role_id: int) -> int:
        """Return how many users currently hold role_id."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_user_roles).where(_user_roles.c.role_id == role_id)
            ).scalar()
        return result or 0

    def user_roles(self, user_id: int) -> list[Role]:
        """Return the roles held by user_id, ordered by ID."""
        query = (
            select(_roles)
            .select_from(_roles.join(_user_roles, _roles.c.id == _user_roles.c.role_id))
            .where(_user_roles.c.user_id == user_id)
            .order_by(_roles.c.id)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_role(r) for r in rows]

    def role_user_ids(self, role_id: int) -> list[int]:
        """Return the IDs of users holding role_id, ascending."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_user_roles.c.user_id).where(_user_roles.c.role_id == role_id).order_by(_user_roles.c.user_id)
            ).fetchall()
        return [r.user_id for r in rows]

    # ------------------------------------------------------------------
    # Authorization queries
    # ------------------------------------------------------------------

    def user_has_permission(self, user_id: int, resource: str, action: str) -> bool:
        """permissions JOIN role_permissions JOIN user_roles, matched on resource + action."""
        query = (
            select(func.count())
            .select_from(
                _permissions.join(_role_permissions, _permissions.c.id == _role_permissions.c.permission_id).join(
                    _user_roles, _role_permissions.c.role_id == _user_roles.c.role_id
                )
            )
            .where(
                (_user_roles.c.user_id == user_id)
                & (_permissions.c.resource == resource)
                & (_permissions.c.action == action)
            )
        )
        with self.engine.connect() as conn:
            count = conn.execute(query).scalar()
        return (count or 0) > 0

    def user_has_role(self, user_id: int, role_name: str) -> bool:
        """roles JOIN user_roles, matched on the role name."""
        query = (
            select(func.count())
            .select_from(_roles.join(_user_roles, _roles.c.id == _user_roles.c.role_id))
            .where((_user_roles.c.user_id == user_id) & (_roles.c.name == role_name))
        )
        with self.engine.connect() as conn:
            count = conn.execute(query).scalar()
        return (count or 0) > 0

    def close(self) -> None:
        """Dispose the engine connection pool."""
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        display_name=row.display_name,
        description=row.description,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_permission(row) -> Permission:
    return Permission(
        id=row.id,
        name=row.name,
        display_name=row.display_name,
        resource=row.resource,
        action=row.action,
        description=row.description,
        created_at=row.created_at,
    )
