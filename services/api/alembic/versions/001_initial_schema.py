"""Initial schema: users, RBAC tables, permission audit log, logs; seed defaults

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_CRUD = ("read", "create", "update", "delete")

# Modules seeded by this migration: (name, display name, extra actions beyond CRUD).
_DEFAULT_MODULES: list[tuple[str, str, tuple[str, ...]]] = [
    ("users", "Users", ()),
    ("roles", "Roles", ()),
    ("permissions", "Permissions", ()),
    ("modules", "Modules", ()),
    ("campaigns", "Campaigns", ()),
    ("ads", "Ads", ()),
    ("reports", "Reports", ("export",)),
]

# System roles: (name, level, is_super, description, granted permission names).
_DEFAULT_ROLES: list[tuple[str, int, bool, str, list[str]]] = [
    ("SuperAdmin", 10, True, "Unrestricted access to every module", []),
    (
        "Admin",
        8,
        False,
        "Manages users, roles, and all business data",
        [f"{m}_{a}" for m, _, extra in _DEFAULT_MODULES for a in (*_CRUD, *extra)],
    ),
    (
        "Manager",
        5,
        False,
        "Manages campaigns, ads, and reports; can view users",
        ["users_read"] + [f"{m}_{a}" for m in ("campaigns", "ads", "reports") for a in _CRUD] + ["reports_export"],
    ),
    (
        "Advertiser",
        3,
        False,
        "Runs own campaigns and ads; reads and exports reports",
        [
            "campaigns_read",
            "campaigns_create",
            "campaigns_update",
            "ads_read",
            "ads_create",
            "ads_update",
            "reports_read",
            "reports_export",
        ],
    ),
    (
        "Viewer",
        1,
        False,
        "Read-only access to campaigns, ads, and reports",
        ["campaigns_read", "ads_read", "reports_read"],
    ),
]


def upgrade() -> None:
    """Create all tables and seed default modules, permissions, and system roles."""

    # -- Users --
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(150), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # -- Modules --
    op.create_table(
        "modules",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("display_name", sa.String(150), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_modules_name", "modules", ["name"], unique=True)

    # -- Permissions --
    op.create_table(
        "permissions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("module_id", sa.BigInteger(), sa.ForeignKey("modules.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(100), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("display_name", sa.String(150), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_permissions_name", "permissions", ["name"], unique=True)
    op.create_index("ix_permissions_category", "permissions", ["category"])

    # -- Roles --
    op.create_table(
        "roles",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_super", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_roles_name", "roles", ["name"], unique=True)

    # -- Role-permission grants --
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.BigInteger(), sa.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "permission_id", sa.BigInteger(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("granted_by", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("role_id", "permission_id"),
    )

    # -- User-role assignments --
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role_id", sa.BigInteger(), sa.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("assigned_by", sa.BigInteger(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("user_id", "role_id"),
    )
    op.create_index("ix_user_roles_active_expires", "user_roles", ["is_active", "expires_at"])

    # -- Permission audit log (no foreign keys: entries outlive their subjects) --
    op.create_table(
        "permission_audit_log",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("role_id", sa.BigInteger(), nullable=True),
        sa.Column("permission_id", sa.BigInteger(), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("performed_by", sa.BigInteger(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_permission_audit_log_user_id", "permission_audit_log", ["user_id"])
    op.create_index("ix_permission_audit_log_role_id", "permission_audit_log", ["role_id"])
    op.create_index("ix_permission_audit_log_created_at", "permission_audit_log", ["created_at"])
    op.create_index("ix_permission_audit_log_action_created", "permission_audit_log", ["action", "created_at"])

    # -- Application logs --
    op.create_table(
        "logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("service", sa.String(50), nullable=False),
        sa.Column("level", sa.Enum("debug", "info", "warning", "error", name="loglevel"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("log_metadata", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_logs_timestamp", "logs", ["timestamp"])
    op.create_index("ix_logs_service", "logs", ["service"])
    op.create_index("ix_logs_level", "logs", ["level"])
    op.create_index("ix_logs_service_level", "logs", ["service", "level"])
    op.create_index("ix_logs_timestamp_service", "logs", ["timestamp", "service"])

    _seed()


def _seed() -> None:
    modules_table = sa.table(
        "modules",
        sa.column("id", sa.BigInteger),
        sa.column("name", sa.String),
        sa.column("display_name", sa.String),
    )
    op.bulk_insert(
        modules_table,
        [{"id": i + 1, "name": name, "display_name": label} for i, (name, label, _) in enumerate(_DEFAULT_MODULES)],
    )

    permissions_table = sa.table(
        "permissions",
        sa.column("id", sa.BigInteger),
        sa.column("name", sa.String),
        sa.column("module_id", sa.BigInteger),
        sa.column("action", sa.String),
        sa.column("category", sa.String),
        sa.column("display_name", sa.String),
    )
    permission_rows: list[dict[str, object]] = []
    for module_idx, (module, label, extra) in enumerate(_DEFAULT_MODULES):
        for action in (*_CRUD, *extra):
            permission_rows.append(
                {
                    "id": len(permission_rows) + 1,
                    "name": f"{module}_{action}",
                    "module_id": module_idx + 1,
                    "action": action,
                    "category": module,
                    "display_name": f"{action.title()} {label}",
                }
            )
    op.bulk_insert(permissions_table, permission_rows)

    roles_table = sa.table(
        "roles",
        sa.column("id", sa.BigInteger),
        sa.column("name", sa.String),
        sa.column("level", sa.Integer),
        sa.column("is_super", sa.Boolean),
        sa.column("is_system", sa.Boolean),
        sa.column("description", sa.Text),
    )
    op.bulk_insert(
        roles_table,
        [
            {"id": i + 1, "name": name, "level": level, "is_super": is_super, "is_system": True, "description": desc}
            for i, (name, level, is_super, desc, _perms) in enumerate(_DEFAULT_ROLES)
        ],
    )

    # Build a name -> id lookup from the seeded permissions.
    perm_id_by_name = {row["name"]: row["id"] for row in permission_rows}
    rp_table = sa.table(
        "role_permissions",
        sa.column("role_id", sa.BigInteger),
        sa.column("permission_id", sa.BigInteger),
    )
    links: list[dict[str, object]] = []
    for role_idx, (_name, _level, _super, _desc, perm_names) in enumerate(_DEFAULT_ROLES):
        for perm_name in perm_names:
            links.append({"role_id": role_idx + 1, "permission_id": perm_id_by_name[perm_name]})
    op.bulk_insert(rp_table, links)

    # Seeded rows carry explicit ids; move the sequences past them.
    if op.get_bind().dialect.name == "postgresql":
        for table in ("modules", "permissions", "roles"):
            op.execute(f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), (SELECT MAX(id) FROM {table}))")


def downgrade() -> None:
    """Drop all tables (dependents first for FK ordering)."""
    op.drop_table("logs")
    sa.Enum(name="loglevel").drop(op.get_bind(), checkfirst=True)
    op.drop_table("permission_audit_log")
    op.drop_table("user_roles")
    op.drop_table("role_permissions")
    op.drop_table("roles")
    op.drop_table("permissions")
    op.drop_table("modules")
    op.drop_table("users")
