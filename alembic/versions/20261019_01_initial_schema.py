"""initial schema: kordas, access control, media and audit logs

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return table_name in set(inspector.get_table_names())


def _index_exists(table_name: str, index_name: str) -> bool:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if table_name not in set(inspector.get_table_names()):
        return False
    return index_name in {idx["name"] for idx in inspector.get_indexes(table_name)}


def _create_index(name: str, table: str, columns: list[str], unique: bool = False) -> None:
    if not _index_exists(table, name):
        op.create_index(name, table, columns, unique=unique)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    if not _table_exists("kordas"):
        op.create_table(
            "kordas",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("code", sa.String(length=20), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("city", sa.String(length=100), nullable=True),
            sa.Column("province", sa.String(length=100), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("ix_kordas_code", "kordas", ["code"], unique=True)

    if not _table_exists("permissions"):
        op.create_table(
            "permissions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("display_name", sa.String(length=100), nullable=False),
            sa.Column("module", sa.String(length=50), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("ix_permissions_name", "permissions", ["name"], unique=True)
    _create_index("ix_permissions_module", "permissions", ["module"])

    if not _table_exists("roles"):
        op.create_table(
            "roles",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("display_name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("ix_roles_name", "roles", ["name"], unique=True)

    if not _table_exists("role_permissions"):
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.String(length=36), nullable=False),
            sa.Column("permission_id", sa.String(length=36), nullable=False),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("role_id", "permission_id"),
        )

    if not _table_exists("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=255), nullable=False),
            sa.Column("phone", sa.String(length=20), nullable=True),
            sa.Column("password_hash", sa.Text(), nullable=True),
            sa.Column("role_id", sa.String(length=36), nullable=False),
            sa.Column("korda_id", sa.String(length=36), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"]),
            sa.ForeignKeyConstraint(["korda_id"], ["kordas.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("ix_users_email", "users", ["email"], unique=True)
    _create_index("ix_users_role_id", "users", ["role_id"])
    _create_index("ix_users_korda_id", "users", ["korda_id"])

    if not _table_exists("media_categories"):
        op.create_table(
            "media_categories",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("ix_media_categories_slug", "media_categories", ["slug"], unique=True)

    if not _table_exists("media_contents"):
        op.create_table(
            "media_contents",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=False),
            sa.Column("file_url", sa.Text(), nullable=True),
            sa.Column("file_size_bytes", sa.Integer(), nullable=True),
            sa.Column("thumbnail_url", sa.Text(), nullable=True),
            sa.Column("category_id", sa.String(length=36), nullable=True),
            sa.Column("uploaded_by", sa.String(length=36), nullable=False),
            sa.Column("korda_id", sa.String(length=36), nullable=True),
            sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["category_id"], ["media_categories.id"]),
            sa.ForeignKeyConstraint(["uploaded_by"], ["users.id"]),
            sa.ForeignKeyConstraint(["korda_id"], ["kordas.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("media_contents_type_idx", "media_contents", ["type"])
    _create_index("media_contents_korda_id_idx", "media_contents", ["korda_id"])
    _create_index("media_contents_uploaded_by_idx", "media_contents", ["uploaded_by"])
    _create_index("media_contents_is_archived_idx", "media_contents", ["is_archived"])

    if not _table_exists("audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=True),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("entity_table", sa.String(length=100), nullable=False),
            sa.Column("entity_id", sa.String(length=100), nullable=True),
            sa.Column("previous_state", JSON_TYPE, nullable=True),
            sa.Column("new_state", JSON_TYPE, nullable=True),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("user_agent", sa.Text(), nullable=True),
            sa.Column("metadata", JSON_TYPE, nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    _create_index("ix_audit_logs_action", "audit_logs", ["action"])
    _create_index("ix_audit_logs_entity_table", "audit_logs", ["entity_table"])
    _create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("media_contents")
    op.drop_table("media_categories")
    op.drop_table("users")
    op.drop_table("role_permissions")
    op.drop_table("roles")
    op.drop_table("permissions")
    op.drop_table("kordas")
