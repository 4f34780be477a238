"""create upload reconciliation tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "markets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_markets_name", "markets", ["name"], unique=False)

    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("market_id", sa.Integer(), nullable=False),
        sa.Column("store_code", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["market_id"], ["markets.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_stores_market_id", "stores", ["market_id"], unique=False)
    op.create_index("ix_stores_name", "stores", ["name"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("external_user_id", sa.String(length=100), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_user_id"),
    )
    op.create_index("ix_users_role", "users", ["role"], unique=False)
    op.create_index("ix_users_name", "users", ["first_name", "last_name"], unique=False)

    op.create_table(
        "advisor_mappings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("spreadsheet_name", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("spreadsheet_name"),
    )
    op.create_index("ix_advisor_mappings_user_id", "advisor_mappings", ["user_id"], unique=False)
    op.create_index("ix_advisor_mappings_is_active", "advisor_mappings", ["is_active"], unique=False)

    op.create_table(
        "user_store_assignments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "store_id", name="uq_user_store_assignments_user_store"),
    )

    op.create_table(
        "user_market_assignments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("market_id", sa.Integer(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["market_id"], ["markets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "market_id", name="uq_user_market_assignments_user_market"),
    )

    op.create_table(
        "field_mapping_rules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("file_kind", sa.String(length=32), nullable=False),
        sa.Column("market_id", sa.Integer(), nullable=True),
        sa.Column("spreadsheet_header", sa.String(length=255), nullable=False),
        sa.Column("canonical_field", sa.String(length=100), nullable=False),
        sa.Column("value_type", sa.String(length=32), nullable=False, comment="number, integer, percentage, text"),
        sa.Column("is_percentage", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "file_kind",
            "market_id",
            "canonical_field",
            name="uq_field_mapping_rules_kind_market_field",
        ),
    )
    op.create_index(
        "ix_field_mapping_rules_kind_market",
        "field_mapping_rules",
        ["file_kind", "market_id"],
        unique=False,
    )

    op.create_table(
        "upload_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("filename", sa.String(length=512), nullable=False),
        sa.Column("file_type", sa.String(length=32), nullable=False, comment="services, operations"),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("uploaded_by", sa.Integer(), nullable=True),
        sa.Column("market_id", sa.Integer(), nullable=True, comment="Market id parsed from the filename"),
        sa.Column("discovered_markets", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("discovered_stores", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("discovered_advisors", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "raw_data",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Parsed workbook rows replayed at confirmation time",
        ),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_upload_sessions_status", "upload_sessions", ["status"], unique=False)
    op.create_index("ix_upload_sessions_created_at", "upload_sessions", ["created_at"], unique=False)
    op.create_index(
        "ix_upload_sessions_file_type_status",
        "upload_sessions",
        ["file_type", "status"],
        unique=False,
    )

    op.create_table(
        "performance_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("upload_date", sa.Date(), nullable=False),
        sa.Column("data_type", sa.String(length=32), nullable=False, comment="services, operations"),
        sa.Column("market_id", sa.Integer(), nullable=True),
        sa.Column("store_id", sa.Integer(), nullable=True),
        sa.Column("advisor_user_id", sa.Integer(), nullable=True),
        sa.Column("upload_session_id", sa.Uuid(), nullable=True),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["market_id"], ["markets.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["advisor_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["upload_session_id"], ["upload_sessions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_performance_records_upload_date", "performance_records", ["upload_date"], unique=False)
    op.create_index(
        "ix_performance_records_store_date",
        "performance_records",
        ["store_id", "upload_date"],
        unique=False,
    )
    op.create_index(
        "ix_performance_records_advisor_user_id",
        "performance_records",
        ["advisor_user_id"],
        unique=False,
    )
    op.create_index(
        "ix_performance_records_upload_session_id",
        "performance_records",
        ["upload_session_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_performance_records_upload_session_id", table_name="performance_records")
    op.drop_index("ix_performance_records_advisor_user_id", table_name="performance_records")
    op.drop_index("ix_performance_records_store_date", table_name="performance_records")
    op.drop_index("ix_performance_records_upload_date", table_name="performance_records")
    op.drop_table("performance_records")

    op.drop_index("ix_upload_sessions_file_type_status", table_name="upload_sessions")
    op.drop_index("ix_upload_sessions_created_at", table_name="upload_sessions")
    op.drop_index("ix_upload_sessions_status", table_name="upload_sessions")
    op.drop_table("upload_sessions")

    op.drop_index("ix_field_mapping_rules_kind_market", table_name="field_mapping_rules")
    op.drop_table("field_mapping_rules")

    op.drop_table("user_market_assignments")
    op.drop_table("user_store_assignments")

    op.drop_index("ix_advisor_mappings_is_active", table_name="advisor_mappings")
    op.drop_index("ix_advisor_mappings_user_id", table_name="advisor_mappings")
    op.drop_table("advisor_mappings")

    op.drop_index("ix_users_name", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")

    op.drop_index("ix_stores_name", table_name="stores")
    op.drop_index("ix_stores_market_id", table_name="stores")
    op.drop_table("stores")

    op.drop_index("ix_markets_name", table_name="markets")
    op.drop_table("markets")
