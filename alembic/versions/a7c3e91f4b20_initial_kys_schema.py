"""initial kys schema

Revision ID: a7c3e91f4b20
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration:
1. Creates the users table with portal roles and reviewer jurisdiction
2. Creates the school_applications table holding wizard data and the
   three approval stage records
3. Creates the audit_logs table

Enum types are created first with checkfirst so the migration can be
re-applied on a database where they already exist.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c3e91f4b20"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


user_role_enum = postgresql.ENUM(
    "global-admin",
    "country-admin",
    "state-admin",
    "lga-admin",
    "school-admin",
    name="user_role",
    create_type=False,
)

application_status_enum = postgresql.ENUM(
    "draft",
    "submitted",
    "country-review",
    "state-review",
    "local-verification",
    "approved",
    "rejected",
    name="kys_application_status",
    create_type=False,
)

audit_severity_enum = postgresql.ENUM(
    "low",
    "medium",
    "high",
    "critical",
    name="audit_severity",
    create_type=False,
)

audit_category_enum = postgresql.ENUM(
    "auth",
    "admin",
    "data",
    "system",
    name="audit_category",
    create_type=False,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create users, school_applications and audit_logs."""
    bind = op.get_bind()
    for enum_type in (
        user_role_enum,
        application_status_enum,
        audit_severity_enum,
        audit_category_enum,
    ):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("role", user_role_enum, nullable=False, server_default="school-admin"),
        # Jurisdiction
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=100), nullable=True),
        sa.Column("lga", sa.String(length=100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "school_applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        # Step 1 - basic information
        sa.Column("school_name", sa.String(length=200), nullable=True),
        sa.Column("established_year", sa.Integer(), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=100), nullable=True),
        sa.Column("location", sa.String(length=200), nullable=True),
        # Step 2 - contact & leadership
        sa.Column("principal_name", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("student_count", sa.Integer(), nullable=True),
        sa.Column("teacher_count", sa.Integer(), nullable=True),
        # Step 3 - academic information
        sa.Column("curriculum", sa.Text(), nullable=True),
        sa.Column("facilities", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        # Step 4 - documents
        sa.Column("documents", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        # Pipeline
        sa.Column("status", application_status_enum, nullable=False, server_default="draft"),
        sa.Column("current_step", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("country_approval", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("state_approval", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("local_verification", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("submitted_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_school_applications_status", "school_applications", ["status"], unique=False
    )
    op.create_index(
        "ix_school_applications_country_state",
        "school_applications",
        ["country", "state"],
        unique=False,
    )
    op.create_index(
        "ix_school_applications_created_by", "school_applications", ["created_by"], unique=False
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_role", sa.String(length=50), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("resource", sa.String(length=100), nullable=False),
        sa.Column("resource_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("extra", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("severity", audit_severity_enum, nullable=False, server_default="low"),
        sa.Column("category", audit_category_enum, nullable=False, server_default="data"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_audit_logs_resource", "audit_logs", ["resource", "resource_id"], unique=False
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"], unique=False)


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_school_applications_created_by", table_name="school_applications")
    op.drop_index("ix_school_applications_country_state", table_name="school_applications")
    op.drop_index("ix_school_applications_status", table_name="school_applications")
    op.drop_table("school_applications")

    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        audit_category_enum,
        audit_severity_enum,
        application_status_enum,
        user_role_enum,
    ):
        enum_type.drop(bind, checkfirst=True)
