"""create custom field tables

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610180001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("modified_by", sa.Integer(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "custom_field_group",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_type", "name", name="uq_custom_field_group_entity_name"),
    )
    op.create_index(
        "ix_custom_field_group_entity_active",
        "custom_field_group",
        ["entity_type", "is_active"],
        unique=False,
    )

    op.create_table(
        "custom_field_definition",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("field_type", sa.String(length=20), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("default_value", sa.Text(), nullable=True),
        sa.Column("min_value", sa.Numeric(18, 6), nullable=True),
        sa.Column("max_value", sa.Numeric(18, 6), nullable=True),
        sa.Column("max_length", sa.Integer(), nullable=True),
        sa.Column("validation_pattern", sa.String(length=500), nullable=True),
        sa.Column("general_code_type", sa.Integer(), nullable=True),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.Column("group_name", sa.String(length=50), nullable=True),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["group_id"], ["custom_field_group.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_type", "name", name="uq_custom_field_definition_entity_name"),
    )
    op.create_index(
        "ix_custom_field_definition_entity_active",
        "custom_field_definition",
        ["entity_type", "is_active"],
        unique=False,
    )
    op.create_index("ix_custom_field_definition_group", "custom_field_definition", ["group_id"], unique=False)

    op.create_table(
        "custom_field_option",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("field_definition_id", sa.Integer(), nullable=False),
        sa.Column("value", sa.String(length=100), nullable=False),
        sa.Column("display_text", sa.String(length=100), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["field_definition_id"], ["custom_field_definition.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_custom_field_option_field_active",
        "custom_field_option",
        ["field_definition_id", "is_active"],
        unique=False,
    )

    op.create_table(
        "custom_field_value",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("field_definition_id", sa.Integer(), nullable=False),
        sa.Column("text_value", sa.Text(), nullable=True),
        sa.Column("number_value", sa.Numeric(18, 6), nullable=True),
        sa.Column("date_value", sa.Date(), nullable=True),
        sa.Column("boolean_value", sa.Boolean(), nullable=True),
        sa.Column("selected_options", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["field_definition_id"], ["custom_field_definition.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "entity_type",
            "entity_id",
            "field_definition_id",
            name="uq_custom_field_value_natural_key",
        ),
    )
    op.create_index("ix_custom_field_value_entity", "custom_field_value", ["entity_type", "entity_id"], unique=False)
    op.create_index("ix_custom_field_value_field", "custom_field_value", ["field_definition_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_custom_field_value_field", table_name="custom_field_value")
    op.drop_index("ix_custom_field_value_entity", table_name="custom_field_value")
    op.drop_table("custom_field_value")
    op.drop_index("ix_custom_field_option_field_active", table_name="custom_field_option")
    op.drop_table("custom_field_option")
    op.drop_index("ix_custom_field_definition_group", table_name="custom_field_definition")
    op.drop_index("ix_custom_field_definition_entity_active", table_name="custom_field_definition")
    op.drop_table("custom_field_definition")
    op.drop_index("ix_custom_field_group_entity_active", table_name="custom_field_group")
    op.drop_table("custom_field_group")
