"""Base schema: core_entities, core_dynamic_data (polymorphic value columns, one-value CHECK).

Revision ID: 000_base
Revises:
Create Date: 2026-10-17 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

revision: str = "000_base"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Keep in sync with apps.universal_api.models.dynamic_data.POLYMORPHIC_VALUE_CHECK
POLYMORPHIC_VALUE_CHECK = (
    "num_nonnulls(field_value_text, field_value_number, field_value_boolean, "
    "field_value_date, field_value_json, field_value_file_url) = 1 AND ("
    "(field_type = 'text' AND field_value_text IS NOT NULL) OR "
    "(field_type = 'number' AND field_value_number IS NOT NULL) OR "
    "(field_type = 'boolean' AND field_value_boolean IS NOT NULL) OR "
    "(field_type = 'date' AND field_value_date IS NOT NULL) OR "
    "(field_type = 'json' AND field_value_json IS NOT NULL) OR "
    "(field_type = 'file_url' AND field_value_file_url IS NOT NULL))"
)


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("validation_rules", JSONB(), nullable=True),
        sa.Column("validation_status", sa.String(16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("validation_messages", JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
    ]


def upgrade() -> None:
    # 1) core_entities (core_dynamic_data depends on it)
    op.create_table(
        "core_entities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(255), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=False),
        sa.Column("entity_name", sa.String(512), nullable=False),
        sa.Column("entity_code", sa.String(255), nullable=True),
        sa.Column("entity_description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default=sa.text("'active'")),
        sa.Column("smart_code", sa.String(255), nullable=False),
        sa.Column("smart_code_status", sa.String(32), nullable=False, server_default=sa.text("'active'")),
        sa.Column("parent_entity_id", sa.String(36), nullable=True),
        sa.Column("metadata", JSONB(), nullable=True),
        sa.Column("business_rules", JSONB(), nullable=True),
        sa.Column("tags", ARRAY(sa.Text()), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("ai_confidence", sa.Float(), nullable=True),
        sa.Column("ai_insights", JSONB(), nullable=True),
        sa.Column("ai_classification", sa.String(255), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint("version >= 1", name="ck_core_entities_version_positive"),
        sa.CheckConstraint(
            "ai_confidence IS NULL OR (ai_confidence >= 0 AND ai_confidence <= 1)",
            name="ck_core_entities_ai_confidence_range",
        ),
    )
    op.create_index("ix_core_entities_org_id", "core_entities", ["organization_id", "id"], if_not_exists=True)
    op.create_index("ix_core_entities_org_type", "core_entities", ["organization_id", "entity_type"], if_not_exists=True)
    op.create_index("ix_core_entities_org_code", "core_entities", ["organization_id", "entity_code"], if_not_exists=True)
    op.create_index("ix_core_entities_org_parent", "core_entities", ["organization_id", "parent_entity_id"], if_not_exists=True)
    op.create_index("ix_core_entities_tags", "core_entities", ["tags"], postgresql_using="gin", if_not_exists=True)
    op.create_index("ix_core_entities_metadata", "core_entities", ["metadata"], postgresql_using="gin", if_not_exists=True)

    # 2) core_dynamic_data
    op.create_table(
        "core_dynamic_data",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(255), nullable=False),
        sa.Column(
            "entity_id", sa.String(36), sa.ForeignKey("core_entities.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("field_name", sa.String(255), nullable=False),
        sa.Column("field_type", sa.String(16), nullable=False),
        sa.Column("smart_code", sa.String(255), nullable=False),
        sa.Column("smart_code_status", sa.String(32), nullable=False, server_default=sa.text("'active'")),
        sa.Column("field_value_text", sa.Text(), nullable=True),
        sa.Column("field_value_number", sa.Float(), nullable=True),
        sa.Column("field_value_boolean", sa.Boolean(), nullable=True),
        sa.Column("field_value_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("field_value_json", JSONB(), nullable=True),
        sa.Column("field_value_file_url", sa.Text(), nullable=True),
        sa.Column("field_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_searchable", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_system_field", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ai_confidence", sa.Float(), nullable=True),
        sa.Column("ai_insights", JSONB(), nullable=True),
        sa.Column("ai_enhanced_value", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint("organization_id", "entity_id", "field_name", name="uq_core_dynamic_data_org_entity_field"),
        sa.CheckConstraint(POLYMORPHIC_VALUE_CHECK, name="ck_core_dynamic_data_one_value"),
        sa.CheckConstraint("version >= 1", name="ck_core_dynamic_data_version_positive"),
    )
    op.create_index("ix_core_dynamic_data_org_id", "core_dynamic_data", ["organization_id", "id"], if_not_exists=True)
    op.create_index(
        "ix_core_dynamic_data_org_entity",
        "core_dynamic_data",
        ["organization_id", "entity_id", "field_order"],
        if_not_exists=True,
    )
    op.create_index(
        "ix_core_dynamic_data_org_field_name", "core_dynamic_data", ["organization_id", "field_name"], if_not_exists=True
    )


def downgrade() -> None:
    op.drop_index("ix_core_dynamic_data_org_field_name", table_name="core_dynamic_data")
    op.drop_index("ix_core_dynamic_data_org_entity", table_name="core_dynamic_data")
    op.drop_index("ix_core_dynamic_data_org_id", table_name="core_dynamic_data")
    op.drop_table("core_dynamic_data")
    op.drop_index("ix_core_entities_metadata", table_name="core_entities")
    op.drop_index("ix_core_entities_tags", table_name="core_entities")
    op.drop_index("ix_core_entities_org_parent", table_name="core_entities")
    op.drop_index("ix_core_entities_org_code", table_name="core_entities")
    op.drop_index("ix_core_entities_org_type", table_name="core_entities")
    op.drop_index("ix_core_entities_org_id", table_name="core_entities")
    op.drop_table("core_entities")
