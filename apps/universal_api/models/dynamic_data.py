"""core_dynamic_data table. Named, typed attributes of an entity; value lives in exactly one field_value_* column."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from apps.universal_api.models.base import Base

# Exactly one value column is non-null and it is the one named by field_type.
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


class DynamicData(Base):
    __tablename__ = "core_dynamic_data"
    __table_args__ = (
        UniqueConstraint("organization_id", "entity_id", "field_name", name="uq_core_dynamic_data_org_entity_field"),
        Index("ix_core_dynamic_data_org_id", "organization_id", "id"),
        Index("ix_core_dynamic_data_org_entity", "organization_id", "entity_id", "field_order"),
        Index("ix_core_dynamic_data_org_field_name", "organization_id", "field_name"),
        CheckConstraint(POLYMORPHIC_VALUE_CHECK, name="ck_core_dynamic_data_one_value"),
        CheckConstraint("version >= 1", name="ck_core_dynamic_data_version_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(255), nullable=False)  # indexed via __table_args__
    entity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("core_entities.id", ondelete="CASCADE"), nullable=False
    )
    field_name: Mapped[str] = mapped_column(String(255), nullable=False)
    field_type: Mapped[str] = mapped_column(String(16), nullable=False)
    smart_code: Mapped[str] = mapped_column(String(255), nullable=False)
    smart_code_status: Mapped[str] = mapped_column(String(32), nullable=False, server_default=text("'active'"))
    field_value_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    field_value_number: Mapped[float | None] = mapped_column(Float, nullable=True)
    field_value_boolean: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    field_value_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    field_value_json: Mapped[Any | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    field_value_file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    field_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    is_searchable: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    is_system_field: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    ai_insights: Mapped[dict | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    ai_enhanced_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    validation_rules: Mapped[dict | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    validation_status: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'pending'"))
    validation_messages: Mapped[list[str] | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
