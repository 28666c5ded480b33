"""core_entities table. One business object per row, scoped by organization_id; metadata/business_rules/ai_insights jsonb."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from apps.universal_api.models.base import Base


class Entity(Base):
    __tablename__ = "core_entities"
    __table_args__ = (
        Index("ix_core_entities_org_id", "organization_id", "id"),
        Index("ix_core_entities_org_type", "organization_id", "entity_type"),
        Index("ix_core_entities_org_code", "organization_id", "entity_code"),
        Index("ix_core_entities_org_parent", "organization_id", "parent_entity_id"),
        Index("ix_core_entities_tags", "tags", postgresql_using="gin"),
        Index("ix_core_entities_metadata", "metadata", postgresql_using="gin"),
        CheckConstraint("version >= 1", name="ck_core_entities_version_positive"),
        CheckConstraint(
            "ai_confidence IS NULL OR (ai_confidence >= 0 AND ai_confidence <= 1)",
            name="ck_core_entities_ai_confidence_range",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(255), nullable=False)  # indexed via __table_args__
    entity_type: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_name: Mapped[str] = mapped_column(String(512), nullable=False)
    entity_code: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, server_default=text("'active'"))
    smart_code: Mapped[str] = mapped_column(String(255), nullable=False)
    smart_code_status: Mapped[str] = mapped_column(String(32), nullable=False, server_default=text("'active'"))
    # Weak reference: same-tenant parent, checked on write (no FK so tenant scoping stays in one place)
    parent_entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB(none_as_null=True), nullable=True)
    business_rules: Mapped[dict | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    tags: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False, server_default=text("'{}'"))
    ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    ai_insights: Mapped[dict | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    ai_classification: Mapped[str | None] = mapped_column(String(255), nullable=True)
    validation_rules: Mapped[dict | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    validation_status: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'pending'"))
    validation_messages: Mapped[list[str] | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
