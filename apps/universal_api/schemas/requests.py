"""Request schemas. organization_id/tenant_id are never accepted in payload; tenant comes from auth context.

Required business fields are Optional here on purpose: presence is checked by the record builder so
that every missing field is reported in one MissingRequiredField instead of the first pydantic error.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

EntityStatus = Literal["active", "inactive", "draft", "archived", "deleted"]
SmartCodeStatus = Literal["draft", "active", "production"]


class FieldCreate(BaseModel):
    """Create one dynamic field on an entity. Value goes in `value` or the field_value_* column matching field_type."""

    model_config = ConfigDict(extra="forbid")

    field_name: str | None = None
    field_type: str | None = None
    smart_code: str | None = None
    value: Any = None
    field_value_text: str | None = None
    field_value_number: float | None = None
    field_value_boolean: bool | None = None
    field_value_date: datetime | None = None
    field_value_json: Any = None
    field_value_file_url: str | None = None
    field_order: int | None = None
    is_required: bool | None = None
    is_searchable: bool | None = None
    is_system_field: bool | None = None
    smart_code_status: SmartCodeStatus | None = None
    validation_rules: dict[str, Any] | None = None
    ai_confidence: float | None = Field(None, ge=0.0, le=1.0)
    ai_insights: dict[str, Any] | None = None
    ai_enhanced_value: str | None = None


class EntityCreate(BaseModel):
    """Create one core entity."""

    model_config = ConfigDict(extra="forbid")

    entity_type: str | None = None
    entity_name: str | None = None
    smart_code: str | None = None
    entity_code: str | None = None
    entity_description: str | None = None
    status: EntityStatus | None = None
    smart_code_status: SmartCodeStatus | None = None
    parent_entity_id: str | None = None
    metadata: dict[str, Any] | None = None
    business_rules: dict[str, Any] | None = None
    tags: list[str] | None = None
    ai_confidence: float | None = Field(None, ge=0.0, le=1.0)
    ai_insights: dict[str, Any] | None = None
    ai_classification: str | None = None
    validation_rules: dict[str, Any] | None = Field(
        None, description="Per-column rules, e.g. {'entity_code': {'pattern': '^C-\\\\d+$'}}"
    )
    fields: list[FieldCreate] | None = Field(
        None, max_length=1000, description="Dynamic fields created with the entity in the same transaction"
    )


class EntityUpdate(BaseModel):
    """Patch an entity. `version` is the version the caller last read (optimistic concurrency)."""

    model_config = ConfigDict(extra="forbid")

    version: int = Field(..., ge=1)
    entity_type: str | None = None
    entity_name: str | None = None
    smart_code: str | None = None
    entity_code: str | None = None
    entity_description: str | None = None
    status: EntityStatus | None = None
    smart_code_status: SmartCodeStatus | None = None
    parent_entity_id: str | None = None
    metadata: dict[str, Any] | None = None
    business_rules: dict[str, Any] | None = None
    tags: list[str] | None = None
    ai_confidence: float | None = Field(None, ge=0.0, le=1.0)
    ai_insights: dict[str, Any] | None = None
    ai_classification: str | None = None
    validation_rules: dict[str, Any] | None = None
    fields: list[FieldCreate] | None = Field(
        None, max_length=1000, description="Upsert by field_name: existing fields are patched, new names are created"
    )
    remove_fields: list[str] | None = Field(None, description="field_name values to delete")


class EntityDelete(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: int = Field(..., ge=1)
    hard: bool = False


class BulkEntityCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    entities: list[EntityCreate] = Field(..., max_length=1000)


class FieldUpdate(BaseModel):
    """Patch a dynamic field: replace value (optionally with a new field_type), reorder, toggle flags, replace rules."""

    model_config = ConfigDict(extra="forbid")

    version: int = Field(..., ge=1)
    field_type: str | None = None
    value: Any = None
    smart_code: str | None = None
    field_order: int | None = None
    is_required: bool | None = None
    is_searchable: bool | None = None
    is_system_field: bool | None = None
    smart_code_status: SmartCodeStatus | None = None
    validation_rules: dict[str, Any] | None = None
    ai_confidence: float | None = Field(None, ge=0.0, le=1.0)
    ai_insights: dict[str, Any] | None = None
    ai_enhanced_value: str | None = None


class VersionedRequest(BaseModel):
    """Body for operations that only need the expected version (revalidate, delete field)."""

    model_config = ConfigDict(extra="forbid")

    version: int = Field(..., ge=1)


class BulkFieldCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fields: list[FieldCreate] = Field(..., max_length=1000)


class QueryRequest(BaseModel):
    """Structured filter query. See services.query_translator for the predicate grammar."""

    model_config = ConfigDict(extra="forbid")

    filters: dict[str, Any] = Field(default_factory=dict)
    limit: int | None = Field(None, ge=1)
    offset: int = Field(0, ge=0)
    order_by: str | None = None
    include_fields: bool = False
