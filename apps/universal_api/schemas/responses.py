"""Response schemas. Contract-frozen: extra fields forbidden."""

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

ValidationStatus = Literal["valid", "invalid", "pending"]


class ValidationReport(BaseModel):
    """Outcome of declared-rule evaluation. Never raised; stored on the record."""

    model_config = ConfigDict(extra="forbid")

    status: ValidationStatus = "pending"
    messages: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class FieldRead(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: str
    organization_id: str
    entity_id: str
    field_name: str
    field_type: str
    smart_code: str
    smart_code_status: str
    field_value_text: str | None = None
    field_value_number: float | None = None
    field_value_boolean: bool | None = None
    field_value_date: datetime | None = None
    field_value_json: Any = None
    field_value_file_url: str | None = None
    field_order: int
    is_required: bool
    is_searchable: bool
    is_system_field: bool
    ai_confidence: float | None = None
    ai_insights: dict[str, Any] | None = None
    ai_enhanced_value: str | None = None
    validation_rules: dict[str, Any] | None = None
    validation_status: ValidationStatus
    validation_messages: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    created_by: str | None = None
    updated_by: str | None = None
    version: int

    @field_validator("validation_messages", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v


class EntityRead(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: str
    organization_id: str
    entity_type: str
    entity_name: str
    entity_code: str | None = None
    entity_description: str | None = None
    status: str
    smart_code: str
    smart_code_status: str
    parent_entity_id: str | None = None
    metadata: dict[str, Any] | None = Field(None, validation_alias=AliasChoices("metadata_", "metadata"))
    business_rules: dict[str, Any] | None = None
    tags: list[str] = Field(default_factory=list)
    ai_confidence: float | None = None
    ai_insights: dict[str, Any] | None = None
    ai_classification: str | None = None
    validation_rules: dict[str, Any] | None = None
    validation_status: ValidationStatus
    validation_messages: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    created_by: str | None = None
    updated_by: str | None = None
    version: int
    # Dynamic fields, set only when requested with the entity
    fields: list[FieldRead] | None = None

    @field_validator("tags", "validation_messages", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v


class BulkError(BaseModel):
    """Failure of one item in a bulk create. index = position in the request list."""

    model_config = ConfigDict(extra="forbid")

    index: int
    error: str
    message: str
    fields: list[str] = Field(default_factory=list)


class BulkCreateResult(BaseModel):
    """Bulk creates run item by item; partial success is reported, never rolled back."""

    model_config = ConfigDict(extra="forbid")

    created: list[EntityRead | FieldRead] = Field(default_factory=list)
    errors: list[BulkError] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    deleted: bool = True
    hard: bool = False
    version: int | None = None
