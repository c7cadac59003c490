from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


FieldTypeName = Literal["text", "textarea", "number", "date", "boolean", "select", "multi-select", "general-code"]
CODE_SAFE_PATTERN = r"^[a-zA-Z0-9_]+$"


class FieldOptionWrite(BaseModel):
    id: int = Field(default=0, ge=0)
    value: str = Field(min_length=1, max_length=100, pattern=CODE_SAFE_PATTERN)
    display_text: str = Field(min_length=1, max_length=100)
    sort_order: int = 0
    is_active: bool = True


class FieldOptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    field_definition_id: int
    value: str
    display_text: str
    sort_order: int
    is_active: bool


class FieldDefinitionWrite(BaseModel):
    id: int = Field(default=0, ge=0)
    entity_type: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=50, pattern=CODE_SAFE_PATTERN)
    display_name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    field_type: FieldTypeName
    is_required: bool = False
    is_active: bool = True
    sort_order: int = 0
    default_value: Any = None
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    max_length: int | None = Field(default=None, ge=0)
    validation_pattern: str | None = Field(default=None, max_length=500)
    general_code_type: int | None = None
    group_id: int | None = None
    group_name: str | None = Field(default="General", max_length=50)
    is_visible: bool = True
    options: list[FieldOptionWrite] = Field(default_factory=list)


class FieldDefinitionRead(BaseModel):
    id: int
    entity_type: str
    name: str
    display_name: str
    description: str | None
    field_type: str
    is_required: bool
    is_active: bool
    sort_order: int
    default_value: Any
    min_value: float | None
    max_value: float | None
    max_length: int | None
    validation_pattern: str | None
    general_code_type: int | None
    group_id: int | None
    group_name: str
    is_visible: bool
    options: list[FieldOptionRead] = Field(default_factory=list)


class FieldGroupWrite(BaseModel):
    id: int = Field(default=0, ge=0)
    entity_type: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=50, pattern=CODE_SAFE_PATTERN)
    display_name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    sort_order: int = 0
    is_active: bool = True


class FieldValueWrite(BaseModel):
    id: int = Field(default=0, ge=0)
    entity_id: int
    entity_type: str = Field(min_length=1, max_length=50)
    field_definition_id: int
    text_value: str | None = None
    number_value: Decimal | None = None
    date_value: date | None = None
    boolean_value: bool | None = None
    selected_option_ids: list[int] | None = Field(default_factory=list)


class FieldValueRead(BaseModel):
    id: int
    entity_id: int
    entity_type: str
    field_definition_id: int
    text_value: str | None = None
    number_value: float | None = None
    date_value: date | None = None
    boolean_value: bool | None = None
    selected_option_ids: list[int] = Field(default_factory=list)
    modified_at: datetime | None = None


class FieldWithValueRead(BaseModel):
    definition: FieldDefinitionRead
    value: FieldValueRead | None


class FieldGroupRead(BaseModel):
    id: int
    entity_type: str
    name: str
    display_name: str
    description: str | None
    sort_order: int
    is_active: bool
    fields: list[FieldDefinitionRead] = Field(default_factory=list)
    fields_with_values: list[FieldWithValueRead] = Field(default_factory=list)
