from app.custom_fields.errors import ConflictError, CustomFieldError, InvalidArgumentError, NotFoundError
from app.custom_fields.models import CustomFieldDefinition, CustomFieldGroup, CustomFieldOption, CustomFieldValue
from app.custom_fields.service import (
    FieldDefinitionService,
    FieldGroupService,
    FieldOptionService,
    FieldValueService,
    field_definition_service,
    field_group_service,
    field_option_service,
    field_value_service,
)

__all__ = [
    "CustomFieldError",
    "NotFoundError",
    "ConflictError",
    "InvalidArgumentError",
    "CustomFieldGroup",
    "CustomFieldDefinition",
    "CustomFieldOption",
    "CustomFieldValue",
    "FieldGroupService",
    "FieldDefinitionService",
    "FieldOptionService",
    "FieldValueService",
    "field_group_service",
    "field_definition_service",
    "field_option_service",
    "field_value_service",
]
