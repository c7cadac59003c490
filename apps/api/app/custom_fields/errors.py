from __future__ import annotations


class CustomFieldError(Exception):
    """Base class for failures raised by the custom field core."""

    code = "custom_field_error"


class NotFoundError(CustomFieldError):
    """A referenced group, definition, option or parent record does not exist."""

    code = "not_found"

    def __init__(self, resource: str, record_id: object) -> None:
        self.resource = resource
        self.record_id = record_id
        super().__init__(f"{resource} with id {record_id} not found")


class ConflictError(CustomFieldError):
    """A uniqueness rule within a scope would be violated."""

    code = "conflict"


class InvalidArgumentError(CustomFieldError):
    """An argument is missing, empty, or violates a field constraint."""

    code = "invalid_argument"
