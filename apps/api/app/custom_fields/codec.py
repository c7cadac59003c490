"""Typed storage of custom field values.

A value row has five physical slots but a definition's ``field_type`` makes
exactly one of them meaningful. Inside the core a value is carried as one of
the ``*Slot`` variants below; the row columns and the external JSON shape
(``text_value``, ``number_value``, ``date_value``, ``boolean_value``,
``selected_option_ids``) are only touched at the edges.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from app.custom_fields.errors import InvalidArgumentError

if TYPE_CHECKING:
    from app.custom_fields.models import CustomFieldDefinition, CustomFieldValue
    from app.custom_fields.schemas import FieldValueWrite


logger = logging.getLogger("app.custom_fields.codec")


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    SELECT = "select"
    MULTI_SELECT = "multi-select"
    GENERAL_CODE = "general-code"


CHOICE_FIELD_TYPES = {FieldType.SELECT, FieldType.MULTI_SELECT, FieldType.GENERAL_CODE}


@dataclass(frozen=True, slots=True)
class TextSlot:
    value: str | None


@dataclass(frozen=True, slots=True)
class NumberSlot:
    value: Decimal | None


@dataclass(frozen=True, slots=True)
class DateSlot:
    value: date | None


@dataclass(frozen=True, slots=True)
class BooleanSlot:
    value: bool | None


@dataclass(frozen=True, slots=True)
class OptionSetSlot:
    option_ids: tuple[int, ...]

    @property
    def value(self) -> tuple[int, ...] | None:
        return self.option_ids or None


StoredValue = TextSlot | NumberSlot | DateSlot | BooleanSlot | OptionSetSlot

SLOT_BY_FIELD_TYPE: dict[FieldType, type[StoredValue]] = {
    FieldType.TEXT: TextSlot,
    FieldType.TEXTAREA: TextSlot,
    FieldType.NUMBER: NumberSlot,
    FieldType.SELECT: NumberSlot,
    FieldType.GENERAL_CODE: NumberSlot,
    FieldType.DATE: DateSlot,
    FieldType.BOOLEAN: BooleanSlot,
    FieldType.MULTI_SELECT: OptionSetSlot,
}


def slot_for(field_type: str) -> type[StoredValue]:
    try:
        return SLOT_BY_FIELD_TYPE[FieldType(field_type.lower())]
    except ValueError:
        raise InvalidArgumentError(f"unsupported field_type '{field_type}'") from None


def from_payload(field_type: str, payload: FieldValueWrite) -> StoredValue:
    slot = slot_for(field_type)
    if slot is TextSlot:
        return TextSlot(payload.text_value)
    if slot is NumberSlot:
        return NumberSlot(payload.number_value)
    if slot is DateSlot:
        return DateSlot(payload.date_value)
    if slot is BooleanSlot:
        return BooleanSlot(payload.boolean_value)
    return OptionSetSlot(tuple(payload.selected_option_ids or ()))


def write_slot(row: CustomFieldValue, stored: StoredValue) -> None:
    row.text_value = stored.value if isinstance(stored, TextSlot) else None
    row.number_value = stored.value if isinstance(stored, NumberSlot) else None
    row.date_value = stored.value if isinstance(stored, DateSlot) else None
    row.boolean_value = stored.value if isinstance(stored, BooleanSlot) else None
    row.selected_options = encode_option_ids(stored.option_ids) if isinstance(stored, OptionSetSlot) else None


def read_slot(field_type: str, row: CustomFieldValue) -> StoredValue:
    slot = slot_for(field_type)
    if slot is TextSlot:
        return TextSlot(row.text_value)
    if slot is NumberSlot:
        return NumberSlot(row.number_value)
    if slot is DateSlot:
        return DateSlot(row.date_value)
    if slot is BooleanSlot:
        return BooleanSlot(row.boolean_value)
    return OptionSetSlot(tuple(decode_option_ids(row.selected_options)))


def check_constraints(definition: CustomFieldDefinition, stored: StoredValue) -> None:
    """Raise InvalidArgumentError when ``stored`` breaks a definition constraint.

    A cleared value (``None``) always passes.
    """
    if stored.value is None:
        return

    if isinstance(stored, TextSlot):
        text = stored.value
        if definition.max_length is not None and len(text) > definition.max_length:
            raise InvalidArgumentError(f"{definition.name} exceeds max length {definition.max_length}")
        if definition.validation_pattern and re.fullmatch(definition.validation_pattern, text) is None:
            raise InvalidArgumentError(f"{definition.name} does not match the validation pattern")
        return

    if isinstance(stored, NumberSlot) and definition.field_type.lower() == FieldType.NUMBER.value:
        number = Decimal(stored.value)
        if definition.min_value is not None and number < definition.min_value:
            raise InvalidArgumentError(f"{definition.name} must be >= {definition.min_value}")
        if definition.max_value is not None and number > definition.max_value:
            raise InvalidArgumentError(f"{definition.name} must be <= {definition.max_value}")


def encode_option_ids(option_ids: tuple[int, ...] | list[int] | None) -> str | None:
    if not option_ids:
        return None
    return json.dumps([int(item) for item in option_ids])


def decode_option_ids(raw: str | None) -> list[int]:
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("selected_options.decode_failed", extra={"error": raw})
        return []
    if not isinstance(decoded, list) or any(isinstance(item, bool) or not isinstance(item, int) for item in decoded):
        logger.debug("selected_options.decode_failed", extra={"error": raw})
        return []
    return decoded


def encode_default_value(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=str)


def decode_default_value(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("default_value.decode_failed", extra={"error": raw})
        return raw
