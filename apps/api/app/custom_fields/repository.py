from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any, Literal

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.custom_fields.codec import decode_option_ids
from app.custom_fields.errors import ConflictError
from app.custom_fields.models import CustomFieldDefinition, CustomFieldGroup, CustomFieldOption, CustomFieldValue


SORT_ORDER_STEP = 10

DeleteOutcome = Literal["removed", "archived"]


@contextmanager
def unit_of_work(session: Session, conflict_message: str) -> Iterator[None]:
    """Commit once when the block finishes; roll back everything on any error."""
    try:
        yield
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError(conflict_message) from exc
    except Exception:
        session.rollback()
        raise


class CustomFieldRepository:
    """Persistence primitives shared by the group, definition and option stores."""

    model: Any = None
    resource = ""

    def get(self, session: Session, record_id: int) -> Any | None:
        return session.get(self.model, record_id)

    def name_exists(self, session: Session, entity_type: str, name: str, exclude_id: int | None = None) -> bool:
        stmt = select(self.model.id).where(
            func.lower(self.model.entity_type) == entity_type.lower(),
            func.lower(self.model.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(self.model.id != exclude_id)
        return session.scalar(stmt.limit(1)) is not None

    def delete_or_archive(
        self,
        session: Session,
        row: Any,
        *,
        is_referenced: Callable[[], bool],
        actor_id: int,
    ) -> DeleteOutcome:
        if is_referenced():
            row.is_active = False
            row.stamp_modified(actor_id)
            return "archived"
        session.delete(row)
        return "removed"

    def reorder(self, session: Session, ordered_ids: Iterable[int], actor_id: int) -> int:
        ids = list(ordered_ids)
        rows = {row.id: row for row in session.scalars(select(self.model).where(self.model.id.in_(ids)))}
        touched = 0
        for index, record_id in enumerate(ids):
            row = rows.get(record_id)
            if row is None:
                continue
            row.sort_order = index * SORT_ORDER_STEP
            row.stamp_modified(actor_id)
            touched += 1
        return touched


class FieldGroupRepository(CustomFieldRepository):
    model = CustomFieldGroup
    resource = "custom_field.group"

    def has_definitions(self, session: Session, group_id: int) -> bool:
        stmt = select(CustomFieldDefinition.id).where(CustomFieldDefinition.group_id == group_id).limit(1)
        return session.scalar(stmt) is not None


class FieldDefinitionRepository(CustomFieldRepository):
    model = CustomFieldDefinition
    resource = "custom_field.definition"

    def has_values(self, session: Session, definition_id: int) -> bool:
        stmt = select(CustomFieldValue.id).where(CustomFieldValue.field_definition_id == definition_id).limit(1)
        return session.scalar(stmt) is not None


class FieldOptionRepository(CustomFieldRepository):
    model = CustomFieldOption
    resource = "custom_field.option"

    def is_referenced(self, session: Session, option: CustomFieldOption) -> bool:
        candidates = session.scalars(
            select(CustomFieldValue).where(
                CustomFieldValue.field_definition_id == option.field_definition_id,
                or_(CustomFieldValue.number_value == option.id, CustomFieldValue.selected_options.is_not(None)),
            )
        )
        for value in candidates:
            if value.number_value is not None and value.number_value == option.id:
                return True
            if option.id in decode_option_ids(value.selected_options):
                return True
        return False


class FieldValueRepository(CustomFieldRepository):
    model = CustomFieldValue
    resource = "custom_field.value"

    def find_by_natural_key(
        self,
        session: Session,
        entity_type: str,
        entity_id: int,
        field_definition_id: int,
    ) -> CustomFieldValue | None:
        return session.scalar(
            select(CustomFieldValue).where(
                func.lower(CustomFieldValue.entity_type) == entity_type.lower(),
                CustomFieldValue.entity_id == entity_id,
                CustomFieldValue.field_definition_id == field_definition_id,
            )
        )

    def list_for_entity(self, session: Session, entity_type: str, entity_id: int) -> list[CustomFieldValue]:
        return list(
            session.scalars(
                select(CustomFieldValue)
                .where(
                    func.lower(CustomFieldValue.entity_type) == entity_type.lower(),
                    CustomFieldValue.entity_id == entity_id,
                )
                .order_by(CustomFieldValue.id.asc())
            )
        )
