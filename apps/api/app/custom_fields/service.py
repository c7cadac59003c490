from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import Session

from app.custom_fields.codec import (
    BooleanSlot,
    DateSlot,
    NumberSlot,
    OptionSetSlot,
    StoredValue,
    TextSlot,
    check_constraints,
    decode_default_value,
    encode_default_value,
    from_payload,
    read_slot,
    slot_for,
    write_slot,
)
from app.custom_fields.errors import ConflictError, InvalidArgumentError, NotFoundError
from app.custom_fields.grouping import GENERAL_GROUP_NAME, GroupBucket, bucket_by_group
from app.custom_fields.models import CustomFieldDefinition, CustomFieldGroup, CustomFieldOption, CustomFieldValue
from app.custom_fields.repository import (
    DeleteOutcome,
    FieldDefinitionRepository,
    FieldGroupRepository,
    FieldOptionRepository,
    FieldValueRepository,
    unit_of_work,
)
from app.custom_fields.schemas import (
    FieldDefinitionRead,
    FieldDefinitionWrite,
    FieldGroupRead,
    FieldGroupWrite,
    FieldOptionRead,
    FieldOptionWrite,
    FieldValueRead,
    FieldValueWrite,
    FieldWithValueRead,
)
from app.metrics import observe_delete, observe_mutation
from app.otel import get_tracer


logger = logging.getLogger("app.custom_fields")
tracer = get_tracer("app.custom_fields")


def _require_items(items: Sequence | None, argument: str) -> list:
    if items is None or len(items) == 0:
        raise InvalidArgumentError(f"{argument} must not be empty")
    return list(items)


def _to_float(value) -> float | None:  # type: ignore[no-untyped-def]
    return float(value) if value is not None else None


def to_option_read(option: CustomFieldOption) -> FieldOptionRead:
    return FieldOptionRead.model_validate(option)


def to_definition_read(definition: CustomFieldDefinition) -> FieldDefinitionRead:
    options = sorted(
        (option for option in definition.options if option.is_active),
        key=lambda option: (option.sort_order, option.id),
    )
    return FieldDefinitionRead(
        id=definition.id,
        entity_type=definition.entity_type,
        name=definition.name,
        display_name=definition.display_name,
        description=definition.description,
        field_type=definition.field_type,
        is_required=definition.is_required,
        is_active=definition.is_active,
        sort_order=definition.sort_order,
        default_value=decode_default_value(definition.default_value),
        min_value=_to_float(definition.min_value),
        max_value=_to_float(definition.max_value),
        max_length=definition.max_length,
        validation_pattern=definition.validation_pattern,
        general_code_type=definition.general_code_type,
        group_id=definition.group_id,
        group_name=definition.group_name or GENERAL_GROUP_NAME,
        is_visible=definition.is_visible,
        options=[to_option_read(option) for option in options],
    )


def to_value_read(row: CustomFieldValue, field_type: str) -> FieldValueRead:
    stored: StoredValue = read_slot(field_type, row)
    payload = FieldValueRead(
        id=row.id,
        entity_id=row.entity_id,
        entity_type=row.entity_type,
        field_definition_id=row.field_definition_id,
        modified_at=row.modified_at,
    )
    if isinstance(stored, TextSlot):
        payload.text_value = stored.value
    elif isinstance(stored, NumberSlot):
        payload.number_value = _to_float(stored.value)
    elif isinstance(stored, DateSlot):
        payload.date_value = stored.value
    elif isinstance(stored, BooleanSlot):
        payload.boolean_value = stored.value
    elif isinstance(stored, OptionSetSlot):
        payload.selected_option_ids = list(stored.option_ids)
    return payload


def _bucket_read(bucket: GroupBucket) -> FieldGroupRead:
    return FieldGroupRead(
        id=bucket.id,
        entity_type=bucket.entity_type,
        name=bucket.name,
        display_name=bucket.display_name,
        description=bucket.description,
        sort_order=bucket.sort_order,
        is_active=bucket.is_active,
    )


def _active_groups_stmt(entity_type: str) -> Select[tuple[CustomFieldGroup]]:
    return (
        select(CustomFieldGroup)
        .where(
            and_(
                func.lower(CustomFieldGroup.entity_type) == entity_type.lower(),
                CustomFieldGroup.is_active.is_(True),
            )
        )
        .order_by(CustomFieldGroup.sort_order.asc(), CustomFieldGroup.id.asc())
    )


def _active_definitions_stmt(entity_type: str) -> Select[tuple[CustomFieldDefinition]]:
    return (
        select(CustomFieldDefinition)
        .where(
            and_(
                func.lower(CustomFieldDefinition.entity_type) == entity_type.lower(),
                CustomFieldDefinition.is_active.is_(True),
            )
        )
        .order_by(CustomFieldDefinition.sort_order.asc(), CustomFieldDefinition.id.asc())
    )


@dataclass(slots=True)
class FieldGroupService:
    repository: FieldGroupRepository = FieldGroupRepository()

    def list(self, session: Session, entity_type: str | None = None) -> list[FieldGroupRead]:
        stmt = select(CustomFieldGroup).where(CustomFieldGroup.is_active.is_(True))
        if entity_type is not None:
            stmt = stmt.where(func.lower(CustomFieldGroup.entity_type) == entity_type.lower())
        rows = session.scalars(stmt.order_by(CustomFieldGroup.sort_order.asc(), CustomFieldGroup.id.asc())).all()
        return [self._to_read(row, include_fields=False) for row in rows]

    def get_by_id(self, session: Session, group_id: int) -> FieldGroupRead | None:
        group = self.repository.get(session, group_id)
        if group is None:
            return None
        return self._to_read(group, include_fields=True)

    def save(self, session: Session, dto: FieldGroupWrite, actor_id: int) -> FieldGroupRead:
        with unit_of_work(session, "custom field group already exists"):
            if self.repository.name_exists(session, dto.entity_type, dto.name, exclude_id=dto.id or None):
                raise ConflictError(f"group '{dto.name}' already exists for entity type '{dto.entity_type}'")

            if dto.id == 0:
                group = CustomFieldGroup(created_by=actor_id)
                session.add(group)
                action = "create"
            else:
                group = self.repository.get(session, dto.id)
                if group is None:
                    raise NotFoundError("custom field group", dto.id)
                group.stamp_modified(actor_id)
                action = "update"

            group.entity_type = dto.entity_type
            group.name = dto.name
            group.display_name = dto.display_name
            group.description = dto.description
            group.sort_order = dto.sort_order
            group.is_active = dto.is_active
            session.flush()
            group_id = group.id

        observe_mutation(self.repository.resource, action)
        logger.info("group.saved", extra={"entity_type": dto.entity_type, "record_id": group_id, "outcome": action})
        return self._to_read(group, include_fields=False)

    def delete(self, session: Session, group_id: int, actor_id: int) -> bool:
        group = self.repository.get(session, group_id)
        if group is None:
            return False

        with unit_of_work(session, "custom field group is still referenced"):
            outcome = self.repository.delete_or_archive(
                session,
                group,
                is_referenced=lambda: self.repository.has_definitions(session, group_id),
                actor_id=actor_id,
            )

        observe_delete(self.repository.resource, outcome)
        logger.info("group.deleted", extra={"record_id": group_id, "outcome": outcome})
        return True

    def reorder(self, session: Session, ordered_ids: Sequence[int] | None, actor_id: int) -> bool:
        ids = _require_items(ordered_ids, "ordered_ids")
        with unit_of_work(session, "custom field group reorder conflict"):
            touched = self.repository.reorder(session, ids, actor_id)

        observe_mutation(self.repository.resource, "reorder", touched)
        logger.info("group.reordered", extra={"count": touched})
        return touched > 0

    def name_exists(self, session: Session, entity_type: str, name: str, exclude_id: int | None = None) -> bool:
        return self.repository.name_exists(session, entity_type, name, exclude_id)

    def _to_read(self, group: CustomFieldGroup, *, include_fields: bool) -> FieldGroupRead:
        fields: list[FieldDefinitionRead] = []
        if include_fields:
            active = sorted(
                (definition for definition in group.fields if definition.is_active),
                key=lambda definition: (definition.sort_order, definition.id),
            )
            fields = [to_definition_read(definition) for definition in active]
        return FieldGroupRead(
            id=group.id,
            entity_type=group.entity_type,
            name=group.name,
            display_name=group.display_name,
            description=group.description,
            sort_order=group.sort_order,
            is_active=group.is_active,
            fields=fields,
        )


@dataclass(slots=True)
class FieldOptionService:
    repository: FieldOptionRepository = FieldOptionRepository()

    def list_by_field(self, session: Session, field_definition_id: int) -> list[FieldOptionRead]:
        rows = session.scalars(
            select(CustomFieldOption)
            .where(
                and_(
                    CustomFieldOption.field_definition_id == field_definition_id,
                    CustomFieldOption.is_active.is_(True),
                )
            )
            .order_by(CustomFieldOption.sort_order.asc(), CustomFieldOption.id.asc())
        ).all()
        return [to_option_read(row) for row in rows]

    def reconcile(
        self,
        session: Session,
        field_definition_id: int,
        desired: Sequence[FieldOptionWrite] | None,
        actor_id: int,
    ) -> list[FieldOptionRead]:
        if desired is None:
            raise InvalidArgumentError("options must not be null")

        with tracer.start_as_current_span("custom_fields.reconcile_options") as span:
            span.set_attribute("field_definition_id", field_definition_id)
            span.set_attribute("option_count", len(desired))
            with unit_of_work(session, "custom field option conflict"):
                rows, outcomes = self.reconcile_pending(session, field_definition_id, desired, actor_id)
                option_ids = [row.id for row in rows]

        self.record_reconcile(field_definition_id, len(option_ids), outcomes)
        return [to_option_read(session.get(CustomFieldOption, option_id)) for option_id in option_ids]

    def reconcile_pending(
        self,
        session: Session,
        field_definition_id: int,
        desired: Sequence[FieldOptionWrite],
        actor_id: int,
    ) -> tuple[list[CustomFieldOption], list[DeleteOutcome]]:
        """Apply ``desired`` as the full option set of a definition without committing.

        A new item whose value matches an existing row left out of the payload
        reuses that row, so an archived option comes back instead of being
        duplicated. Metrics and logs are left to the caller once committed.
        """
        if session.get(CustomFieldDefinition, field_definition_id) is None:
            raise NotFoundError("custom field definition", field_definition_id)

        seen_values: set[str] = set()
        for item in desired:
            key = item.value.lower()
            if key in seen_values:
                raise ConflictError(f"option value '{item.value}' is duplicated")
            seen_values.add(key)

        existing = {
            row.id: row
            for row in session.scalars(
                select(CustomFieldOption)
                .where(CustomFieldOption.field_definition_id == field_definition_id)
                .order_by(CustomFieldOption.id.asc())
            )
        }
        claimed = {item.id for item in desired if item.id in existing}

        kept: list[CustomFieldOption] = []
        for index, item in enumerate(desired):
            sort_order = item.sort_order or index * 10
            option = existing.pop(item.id, None) if item.id else None
            if option is None:
                option = self._unclaimed_by_value(existing, claimed, item.value)
            if option is None:
                option = CustomFieldOption(field_definition_id=field_definition_id, created_by=actor_id)
                session.add(option)
            else:
                existing.pop(option.id, None)
                option.stamp_modified(actor_id)
            option.value = item.value
            option.display_text = item.display_text
            option.sort_order = sort_order
            option.is_active = item.is_active
            kept.append(option)
        session.flush()

        outcomes: list[DeleteOutcome] = []
        for stale in existing.values():
            outcomes.append(
                self.repository.delete_or_archive(
                    session,
                    stale,
                    is_referenced=lambda stale=stale: self.repository.is_referenced(session, stale),
                    actor_id=actor_id,
                )
            )
        session.flush()
        return kept, outcomes

    @staticmethod
    def _unclaimed_by_value(
        existing: dict[int, CustomFieldOption],
        claimed: set[int],
        value: str,
    ) -> CustomFieldOption | None:
        for row in existing.values():
            if row.id not in claimed and row.value.lower() == value.lower():
                return row
        return None

    def record_reconcile(self, field_definition_id: int, kept: int, outcomes: Sequence[DeleteOutcome]) -> None:
        for outcome in outcomes:
            observe_delete(self.repository.resource, outcome)
        observe_mutation(self.repository.resource, "reconcile", kept)
        archived = sum(1 for outcome in outcomes if outcome == "archived")
        logger.info(
            "options.reconciled",
            extra={
                "record_id": field_definition_id,
                "count": kept,
                "outcome": f"removed={len(outcomes) - archived},archived={archived}",
            },
        )

    def reorder(self, session: Session, ordered_ids: Sequence[int] | None, actor_id: int) -> bool:
        ids = _require_items(ordered_ids, "ordered_ids")
        with unit_of_work(session, "custom field option reorder conflict"):
            touched = self.repository.reorder(session, ids, actor_id)

        observe_mutation(self.repository.resource, "reorder", touched)
        logger.info("option.reordered", extra={"count": touched})
        return touched > 0


@dataclass(slots=True)
class FieldDefinitionService:
    repository: FieldDefinitionRepository = FieldDefinitionRepository()
    group_repository: FieldGroupRepository = FieldGroupRepository()
    option_service: FieldOptionService = field(default_factory=FieldOptionService)

    def list(self, session: Session) -> list[FieldDefinitionRead]:
        rows = session.scalars(
            select(CustomFieldDefinition)
            .where(CustomFieldDefinition.is_active.is_(True))
            .order_by(
                CustomFieldDefinition.entity_type.asc(),
                CustomFieldDefinition.sort_order.asc(),
                CustomFieldDefinition.id.asc(),
            )
        ).all()
        return [to_definition_read(row) for row in rows]

    def list_by_entity_type(self, session: Session, entity_type: str) -> list[FieldDefinitionRead]:
        rows = session.scalars(_active_definitions_stmt(entity_type)).all()
        return [to_definition_read(row) for row in rows]

    def list_grouped_by_entity_type(self, session: Session, entity_type: str) -> list[FieldGroupRead]:
        groups = session.scalars(_active_groups_stmt(entity_type)).all()
        definitions = session.scalars(_active_definitions_stmt(entity_type)).all()

        buckets = bucket_by_group(entity_type, groups, definitions, lambda definition: definition.group_id)
        result: list[FieldGroupRead] = []
        for bucket in buckets:
            read = _bucket_read(bucket)
            read.fields = [to_definition_read(definition) for definition in bucket.items]
            result.append(read)
        return result

    def list_by_group(self, session: Session, group_id: int) -> list[FieldDefinitionRead]:
        rows = session.scalars(
            select(CustomFieldDefinition)
            .where(
                and_(
                    CustomFieldDefinition.group_id == group_id,
                    CustomFieldDefinition.is_active.is_(True),
                )
            )
            .order_by(CustomFieldDefinition.sort_order.asc(), CustomFieldDefinition.id.asc())
        ).all()
        return [to_definition_read(row) for row in rows]

    def get_by_id(self, session: Session, definition_id: int) -> FieldDefinitionRead | None:
        definition = self.repository.get(session, definition_id)
        if definition is None:
            return None
        return to_definition_read(definition)

    def save(self, session: Session, dto: FieldDefinitionWrite, actor_id: int) -> FieldDefinitionRead:
        slot_for(dto.field_type)
        if dto.validation_pattern:
            try:
                re.compile(dto.validation_pattern)
            except re.error as exc:
                raise InvalidArgumentError(f"validation_pattern is not a valid regular expression: {exc}") from exc
        if dto.min_value is not None and dto.max_value is not None and dto.min_value > dto.max_value:
            raise InvalidArgumentError("min_value must not be greater than max_value")

        with unit_of_work(session, "custom field definition already exists"):
            if self.repository.name_exists(session, dto.entity_type, dto.name, exclude_id=dto.id or None):
                raise ConflictError(f"field '{dto.name}' already exists for entity type '{dto.entity_type}'")
            if dto.group_id is not None and self.group_repository.get(session, dto.group_id) is None:
                raise NotFoundError("custom field group", dto.group_id)

            if dto.id == 0:
                definition = CustomFieldDefinition(created_by=actor_id)
                session.add(definition)
                action = "create"
            else:
                definition = self.repository.get(session, dto.id)
                if definition is None:
                    raise NotFoundError("custom field definition", dto.id)
                definition.stamp_modified(actor_id)
                action = "update"

            definition.entity_type = dto.entity_type
            definition.name = dto.name
            definition.display_name = dto.display_name
            definition.description = dto.description
            definition.field_type = dto.field_type
            definition.is_required = dto.is_required
            definition.is_active = dto.is_active
            definition.sort_order = dto.sort_order
            definition.default_value = encode_default_value(dto.default_value)
            definition.min_value = dto.min_value
            definition.max_value = dto.max_value
            definition.max_length = dto.max_length
            definition.validation_pattern = dto.validation_pattern
            definition.general_code_type = dto.general_code_type
            definition.group_id = dto.group_id
            definition.group_name = dto.group_name or GENERAL_GROUP_NAME
            definition.is_visible = dto.is_visible
            session.flush()
            definition_id = definition.id

            reconciled = None
            if dto.options:
                rows, outcomes = self.option_service.reconcile_pending(session, definition_id, dto.options, actor_id)
                reconciled = (len(rows), outcomes)

        if reconciled is not None:
            self.option_service.record_reconcile(definition_id, *reconciled)
        observe_mutation(self.repository.resource, action)
        logger.info(
            "definition.saved",
            extra={"entity_type": dto.entity_type, "record_id": definition_id, "outcome": action},
        )
        return to_definition_read(self.repository.get(session, definition_id))

    def delete(self, session: Session, definition_id: int, actor_id: int) -> bool:
        definition = self.repository.get(session, definition_id)
        if definition is None:
            return False

        with unit_of_work(session, "custom field definition is still referenced"):
            outcome = self.repository.delete_or_archive(
                session,
                definition,
                is_referenced=lambda: self.repository.has_values(session, definition_id),
                actor_id=actor_id,
            )

        observe_delete(self.repository.resource, outcome)
        logger.info("definition.deleted", extra={"record_id": definition_id, "outcome": outcome})
        return True

    def reorder(self, session: Session, ordered_ids: Sequence[int] | None, actor_id: int) -> bool:
        ids = _require_items(ordered_ids, "ordered_ids")
        with unit_of_work(session, "custom field definition reorder conflict"):
            touched = self.repository.reorder(session, ids, actor_id)

        observe_mutation(self.repository.resource, "reorder", touched)
        logger.info("definition.reordered", extra={"count": touched})
        return touched > 0

    def name_exists(self, session: Session, entity_type: str, name: str, exclude_id: int | None = None) -> bool:
        return self.repository.name_exists(session, entity_type, name, exclude_id)


@dataclass(slots=True)
class FieldValueService:
    repository: FieldValueRepository = FieldValueRepository()

    def list_by_entity(self, session: Session, entity_type: str, entity_id: int) -> list[FieldValueRead]:
        rows = session.execute(
            select(CustomFieldValue, CustomFieldDefinition.field_type)
            .join(CustomFieldDefinition, CustomFieldDefinition.id == CustomFieldValue.field_definition_id)
            .where(
                and_(
                    func.lower(CustomFieldValue.entity_type) == entity_type.lower(),
                    CustomFieldValue.entity_id == entity_id,
                )
            )
            .order_by(CustomFieldValue.id.asc())
        ).all()
        return [to_value_read(value, field_type) for value, field_type in rows]

    def with_definitions_by_entity(self, session: Session, entity_type: str, entity_id: int) -> list[FieldWithValueRead]:
        definitions = session.scalars(_active_definitions_stmt(entity_type)).all()
        return self._pair(session, definitions, entity_type, entity_id)

    def with_definitions_grouped_by_entity(self, session: Session, entity_type: str, entity_id: int) -> list[FieldGroupRead]:
        groups = session.scalars(_active_groups_stmt(entity_type)).all()
        definitions = session.scalars(_active_definitions_stmt(entity_type)).all()
        pairs = self._pair(session, definitions, entity_type, entity_id)

        buckets = bucket_by_group(
            entity_type,
            groups,
            pairs,
            lambda pair: pair.definition.group_id,
            drop_empty=True,
        )
        result: list[FieldGroupRead] = []
        for bucket in buckets:
            read = _bucket_read(bucket)
            read.fields_with_values = bucket.items
            result.append(read)
        return result

    def save_many(self, session: Session, values: Sequence[FieldValueWrite] | None, actor_id: int) -> list[FieldValueRead]:
        items = _require_items(values, "values")

        with tracer.start_as_current_span("custom_fields.save_values") as span:
            span.set_attribute("value_count", len(items))
            saved: list[tuple[int, str]] = []
            created = 0
            with unit_of_work(session, "custom field value already exists"):
                for item in items:
                    definition = session.get(CustomFieldDefinition, item.field_definition_id)
                    if definition is None:
                        raise NotFoundError("custom field definition", item.field_definition_id)

                    stored = from_payload(definition.field_type, item)
                    check_constraints(definition, stored)

                    row = self.repository.find_by_natural_key(
                        session,
                        item.entity_type,
                        item.entity_id,
                        item.field_definition_id,
                    )
                    if row is None:
                        row = CustomFieldValue(
                            entity_type=item.entity_type,
                            entity_id=item.entity_id,
                            field_definition_id=item.field_definition_id,
                            created_by=actor_id,
                        )
                        session.add(row)
                        created += 1
                    write_slot(row, stored)
                    row.stamp_modified(actor_id)
                    session.flush()
                    item.id = row.id
                    saved.append((row.id, definition.field_type))

        observe_mutation(self.repository.resource, "create", created)
        observe_mutation(self.repository.resource, "update", len(saved) - created)
        logger.info("values.saved", extra={"count": len(saved), "outcome": f"created={created}"})
        return [to_value_read(self.repository.get(session, value_id), field_type) for value_id, field_type in saved]

    def _pair(
        self,
        session: Session,
        definitions: Sequence[CustomFieldDefinition],
        entity_type: str,
        entity_id: int,
    ) -> list[FieldWithValueRead]:
        by_definition: dict[int, CustomFieldValue] = {}
        if entity_id != 0:
            by_definition = {row.field_definition_id: row for row in self.repository.list_for_entity(session, entity_type, entity_id)}

        pairs: list[FieldWithValueRead] = []
        for definition in definitions:
            row = by_definition.get(definition.id)
            pairs.append(
                FieldWithValueRead(
                    definition=to_definition_read(definition),
                    value=to_value_read(row, definition.field_type) if row is not None else None,
                )
            )
        return pairs


field_group_service = FieldGroupService()
field_option_service = FieldOptionService()
field_definition_service = FieldDefinitionService(option_service=field_option_service)
field_value_service = FieldValueService()
