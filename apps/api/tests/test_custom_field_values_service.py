from __future__ import annotations

from collections.abc import Generator
from datetime import date

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.custom_fields.errors import InvalidArgumentError, NotFoundError
from app.custom_fields.models import CustomFieldValue
from app.custom_fields.schemas import FieldDefinitionWrite, FieldGroupWrite, FieldValueWrite
from app.custom_fields.service import FieldDefinitionService, FieldGroupService, FieldValueService


ACTOR_ID = 8


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _define(session: Session, name: str, field_type: str, **overrides) -> int:  # type: ignore[no-untyped-def]
    return FieldDefinitionService().save(
        session,
        FieldDefinitionWrite(entity_type="lead", name=name, display_name=name, field_type=field_type, **overrides),
        ACTOR_ID,
    ).id


def _value(field_id: int, entity_id: int = 100, **slots) -> FieldValueWrite:  # type: ignore[no-untyped-def]
    return FieldValueWrite(entity_id=entity_id, entity_type="lead", field_definition_id=field_id, **slots)


def test_save_many_creates_rows_and_echoes_ids(db_session: Session) -> None:
    service = FieldValueService()
    text_id = _define(db_session, "nickname", "text")
    date_id = _define(db_session, "met_on", "date")
    inputs = [_value(text_id, text_value="Ace"), _value(date_id, date_value=date(2026, 1, 2))]

    saved = service.save_many(db_session, inputs, ACTOR_ID)

    assert [item.id for item in saved] == [item.id for item in inputs]
    assert all(item.id > 0 for item in saved)
    assert saved[0].text_value == "Ace"
    assert saved[1].date_value == date(2026, 1, 2)
    row = db_session.get(CustomFieldValue, saved[0].id)
    assert row.created_by == ACTOR_ID
    assert row.modified_by == ACTOR_ID


def test_second_save_updates_natural_key_row_case_insensitively(db_session: Session) -> None:
    service = FieldValueService()
    number_id = _define(db_session, "score", "number")

    first = service.save_many(db_session, [_value(number_id, number_value=1)], ACTOR_ID)
    second = service.save_many(
        db_session,
        [FieldValueWrite(entity_id=100, entity_type="LEAD", field_definition_id=number_id, number_value=2.5)],
        ACTOR_ID,
    )

    assert second[0].id == first[0].id
    assert second[0].number_value == 2.5
    assert len(db_session.scalars(select(CustomFieldValue)).all()) == 1


def test_repeated_natural_key_in_one_batch_hits_same_row(db_session: Session) -> None:
    service = FieldValueService()
    flag_id = _define(db_session, "vip", "boolean")

    saved = service.save_many(
        db_session,
        [_value(flag_id, boolean_value=True), _value(flag_id, boolean_value=False)],
        ACTOR_ID,
    )

    assert saved[0].id == saved[1].id
    assert service.list_by_entity(db_session, "lead", 100)[0].boolean_value is False


def test_multi_select_round_trips_in_order(db_session: Session) -> None:
    service = FieldValueService()
    tags_id = _define(db_session, "tags", "multi-select")

    service.save_many(db_session, [_value(tags_id, selected_option_ids=[3, 5])], ACTOR_ID)
    assert service.list_by_entity(db_session, "lead", 100)[0].selected_option_ids == [3, 5]

    service.save_many(db_session, [_value(tags_id, selected_option_ids=[])], ACTOR_ID)
    read_back = service.list_by_entity(db_session, "lead", 100)[0]
    assert read_back.selected_option_ids == []
    assert db_session.scalars(select(CustomFieldValue.selected_options)).one() is None


def test_only_the_typed_slot_is_written(db_session: Session) -> None:
    service = FieldValueService()
    select_id = _define(db_session, "tier", "select")

    saved = service.save_many(db_session, [_value(select_id, number_value=4, text_value="stray")], ACTOR_ID)

    row = db_session.get(CustomFieldValue, saved[0].id)
    assert row.text_value is None
    assert saved[0].number_value == 4.0
    assert saved[0].text_value is None


def test_batch_is_atomic_when_a_definition_is_missing(db_session: Session) -> None:
    service = FieldValueService()
    text_id = _define(db_session, "alias", "text")

    with pytest.raises(NotFoundError):
        service.save_many(db_session, [_value(text_id, text_value="kept?"), _value(9999, text_value="boom")], ACTOR_ID)

    assert service.list_by_entity(db_session, "lead", 100) == []


def test_constraint_violation_aborts_batch(db_session: Session) -> None:
    service = FieldValueService()
    text_id = _define(db_session, "postcode", "text", max_length=4)
    number_id = _define(db_session, "rating", "number", min_value=1, max_value=5)

    with pytest.raises(InvalidArgumentError):
        service.save_many(db_session, [_value(text_id, text_value="1234"), _value(number_id, number_value=9)], ACTOR_ID)
    with pytest.raises(InvalidArgumentError):
        service.save_many(db_session, [_value(text_id, text_value="12345")], ACTOR_ID)

    assert service.list_by_entity(db_session, "lead", 100) == []
    cleared = service.save_many(db_session, [_value(number_id, number_value=None)], ACTOR_ID)
    assert cleared[0].number_value is None


@pytest.mark.parametrize("values", [None, []])
def test_save_many_requires_values(db_session: Session, values: list[FieldValueWrite] | None) -> None:
    with pytest.raises(InvalidArgumentError):
        FieldValueService().save_many(db_session, values, ACTOR_ID)


def test_list_by_entity_is_scoped_to_the_instance(db_session: Session) -> None:
    service = FieldValueService()
    text_id = _define(db_session, "owner", "text")
    service.save_many(
        db_session,
        [_value(text_id, entity_id=1, text_value="one"), _value(text_id, entity_id=2, text_value="two")],
        ACTOR_ID,
    )

    values = service.list_by_entity(db_session, "lead", 2)

    assert [item.text_value for item in values] == ["two"]
    assert service.list_by_entity(db_session, "account", 2) == []


def test_with_definitions_pairs_values_and_new_entity_has_none(db_session: Session) -> None:
    service = FieldValueService()
    first_id = _define(db_session, "first", "text", sort_order=0)
    second_id = _define(db_session, "second", "number", sort_order=10)
    _define(db_session, "retired", "text", is_active=False)
    service.save_many(db_session, [_value(first_id, entity_id=0, text_value="x")], ACTOR_ID)
    service.save_many(db_session, [_value(first_id, entity_id=12, text_value="hello")], ACTOR_ID)

    existing = service.with_definitions_by_entity(db_session, "lead", 12)
    assert [pair.definition.id for pair in existing] == [first_id, second_id]
    assert existing[0].value is not None
    assert existing[0].value.text_value == "hello"
    assert existing[1].value is None

    fresh = service.with_definitions_by_entity(db_session, "lead", 0)
    assert [pair.definition.name for pair in fresh] == ["first", "second"]
    assert all(pair.value is None for pair in fresh)


def test_grouped_with_values_drops_empty_groups(db_session: Session) -> None:
    service = FieldValueService()
    groups = FieldGroupService()
    filled = groups.save(db_session, FieldGroupWrite(entity_type="lead", name="filled", display_name="Filled"), ACTOR_ID)
    groups.save(db_session, FieldGroupWrite(entity_type="lead", name="bare", display_name="Bare"), ACTOR_ID)
    grouped_id = _define(db_session, "in_group", "text", group_id=filled.id)
    service.save_many(db_session, [_value(grouped_id, entity_id=4, text_value="v")], ACTOR_ID)

    result = service.with_definitions_grouped_by_entity(db_session, "lead", 4)

    assert [bucket.name for bucket in result] == ["filled"]
    assert result[0].fields_with_values[0].value.text_value == "v"

    _define(db_session, "loose", "boolean")
    result = service.with_definitions_grouped_by_entity(db_session, "lead", 4)
    assert [bucket.name for bucket in result] == ["filled", "General"]
    assert result[-1].fields_with_values[0].value is None
