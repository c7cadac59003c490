from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.core.database import Base, get_db
from app.custom_fields.models import CustomFieldGroup
from app.main import app


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


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _token(actor_id: int) -> str:
    settings = get_settings()
    return jwt.encode({"sub": "designer", "roles": ["user"], "actor_id": actor_id}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _create_group(client: TestClient, name: str, **extra) -> dict:  # type: ignore[no-untyped-def]
    response = client.post(
        "/api/custom-fields/groups",
        json={"entity_type": "lead", "name": name, "display_name": name.title(), **extra},
    )
    assert response.status_code == 201
    return response.json()


def _create_definition(client: TestClient, name: str, field_type: str, **extra) -> dict:  # type: ignore[no-untyped-def]
    response = client.post(
        "/api/custom-fields/definitions",
        json={"entity_type": "lead", "name": name, "display_name": name.title(), "field_type": field_type, **extra},
    )
    assert response.status_code == 201
    return response.json()


def test_group_create_update_and_read(client: TestClient) -> None:
    created = _create_group(client, "contact")

    updated = client.post(
        "/api/custom-fields/groups",
        json={"id": created["id"], "entity_type": "lead", "name": "contact", "display_name": "Contact details"},
    )
    assert updated.status_code == 200
    assert updated.json()["display_name"] == "Contact details"

    fetched = client.get(f"/api/custom-fields/groups/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["fields"] == []

    listed = client.get("/api/custom-fields/groups", params={"entity_type": "LEAD"})
    assert [item["name"] for item in listed.json()] == ["contact"]

    exists = client.get("/api/custom-fields/groups/name-exists", params={"entity_type": "lead", "name": "CONTACT"})
    assert exists.json() is True


def test_actor_id_comes_from_bearer_token(client: TestClient, db_session: Session) -> None:
    response = client.post(
        "/api/custom-fields/groups",
        json={"entity_type": "lead", "name": "stamped", "display_name": "Stamped"},
        headers={"Authorization": f"Bearer {_token(77)}"},
    )
    assert response.status_code == 201

    anonymous = _create_group(client, "anonymous")

    assert db_session.get(CustomFieldGroup, response.json()["id"]).created_by == 77
    assert db_session.get(CustomFieldGroup, anonymous["id"]).created_by == get_settings().system_actor_id


def test_conflict_uses_error_envelope_with_correlation_id(client: TestClient) -> None:
    _create_group(client, "dupe")

    response = client.post(
        "/api/custom-fields/groups",
        json={"entity_type": "lead", "name": "DUPE", "display_name": "Dupe"},
        headers={"X-Correlation-Id": "cf-conflict-1"},
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "conflict"
    assert body["correlation_id"] == "cf-conflict-1"
    assert "DUPE" in body["message"]


def test_missing_records_answer_404(client: TestClient) -> None:
    response = client.get("/api/custom-fields/definitions/4040")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
    assert response.json()["details"] == {"resource": "custom field definition", "id": 4040}

    assert client.delete("/api/custom-fields/groups/4040").status_code == 404
    assert client.get("/api/custom-fields/groups/4040").status_code == 404


def test_code_safe_name_is_enforced(client: TestClient) -> None:
    response = client.post(
        "/api/custom-fields/groups",
        json={"entity_type": "lead", "name": "not safe!", "display_name": "Nope"},
    )
    assert response.status_code == 422


def test_delete_archives_referenced_group(client: TestClient) -> None:
    group = _create_group(client, "owner")
    _create_definition(client, "owned_field", "text", group_id=group["id"])
    bare = _create_group(client, "bare")

    assert client.delete(f"/api/custom-fields/groups/{group['id']}").status_code == 204
    assert client.delete(f"/api/custom-fields/groups/{bare['id']}").status_code == 204

    archived = client.get(f"/api/custom-fields/groups/{group['id']}")
    assert archived.status_code == 200
    assert archived.json()["is_active"] is False
    assert client.get(f"/api/custom-fields/groups/{bare['id']}").status_code == 404


def test_reorder_status_codes(client: TestClient) -> None:
    first = _create_group(client, "first")
    second = _create_group(client, "second")

    ok = client.put("/api/custom-fields/groups/reorder", json=[second["id"], first["id"]])
    assert ok.status_code == 204
    assert [item["name"] for item in client.get("/api/custom-fields/groups").json()] == ["second", "first"]

    missing = client.put("/api/custom-fields/groups/reorder", json=[999])
    assert missing.status_code == 400
    assert missing.json()["code"] == "reorder_failed"

    empty = client.put("/api/custom-fields/groups/reorder", json=[])
    assert empty.status_code == 422
    assert empty.json()["code"] == "invalid_argument"


def test_definition_options_and_reconcile(client: TestClient) -> None:
    definition = _create_definition(
        client,
        "stage",
        "select",
        options=[{"value": "new", "display_text": "New"}, {"value": "won", "display_text": "Won"}],
    )
    assert [option["value"] for option in definition["options"]] == ["new", "won"]
    new_option, won_option = definition["options"]

    reconciled = client.put(
        f"/api/custom-fields/options/field/{definition['id']}",
        json=[
            {"id": won_option["id"], "value": "won", "display_text": "Closed won"},
            {"value": "lost", "display_text": "Lost"},
        ],
    )
    assert reconciled.status_code == 200
    assert [option["display_text"] for option in reconciled.json()] == ["Closed won", "Lost"]

    listed = client.get(f"/api/custom-fields/options/field/{definition['id']}")
    assert [option["value"] for option in listed.json()] == ["won", "lost"]
    assert new_option["id"] not in {option["id"] for option in listed.json()}

    missing = client.put("/api/custom-fields/options/field/999", json=[{"value": "a", "display_text": "A"}])
    assert missing.status_code == 404


def test_values_save_and_grouped_reads(client: TestClient) -> None:
    group = _create_group(client, "sales", sort_order=10)
    budget = _create_definition(client, "budget", "number", group_id=group["id"], min_value=0)
    tags = _create_definition(client, "tags", "multi-select")

    saved = client.post(
        "/api/custom-fields/values",
        json=[
            {"entity_id": 9, "entity_type": "lead", "field_definition_id": budget["id"], "number_value": 1500.5},
            {"entity_id": 9, "entity_type": "lead", "field_definition_id": tags["id"], "selected_option_ids": [3, 5]},
        ],
    )
    assert saved.status_code == 200
    assert all(item["id"] > 0 for item in saved.json())

    values = client.get("/api/custom-fields/values/lead/9").json()
    assert {item["field_definition_id"]: (item["number_value"], item["selected_option_ids"]) for item in values} == {
        budget["id"]: (1500.5, []),
        tags["id"]: (None, [3, 5]),
    }

    grouped = client.get("/api/custom-fields/values/lead/9/grouped").json()
    assert [bucket["name"] for bucket in grouped] == ["sales", "General"]
    assert grouped[0]["fields_with_values"][0]["value"]["number_value"] == 1500.5

    fresh = client.get("/api/custom-fields/values/lead/0/with-definitions").json()
    assert [pair["definition"]["name"] for pair in fresh] == ["budget", "tags"]
    assert all(pair["value"] is None for pair in fresh)

    grouped_definitions = client.get("/api/custom-fields/definitions/entity/lead/grouped").json()
    assert [bucket["id"] for bucket in grouped_definitions] == [group["id"], 0]

    rejected = client.post(
        "/api/custom-fields/values",
        json=[{"entity_id": 9, "entity_type": "lead", "field_definition_id": budget["id"], "number_value": -1}],
    )
    assert rejected.status_code == 422
    assert rejected.json()["code"] == "invalid_argument"


def test_definition_delete_soft_when_values_exist(client: TestClient) -> None:
    kept = _create_definition(client, "kept", "text")
    removed = _create_definition(client, "removed", "text")
    client.post(
        "/api/custom-fields/values",
        json=[{"entity_id": 1, "entity_type": "lead", "field_definition_id": kept["id"], "text_value": "x"}],
    )

    assert client.delete(f"/api/custom-fields/definitions/{kept['id']}").status_code == 204
    assert client.delete(f"/api/custom-fields/definitions/{removed['id']}").status_code == 204

    assert client.get(f"/api/custom-fields/definitions/{kept['id']}").json()["is_active"] is False
    assert client.get(f"/api/custom-fields/definitions/{removed['id']}").status_code == 404
    assert client.get("/api/custom-fields/definitions/entity/lead").json() == []


def test_null_option_list_is_accepted_on_value_save(client: TestClient) -> None:
    notes = _create_definition(client, "notes", "text")
    tags = _create_definition(client, "labels", "multi-select")

    saved = client.post(
        "/api/custom-fields/values",
        json=[
            {
                "entity_id": 4,
                "entity_type": "lead",
                "field_definition_id": notes["id"],
                "text_value": "call back",
                "selected_option_ids": None,
            },
            {"entity_id": 4, "entity_type": "lead", "field_definition_id": tags["id"], "selected_option_ids": None},
        ],
    )
    assert saved.status_code == 200

    values = client.get("/api/custom-fields/values/lead/4").json()
    assert {item["field_definition_id"]: (item["text_value"], item["selected_option_ids"]) for item in values} == {
        notes["id"]: ("call back", []),
        tags["id"]: (None, []),
    }


def test_option_value_must_be_code_safe(client: TestClient) -> None:
    stage = _create_definition(client, "stage", "select")

    rejected = client.put(
        f"/api/custom-fields/options/field/{stage['id']}",
        json=[{"value": "not code safe!", "display_text": "Nope"}],
    )
    assert rejected.status_code == 422

    accepted = client.put(
        f"/api/custom-fields/options/field/{stage['id']}",
        json=[{"value": "closed_won", "display_text": "Closed won"}],
    )
    assert accepted.status_code == 200
    assert [option["value"] for option in accepted.json()] == ["closed_won"]
