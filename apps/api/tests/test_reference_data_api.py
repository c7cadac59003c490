from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.core.database import Base, get_db
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


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    get_settings.cache_clear()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    get_settings.cache_clear()


def test_country_endpoints(client: TestClient) -> None:
    created = client.post("/api/countries", json={"country_code": "it", "country_name": "Italy"})
    assert created.status_code == 201
    country = created.json()
    assert country["country_code"] == "IT"

    duplicate = client.post("/api/countries", json={"country_code": "IT", "country_name": "Italia"})
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "conflict"

    updated = client.post(
        "/api/countries",
        json={"id": country["id"], "country_code": "IT", "country_name": "Italia"},
    )
    assert updated.status_code == 200
    assert client.get(f"/api/countries/{country['id']}").json()["country_name"] == "Italia"
    assert client.get("/api/countries/code-exists", params={"country_code": "it"}).json() is True
    assert client.get("/api/countries/name-exists", params={"country_name": "Italy"}).json() is False

    assert client.post("/api/countries", json={"country_code": "ITA", "country_name": "Italy"}).status_code == 422

    assert client.delete(f"/api/countries/{country['id']}").status_code == 204
    assert client.delete(f"/api/countries/{country['id']}").status_code == 404
    assert client.get(f"/api/countries/{country['id']}").status_code == 404


def test_general_code_endpoints(client: TestClient) -> None:
    payload = {"code_type": 3, "code_number": 7, "code_short_description": "Pending", "language_code": 1}
    created = client.post("/api/general-codes", json=payload)
    assert created.status_code == 201
    code_id = created.json()["id"]

    assert client.post("/api/general-codes", json=payload).status_code == 409
    assert client.get("/api/general-codes/key/3/7/1").json()["id"] == code_id
    assert client.get("/api/general-codes/key/3/7/2").status_code == 404
    assert client.get("/api/general-codes/exists", params={"code_type": 3, "code_number": 7, "language_code": 1}).json() is True
    assert [item["id"] for item in client.get("/api/general-codes", params={"code_type": 3}).json()] == [code_id]
    assert client.get("/api/general-codes", params={"language_code": 2}).json() == []

    updated = client.post("/api/general-codes", json={**payload, "id": code_id, "code_short_description": "Waiting"})
    assert updated.status_code == 200
    assert updated.json()["closed_at"] is not None

    assert client.delete(f"/api/general-codes/{code_id}").status_code == 204
    assert client.get(f"/api/general-codes/{code_id}").status_code == 404
