from __future__ import annotations

import uuid
from collections.abc import Generator
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.delivery.models import ClientService, MainPackage
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.crm.models import Client, Lead
from app.main import app
from app.models.audit import AuditLog


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
def setup_env() -> Generator[None, None, None]:
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


@pytest.fixture()
def package_id(client: TestClient) -> str:
    response = client.post("/api/main-packages", json={"name": "SEO", "name_en": "SEO", "order": 1})
    assert response.status_code == 201
    return response.json()["id"]


def _auth_headers(sub: str) -> dict[str, str]:
    settings = get_settings()
    token = jwt.encode({"sub": sub, "roles": ["sales"]}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


def _count(session: Session, model: type[Base]) -> int:
    return int(session.scalar(select(func.count()).select_from(model)) or 0)


def test_lead_round_trip_through_client_phase(client: TestClient, db_session: Session, package_id: str) -> None:
    lead = client.post(
        "/api/leads",
        json={"name": "Globex", "stage": "won", "deal_value": "1200", "deal_currency": "EUR", "negotiator_id": "s-2"},
    )
    assert lead.status_code == 201

    promoted = client.post(f"/api/leads/{lead.json()['id']}/convert")
    assert promoted.status_code == 201
    client_body = promoted.json()
    assert client_body["converted_from_lead_id"] == lead.json()["id"]
    assert client_body["notes"] == "Deal Value: 1200 EUR"

    services = client.get(f"/api/clients/{client_body['id']}/services")
    assert services.status_code == 200
    assert [item["service_name"] for item in services.json()] == ["Converted Deal"]
    assert services.json()[0]["main_package_id"] == package_id

    demoted = client.post(f"/api/clients/{client_body['id']}/convert")
    assert demoted.status_code == 201
    lead_body = demoted.json()
    assert lead_body["stage"] == "negotiation"
    assert lead_body["was_confirmed_client"] is True
    assert lead_body["has_preserved_client_data"] is True
    assert "--- Service History (from Client phase) ---" in lead_body["notes"]
    assert client.get(f"/api/clients/{client_body['id']}").status_code == 404

    restored = client.post(f"/api/leads/{lead_body['id']}/convert")
    assert restored.status_code == 201
    assert restored.json()["id"] != client_body["id"]
    assert client.get(f"/api/leads/{lead_body['id']}").status_code == 404
    assert _count(db_session, Lead) + _count(db_session, Client) == 1


def test_convert_missing_lead_returns_error_envelope(client: TestClient) -> None:
    lead_id = uuid.uuid4()
    response = client.post(f"/api/leads/{lead_id}/convert")

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "not_found"
    assert body["details"] == {"operation": "convert_lead_to_client", "entity_id": str(lead_id)}
    assert body["correlation_id"]


def test_status_routes_follow_state_machine(client: TestClient) -> None:
    created = client.post("/api/clients", json={"name": "Stateful"}).json()

    completed = client.post(f"/api/clients/{created['id']}/complete")
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    assert client.post(f"/api/clients/{created['id']}/reactivate").json()["status"] == "active"
    assert client.post(f"/api/clients/{created['id']}/archive").json()["status"] == "archived"

    rejected = client.post(f"/api/clients/{created['id']}/complete")
    assert rejected.status_code == 409
    assert rejected.json()["code"] == "invalid_transition"
    assert rejected.json()["details"]["current_status"] == "archived"

    assert client.post(f"/api/clients/{created['id']}/restore").json()["status"] == "active"
    assert [item["name"] for item in client.get("/api/clients", params={"status": "active"}).json()] == ["Stateful"]


def test_delete_archives_first_then_removes(client: TestClient, db_session: Session, package_id: str) -> None:
    created = client.post(
        "/api/clients-with-service",
        json={"client": {"name": "Short Lived"}, "service": {"service_name": "Audit", "main_package_id": package_id}},
    )
    assert created.status_code == 201
    client_id = created.json()["client"]["id"]

    first = client.delete(f"/api/clients/{client_id}")
    assert first.status_code == 204
    assert client.get(f"/api/clients/{client_id}").json()["status"] == "archived"

    second = client.delete(f"/api/clients/{client_id}")
    assert second.status_code == 204
    assert client.get(f"/api/clients/{client_id}").status_code == 404
    assert _count(db_session, ClientService) == 0

    third = client.delete(f"/api/clients/{client_id}")
    assert third.status_code == 404


def test_delete_on_stale_archived_read_is_conflict(
    client: TestClient,
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    created = client.post("/api/clients", json={"name": "Restored Meanwhile"}).json()
    monkeypatch.setattr(
        "app.crm.api.clients_service",
        SimpleNamespace(get_client=lambda db, client_id: SimpleNamespace(status="archived")),
    )

    response = client.delete(f"/api/clients/{created['id']}")

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"
    assert response.json()["details"]["current_status"] == "active"
    assert _count(db_session, Client) == 1


def test_create_client_with_service_unknown_package_falls_back(client: TestClient, package_id: str) -> None:
    response = client.post(
        "/api/clients-with-service",
        json={
            "client": {"name": "Hooli", "sales_owners": ["s-1"]},
            "service": {
                "service_name": "Brand refresh",
                "main_package_id": "unknown",
                "price": "750",
                "deliverables": [{"key": "logo", "label": "Logo", "target": 1, "is_boolean": True}],
            },
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["service"]["client_id"] == body["client"]["id"]
    assert body["service"]["main_package_id"] == package_id

    deliverables = client.get(f"/api/client-services/{body['service']['id']}/deliverables")
    assert [item["key"] for item in deliverables.json()] == ["logo"]


def test_create_client_with_service_without_catalog_is_conflict(client: TestClient, db_session: Session) -> None:
    response = client.post(
        "/api/clients-with-service",
        json={"client": {"name": "Empty Catalog"}, "service": {"service_name": "Anything"}},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "default_package_unavailable"
    assert _count(db_session, Client) == 0


def test_client_service_routes(client: TestClient, db_session: Session, package_id: str) -> None:
    created = client.post("/api/clients", json={"name": "Services"}).json()

    service = client.post(
        "/api/client-services",
        json={"client_id": created["id"], "service_name": "Ads", "main_package_id": package_id, "price": "99.5"},
    )
    assert service.status_code == 201
    service_id = service.json()["id"]

    deliverable = client.post(
        f"/api/client-services/{service_id}/deliverables",
        json={"key": "posts", "label": "Posts", "target": 8},
    )
    assert deliverable.status_code == 201

    removed = client.delete(f"/api/client-services/{service_id}")
    assert removed.status_code == 204
    assert client.get(f"/api/client-services/{service_id}/deliverables").status_code == 404
    assert client.get(f"/api/clients/{created['id']}").status_code == 200

    missing = client.post(
        "/api/client-services",
        json={"client_id": str(uuid.uuid4()), "service_name": "Orphan", "main_package_id": package_id},
    )
    assert missing.status_code == 404


def test_audit_rows_carry_token_subject(client: TestClient, db_session: Session) -> None:
    created = client.post("/api/clients", json={"name": "Audited"}, headers=_auth_headers("manager-9")).json()

    response = client.post(f"/api/clients/{created['id']}/archive", headers=_auth_headers("manager-9"))
    assert response.status_code == 200

    entry = db_session.scalar(select(AuditLog).where(AuditLog.action == "crm.client.archived"))
    assert entry is not None
    assert entry.actor_id == "manager-9"
    assert entry.event_metadata == {"from": "active", "to": "archived"}


def test_me_falls_back_to_anonymous(client: TestClient) -> None:
    response = client.get("/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 200
    assert response.json() == {"sub": "anonymous", "roles": ["guest"]}
