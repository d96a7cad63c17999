from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.delivery.models import MainPackage
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.logging import JsonLogFormatter
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


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    path = f"/api/clients/{uuid.uuid4()}"
    response = client.get(path, headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "app.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/clients/{id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_transition_logs_carry_operation_and_ids(
    client: TestClient,
    db_session: Session,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)
    db_session.add(MainPackage(name="SEO", order=1))
    db_session.commit()
    lead = client.post("/api/leads", json={"name": "Log Lead"}).json()

    response = client.post(f"/api/leads/{lead['id']}/convert", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 201

    records = [record for record in caplog.records if record.name == "app.crm.lifecycle"]
    assert any(
        record.getMessage() == "lifecycle.transition"
        and getattr(record, "operation", None) == "convert_lead_to_client"
        and getattr(record, "outcome", None) == "success"
        and getattr(record, "lead_id", None) == lead["id"]
        and getattr(record, "client_id", None) == response.json()["id"]
        and getattr(record, "correlation_id", None) == "abc-123"
        for record in records
    )


def test_rejected_transition_is_logged_as_warning(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    created = client.post("/api/clients", json={"name": "Archived", "status": "archived"}).json()

    response = client.post(f"/api/clients/{created['id']}/archive")
    assert response.status_code == 409

    failures = [record for record in caplog.records if record.getMessage() == "lifecycle.transition_failed"]
    assert failures
    assert failures[-1].levelno == logging.WARNING
    assert getattr(failures[-1], "outcome", None) == "rejected"
    assert getattr(failures[-1], "operation", None) == "archive_client"


def test_json_formatter_keeps_only_known_fields() -> None:
    record = logging.makeLogRecord(
        {
            "name": "app.crm.lifecycle",
            "levelname": "INFO",
            "msg": "lifecycle.transition",
            "operation": "delete_client",
            "deleted_rows": {"crm_client_user": 2},
            "password": "hunter2",
        }
    )

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["msg"] == "lifecycle.transition"
    assert payload["fields"]["operation"] == "delete_client"
    assert payload["fields"]["deleted_rows"] == {"crm_client_user": 2}
    assert "password" not in payload["fields"]


def test_json_formatter_summarises_cascade_and_drops_unset_fields() -> None:
    record = logging.makeLogRecord(
        {
            "name": "app.crm.lifecycle",
            "levelname": "INFO",
            "msg": "lifecycle.transition",
            "operation": "convert_client_to_lead",
            "lead_id": None,
            "deleted_rows": {"delivery_client_service": 2, "finance_invoice": 0, "crm_client": 1},
            "error": "x" * 800,
        }
    )

    fields = json.loads(JsonLogFormatter().format(record))["fields"]

    assert "lead_id" not in fields
    assert fields["deleted_rows"] == {"delivery_client_service": 2, "crm_client": 1}
    assert fields["deleted_total"] == 3
    assert len(fields["error"]) == 500


def test_successful_status_change_logs_no_cascade_fields(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    created = client.post("/api/clients", json={"name": "Quiet"}).json()

    response = client.post(f"/api/clients/{created['id']}/archive")
    assert response.status_code == 200

    record = next(
        record
        for record in caplog.records
        if record.getMessage() == "lifecycle.transition" and getattr(record, "operation", None) == "archive_client"
    )
    fields = json.loads(JsonLogFormatter().format(record))["fields"]
    assert fields["client_id"] == created["id"]
    assert "deleted_rows" not in fields
    assert "deleted_total" not in fields
