from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.business.delivery.models import ClientService, ServiceDeliverable
from app.crm import snapshot
from app.crm.errors import SnapshotCorruptError
from app.crm.models import Client, Lead


def _client() -> Client:
    return Client(
        id=uuid.uuid4(),
        name="Acme",
        email="ops@acme.test",
        status="on_hold",
        sales_owner_id="sales-7",
        sales_owners=["sales-7", "sales-9"],
        assigned_staff=["staff-1"],
        notes="Key account",
        created_at=datetime(2025, 11, 3, tzinfo=timezone.utc),
    )


def _service(client_id: uuid.UUID, package_id: uuid.UUID | None) -> ClientService:
    return ClientService(
        id=uuid.uuid4(),
        client_id=client_id,
        main_package_id=package_id,
        service_name="SEO Package",
        start_date=date(2026, 1, 1),
        status="in_progress",
        price=Decimal("500.00"),
        currency="USD",
        execution_employee_ids=["staff-1"],
    )


def _captured(package_id: uuid.UUID | None = None) -> tuple[Client, ClientService, snapshot.ClientSnapshot]:
    client = _client()
    service = _service(client.id, package_id)
    deliverable = ServiceDeliverable(
        id=uuid.uuid4(),
        service_id=service.id,
        key="posts",
        label="Posts",
        target=12,
        completed=4,
        is_boolean=False,
    )
    return client, service, snapshot.capture(client, [service], {service.id: [deliverable]})


def test_dump_and_load_preserve_the_graph() -> None:
    client, service, captured = _captured()

    raw = snapshot.dump(captured)
    loaded = snapshot.load(raw)

    assert raw["version"] == 1
    assert raw["client"]["id"] == str(client.id)
    assert loaded.client.sales_owners == ["sales-7", "sales-9"]
    assert loaded.services[0].id == service.id
    assert loaded.services[0].price == Decimal("500.00")
    assert loaded.services[0].deliverables[0].key == "posts"
    assert loaded.services[0].deliverables[0].completed == 4


@pytest.mark.parametrize("raw", [None, "not-json", [1, 2, 3]])
def test_load_rejects_non_objects(raw: object) -> None:
    with pytest.raises(SnapshotCorruptError):
        snapshot.load(raw)


def test_load_rejects_unknown_version() -> None:
    _, _, captured = _captured()
    raw = snapshot.dump(captured)
    raw["version"] = 2

    with pytest.raises(SnapshotCorruptError) as exc_info:
        snapshot.load(raw, lead_id=uuid.UUID(int=7))

    assert "version" in exc_info.value.message
    assert exc_info.value.entity_id == str(uuid.UUID(int=7))


def test_load_rejects_missing_fields() -> None:
    with pytest.raises(SnapshotCorruptError):
        snapshot.load({"version": 1, "captured_at": "2026-01-01T00:00:00Z", "client": {"name": "No id"}})


def test_restore_assigns_new_ids_and_reparents() -> None:
    client, service, captured = _captured()
    lead = Lead(id=uuid.uuid4(), name="Acme", created_at=datetime(2026, 3, 1, tzinfo=timezone.utc))

    restored = snapshot.restore(snapshot.load(snapshot.dump(captured)), lead)

    assert restored.client.id != client.id
    assert restored.client.status == "active"
    assert restored.client.converted_from_lead_id == lead.id
    assert restored.client.lead_created_at == lead.created_at
    assert restored.client.notes == "Key account"
    assert len(restored.services) == 1
    assert restored.services[0].id != service.id
    assert restored.services[0].client_id == restored.client.id
    assert restored.services[0].start_date == date(2026, 1, 1)
    assert [item.service_id for item in restored.deliverables] == [restored.services[0].id]


def test_restore_passes_package_through_resolver() -> None:
    stale = uuid.uuid4()
    replacement = uuid.uuid4()
    _, _, captured = _captured(package_id=stale)
    seen: list[uuid.UUID | None] = []

    def resolve(package_id: uuid.UUID | None) -> uuid.UUID | None:
        seen.append(package_id)
        return replacement

    restored = snapshot.restore(captured, Lead(id=uuid.uuid4(), name="Acme"), resolve_package=resolve)

    assert seen == [stale]
    assert restored.services[0].main_package_id == replacement
