"""Snapshot codec for a demoted client.

A snapshot is the only place a client's service graph survives while the
relationship is back in the lead phase. It is written once when the client is
converted and read once when the lead is promoted again; nothing else inspects
its contents.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.business.delivery.models import ClientService, ServiceDeliverable
from app.crm.errors import SnapshotCorruptError
from app.crm.models import Client, Lead


SNAPSHOT_VERSION = 1


class DeliverableSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    key: str
    label: str
    label_en: str | None = None
    target: int
    completed: int = 0
    icon: str | None = None
    is_boolean: bool = False


class ServiceSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    main_package_id: uuid.UUID | None = None
    sub_package_id: str | None = None
    service_name: str
    service_name_en: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: str
    price: Decimal
    currency: str
    sales_employee_id: str | None = None
    execution_employee_ids: list[str] = Field(default_factory=list)
    notes: str | None = None
    completed_at: datetime | None = None
    deliverables: list[DeliverableSnapshot] = Field(default_factory=list)


class ClientDataSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    name: str
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    country: str | None = None
    source: str | None = None
    status: str
    sales_owner_id: str | None = None
    sales_owners: list[str] = Field(default_factory=list)
    assigned_manager_id: str | None = None
    assigned_staff: list[str] = Field(default_factory=list)
    notes: str | None = None
    created_at: datetime | None = None


class ClientSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: Literal[1] = SNAPSHOT_VERSION
    captured_at: datetime
    client: ClientDataSnapshot
    services: list[ServiceSnapshot] = Field(default_factory=list)


@dataclass(slots=True)
class RestoredClient:
    client: Client
    services: list[ClientService] = field(default_factory=list)
    deliverables: list[ServiceDeliverable] = field(default_factory=list)


def capture(
    client: Client,
    services: Sequence[ClientService],
    deliverables_by_service: Mapping[uuid.UUID, Iterable[ServiceDeliverable]],
) -> ClientSnapshot:
    service_snapshots = [
        ServiceSnapshot.model_validate(service).model_copy(
            update={
                "deliverables": [
                    DeliverableSnapshot.model_validate(deliverable)
                    for deliverable in deliverables_by_service.get(service.id, ())
                ]
            }
        )
        for service in services
    ]
    return ClientSnapshot(
        captured_at=datetime.now(timezone.utc),
        client=ClientDataSnapshot.model_validate(client),
        services=service_snapshots,
    )


def dump(snapshot: ClientSnapshot) -> dict[str, Any]:
    return snapshot.model_dump(mode="json")


def load(raw: Any, *, lead_id: uuid.UUID | None = None) -> ClientSnapshot:
    if not isinstance(raw, Mapping):
        raise SnapshotCorruptError(
            "preserved client data is not an object",
            operation="convert_lead_to_client",
            entity_id=lead_id,
        )
    version = raw.get("version")
    if version != SNAPSHOT_VERSION:
        raise SnapshotCorruptError(
            f"unsupported snapshot version: {version!r}",
            operation="convert_lead_to_client",
            entity_id=lead_id,
        )
    try:
        return ClientSnapshot.model_validate(raw)
    except ValidationError as exc:
        raise SnapshotCorruptError(
            f"preserved client data failed validation ({exc.error_count()} errors)",
            operation="convert_lead_to_client",
            entity_id=lead_id,
        ) from exc


def restore(
    snapshot: ClientSnapshot,
    lead: Lead,
    *,
    resolve_package: Callable[[uuid.UUID | None], uuid.UUID | None] | None = None,
) -> RestoredClient:
    """Build fresh, unsaved rows for the client graph held in ``snapshot``.

    Every row gets a new identity; services are re-parented to the new client
    and deliverables to their new service. ``resolve_package`` lets the caller
    swap a package that no longer exists for one that does.
    """

    data = snapshot.client
    client = Client(
        id=uuid.uuid4(),
        name=data.name,
        email=data.email,
        phone=data.phone,
        company=data.company,
        country=data.country,
        source=data.source,
        status="active",
        sales_owner_id=data.sales_owner_id,
        sales_owners=list(data.sales_owners),
        assigned_manager_id=data.assigned_manager_id,
        assigned_staff=list(data.assigned_staff),
        notes=data.notes,
        lead_created_at=lead.created_at,
        converted_from_lead_id=lead.id,
    )
    restored = RestoredClient(client=client)

    for item in snapshot.services:
        package_id = resolve_package(item.main_package_id) if resolve_package else item.main_package_id
        service = ClientService(
            id=uuid.uuid4(),
            client_id=client.id,
            main_package_id=package_id,
            sub_package_id=item.sub_package_id,
            service_name=item.service_name,
            service_name_en=item.service_name_en,
            start_date=item.start_date,
            end_date=item.end_date,
            status=item.status,
            price=item.price,
            currency=item.currency,
            sales_employee_id=item.sales_employee_id,
            execution_employee_ids=list(item.execution_employee_ids),
            notes=item.notes,
            completed_at=item.completed_at,
        )
        restored.services.append(service)
        for deliverable in item.deliverables:
            restored.deliverables.append(
                ServiceDeliverable(
                    id=uuid.uuid4(),
                    service_id=service.id,
                    key=deliverable.key,
                    label=deliverable.label,
                    label_en=deliverable.label_en,
                    target=deliverable.target,
                    completed=deliverable.completed,
                    icon=deliverable.icon,
                    is_boolean=deliverable.is_boolean,
                )
            )
    return restored
