"""Client/lead lifecycle transitions.

Every public method is one database transaction: the root row is locked first,
all writes (including the audit row) are staged on the same session, and the
transaction either commits as a whole or is rolled back as a whole. Domain
events and metrics are only emitted once the commit has succeeded.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from sqlalchemy.orm import Session

from app import audit, events
from app.business.delivery.models import ClientService
from app.business.delivery.repository import ClientServiceRepository, ServiceDeliverableRepository
from app.business.delivery.schemas import ServiceDraft
from app.business.delivery.service import DeliveryService, delivery_service
from app.core.config import get_settings
from app.crm import cascade
from app.crm import snapshot as snapshot_codec
from app.crm.errors import InvalidTransitionError, LifecycleError, NotFoundError
from app.crm.models import Client, Lead
from app.crm.repositories import ClientRepository, LeadRepository
from app.crm.schemas import ClientCreate
from app.metrics import observe_cascade_deletions, observe_lifecycle_transition
from app.platform.store import BaseRepository, atomic


logger = logging.getLogger("app.crm.lifecycle")
tracer = trace.get_tracer("app.crm.lifecycle")

SERVICE_HISTORY_HEADER = "--- Service History (from Client phase) ---"

# operation -> (allowed source statuses, target status)
STATUS_TRANSITIONS: dict[str, tuple[frozenset[str], str]] = {
    "archive_client": (frozenset({"active", "on_hold", "completed"}), "archived"),
    "restore_client": (frozenset({"archived"}), "active"),
    "mark_client_completed": (frozenset({"active"}), "completed"),
    "reactivate_client": (frozenset({"completed"}), "active"),
}

STATUS_EVENTS = {
    "archive_client": "crm.client.archived",
    "restore_client": "crm.client.restored",
    "mark_client_completed": "crm.client.completed",
    "reactivate_client": "crm.client.reactivated",
}


def format_amount(value: Decimal | int | float | None) -> str:
    """Render a money amount without trailing zeros (``500.00`` -> ``500``)."""
    amount = Decimal(str(value if value is not None else 0))
    return format(amount.normalize(), "f")


def _format_date(value: date | None, default: str) -> str:
    return value.isoformat() if value is not None else default


def service_history_digest(services: list[ClientService]) -> str | None:
    if not services:
        return None
    lines = [SERVICE_HISTORY_HEADER]
    for service in services:
        amount = f"{format_amount(service.price)} {service.currency or ''}".rstrip()
        period = f"{_format_date(service.start_date, 'N/A')} - {_format_date(service.end_date, 'Ongoing')}"
        lines.append(f"- {service.service_name} ({service.status}): {amount} [{period}]")
    return "\n".join(lines)


def _join_notes(*parts: str | None) -> str | None:
    return "\n\n".join(part for part in parts if part) or None


@dataclass(slots=True)
class _Transition:
    operation: str
    actor_user_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    envelopes: list[dict[str, Any]] = field(default_factory=list)
    deleted_rows: dict[str, int] = field(default_factory=dict)

    def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        self.envelopes.append(events.build_envelope(event_type, payload, actor_user_id=self.actor_user_id))


@dataclass(slots=True)
class LifecycleService:
    lead_repository: LeadRepository = LeadRepository()
    client_repository: ClientRepository = ClientRepository()
    service_repository: ClientServiceRepository = ClientServiceRepository()
    deliverable_repository: ServiceDeliverableRepository = ServiceDeliverableRepository()
    delivery: DeliveryService = field(default_factory=lambda: delivery_service)

    @contextmanager
    def _transition(
        self,
        session: Session,
        operation: str,
        entity_id: uuid.UUID,
        actor_user_id: str,
    ) -> Iterator[_Transition]:
        started = time.perf_counter()
        state = _Transition(operation=operation, actor_user_id=actor_user_id)

        with tracer.start_as_current_span(f"crm.lifecycle.{operation}") as span:
            span.set_attribute("lifecycle.operation", operation)
            span.set_attribute("lifecycle.entity_id", str(entity_id))
            try:
                with atomic(session, operation=operation, entity_id=entity_id):
                    yield state
            except LifecycleError as exc:
                outcome = "rejected" if exc.status_code < 500 else "failed"
                self._record_failure(span, state, outcome, exc, started)
                raise
            except Exception as exc:
                self._record_failure(span, state, "failed", exc, started)
                raise

            for key, value in state.fields.items():
                span.set_attribute(f"lifecycle.{key}", str(value))

        duration = time.perf_counter() - started
        observe_lifecycle_transition(operation, "success", duration)
        if state.deleted_rows:
            observe_cascade_deletions(state.deleted_rows)
        logger.info(
            "lifecycle.transition",
            extra={
                "operation": operation,
                "outcome": "success",
                "duration_ms": round(duration * 1000, 2),
                "deleted_rows": state.deleted_rows or None,
                **state.fields,
            },
        )
        for envelope in state.envelopes:
            events.publish(envelope)

    @staticmethod
    def _record_failure(span: Any, state: _Transition, outcome: str, exc: Exception, started: float) -> None:
        duration = time.perf_counter() - started
        span.record_exception(exc)
        span.set_status(Status(StatusCode.ERROR, str(exc)))
        observe_lifecycle_transition(state.operation, outcome, duration)
        logger.warning(
            "lifecycle.transition_failed",
            extra={
                "operation": state.operation,
                "outcome": outcome,
                "duration_ms": round(duration * 1000, 2),
                "error": str(exc)[:500],
                **state.fields,
            },
        )

    def _lock(
        self,
        session: Session,
        repository: BaseRepository[Any],
        entity_id: uuid.UUID,
        *,
        operation: str,
        label: str,
    ) -> Any:
        row = repository.get_for_update(session, entity_id, lock=get_settings().lifecycle_row_locks)
        if row is None:
            raise NotFoundError(f"{label} not found", operation=operation, entity_id=entity_id)
        return row

    def convert_lead_to_client(self, session: Session, actor_user_id: str, lead_id: uuid.UUID) -> Client:
        operation = "convert_lead_to_client"
        with self._transition(session, operation, lead_id, actor_user_id) as state:
            state.fields["lead_id"] = str(lead_id)
            lead: Lead = self._lock(session, self.lead_repository, lead_id, operation=operation, label="lead")

            if lead.preserved_client_data is not None:
                client, service_count = self._restore_from_snapshot(session, lead, operation=operation)
                path = "snapshot"
            else:
                client = self._synthesize_client(session, lead, operation=operation)
                service_count = 1
                path = "synthesized"

            self.lead_repository.delete_by_id(session, lead_id)
            audit.record(
                session,
                action="crm.lead.converted_to_client",
                entity_type="client",
                entity_id=str(client.id),
                metadata={"lead_id": str(lead_id), "path": path, "service_count": service_count},
                actor_user_id=actor_user_id,
            )
            state.fields.update(client_id=str(client.id), service_count=service_count)
            state.emit(
                "crm.lead.converted_to_client",
                {"lead_id": str(lead_id), "client_id": str(client.id), "restored": path == "snapshot"},
            )
        return client

    def _restore_from_snapshot(self, session: Session, lead: Lead, *, operation: str) -> tuple[Client, int]:
        snapshot = snapshot_codec.load(lead.preserved_client_data, lead_id=lead.id)
        restored = snapshot_codec.restore(
            snapshot,
            lead,
            resolve_package=lambda package_id: self.delivery.resolve_package(
                session, package_id, operation=operation, entity_id=lead.id
            ),
        )
        self.client_repository.add(session, restored.client)
        self.service_repository.add_all(session, restored.services)
        self.deliverable_repository.add_all(session, restored.deliverables)
        return restored.client, len(restored.services)

    def _synthesize_client(self, session: Session, lead: Lead, *, operation: str) -> Client:
        deal_note = None
        if lead.deal_value:
            deal_note = f"Deal Value: {format_amount(lead.deal_value)} {lead.deal_currency or ''}".rstrip()

        client = self.client_repository.add(
            session,
            Client(
                id=uuid.uuid4(),
                name=lead.name,
                email=lead.email,
                phone=lead.phone,
                company=lead.company,
                country=lead.country,
                source=lead.source,
                status="active",
                sales_owner_id=lead.negotiator_id,
                sales_owners=[lead.negotiator_id] if lead.negotiator_id else [],
                converted_from_lead_id=lead.id,
                lead_created_at=lead.created_at,
                notes=_join_notes(lead.notes, deal_note),
            ),
        )
        service_name = "Converted Deal" if lead.deal_value else "New Service"
        self.delivery.build_service(
            session,
            client.id,
            ServiceDraft(
                main_package_id=str(lead.main_package_id) if lead.main_package_id else None,
                service_name=service_name,
                service_name_en=service_name,
                start_date=date.today(),
                status="in_progress",
                price=lead.deal_value or Decimal("0"),
                currency=lead.deal_currency or "USD",
                sales_employee_id=lead.negotiator_id,
                notes=lead.notes,
            ),
            operation=operation,
        )
        return client

    def convert_client_to_lead(self, session: Session, actor_user_id: str, client_id: uuid.UUID) -> Lead:
        operation = "convert_client_to_lead"
        with self._transition(session, operation, client_id, actor_user_id) as state:
            state.fields["client_id"] = str(client_id)
            client: Client = self._lock(session, self.client_repository, client_id, operation=operation, label="client")

            services = self.service_repository.list_for_client(session, client_id)
            deliverables = self.deliverable_repository.list_for_services(session, [service.id for service in services])
            preserved = snapshot_codec.dump(snapshot_codec.capture(client, services, deliverables))

            lead = self.lead_repository.add(
                session,
                Lead(
                    id=uuid.uuid4(),
                    name=client.name,
                    email=client.email,
                    phone=client.phone,
                    company=client.company,
                    country=client.country,
                    source=client.source,
                    stage="negotiation",
                    negotiator_id=client.sales_owner_id,
                    notes=_join_notes(client.notes, service_history_digest(services)),
                    was_confirmed_client=True,
                    converted_from_client_id=client.id,
                    preserved_client_data=preserved,
                ),
            )

            state.deleted_rows = cascade.execute(session, cascade.plan_for_client(session, client_id))
            self.client_repository.delete_by_id(session, client_id)
            audit.record(
                session,
                action="crm.client.converted_to_lead",
                entity_type="lead",
                entity_id=str(lead.id),
                metadata={"client_id": str(client_id), "service_count": len(services)},
                actor_user_id=actor_user_id,
            )
            state.fields.update(lead_id=str(lead.id), service_count=len(services))
            state.emit("crm.client.converted_to_lead", {"client_id": str(client_id), "lead_id": str(lead.id)})
        return lead

    def _change_status(self, session: Session, actor_user_id: str, client_id: uuid.UUID, operation: str) -> Client:
        allowed, target = STATUS_TRANSITIONS[operation]
        with self._transition(session, operation, client_id, actor_user_id) as state:
            state.fields["client_id"] = str(client_id)
            client: Client = self._lock(session, self.client_repository, client_id, operation=operation, label="client")
            previous = client.status
            if previous not in allowed:
                raise InvalidTransitionError(
                    f"cannot {operation.split('_')[0]} a client in status '{previous}'",
                    operation=operation,
                    entity_id=client_id,
                    current_status=previous,
                )
            client.status = target
            session.flush()
            audit.record(
                session,
                action=STATUS_EVENTS[operation],
                entity_type="client",
                entity_id=str(client_id),
                metadata={"from": previous, "to": target},
                actor_user_id=actor_user_id,
            )
            state.emit(STATUS_EVENTS[operation], {"client_id": str(client_id), "from": previous, "to": target})
        return client

    def archive_client(self, session: Session, actor_user_id: str, client_id: uuid.UUID) -> Client:
        return self._change_status(session, actor_user_id, client_id, "archive_client")

    def restore_client(self, session: Session, actor_user_id: str, client_id: uuid.UUID) -> Client:
        return self._change_status(session, actor_user_id, client_id, "restore_client")

    def mark_client_completed(self, session: Session, actor_user_id: str, client_id: uuid.UUID) -> Client:
        return self._change_status(session, actor_user_id, client_id, "mark_client_completed")

    def reactivate_client(self, session: Session, actor_user_id: str, client_id: uuid.UUID) -> Client:
        return self._change_status(session, actor_user_id, client_id, "reactivate_client")

    def delete_client(
        self,
        session: Session,
        actor_user_id: str,
        client_id: uuid.UUID,
        *,
        expected_status: str | None = None,
    ) -> bool:
        """Remove the client and every row that hangs off it.

        With ``expected_status`` the status is checked against the locked row, so a
        caller that decided on a stale read gets a conflict instead of a hard delete.
        """
        operation = "delete_client"
        with self._transition(session, operation, client_id, actor_user_id) as state:
            state.fields["client_id"] = str(client_id)
            client: Client = self._lock(session, self.client_repository, client_id, operation=operation, label="client")
            if expected_status is not None and client.status != expected_status:
                raise InvalidTransitionError(
                    f"cannot delete a client in status '{client.status}'",
                    operation=operation,
                    entity_id=client_id,
                    current_status=client.status,
                )
            client_name = client.name
            plan = cascade.plan_for_client(session, client_id)
            state.deleted_rows = cascade.execute(session, plan)
            self.client_repository.delete_by_id(session, client_id)
            audit.record(
                session,
                action="crm.client.deleted",
                entity_type="client",
                entity_id=str(client_id),
                metadata={"name": client_name, "deleted_rows": state.deleted_rows},
                actor_user_id=actor_user_id,
            )
            state.fields["service_count"] = len(plan.service_ids)
            state.emit("crm.client.deleted", {"client_id": str(client_id), "deleted_rows": state.deleted_rows})
        return True

    def create_client_with_service(
        self,
        session: Session,
        actor_user_id: str,
        client_draft: ClientCreate,
        service_draft: ServiceDraft,
    ) -> tuple[Client, ClientService]:
        operation = "create_client_with_service"
        client_id = uuid.uuid4()
        with self._transition(session, operation, client_id, actor_user_id) as state:
            state.fields["client_id"] = str(client_id)
            client = self.client_repository.add(session, Client(id=client_id, **client_draft.model_dump()))
            service, deliverables = self.delivery.build_service(session, client_id, service_draft, operation=operation)
            audit.record(
                session,
                action="crm.client.created_with_service",
                entity_type="client",
                entity_id=str(client_id),
                metadata={"service_id": str(service.id), "deliverable_count": len(deliverables)},
                actor_user_id=actor_user_id,
            )
            state.fields["service_count"] = 1
            state.emit(
                "crm.client.created_with_service",
                {"client_id": str(client_id), "service_id": str(service.id)},
            )
        return client, service


lifecycle_service = LifecycleService()
