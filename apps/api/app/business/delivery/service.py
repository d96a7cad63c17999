from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from opentelemetry import trace
from sqlalchemy.orm import Session

from app import audit, events
from app.business.delivery.models import ClientService, MainPackage, ServiceDeliverable
from app.business.delivery.repository import (
    ClientServiceRepository,
    MainPackageRepository,
    ServiceDeliverableRepository,
)
from app.business.delivery.schemas import ClientServiceCreate, DeliverableCreate, MainPackageCreate, ServiceDraft
from app.core.config import DefaultPackagePolicy, get_settings
from app.crm import cascade
from app.crm.errors import DefaultPackageUnavailableError, NotFoundError, PackageRequiredError
from app.crm.repositories import ClientRepository
from app.metrics import observe_cascade_deletions
from app.platform.store import atomic


logger = logging.getLogger("app.business.delivery")
tracer = trace.get_tracer("app.business.delivery")

UNKNOWN_PACKAGE = "unknown"


def _parse_package_id(raw: str | uuid.UUID | None) -> uuid.UUID | None:
    if raw is None or isinstance(raw, uuid.UUID):
        return raw
    value = raw.strip()
    if not value or value.lower() == UNKNOWN_PACKAGE:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


@dataclass(slots=True)
class DeliveryService:
    package_repository: MainPackageRepository = MainPackageRepository()
    service_repository: ClientServiceRepository = ClientServiceRepository()
    deliverable_repository: ServiceDeliverableRepository = ServiceDeliverableRepository()
    client_repository: ClientRepository = ClientRepository()
    policy: DefaultPackagePolicy | None = None

    @property
    def package_policy(self) -> DefaultPackagePolicy:
        return self.policy or get_settings().default_package_policy

    def resolve_package(
        self,
        session: Session,
        requested: str | uuid.UUID | None,
        *,
        operation: str,
        entity_id: uuid.UUID | None = None,
    ) -> uuid.UUID | None:
        """Return a main package id that exists, applying the configured policy otherwise."""
        package_id = _parse_package_id(requested)
        if package_id is not None and self.package_repository.exists(session, package_id):
            return package_id

        policy = self.package_policy
        if policy == "allow_null":
            return None
        if policy == "fail":
            raise PackageRequiredError(
                "a valid main package is required for this service",
                operation=operation,
                entity_id=entity_id,
            )

        fallback = self.package_repository.first_active(session)
        if fallback is None:
            raise DefaultPackageUnavailableError(
                "no active main package is available as a default",
                operation=operation,
                entity_id=entity_id,
            )
        logger.info(
            "delivery.package_fallback",
            extra={"operation": operation, "service_id": str(entity_id) if entity_id else None},
        )
        return fallback.id

    def build_service(
        self,
        session: Session,
        client_id: uuid.UUID,
        draft: ServiceDraft,
        *,
        operation: str,
    ) -> tuple[ClientService, list[ServiceDeliverable]]:
        """Stage a service and its deliverables on ``session`` without committing."""
        service = ClientService(
            id=uuid.uuid4(),
            client_id=client_id,
            main_package_id=self.resolve_package(session, draft.main_package_id, operation=operation, entity_id=client_id),
            sub_package_id=draft.sub_package_id,
            service_name=draft.service_name,
            service_name_en=draft.service_name_en,
            start_date=draft.start_date,
            end_date=draft.end_date,
            status=draft.status,
            price=draft.price,
            currency=draft.currency,
            sales_employee_id=draft.sales_employee_id,
            execution_employee_ids=list(draft.execution_employee_ids),
            notes=draft.notes,
            completed_at=datetime.now(timezone.utc) if draft.status == "completed" else None,
        )
        self.service_repository.add(session, service)
        deliverables = self.deliverable_repository.add_all(
            session,
            [ServiceDeliverable(service_id=service.id, **item.model_dump()) for item in draft.deliverables],
        )
        return service, deliverables

    def create_main_package(self, session: Session, payload: MainPackageCreate) -> MainPackage:
        with atomic(session, operation="create_main_package"):
            package = self.package_repository.add(session, MainPackage(**payload.model_dump()))
        return package

    def list_main_packages(self, session: Session, *, active_only: bool = False) -> list[MainPackage]:
        return self.package_repository.list_ordered(session, active_only=active_only)

    def create_service(self, session: Session, actor_user_id: str, payload: ClientServiceCreate) -> ClientService:
        with atomic(session, operation="create_service", entity_id=payload.client_id):
            if not self.client_repository.exists(session, payload.client_id):
                raise NotFoundError("client not found", operation="create_service", entity_id=payload.client_id)
            service, _ = self.build_service(
                session,
                payload.client_id,
                ServiceDraft.model_validate(payload.model_dump(exclude={"client_id"})),
                operation="create_service",
            )
            audit.record(
                session,
                action="delivery.service.created",
                entity_type="client_service",
                entity_id=str(service.id),
                metadata={"client_id": str(payload.client_id), "main_package_id": str(service.main_package_id)},
                actor_user_id=actor_user_id,
            )
        return service

    def get_service(self, session: Session, service_id: uuid.UUID) -> ClientService:
        service = self.service_repository.get(session, service_id)
        if service is None:
            raise NotFoundError("client service not found", operation="get_service", entity_id=service_id)
        return service

    def list_services_for_client(self, session: Session, client_id: uuid.UUID) -> list[ClientService]:
        if not self.client_repository.exists(session, client_id):
            raise NotFoundError("client not found", operation="list_services", entity_id=client_id)
        return self.service_repository.list_for_client(session, client_id)

    def list_deliverables(self, session: Session, service_id: uuid.UUID) -> list[ServiceDeliverable]:
        return self.deliverable_repository.list_for_services(session, [service_id])[service_id]

    def add_deliverable(self, session: Session, service_id: uuid.UUID, payload: DeliverableCreate) -> ServiceDeliverable:
        with atomic(session, operation="add_deliverable", entity_id=service_id):
            if not self.service_repository.exists(session, service_id):
                raise NotFoundError("client service not found", operation="add_deliverable", entity_id=service_id)
            deliverable = self.deliverable_repository.add(
                session,
                ServiceDeliverable(service_id=service_id, **payload.model_dump()),
            )
        return deliverable

    def delete_service(self, session: Session, actor_user_id: str, service_id: uuid.UUID) -> dict[str, int]:
        """Remove one service and every row scoped to it, in a single transaction."""
        with tracer.start_as_current_span("delivery.service.delete") as span:
            span.set_attribute("service.id", str(service_id))
            with atomic(session, operation="delete_service", entity_id=service_id):
                service = self.service_repository.get_for_update(
                    session, service_id, lock=get_settings().lifecycle_row_locks
                )
                if service is None:
                    raise NotFoundError("client service not found", operation="delete_service", entity_id=service_id)
                client_id = service.client_id
                deleted = cascade.execute(session, cascade.plan_for_service(service_id))
                deleted[self.service_repository.table_name] = int(
                    self.service_repository.delete_by_id(session, service_id)
                )
                audit.record(
                    session,
                    action="delivery.service.deleted",
                    entity_type="client_service",
                    entity_id=str(service_id),
                    metadata={"client_id": str(client_id), "deleted_rows": deleted},
                    actor_user_id=actor_user_id,
                )
            span.set_attribute("cascade.rows", sum(deleted.values()))

        observe_cascade_deletions(deleted)
        events.publish(
            events.build_envelope(
                "delivery.service.deleted",
                {"service_id": str(service_id), "client_id": str(client_id), "deleted_rows": deleted},
                actor_user_id=actor_user_id,
            )
        )
        return deleted


delivery_service = DeliveryService()
