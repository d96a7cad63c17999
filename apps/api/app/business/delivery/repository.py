from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy.orm import Session

from app.business.delivery.models import ClientService, MainPackage, ServiceDeliverable
from app.platform.store import BaseRepository


class MainPackageRepository(BaseRepository[MainPackage]):
    model = MainPackage

    def first_active(self, session: Session) -> MainPackage | None:
        rows = self.list_where(
            session,
            MainPackage.is_active.is_(True),
            order_by=(MainPackage.order.asc(), MainPackage.created_at.asc()),
        )
        return rows[0] if rows else None

    def list_ordered(self, session: Session, *, active_only: bool = False) -> list[MainPackage]:
        criteria = [MainPackage.is_active.is_(True)] if active_only else []
        return self.list_where(session, *criteria, order_by=(MainPackage.order.asc(), MainPackage.created_at.asc()))


class ClientServiceRepository(BaseRepository[ClientService]):
    model = ClientService

    def list_for_client(self, session: Session, client_id: uuid.UUID) -> list[ClientService]:
        return self.list_where(
            session,
            ClientService.client_id == client_id,
            order_by=(ClientService.created_at.asc(),),
        )


class ServiceDeliverableRepository(BaseRepository[ServiceDeliverable]):
    model = ServiceDeliverable

    def list_for_services(
        self, session: Session, service_ids: Sequence[uuid.UUID]
    ) -> dict[uuid.UUID, list[ServiceDeliverable]]:
        grouped: dict[uuid.UUID, list[ServiceDeliverable]] = {service_id: [] for service_id in service_ids}
        if not service_ids:
            return grouped
        rows = self.list_where(
            session,
            ServiceDeliverable.service_id.in_(list(service_ids)),
            order_by=(ServiceDeliverable.created_at.asc(),),
        )
        for row in rows:
            grouped.setdefault(row.service_id, []).append(row)
        return grouped
