from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy.orm import Session

from app.business.delivery.models import ClientService, ServiceDeliverable, ServiceReport, WorkActivityLog
from app.business.finance.models import ClientPayment, Invoice, Transaction
from app.business.scheduling.models import CalendarEvent
from app.core.database import Base
from app.crm.errors import CascadeCycleError
from app.crm.models import Client, ClientUser
from app.platform.store import BaseRepository


logger = logging.getLogger("app.crm.cascade")

Scope = Literal["service", "client", "root"]


@dataclass(frozen=True, slots=True)
class Dependent:
    model: type[Base]
    key: str
    scope: Scope
    references: tuple[str, ...] = ()

    @property
    def table(self) -> str:
        return str(self.model.__tablename__)


# Declaration order is the tie-break for the topological sort below.
CASCADE_DEPENDENTS: tuple[Dependent, ...] = (
    Dependent(WorkActivityLog, "service_id", "service", ("delivery_service_deliverable",)),
    Dependent(ServiceDeliverable, "service_id", "service"),
    Dependent(ServiceReport, "service_id", "service"),
    Dependent(ClientPayment, "service_id", "service"),
    Dependent(CalendarEvent, "service_id", "service"),
    Dependent(Transaction, "service_id", "service"),
    Dependent(ClientService, "client_id", "root"),
    Dependent(ClientPayment, "client_id", "client"),
    Dependent(CalendarEvent, "client_id", "client"),
    Dependent(Transaction, "client_id", "client"),
    Dependent(Invoice, "client_id", "client"),
    Dependent(ClientUser, "client_id", "client"),
)

# Every service-scoped row references the service table.
_SERVICE_TABLE = str(ClientService.__tablename__)


@dataclass(frozen=True, slots=True)
class DeleteStep:
    model: type[Base]
    column: str
    scope: Scope

    @property
    def table(self) -> str:
        return str(self.model.__tablename__)


@dataclass(slots=True)
class DeletionPlan:
    root: Literal["client", "service"]
    root_id: uuid.UUID
    service_ids: list[uuid.UUID]
    steps: list[DeleteStep] = field(default_factory=list)


class _Table(BaseRepository[Base]):
    def __init__(self, model: type[Base]) -> None:
        self.model = model


def order_dependents(dependents: Sequence[Dependent]) -> list[Dependent]:
    """Return ``dependents`` so that rows referencing a table are removed before it.

    Kahn's algorithm over the entries; among ready entries the earliest declared
    wins, so an acyclic table keeps its declared order wherever it can.
    """

    tables_of = {index: entry.table for index, entry in enumerate(dependents)}
    referenced_tables: dict[int, set[str]] = {}
    for index, entry in enumerate(dependents):
        refs = set(entry.references)
        if entry.scope == "service":
            refs.add(_SERVICE_TABLE)
        refs.discard(entry.table)
        referenced_tables[index] = refs

    # An entry must wait for every entry whose table references its own table.
    blockers: dict[int, set[int]] = {index: set() for index in tables_of}
    for index, table in tables_of.items():
        for other, refs in referenced_tables.items():
            if other != index and table in refs:
                blockers[index].add(other)

    ordered: list[Dependent] = []
    remaining = set(tables_of)
    while remaining:
        ready = sorted(index for index in remaining if not (blockers[index] & remaining))
        if not ready:
            raise CascadeCycleError(sorted({tables_of[index] for index in remaining}))
        chosen = ready[0]
        ordered.append(dependents[chosen])
        remaining.discard(chosen)
    return ordered


def _steps(scopes: set[Scope], dependents: Sequence[Dependent]) -> list[DeleteStep]:
    return [
        DeleteStep(model=entry.model, column=entry.key, scope=entry.scope)
        for entry in order_dependents(dependents)
        if entry.scope in scopes
    ]


def plan_for_client(
    session: Session,
    client_id: uuid.UUID,
    *,
    dependents: Sequence[Dependent] = CASCADE_DEPENDENTS,
) -> DeletionPlan:
    service_ids = _Table(ClientService).list_ids(session, ClientService.client_id == client_id)
    return DeletionPlan(
        root="client",
        root_id=client_id,
        service_ids=service_ids,
        steps=_steps({"service", "root", "client"}, dependents),
    )


def plan_for_service(
    service_id: uuid.UUID,
    *,
    dependents: Sequence[Dependent] = CASCADE_DEPENDENTS,
) -> DeletionPlan:
    return DeletionPlan(
        root="service",
        root_id=service_id,
        service_ids=[service_id],
        steps=_steps({"service"}, dependents),
    )


def execute(session: Session, plan: DeletionPlan) -> dict[str, int]:
    """Run every step of ``plan`` in the caller's transaction.

    The root row itself is left for the caller. Returns deleted row counts keyed
    by table name; tables visited more than once are summed.
    """

    deleted: dict[str, int] = {}
    for step in plan.steps:
        table = _Table(step.model)
        if step.scope == "service":
            if not plan.service_ids:
                continue
            count = table.delete_where(session, table.column(step.column).in_(plan.service_ids))
        else:
            count = table.delete_where(session, table.column(step.column) == plan.root_id)
        deleted[step.table] = deleted.get(step.table, 0) + count

    logger.info(
        "cascade.executed",
        extra={
            "operation": f"delete_{plan.root}",
            "service_count": len(plan.service_ids),
            "deleted_rows": deleted,
        },
    )
    return deleted
