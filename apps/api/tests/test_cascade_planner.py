from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.delivery.models import ClientService, ServiceDeliverable, WorkActivityLog
from app.business.finance.models import ClientPayment, Invoice
from app.core.database import Base
from app.crm import cascade
from app.crm.errors import CascadeCycleError
from app.crm.models import Client, ClientUser


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


def _tables(steps: list[cascade.DeleteStep]) -> list[tuple[str, str]]:
    return [(step.table, step.column) for step in steps]


def test_client_plan_removes_children_before_parents(db_session: Session) -> None:
    plan = cascade.plan_for_client(db_session, uuid.uuid4())

    assert plan.root == "client"
    assert plan.service_ids == []
    assert _tables(plan.steps) == [
        ("delivery_work_activity_log", "service_id"),
        ("delivery_service_deliverable", "service_id"),
        ("delivery_service_report", "service_id"),
        ("finance_client_payment", "service_id"),
        ("scheduling_calendar_event", "service_id"),
        ("finance_transaction", "service_id"),
        ("delivery_client_service", "client_id"),
        ("finance_client_payment", "client_id"),
        ("scheduling_calendar_event", "client_id"),
        ("finance_transaction", "client_id"),
        ("finance_invoice", "client_id"),
        ("crm_client_user", "client_id"),
    ]


def test_referencing_table_is_ordered_first_regardless_of_declaration() -> None:
    dependents = (
        cascade.Dependent(ServiceDeliverable, "service_id", "service"),
        cascade.Dependent(WorkActivityLog, "service_id", "service", ("delivery_service_deliverable",)),
        cascade.Dependent(ClientService, "client_id", "root"),
    )

    ordered = cascade.order_dependents(dependents)

    assert [entry.table for entry in ordered] == [
        "delivery_work_activity_log",
        "delivery_service_deliverable",
        "delivery_client_service",
    ]


def test_cycle_is_rejected() -> None:
    dependents = (
        cascade.Dependent(Invoice, "client_id", "client", ("crm_client_user",)),
        cascade.Dependent(ClientUser, "client_id", "client", ("finance_invoice",)),
    )

    with pytest.raises(CascadeCycleError) as exc_info:
        cascade.order_dependents(dependents)

    assert exc_info.value.tables == ["crm_client_user", "finance_invoice"]


def test_service_plan_only_touches_service_scope() -> None:
    service_id = uuid.uuid4()

    plan = cascade.plan_for_service(service_id)

    assert plan.root == "service"
    assert plan.service_ids == [service_id]
    assert {step.scope for step in plan.steps} == {"service"}
    assert "delivery_client_service" not in {step.table for step in plan.steps}


def test_execute_counts_rows_per_table(db_session: Session) -> None:
    client = Client(name="Counted", sales_owners=[], assigned_staff=[])
    other = Client(name="Untouched", sales_owners=[], assigned_staff=[])
    db_session.add_all([client, other])
    db_session.flush()
    service = ClientService(client_id=client.id, service_name="Ads", price=Decimal("10"))
    other_service = ClientService(client_id=other.id, service_name="Ads", price=Decimal("10"))
    db_session.add_all([service, other_service])
    db_session.flush()
    db_session.add_all(
        [
            ServiceDeliverable(service_id=service.id, key="a", label="A", target=1),
            ServiceDeliverable(service_id=service.id, key="b", label="B", target=2),
            ServiceDeliverable(service_id=other_service.id, key="a", label="A", target=1),
            ClientPayment(
                client_id=client.id,
                service_id=service.id,
                amount=Decimal("5"),
                currency="USD",
                payment_date=date(2026, 2, 1),
                month=2,
                year=2026,
            ),
            ClientPayment(
                client_id=client.id,
                amount=Decimal("7"),
                currency="USD",
                payment_date=date(2026, 3, 1),
                month=3,
                year=2026,
            ),
        ]
    )
    db_session.commit()
    client_id, other_id = client.id, other.id

    deleted = cascade.execute(db_session, cascade.plan_for_client(db_session, client_id))
    db_session.commit()

    assert deleted["delivery_service_deliverable"] == 2
    assert deleted["delivery_client_service"] == 1
    assert deleted["finance_client_payment"] == 2
    assert deleted["finance_invoice"] == 0
    # The root row is left for the caller.
    assert db_session.get(Client, client_id) is not None
    remaining = db_session.scalar(
        select(func.count()).select_from(ClientService).where(ClientService.client_id == other_id)
    )
    assert remaining == 1


def test_execute_skips_service_steps_without_services(db_session: Session) -> None:
    client = Client(name="Empty", sales_owners=[], assigned_staff=[])
    db_session.add(client)
    db_session.commit()

    deleted = cascade.execute(db_session, cascade.plan_for_client(db_session, client.id))

    assert "delivery_service_deliverable" not in deleted
    assert deleted["delivery_client_service"] == 0
