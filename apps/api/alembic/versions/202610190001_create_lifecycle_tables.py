"""create lifecycle tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.String(length=128), nullable=False),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("correlation_id", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_entity", "audit_log", ["entity_type", "entity_id"], unique=False)

    op.create_table(
        "crm_lead",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("company", sa.Text(), nullable=True),
        sa.Column("country", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=64), nullable=True),
        sa.Column("stage", sa.String(length=32), nullable=False, server_default="new"),
        sa.Column("deal_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("deal_currency", sa.String(length=16), nullable=True),
        sa.Column("main_package_id", sa.Uuid(), nullable=True),
        sa.Column("negotiator_id", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("was_confirmed_client", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("converted_from_client_id", sa.Uuid(), nullable=True),
        sa.Column("preserved_client_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_lead_stage", "crm_lead", ["stage"], unique=False)

    op.create_table(
        "crm_client",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("company", sa.Text(), nullable=True),
        sa.Column("country", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("sales_owner_id", sa.String(length=255), nullable=True),
        sa.Column("sales_owners", sa.JSON(), nullable=False),
        sa.Column("assigned_manager_id", sa.String(length=255), nullable=True),
        sa.Column("assigned_staff", sa.JSON(), nullable=False),
        sa.Column("converted_from_lead_id", sa.Uuid(), nullable=True),
        sa.Column("lead_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_client_status", "crm_client", ["status"], unique=False)

    op.create_table(
        "crm_client_user",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("client_name", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["crm_client.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_crm_client_user_client", "crm_client_user", ["client_id"], unique=False)

    op.create_table(
        "delivery_main_package",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("name_en", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_delivery_main_package_order", "delivery_main_package", ["order"], unique=False)

    op.create_table(
        "delivery_client_service",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("main_package_id", sa.Uuid(), nullable=True),
        sa.Column("sub_package_id", sa.String(length=255), nullable=True),
        sa.Column("service_name", sa.Text(), nullable=False),
        sa.Column("service_name_en", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="not_started"),
        sa.Column("price", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False, server_default="USD"),
        sa.Column("sales_employee_id", sa.String(length=255), nullable=True),
        sa.Column("execution_employee_ids", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["crm_client.id"]),
        sa.ForeignKeyConstraint(["main_package_id"], ["delivery_main_package.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_delivery_client_service_client", "delivery_client_service", ["client_id"], unique=False)

    op.create_table(
        "delivery_service_deliverable",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("service_id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("label_en", sa.Text(), nullable=True),
        sa.Column("target", sa.Integer(), nullable=False),
        sa.Column("completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("icon", sa.String(length=64), nullable=True),
        sa.Column("is_boolean", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["service_id"], ["delivery_client_service.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_delivery_service_deliverable_service",
        "delivery_service_deliverable",
        ["service_id"],
        unique=False,
    )

    op.create_table(
        "delivery_work_activity_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("service_id", sa.Uuid(), nullable=False),
        sa.Column("deliverable_id", sa.Uuid(), nullable=True),
        sa.Column("employee_id", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("previous_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["service_id"], ["delivery_client_service.id"]),
        sa.ForeignKeyConstraint(["deliverable_id"], ["delivery_service_deliverable.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_delivery_work_activity_log_service",
        "delivery_work_activity_log",
        ["service_id"],
        unique=False,
    )

    op.create_table(
        "delivery_service_report",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("service_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["service_id"], ["delivery_client_service.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_delivery_service_report_service", "delivery_service_report", ["service_id"], unique=False)

    op.create_table(
        "finance_client_payment",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("service_id", sa.Uuid(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(length=32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["crm_client.id"]),
        sa.ForeignKeyConstraint(["service_id"], ["delivery_client_service.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_finance_client_payment_client", "finance_client_payment", ["client_id"], unique=False)
    op.create_index("ix_finance_client_payment_service", "finance_client_payment", ["service_id"], unique=False)

    op.create_table(
        "finance_transaction",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="completed"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("client_id", sa.Uuid(), nullable=True),
        sa.Column("service_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["crm_client.id"]),
        sa.ForeignKeyConstraint(["service_id"], ["delivery_client_service.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_finance_transaction_client", "finance_transaction", ["client_id"], unique=False)
    op.create_index("ix_finance_transaction_service", "finance_transaction", ["service_id"], unique=False)

    op.create_table(
        "finance_invoice",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("client_name", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["crm_client.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_finance_invoice_client", "finance_invoice", ["client_id"], unique=False)

    op.create_table(
        "scheduling_calendar_event",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("source", sa.String(length=32), nullable=False, server_default="manual"),
        sa.Column("event_type", sa.String(length=32), nullable=False, server_default="manual"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(length=8), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="upcoming"),
        sa.Column("priority", sa.String(length=16), nullable=False, server_default="medium"),
        sa.Column("client_id", sa.Uuid(), nullable=True),
        sa.Column("service_id", sa.Uuid(), nullable=True),
        sa.Column("employee_id", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["crm_client.id"]),
        sa.ForeignKeyConstraint(["service_id"], ["delivery_client_service.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_scheduling_calendar_event_client",
        "scheduling_calendar_event",
        ["client_id"],
        unique=False,
    )
    op.create_index(
        "ix_scheduling_calendar_event_service",
        "scheduling_calendar_event",
        ["service_id"],
        unique=False,
    )


def downgrade() -> None:
    for table, indexes in (
        ("scheduling_calendar_event", ("ix_scheduling_calendar_event_service", "ix_scheduling_calendar_event_client")),
        ("finance_invoice", ("ix_finance_invoice_client",)),
        ("finance_transaction", ("ix_finance_transaction_service", "ix_finance_transaction_client")),
        ("finance_client_payment", ("ix_finance_client_payment_service", "ix_finance_client_payment_client")),
        ("delivery_service_report", ("ix_delivery_service_report_service",)),
        ("delivery_work_activity_log", ("ix_delivery_work_activity_log_service",)),
        ("delivery_service_deliverable", ("ix_delivery_service_deliverable_service",)),
        ("delivery_client_service", ("ix_delivery_client_service_client",)),
        ("delivery_main_package", ("ix_delivery_main_package_order",)),
        ("crm_client_user", ("ix_crm_client_user_client",)),
        ("crm_client", ("ix_crm_client_status",)),
        ("crm_lead", ("ix_crm_lead_stage",)),
        ("audit_log", ("ix_audit_log_entity",)),
    ):
        for index in indexes:
            op.drop_index(index, table_name=table)
        op.drop_table(table)
