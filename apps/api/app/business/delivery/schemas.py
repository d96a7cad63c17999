from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


ServiceStatus = Literal["not_started", "in_progress", "completed", "on_hold"]


class MainPackageCreate(BaseModel):
    name: str = Field(min_length=1)
    name_en: str | None = None
    description: str | None = None
    order: int = 0
    is_active: bool = True


class MainPackageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    name_en: str | None
    description: str | None
    order: int
    is_active: bool
    created_at: datetime


class DeliverableCreate(BaseModel):
    key: str = Field(min_length=1)
    label: str = Field(min_length=1)
    label_en: str | None = None
    target: int = Field(ge=0)
    completed: int = Field(default=0, ge=0)
    icon: str | None = None
    is_boolean: bool = False


class DeliverableRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    service_id: UUID
    key: str
    label: str
    label_en: str | None
    target: int
    completed: int
    icon: str | None
    is_boolean: bool


class ServiceDraft(BaseModel):
    """Service fields supplied by a caller; the owning client is bound separately."""

    # Accepts the literal "unknown" and stale ids; both go through the package policy.
    main_package_id: str | None = None
    sub_package_id: str | None = None
    service_name: str = Field(min_length=1)
    service_name_en: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: ServiceStatus = "not_started"
    price: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = Field(default="USD", min_length=1, max_length=16)
    sales_employee_id: str | None = None
    execution_employee_ids: list[str] = Field(default_factory=list)
    notes: str | None = None
    deliverables: list[DeliverableCreate] = Field(default_factory=list)


class ClientServiceCreate(ServiceDraft):
    client_id: UUID


class ClientServiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    main_package_id: UUID | None
    sub_package_id: str | None
    service_name: str
    service_name_en: str | None
    start_date: date | None
    end_date: date | None
    status: ServiceStatus
    price: Decimal
    currency: str
    sales_employee_id: str | None
    execution_employee_ids: list[str]
    notes: str | None
    completed_at: datetime | None
    created_at: datetime
