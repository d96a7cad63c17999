from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.business.delivery.schemas import ClientServiceRead, ServiceDraft


LeadStage = Literal["new", "contacted", "proposal_sent", "negotiation", "won", "lost"]
ClientStatus = Literal["active", "on_hold", "completed", "archived"]


class LeadCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    country: str | None = None
    source: str | None = None
    stage: LeadStage = "new"
    deal_value: Decimal | None = Field(default=None, ge=0)
    deal_currency: str | None = None
    main_package_id: UUID | None = None
    negotiator_id: str | None = None
    notes: str | None = None


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None
    phone: str | None
    company: str | None
    country: str | None
    source: str | None
    stage: LeadStage
    deal_value: Decimal | None
    deal_currency: str | None
    main_package_id: UUID | None
    negotiator_id: str | None
    notes: str | None
    was_confirmed_client: bool
    converted_from_client_id: UUID | None
    has_preserved_client_data: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_lead(cls, lead: object) -> LeadRead:
        read = cls.model_validate(lead)
        read.has_preserved_client_data = getattr(lead, "preserved_client_data", None) is not None
        return read


class ClientCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    country: str | None = None
    source: str | None = None
    status: ClientStatus = "active"
    sales_owner_id: str | None = None
    sales_owners: list[str] = Field(default_factory=list)
    assigned_manager_id: str | None = None
    assigned_staff: list[str] = Field(default_factory=list)
    notes: str | None = None


class ClientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None
    phone: str | None
    company: str | None
    country: str | None
    source: str | None
    status: ClientStatus
    sales_owner_id: str | None
    sales_owners: list[str]
    assigned_manager_id: str | None
    assigned_staff: list[str]
    converted_from_lead_id: UUID | None
    lead_created_at: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class ClientWithServiceCreate(BaseModel):
    client: ClientCreate
    service: ServiceDraft


class ClientWithServiceRead(BaseModel):
    client: ClientRead
    service: ClientServiceRead
