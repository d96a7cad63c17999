from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app import audit
from app.crm.errors import NotFoundError
from app.crm.models import Client, Lead
from app.crm.repositories import ClientRepository, LeadRepository
from app.crm.schemas import ClientCreate, LeadCreate
from app.platform.store import atomic


logger = logging.getLogger("app.crm.service")


@dataclass(slots=True)
class LeadsService:
    lead_repository: LeadRepository = LeadRepository()

    def create_lead(self, session: Session, actor_user_id: str, payload: LeadCreate) -> Lead:
        with atomic(session, operation="create_lead"):
            lead = self.lead_repository.add(session, Lead(**payload.model_dump()))
            audit.record(
                session,
                action="crm.lead.created",
                entity_type="lead",
                entity_id=str(lead.id),
                metadata={"stage": lead.stage},
                actor_user_id=actor_user_id,
            )
        logger.info("lead.created", extra={"lead_id": str(lead.id)})
        return lead

    def get_lead(self, session: Session, lead_id: uuid.UUID) -> Lead:
        lead = self.lead_repository.get(session, lead_id)
        if lead is None:
            raise NotFoundError("lead not found", operation="get_lead", entity_id=lead_id)
        return lead

    def list_leads(self, session: Session, stage: str | None = None) -> list[Lead]:
        return self.lead_repository.list_by_stage(session, stage)


@dataclass(slots=True)
class ClientsService:
    client_repository: ClientRepository = ClientRepository()

    def create_client(self, session: Session, actor_user_id: str, payload: ClientCreate) -> Client:
        with atomic(session, operation="create_client"):
            client = self.client_repository.add(session, Client(**payload.model_dump()))
            audit.record(
                session,
                action="crm.client.created",
                entity_type="client",
                entity_id=str(client.id),
                metadata={"status": client.status},
                actor_user_id=actor_user_id,
            )
        logger.info("client.created", extra={"client_id": str(client.id)})
        return client

    def get_client(self, session: Session, client_id: uuid.UUID) -> Client:
        client = self.client_repository.get(session, client_id)
        if client is None:
            raise NotFoundError("client not found", operation="get_client", entity_id=client_id)
        return client

    def list_clients(self, session: Session, status: str | None = None) -> list[Client]:
        return self.client_repository.list_by_status(session, status)


leads_service = LeadsService()
clients_service = ClientsService()
