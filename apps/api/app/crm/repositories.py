from __future__ import annotations

from sqlalchemy.orm import Session

from app.crm.models import Client, Lead
from app.platform.store import BaseRepository


class LeadRepository(BaseRepository[Lead]):
    model = Lead

    def list_by_stage(self, session: Session, stage: str | None = None) -> list[Lead]:
        criteria = [Lead.stage == stage] if stage else []
        return self.list_where(session, *criteria, order_by=(Lead.created_at.desc(),))


class ClientRepository(BaseRepository[Client]):
    model = Client

    def list_by_status(self, session: Session, status: str | None = None) -> list[Client]:
        criteria = [Client.status == status] if status else []
        return self.list_where(session, *criteria, order_by=(Client.created_at.desc(),))

