from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from app.context import get_correlation_id
from app.models.audit import AuditLog


def record(
    session: Session,
    *,
    action: str,
    entity_type: str,
    entity_id: str,
    metadata: dict[str, Any] | None = None,
    actor_user_id: str | None = None,
    correlation_id: str | None = None,
) -> AuditLog:
    """Stage an audit row on the caller's session.

    The row is committed or rolled back together with the transition it describes.
    """
    entry = AuditLog(
        actor_id=actor_user_id or "system",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=metadata or {},
        correlation_id=correlation_id or get_correlation_id(),
    )
    session.add(entry)
    return entry
