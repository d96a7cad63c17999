from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.crm.errors import LifecycleError, TransactionFailureError


logger = logging.getLogger("app.platform.store")


@contextmanager
def atomic(session: Session, *, operation: str, entity_id: Any = None) -> Iterator[Session]:
    """Commit the work done inside the block, or roll all of it back.

    Domain errors propagate unchanged; database errors are re-raised as
    ``TransactionFailureError`` once the session has been rolled back.
    """
    try:
        yield session
        session.commit()
    except LifecycleError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("transaction.rolled_back", extra={"operation": operation, "error": str(exc)[:500]})
        raise TransactionFailureError(
            f"{operation} was rolled back",
            operation=operation,
            entity_id=entity_id,
        ) from exc
    except Exception:
        session.rollback()
        raise
