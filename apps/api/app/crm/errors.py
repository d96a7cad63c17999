from __future__ import annotations

from typing import Any


class LifecycleError(Exception):
    """Base for every failure a lifecycle operation can report.

    ``status_code`` and ``code`` are consumed by the API layer when building the
    error envelope; the engine itself never looks at them.
    """

    status_code = 500
    code = "lifecycle_error"

    def __init__(self, message: str, *, operation: str | None = None, entity_id: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.entity_id = str(entity_id) if entity_id is not None else None

    def details(self) -> dict[str, Any]:
        return {"operation": self.operation, "entity_id": self.entity_id}


class NotFoundError(LifecycleError):
    status_code = 404
    code = "not_found"


class SnapshotCorruptError(LifecycleError):
    status_code = 422
    code = "snapshot_corrupt"


class InvalidTransitionError(LifecycleError):
    status_code = 409
    code = "invalid_transition"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        entity_id: Any = None,
        current_status: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation, entity_id=entity_id)
        self.current_status = current_status

    def details(self) -> dict[str, Any]:
        return {**super().details(), "current_status": self.current_status}


class DefaultPackageUnavailableError(LifecycleError):
    status_code = 409
    code = "default_package_unavailable"


class PackageRequiredError(LifecycleError):
    status_code = 422
    code = "package_required"


class TransactionFailureError(LifecycleError):
    status_code = 500
    code = "transaction_failed"


class CascadeCycleError(Exception):
    def __init__(self, tables: list[str]) -> None:
        super().__init__(f"cascade dependency cycle between: {', '.join(sorted(tables))}")
        self.tables = tables
