from app.business.delivery.api import packages_router, router
from app.business.delivery.models import ClientService, MainPackage, ServiceDeliverable, ServiceReport, WorkActivityLog
from app.business.delivery.schemas import (
    ClientServiceCreate,
    ClientServiceRead,
    DeliverableCreate,
    DeliverableRead,
    MainPackageCreate,
    MainPackageRead,
    ServiceDraft,
)
from app.business.delivery.service import DeliveryService, delivery_service

__all__ = [
    "router",
    "packages_router",
    "ClientService",
    "MainPackage",
    "ServiceDeliverable",
    "ServiceReport",
    "WorkActivityLog",
    "ClientServiceCreate",
    "ClientServiceRead",
    "DeliverableCreate",
    "DeliverableRead",
    "MainPackageCreate",
    "MainPackageRead",
    "ServiceDraft",
    "DeliveryService",
    "delivery_service",
]
