from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from app.api.errors import lifecycle_error_response
from app.business.delivery.schemas import (
    ClientServiceCreate,
    ClientServiceRead,
    DeliverableCreate,
    DeliverableRead,
    MainPackageCreate,
    MainPackageRead,
)
from app.business.delivery.service import delivery_service
from app.core.auth import AuthUser, get_current_user
from app.core.database import get_db
from app.crm.errors import LifecycleError


router = APIRouter(prefix="/api/client-services", tags=["delivery"])
packages_router = APIRouter(prefix="/api/main-packages", tags=["delivery"])


@packages_router.post("", response_model=MainPackageRead, status_code=status.HTTP_201_CREATED)
def create_main_package(dto: MainPackageCreate, db: Session = Depends(get_db)) -> MainPackageRead:
    return MainPackageRead.model_validate(delivery_service.create_main_package(db, dto))


@packages_router.get("", response_model=list[MainPackageRead])
def list_main_packages(
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[MainPackageRead]:
    return [MainPackageRead.model_validate(row) for row in delivery_service.list_main_packages(db, active_only=active_only)]


@router.post("", response_model=ClientServiceRead, status_code=status.HTTP_201_CREATED)
def create_client_service(
    request: Request,
    dto: ClientServiceCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> ClientServiceRead | JSONResponse:
    try:
        service = delivery_service.create_service(db, user.sub, dto)
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)
    return ClientServiceRead.model_validate(service)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client_service(
    request: Request,
    service_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> Response:
    try:
        delivery_service.delete_service(db, user.sub, service_id)
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{service_id}/deliverables", response_model=list[DeliverableRead])
def list_deliverables(
    request: Request,
    service_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> list[DeliverableRead] | JSONResponse:
    try:
        delivery_service.get_service(db, service_id)
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)
    return [DeliverableRead.model_validate(row) for row in delivery_service.list_deliverables(db, service_id)]


@router.post("/{service_id}/deliverables", response_model=DeliverableRead, status_code=status.HTTP_201_CREATED)
def add_deliverable(
    request: Request,
    service_id: uuid.UUID,
    dto: DeliverableCreate,
    db: Session = Depends(get_db),
) -> DeliverableRead | JSONResponse:
    try:
        deliverable = delivery_service.add_deliverable(db, service_id, dto)
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)
    return DeliverableRead.model_validate(deliverable)
