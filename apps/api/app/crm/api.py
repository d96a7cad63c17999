from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from app.api.errors import lifecycle_error_response
from app.business.delivery.schemas import ClientServiceRead
from app.business.delivery.service import delivery_service
from app.core.auth import AuthUser, get_current_user
from app.core.database import get_db
from app.crm.errors import LifecycleError
from app.crm.lifecycle import lifecycle_service
from app.crm.schemas import (
    ClientCreate,
    ClientRead,
    ClientStatus,
    ClientWithServiceCreate,
    ClientWithServiceRead,
    LeadCreate,
    LeadRead,
    LeadStage,
)
from app.crm.service import clients_service, leads_service


leads_router = APIRouter(prefix="/api/leads", tags=["crm-leads"])
clients_router = APIRouter(prefix="/api/clients", tags=["crm-clients"])
clients_with_service_router = APIRouter(prefix="/api/clients-with-service", tags=["crm-clients"])


@leads_router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    dto: LeadCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> LeadRead:
    return LeadRead.from_lead(leads_service.create_lead(db, user.sub, dto))


@leads_router.get("", response_model=list[LeadRead])
def list_leads(
    stage: LeadStage | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[LeadRead]:
    return [LeadRead.from_lead(lead) for lead in leads_service.list_leads(db, stage)]


@leads_router.get("/{lead_id}", response_model=LeadRead)
def get_lead(request: Request, lead_id: uuid.UUID, db: Session = Depends(get_db)) -> LeadRead | JSONResponse:
    try:
        return LeadRead.from_lead(leads_service.get_lead(db, lead_id))
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)


@leads_router.post("/{lead_id}/convert", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def convert_lead_to_client(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> ClientRead | JSONResponse:
    try:
        client = lifecycle_service.convert_lead_to_client(db, user.sub, lead_id)
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)
    return ClientRead.model_validate(client)


@clients_router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(
    dto: ClientCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> ClientRead:
    return ClientRead.model_validate(clients_service.create_client(db, user.sub, dto))


@clients_router.get("", response_model=list[ClientRead])
def list_clients(
    status_filter: ClientStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[ClientRead]:
    return [ClientRead.model_validate(client) for client in clients_service.list_clients(db, status_filter)]


@clients_router.get("/{client_id}", response_model=ClientRead)
def get_client(request: Request, client_id: uuid.UUID, db: Session = Depends(get_db)) -> ClientRead | JSONResponse:
    try:
        return ClientRead.model_validate(clients_service.get_client(db, client_id))
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)


@clients_router.get("/{client_id}/services", response_model=list[ClientServiceRead])
def list_client_services(
    request: Request,
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> list[ClientServiceRead] | JSONResponse:
    try:
        services = delivery_service.list_services_for_client(db, client_id)
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)
    return [ClientServiceRead.model_validate(service) for service in services]


@clients_router.post("/{client_id}/convert", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def convert_client_to_lead(
    request: Request,
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        lead = lifecycle_service.convert_client_to_lead(db, user.sub, client_id)
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)
    return LeadRead.from_lead(lead)


@clients_router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    request: Request,
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> Response:
    """Archive the client; a client that is already archived is removed for good."""
    try:
        client = clients_service.get_client(db, client_id)
        if client.status == "archived":
            lifecycle_service.delete_client(db, user.sub, client_id, expected_status="archived")
        else:
            lifecycle_service.archive_client(db, user.sub, client_id)
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _status_route(path: str, operation: str) -> None:
    transition = getattr(lifecycle_service, operation)

    def endpoint(
        request: Request,
        client_id: uuid.UUID,
        db: Session = Depends(get_db),
        user: AuthUser = Depends(get_current_user),
    ) -> ClientRead | JSONResponse:
        try:
            client = transition(db, user.sub, client_id)
        except LifecycleError as exc:
            return lifecycle_error_response(request, exc)
        return ClientRead.model_validate(client)

    endpoint.__name__ = operation
    clients_router.add_api_route(
        f"/{{client_id}}/{path}",
        endpoint,
        methods=["POST"],
        response_model=ClientRead,
        name=operation,
    )


_status_route("archive", "archive_client")
_status_route("restore", "restore_client")
_status_route("complete", "mark_client_completed")
_status_route("reactivate", "reactivate_client")


@clients_with_service_router.post("", response_model=ClientWithServiceRead, status_code=status.HTTP_201_CREATED)
def create_client_with_service(
    request: Request,
    dto: ClientWithServiceCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> ClientWithServiceRead | JSONResponse:
    try:
        client, service = lifecycle_service.create_client_with_service(db, user.sub, dto.client, dto.service)
    except LifecycleError as exc:
        return lifecycle_error_response(request, exc)
    return ClientWithServiceRead(
        client=ClientRead.model_validate(client),
        service=ClientServiceRead.model_validate(service),
    )
