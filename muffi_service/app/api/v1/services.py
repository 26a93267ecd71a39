from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..schemas.appointments import AppointmentResponse, BookPersistedServiceRequest
from ..schemas.common import PaginatedResponse
from ..schemas.services import ServiceResponse
from ...models.appointment import BookingInput
from ...models.service import PersistedServiceRef, ServiceInput
from ...services.appointments_service import (
    AppointmentsService,
    get_appointments_service,
)
from ...services.catalog_service import CatalogService, get_catalog_service

router = APIRouter()


@router.get(
    "",
    response_model=PaginatedResponse[ServiceResponse],
    summary="서비스 목록 조회",
)
def list_services(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    owner_code: str | None = None,
    service: CatalogService = Depends(get_catalog_service),
) -> PaginatedResponse[ServiceResponse]:
    items, total = service.list_services(page, page_size, owner_code=owner_code)
    return PaginatedResponse(
        items=[ServiceResponse.from_domain(s) for s in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{service_id}", response_model=ServiceResponse, summary="서비스 조회")
def get_service(
    service_id: str,
    service: CatalogService = Depends(get_catalog_service),
) -> ServiceResponse:
    return ServiceResponse.from_domain(service.get_service(service_id))


@router.post(
    "/{user_code}",
    response_model=ServiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="서비스 등록",
)
def create_service(
    user_code: str,
    body: ServiceInput,
    service: CatalogService = Depends(get_catalog_service),
) -> ServiceResponse:
    return ServiceResponse.from_domain(service.create_service(user_code, body))


@router.post(
    "/{service_id}/book/{user_code}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="저장된 서비스 예약",
)
def book_service(
    service_id: str,
    user_code: str,
    body: BookPersistedServiceRequest,
    service: AppointmentsService = Depends(get_appointments_service),
) -> AppointmentResponse:
    booking = BookingInput(
        service=PersistedServiceRef(service_id=service_id),
        date=body.date,
        time=body.time,
        location=body.location,
        notes=body.notes,
        moodboard_id=body.moodboard_id,
    )
    return AppointmentResponse.from_domain(service.book(user_code, booking))
