from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..schemas.appointments import (
    AppointmentResponse,
    RateAppointmentRequest,
    RateAppointmentResponse,
)
from ...models.appointment import BookingInput
from ...services.appointments_service import (
    AppointmentsService,
    get_appointments_service,
)

router = APIRouter()


@router.post(
    "/{user_code}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="예약 생성 (저장된 서비스 또는 즉석 서비스)",
)
def book_appointment(
    user_code: str,
    body: BookingInput,
    service: AppointmentsService = Depends(get_appointments_service),
) -> AppointmentResponse:
    return AppointmentResponse.from_domain(service.book(user_code, body))


@router.get(
    "/{user_code}",
    response_model=list[AppointmentResponse],
    summary="내 예약 목록",
)
def list_appointments(
    user_code: str,
    service: AppointmentsService = Depends(get_appointments_service),
) -> list[AppointmentResponse]:
    return [AppointmentResponse.from_domain(a) for a in service.list_for_user(user_code)]


@router.get(
    "/{user_code}/{appointment_id}",
    response_model=AppointmentResponse,
    summary="예약 조회",
)
def get_appointment(
    user_code: str,
    appointment_id: str,
    service: AppointmentsService = Depends(get_appointments_service),
) -> AppointmentResponse:
    return AppointmentResponse.from_domain(service.get(user_code, appointment_id))


@router.put(
    "/{user_code}/{appointment_id}/accept",
    response_model=AppointmentResponse,
    summary="예약 수락",
)
def accept_appointment(
    user_code: str,
    appointment_id: str,
    service: AppointmentsService = Depends(get_appointments_service),
) -> AppointmentResponse:
    return AppointmentResponse.from_domain(service.accept(user_code, appointment_id))


@router.put(
    "/{user_code}/{appointment_id}/decline",
    response_model=AppointmentResponse,
    summary="예약 거절 (예약자에게 환불)",
)
def decline_appointment(
    user_code: str,
    appointment_id: str,
    service: AppointmentsService = Depends(get_appointments_service),
) -> AppointmentResponse:
    return AppointmentResponse.from_domain(service.decline(user_code, appointment_id))


@router.put(
    "/{user_code}/{appointment_id}/complete",
    response_model=AppointmentResponse,
    summary="예약 완료",
)
def complete_appointment(
    user_code: str,
    appointment_id: str,
    service: AppointmentsService = Depends(get_appointments_service),
) -> AppointmentResponse:
    return AppointmentResponse.from_domain(service.complete(user_code, appointment_id))


@router.put(
    "/{user_code}/{appointment_id}/rate",
    response_model=RateAppointmentResponse,
    summary="완료된 예약 평가",
)
def rate_appointment(
    user_code: str,
    appointment_id: str,
    body: RateAppointmentRequest,
    service: AppointmentsService = Depends(get_appointments_service),
) -> RateAppointmentResponse:
    appointment, delta = service.rate(
        user_code, appointment_id, body.rating, body.feedback
    )
    assert appointment.final_credit_cost is not None
    return RateAppointmentResponse(
        appointment=AppointmentResponse.from_domain(appointment),
        credit_change=delta,
        final_credit_cost=appointment.final_credit_cost,
    )


@router.delete(
    "/{user_code}/{appointment_id}",
    response_model=AppointmentResponse,
    summary="예약 취소 (예약자에게 환불)",
)
def cancel_appointment(
    user_code: str,
    appointment_id: str,
    service: AppointmentsService = Depends(get_appointments_service),
) -> AppointmentResponse:
    return AppointmentResponse.from_domain(service.cancel(user_code, appointment_id))
