from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..schemas.grievances import GrievanceResponse, ResolveGrievanceRequest
from ...models.grievance import (
    GrievanceInput,
    GrievanceStats,
    GrievanceStatus,
    GrievanceUpdate,
)
from ...services.grievances_service import (
    GrievancesService,
    get_grievances_service,
)

router = APIRouter()


@router.post(
    "/{user_code}",
    response_model=GrievanceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="불만 작성",
)
def create_grievance(
    user_code: str,
    body: GrievanceInput,
    service: GrievancesService = Depends(get_grievances_service),
) -> GrievanceResponse:
    return GrievanceResponse.from_domain(service.create(user_code, body), user_code)


@router.get(
    "/{user_code}",
    response_model=list[GrievanceResponse],
    summary="불만 목록 (작성 + 수신)",
)
def list_grievances(
    user_code: str,
    status_filter: GrievanceStatus | None = Query(default=None, alias="status"),
    service: GrievancesService = Depends(get_grievances_service),
) -> list[GrievanceResponse]:
    return [
        GrievanceResponse.from_domain(g, user_code)
        for g in service.list_for_user(user_code, status=status_filter)
    ]


@router.get(
    "/{user_code}/stats",
    response_model=GrievanceStats,
    summary="작성한 불만 통계",
)
def grievance_stats(
    user_code: str,
    service: GrievancesService = Depends(get_grievances_service),
) -> GrievanceStats:
    return service.stats(user_code)


@router.get(
    "/{user_code}/{grievance_id}",
    response_model=GrievanceResponse,
    summary="불만 조회",
)
def get_grievance(
    user_code: str,
    grievance_id: str,
    service: GrievancesService = Depends(get_grievances_service),
) -> GrievanceResponse:
    return GrievanceResponse.from_domain(service.get(user_code, grievance_id), user_code)


@router.put(
    "/{user_code}/{grievance_id}",
    response_model=GrievanceResponse,
    summary="불만 수정 (pending 만)",
)
def update_grievance(
    user_code: str,
    grievance_id: str,
    body: GrievanceUpdate,
    service: GrievancesService = Depends(get_grievances_service),
) -> GrievanceResponse:
    updated = service.update(user_code, grievance_id, body)
    return GrievanceResponse.from_domain(updated, user_code)


@router.delete("/{user_code}/{grievance_id}", summary="불만 삭제 (pending 만)")
def delete_grievance(
    user_code: str,
    grievance_id: str,
    service: GrievancesService = Depends(get_grievances_service),
) -> dict[str, str]:
    service.delete(user_code, grievance_id)
    return {"message": "grievance_deleted"}


@router.put(
    "/{user_code}/{grievance_id}/resolve",
    response_model=GrievanceResponse,
    summary="불만 해결 (파트너에게 크레딧 반영)",
)
def resolve_grievance(
    user_code: str,
    grievance_id: str,
    body: ResolveGrievanceRequest | None = None,
    service: GrievancesService = Depends(get_grievances_service),
) -> GrievanceResponse:
    response_text = body.response_text if body else None
    resolved = service.resolve(user_code, grievance_id, response_text)
    return GrievanceResponse.from_domain(resolved, user_code)


@router.put(
    "/{user_code}/{grievance_id}/dismiss",
    response_model=GrievanceResponse,
    summary="불만 기각",
)
def dismiss_grievance(
    user_code: str,
    grievance_id: str,
    service: GrievancesService = Depends(get_grievances_service),
) -> GrievanceResponse:
    return GrievanceResponse.from_domain(service.dismiss(user_code, grievance_id), user_code)
