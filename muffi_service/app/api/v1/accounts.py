from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..schemas.accounts import (
    AccountProfileResponse,
    LinkPartnerRequest,
    SignupRequest,
)
from ...models.account import SignupInput
from ...services.partnership_service import (
    PartnershipService,
    get_partnership_service,
)

router = APIRouter()


@router.post(
    "/signup",
    response_model=AccountProfileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="계정 생성 (자동 파트너 연결, 가입 보너스)",
)
def signup(
    body: SignupRequest,
    service: PartnershipService = Depends(get_partnership_service),
) -> AccountProfileResponse:
    input_model = SignupInput(**body.model_dump())
    return AccountProfileResponse.from_domain(service.signup(input_model))


@router.get(
    "/{user_code}", response_model=AccountProfileResponse, summary="계정 프로필 조회"
)
def get_profile(
    user_code: str,
    service: PartnershipService = Depends(get_partnership_service),
) -> AccountProfileResponse:
    return AccountProfileResponse.from_domain(service.get_profile(user_code))


@router.post(
    "/{user_code}/link-partner",
    response_model=AccountProfileResponse,
    summary="접근 키로 파트너 연결",
)
def link_partner(
    user_code: str,
    body: LinkPartnerRequest,
    service: PartnershipService = Depends(get_partnership_service),
) -> AccountProfileResponse:
    profile = service.link_by_access_key(user_code, body.access_key)
    return AccountProfileResponse.from_domain(profile)


@router.post(
    "/{user_code}/unlink-partner",
    response_model=AccountProfileResponse,
    summary="파트너 연결 해제",
)
def unlink_partner(
    user_code: str,
    service: PartnershipService = Depends(get_partnership_service),
) -> AccountProfileResponse:
    return AccountProfileResponse.from_domain(service.unlink(user_code))
