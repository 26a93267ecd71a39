from fastapi import APIRouter

from .accounts import router as accounts_router
from .appointments import router as appointments_router
from .credits import router as credits_router
from .grievances import router as grievances_router
from .services import router as services_router

api_router = APIRouter()
api_router.include_router(accounts_router, prefix="/accounts", tags=["accounts"])
api_router.include_router(
    credits_router
)  # prefix는 router 파일 내부에서 정의되어 있음 (/credits)
api_router.include_router(services_router, prefix="/services", tags=["services"])
api_router.include_router(
    appointments_router, prefix="/appointments", tags=["appointments"]
)
api_router.include_router(grievances_router, prefix="/grievances", tags=["grievances"])
