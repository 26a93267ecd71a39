from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware

from .api.health import router as health_router
from .api.v1 import api_router
from .config import get_service_port
from .exceptions import MuffiLinkError


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - framework hook
    yield


async def handle_muffi_link_error(request: Request, exc: MuffiLinkError) -> JSONResponse:
    """도메인 예외를 {"detail": {"code", "message"}} 형태로 변환한다."""

    if exc.status_code >= 500:
        logger.error("unhandled domain error: %s", exc.message)
    else:
        logger.info(
            "request rejected (code=%s): %s",
            exc.kind,
            exc.message,
            extra={"path": request.url.path},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": exc.kind, "message": exc.message}},
    )


def create_app() -> FastAPI:
    setup_logger("muffi-service")
    app = FastAPI(
        title="Muffi-Link Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    # 공통 Request/Span ID 로그 미들웨어
    app.add_middleware(RequestTraceMiddleware)
    app.add_exception_handler(MuffiLinkError, handle_muffi_link_error)  # type: ignore[arg-type]

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "muffi_service.app.main:app",
        host="0.0.0.0",
        port=get_service_port(),
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
