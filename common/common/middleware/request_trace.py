import json
import logging
import time
import uuid
from dataclasses import dataclass

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from urllib.parse import parse_qs


REQUEST_ID_HEADER = "X-Request-Id"
SPAN_ID_HEADER = "X-Span-Id"

# 노이즈를 줄이기 위해 로그에서 제외할 엔드포인트 경로 목록
IGNORED_LOG_PATHS: frozenset[str] = frozenset({"/health", "/health/ready"})

# 로그에 남기면 안 되는 요청 바디 필드 (공유 접근 키 등)
REDACTED_BODY_FIELDS: frozenset[str] = frozenset({"access_key", "accessKey"})

MAX_BODY_LOG_LENGTH = 1024

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True, slots=True)
class TraceIds:
    request_id: str
    span_id: str


def redact_body(text: str) -> str:
    """JSON 바디라면 민감 필드 값을 *** 로 바꾸고, 길이를 제한한다."""

    try:
        parsed = json.loads(text)
    except ValueError:
        return text[:MAX_BODY_LOG_LENGTH]

    if isinstance(parsed, dict):
        for key in REDACTED_BODY_FIELDS & parsed.keys():
            parsed[key] = "***"
        text = json.dumps(parsed, ensure_ascii=False)
    return text[:MAX_BODY_LOG_LENGTH]


class RequestTraceMiddleware(BaseHTTPMiddleware):
    """공통 Request/Span ID 로그 미들웨어.

    - X-Request-Id / X-Span-Id 를 읽고, 없으면 request_id 를 새로 만든다.
    - 같은 값을 request.state 와 응답 헤더에 싣는다.
    - 요청마다 한 줄의 완료(또는 실패) 로그를 남긴다. 경로에 user_code 가 있으면
      로그 필드로 함께 남기고, 바디의 접근 키는 가린다.
    """

    def __init__(self, app, logger: logging.Logger | None = None) -> None:  # type: ignore[override]
        super().__init__(app)
        self._logger = logger or logging.getLogger("request_trace")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace = TraceIds(
            request_id=request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex,
            span_id=request.headers.get(SPAN_ID_HEADER) or "0",
        )
        request.state.request_id = trace.request_id
        request.state.span_id = trace.span_id
        request.state.request_body = await self._read_body(request)

        should_log = request.url.path not in IGNORED_LOG_PATHS
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            if should_log:
                self._logger.exception(
                    "request failed",
                    extra=self._build_log_extra(request, trace, None, start),
                )
            raise

        response.headers.setdefault(REQUEST_ID_HEADER, trace.request_id)
        response.headers.setdefault(SPAN_ID_HEADER, trace.span_id)

        if should_log:
            self._logger.info(
                "completed request",
                extra=self._build_log_extra(request, trace, response.status_code, start),
            )
        return response

    @staticmethod
    async def _read_body(request: Request) -> str | None:
        if request.method not in _BODY_METHODS:
            return None
        body_bytes = await request.body()
        if not body_bytes:
            return None
        return redact_body(body_bytes.decode("utf-8", errors="replace"))

    @staticmethod
    def _build_log_extra(
        request: Request,
        trace: TraceIds,
        status: int | None,
        start: float,
    ) -> dict[str, object]:
        extra: dict[str, object] = {
            "request_id": trace.request_id,
            "span_id": trace.span_id,
            "method": request.method,
            "path": request.url.path,
            "duration": f"{(time.monotonic() - start) * 1000:.3f}ms",
        }
        if status is not None:
            extra["status"] = status

        # 라우팅이 끝난 뒤에는 scope 에 경로 파라미터가 채워져 있다.
        user_code = request.scope.get("path_params", {}).get("user_code")
        if user_code:
            extra["user_code"] = user_code

        query = request.url.query
        if query:
            parsed = parse_qs(query, keep_blank_values=True)
            if parsed:
                extra["query_params"] = {
                    key: values[0] if len(values) == 1 else values
                    for key, values in parsed.items()
                }

        body = getattr(request.state, "request_body", None)
        if body:
            extra["body"] = body

        return extra
