import json
import logging
import os
import sys
from datetime import datetime, timezone


# extra 로 넘어오면 JSON 레코드에 그대로 싣는 필드들
EXTRA_LOG_KEYS: tuple[str, ...] = (
    # HTTP (RequestTraceMiddleware)
    "request_id",
    "span_id",
    "method",
    "path",
    "query_params",
    "status",
    "body",
    "duration",
    # 도메인
    "user_code",
    "idempotency_key",
    "transfer_id",
)


def setup_logger(name: str = "muffi-link", level: str | None = None) -> logging.Logger:
    """서비스 로거와 루트 로거에 JSON stdout 핸들러를 하나씩 붙인다.

    Args:
        name: 로거 이름. SERVICE_NAME 환경변수가 있으면 그 값이 우선한다.
        level: 로그 레벨. 없으면 LOG_LEVEL 환경변수, 그것도 없으면 INFO.

    Returns:
        설정된 서비스 로거
    """
    log_level = getattr(logging, (level or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    service_name = os.getenv("SERVICE_NAME", name)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JsonFormatter(service_name))

    logger = logging.getLogger(service_name)
    logger.setLevel(log_level)
    # create_app 을 여러 번 호출해도(테스트) 한 줄만 출력되도록 교체한다.
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False

    # muffi_service.app.* 모듈 로거는 루트로 전파된다.
    root_logger = logging.getLogger()
    if not any(isinstance(h.formatter, JsonFormatter) for h in root_logger.handlers):
        root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    return logger


class JsonFormatter(logging.Formatter):
    """한 레코드를 한 줄의 JSON 으로 만든다.

    - datetime 은 UTC ISO8601 (밀리초)
    - extra 로 넘어온 EXTRA_LOG_KEYS 필드
    - 예외가 있으면 exc_info 문자열
    """

    def __init__(self, service_name: str | None = None) -> None:
        super().__init__()
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_record: dict[str, object] = {
            "datetime": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in EXTRA_LOG_KEYS:
            if hasattr(record, key):
                log_record[key] = getattr(record, key)

        service_name = getattr(record, "service_name", None) or self._service_name
        if service_name:
            log_record["service_name"] = service_name

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        # ObjectId, datetime 같은 값은 문자열로 남긴다.
        return json.dumps(log_record, ensure_ascii=False, default=str)
