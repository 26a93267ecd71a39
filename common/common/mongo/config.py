from __future__ import annotations

import os
from dataclasses import dataclass


MONGO_URI_ENV = "MONGO_URI"
MONGO_DB_NAME_ENV = "MONGO_DB_NAME"
MONGO_TIMEOUT_MS_ENV = "MONGO_SERVER_SELECTION_TIMEOUT_MS"

DEFAULT_SERVER_SELECTION_TIMEOUT_MS = 5000


@dataclass(frozen=True, slots=True)
class MongoSettings:
    uri: str
    db_name: str | None
    server_selection_timeout_ms: int


def get_mongo_uri() -> str:
    """MongoDB 연결 URI. 설정되지 않았으면 바로 실패한다."""

    value = os.getenv(MONGO_URI_ENV, "").strip()
    if not value:
        raise RuntimeError(
            f"{MONGO_URI_ENV} environment variable is required for MongoDB",
        )
    return value


def get_mongo_db_name() -> str | None:
    """비어 있으면 None. 이 경우 클라이언트는 URI 의 기본 DB 를 쓴다."""

    value = os.getenv(MONGO_DB_NAME_ENV, "").strip()
    return value or None


def get_server_selection_timeout_ms() -> int:
    raw = os.getenv(MONGO_TIMEOUT_MS_ENV, "").strip()
    if not raw:
        return DEFAULT_SERVER_SELECTION_TIMEOUT_MS
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{MONGO_TIMEOUT_MS_ENV} must be an integer: {raw!r}") from exc
    if value <= 0:
        raise RuntimeError(f"{MONGO_TIMEOUT_MS_ENV} must be positive: {value}")
    return value


def load_mongo_settings() -> MongoSettings:
    return MongoSettings(
        uri=get_mongo_uri(),
        db_name=get_mongo_db_name(),
        server_selection_timeout_ms=get_server_selection_timeout_ms(),
    )
