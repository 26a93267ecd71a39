from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


MUFFI_SERVICE_PORT = "MUFFI_SERVICE_PORT"
MUFFI_WELCOME_BONUS = "MUFFI_WELCOME_BONUS"
MUFFI_LINK_BONUS = "MUFFI_LINK_BONUS"
MUFFI_MAX_ACCESS_KEY_HOLDERS = "MUFFI_MAX_ACCESS_KEY_HOLDERS"
MUFFI_LEDGER_MAX_ATTEMPTS = "MUFFI_LEDGER_MAX_ATTEMPTS"


@dataclass(slots=True)
class LedgerConfig:
    """크레딧 원장 관련 정책 값.

    - welcome_bonus: 가입 시 지급하는 보너스
    - link_bonus: 파트너 연결 시 양쪽에 지급하는 보너스
    - max_access_key_holders: 하나의 접근 키를 공유할 수 있는 최대 계정 수
    - max_post_attempts: 원장 seq 충돌 시 재시도 횟수
    """

    welcome_bonus: int = 20
    link_bonus: int = 25
    max_access_key_holders: int = 2
    max_post_attempts: int = 5


def _read_positive_int(name: str, default: int) -> int:
    """정수 환경 변수를 읽는다. 비어 있으면 기본값, 잘못된 값이면 즉시 실패한다."""

    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default

    try:
        value = int(raw_value)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(
            f"{name} must be an integer value, got: {raw_value!r}"
        ) from exc

    if value <= 0:
        raise RuntimeError(f"{name} must be greater than zero, got: {value}")
    return value


def load_ledger_config() -> LedgerConfig:
    return LedgerConfig(
        welcome_bonus=_read_positive_int(MUFFI_WELCOME_BONUS, 20),
        link_bonus=_read_positive_int(MUFFI_LINK_BONUS, 25),
        max_access_key_holders=_read_positive_int(MUFFI_MAX_ACCESS_KEY_HOLDERS, 2),
        max_post_attempts=_read_positive_int(MUFFI_LEDGER_MAX_ATTEMPTS, 5),
    )


@lru_cache(maxsize=1)
def get_ledger_config() -> LedgerConfig:
    """FastAPI DI용 LedgerConfig (프로세스당 한 번 로드)."""

    return load_ledger_config()


def get_service_port() -> int:
    return _read_positive_int(MUFFI_SERVICE_PORT, 8003)
