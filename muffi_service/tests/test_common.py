from __future__ import annotations

import json
import logging

import pytest

from common.logger import JsonFormatter
from common.middleware.request_trace import MAX_BODY_LOG_LENGTH, redact_body
from common.mongo.config import get_server_selection_timeout_ms
from muffi_service.app.config import load_ledger_config


def test_redact_body_hides_access_key() -> None:
    body = json.dumps({"name": "alice", "accessKey": "our-secret"})

    redacted = json.loads(redact_body(body))

    assert redacted == {"name": "alice", "accessKey": "***"}


def test_redact_body_truncates_non_json() -> None:
    assert len(redact_body("x" * (MAX_BODY_LOG_LENGTH + 10))) == MAX_BODY_LOG_LENGTH


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.LogRecord(
        name="muffi", level=logging.INFO, pathname=__file__, lineno=1,
        msg="credits spent (amount=%s)", args=(5,), exc_info=None,
    )
    record.user_code = "alice"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "credits spent (amount=5)"
    assert payload["level"] == "INFO"
    assert payload["user_code"] == "alice"


def test_json_formatter_writes_ledger_fields_and_utc_timestamp() -> None:
    record = logging.LogRecord(
        name="muffi", level=logging.INFO, pathname=__file__, lineno=1,
        msg="posted credit transaction", args=(), exc_info=None,
    )
    record.created = 0.0
    record.idempotency_key = "welcome:alice"
    record.transfer_id = "t-1"

    payload = json.loads(JsonFormatter("muffi-service").format(record))

    assert payload["datetime"] == "1970-01-01T00:00:00.000+00:00"
    assert payload["idempotency_key"] == "welcome:alice"
    assert payload["transfer_id"] == "t-1"
    assert payload["service_name"] == "muffi-service"


def test_ledger_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MUFFI_WELCOME_BONUS", "30")

    config = load_ledger_config()

    assert config.welcome_bonus == 30
    assert config.link_bonus == 25


def test_ledger_config_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MUFFI_LEDGER_MAX_ATTEMPTS", "zero")

    with pytest.raises(RuntimeError):
        load_ledger_config()


def test_mongo_timeout_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", raising=False)

    assert get_server_selection_timeout_ms() == 5000
