from __future__ import annotations

import logging
import threading
from typing import Optional

from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.database import Database

from .config import MongoSettings, load_mongo_settings


logger = logging.getLogger(__name__)


_client: Optional[MongoClient] = None
_db: Optional[Database] = None
_lock = threading.Lock()


# 컬렉션별 필수 인덱스. create_indexes 는 이미 있는 인덱스를 다시 만들지 않는다.
INDEXES: dict[str, list[IndexModel]] = {
    "credit_transactions": [
        # 유저별 원장 순번. 동시 쓰기 충돌은 이 유니크 인덱스로 감지한다.
        IndexModel(
            [("user_code", ASCENDING), ("seq", ASCENDING)],
            name="uniq_user_seq",
            unique=True,
        ),
        IndexModel(
            [("user_code", ASCENDING), ("created_at", DESCENDING)],
            name="idx_user_created_at_desc",
        ),
        IndexModel(
            [("type", ASCENDING), ("created_at", DESCENDING)],
            name="idx_type_created_at_desc",
        ),
        # 키가 없는 트랜잭션은 유니크 검사에서 제외한다.
        IndexModel(
            [("idempotency_key", ASCENDING)],
            name="uniq_idempotency_key",
            unique=True,
            partialFilterExpression={"idempotency_key": {"$type": "string"}},
        ),
    ],
    "accounts": [
        IndexModel([("user_code", ASCENDING)], name="uniq_user_code", unique=True),
        IndexModel([("email", ASCENDING)], name="uniq_email", unique=True),
        IndexModel(
            [("access_key_hash", ASCENDING), ("partner_code", ASCENDING)],
            name="idx_access_key_partner",
        ),
    ],
    "services": [
        IndexModel(
            [("owner_code", ASCENDING), ("created_at", DESCENDING)],
            name="idx_owner_created_at_desc",
        ),
    ],
    "appointments": [
        IndexModel([("user_code", ASCENDING), ("date", ASCENDING)], name="idx_user_date"),
        IndexModel(
            [("partner_code", ASCENDING), ("date", ASCENDING)], name="idx_partner_date"
        ),
    ],
    "grievances": [
        IndexModel(
            [("user_code", ASCENDING), ("status", ASCENDING)], name="idx_user_status"
        ),
        IndexModel(
            [("partner_code", ASCENDING), ("status", ASCENDING)],
            name="idx_partner_status",
        ),
    ],
}


def get_client() -> MongoClient:
    """전역 MongoClient 싱글톤을 반환한다.

    처음 호출될 때 연결을 ping 으로 확인하고, 사용할 DB 를 정한 뒤 INDEXES 를 보장한다.
    인덱스가 없으면 원장 seq 유일성이 깨지므로 인덱스 생성 실패는 그대로 전파한다.
    """

    global _client, _db

    if _client is not None:
        return _client

    with _lock:
        if _client is None:
            client, db = _connect(load_mongo_settings())
            try:
                ensure_indexes(db)
            except Exception:
                logger.exception("failed to ensure MongoDB indexes (db=%s)", db.name)
                client.close()
                raise
            _client, _db = client, db
            logger.info("MongoDB connected and indexes ensured (db=%s)", db.name)

    return _client


def get_database() -> Database:
    """전역 기본 Database 객체를 반환한다 (FastAPI DI 에서도 사용)."""

    if _db is None:
        get_client()
    assert _db is not None
    return _db


def ensure_indexes(db: Database) -> None:
    for collection, indexes in INDEXES.items():
        db[collection].create_indexes(indexes)


def _connect(settings: MongoSettings) -> tuple[MongoClient, Database]:
    client: MongoClient = MongoClient(
        settings.uri,
        tz_aware=True,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
    )

    try:
        client.admin.command("ping")
    except Exception as exc:  # noqa: BLE001
        client.close()
        raise RuntimeError(f"failed to connect to MongoDB: {exc}") from exc

    # MONGO_DB_NAME 우선, 없으면 URI 의 기본 DB
    if settings.db_name:
        return client, client[settings.db_name]
    try:
        return client, client.get_default_database()
    except Exception as exc:  # noqa: BLE001
        client.close()
        raise RuntimeError(
            "MongoDB database name must be specified via MONGO_DB_NAME or in MONGO_URI (mongodb://.../db_name)",
        ) from exc
