from __future__ import annotations

from datetime import datetime, timezone

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database

from ..exceptions import NotFoundError
from ..models.service import Service, ServiceInput
from ..repositories.interfaces import (
    AccountRepositoryInterface,
    ServiceRepositoryInterface,
)
from ..repositories.service_repository import ServiceRepository
from .ledger_service import get_account_repository


class CatalogService:
    """커플이 서로에게 제공하는 서비스(카탈로그) 관리."""

    def __init__(
        self,
        service_repo: ServiceRepositoryInterface,
        account_repo: AccountRepositoryInterface,
    ) -> None:
        self._service_repo = service_repo
        self._account_repo = account_repo

    def create_service(self, owner_code: str, input_model: ServiceInput) -> Service:
        if self._account_repo.find_by_user_code(owner_code) is None:
            raise NotFoundError(f"account not found: {owner_code}")

        now = datetime.now(timezone.utc)
        return self._service_repo.insert(
            Service(
                owner_code=owner_code,
                name=input_model.name.strip(),
                description=input_model.description,
                credit_cost=input_model.credit_cost,
                category=input_model.category,
                location=input_model.location,
                notes=input_model.notes,
                created_at=now,
                updated_at=now,
            )
        )

    def get_service(self, service_id: str) -> Service:
        service = self._service_repo.find_by_id(service_id)
        if service is None:
            raise NotFoundError(f"service not found: {service_id}")
        return service

    def list_services(
        self, page: int, page_size: int, owner_code: str | None = None
    ) -> tuple[list[Service], int]:
        return self._service_repo.list(page, page_size, owner_code=owner_code)


def get_service_repository(
    db: Database = Depends(get_database),
) -> ServiceRepositoryInterface:
    """FastAPI DI용 ServiceRepository 팩토리."""

    return ServiceRepository(db)


def get_catalog_service(
    service_repo: ServiceRepositoryInterface = Depends(get_service_repository),
    account_repo: AccountRepositoryInterface = Depends(get_account_repository),
) -> CatalogService:
    """FastAPI DI용 CatalogService 팩토리."""

    return CatalogService(service_repo, account_repo)
