"""FastAPI router for the store-backed health check."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response

from credential_service.application.dto.account_models import HealthResponse
from credential_service.application.ports.account_repository_port import (
    AccountRepositoryPort,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


def build_health_router(*, accounts: AccountRepositoryPort) -> APIRouter:
    """Build router exposing a health check that round-trips the account store."""

    router = APIRouter(prefix="/api", tags=["health"])

    @router.get("/health", response_model=HealthResponse)
    async def health(response: Response) -> HealthResponse:
        try:
            await accounts.ping()
        except StoreUnavailableError as exc:
            logger.warning("health_check_failed error=%s", exc)
            response.status_code = 503
            return HealthResponse(ok=False, db=False, message="DB query failed")
        return HealthResponse(ok=True, db=True, message="Server + DB OK")

    return router
