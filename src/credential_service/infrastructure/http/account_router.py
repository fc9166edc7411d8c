"""FastAPI router for registration and login endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response

from credential_service.application.dto.account_models import (
    AccountPayload,
    ApiResponse,
    CredentialsRequest,
)
from credential_service.application.ports.account_repository_port import StoreUnavailableError
from credential_service.application.services.account_service import (
    AccountOutcome,
    AccountResult,
    AccountService,
)

_OUTCOME_STATUS: dict[AccountOutcome, int] = {
    AccountOutcome.CREATED: 201,
    AccountOutcome.SUCCESS: 200,
    AccountOutcome.VALIDATION_ERROR: 422,
    AccountOutcome.DUPLICATE_EMAIL: 409,
    AccountOutcome.NOT_FOUND: 404,
    AccountOutcome.INVALID_CREDENTIALS: 401,
}

_OUTCOME_MESSAGES: dict[AccountOutcome, str] = {
    AccountOutcome.CREATED: "Account created",
    AccountOutcome.SUCCESS: "Login successful",
    AccountOutcome.VALIDATION_ERROR: "Email & password required",
    AccountOutcome.DUPLICATE_EMAIL: "Email already exists",
    AccountOutcome.NOT_FOUND: "User not found. Please Sign Up.",
    AccountOutcome.INVALID_CREDENTIALS: "Wrong password",
}


def build_account_router(*, account_service: AccountService) -> APIRouter:
    """Build router exposing account registration and login endpoints."""

    router = APIRouter(prefix="/api", tags=["accounts"])

    @router.post("/register", response_model=ApiResponse, response_model_exclude_none=True)
    async def register(payload: CredentialsRequest, response: Response) -> ApiResponse:
        try:
            result = await account_service.register(
                email=payload.email,
                password=payload.password,
            )
        except StoreUnavailableError as exc:
            raise HTTPException(status_code=503, detail="Server error (register)") from exc
        return _to_response(result, response=response)

    @router.post("/login", response_model=ApiResponse, response_model_exclude_none=True)
    async def login(payload: CredentialsRequest, response: Response) -> ApiResponse:
        try:
            result = await account_service.login(email=payload.email, password=payload.password)
        except StoreUnavailableError as exc:
            raise HTTPException(status_code=503, detail="Server error (login)") from exc
        return _to_response(result, response=response)

    return router


def _to_response(result: AccountResult, *, response: Response) -> ApiResponse:
    response.status_code = _OUTCOME_STATUS[result.outcome]
    user = None
    if result.account is not None:
        user = AccountPayload(id=result.account.account_id, email=result.account.email)
    return ApiResponse(
        success=result.outcome in {AccountOutcome.CREATED, AccountOutcome.SUCCESS},
        message=result.detail or _OUTCOME_MESSAGES[result.outcome],
        user=user,
    )
