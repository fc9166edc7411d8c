"""FastAPI router for the email-code password reset endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response

from credential_service.application.dto.account_models import (
    ApiResponse,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    VerifyResetCodeRequest,
)
from credential_service.application.ports.account_repository_port import StoreUnavailableError
from credential_service.application.services.password_reset_service import (
    PasswordResetService,
    ResetOutcome,
    ResetResult,
)

_SUCCESS_OUTCOMES = frozenset(
    {ResetOutcome.REQUESTED, ResetOutcome.VALID, ResetOutcome.PASSWORD_UPDATED}
)

_OUTCOME_STATUS: dict[ResetOutcome, int] = {
    ResetOutcome.REQUESTED: 200,
    ResetOutcome.VALID: 200,
    ResetOutcome.PASSWORD_UPDATED: 200,
    ResetOutcome.VALIDATION_ERROR: 422,
    ResetOutcome.NOT_FOUND: 404,
    ResetOutcome.NO_CHALLENGE: 400,
    ResetOutcome.EXPIRED: 400,
    ResetOutcome.INVALID_OTP: 400,
    ResetOutcome.EXHAUSTED: 429,
    ResetOutcome.DELIVERY_FAILED: 502,
}

_OUTCOME_MESSAGES: dict[ResetOutcome, str] = {
    ResetOutcome.VALID: "OTP verified.",
    ResetOutcome.PASSWORD_UPDATED: "Password updated successfully.",
    ResetOutcome.NOT_FOUND: "User not found",
    ResetOutcome.NO_CHALLENGE: "OTP not requested.",
    ResetOutcome.EXPIRED: "OTP expired. Request again.",
    ResetOutcome.EXHAUSTED: "Too many attempts. Request new OTP.",
    ResetOutcome.INVALID_OTP: "Invalid OTP.",
}


def build_password_reset_router(*, password_reset_service: PasswordResetService) -> APIRouter:
    """Build router exposing forgot-password, verify and reset endpoints."""

    router = APIRouter(prefix="/api/auth", tags=["password-reset"])

    @router.post("/forgot-password", response_model=ApiResponse, response_model_exclude_none=True)
    async def forgot_password(payload: ForgotPasswordRequest, response: Response) -> ApiResponse:
        try:
            result = await password_reset_service.request_reset(email=payload.email)
        except StoreUnavailableError as exc:
            raise HTTPException(status_code=503, detail="Server error (forgot-password)") from exc
        return _to_response(result, response=response)

    @router.post(
        "/verify-reset-otp",
        response_model=ApiResponse,
        response_model_exclude_none=True,
    )
    async def verify_reset_otp(
        payload: VerifyResetCodeRequest,
        response: Response,
    ) -> ApiResponse:
        try:
            result = await password_reset_service.verify_code(
                email=payload.email,
                code=payload.otp,
            )
        except StoreUnavailableError as exc:
            raise HTTPException(status_code=503, detail="Server error (verify-reset-otp)") from exc
        return _to_response(result, response=response)

    @router.post("/reset-password", response_model=ApiResponse, response_model_exclude_none=True)
    async def reset_password(payload: ResetPasswordRequest, response: Response) -> ApiResponse:
        try:
            result = await password_reset_service.commit_reset(
                email=payload.email,
                code=payload.otp,
                new_password=payload.new_password,
            )
        except StoreUnavailableError as exc:
            raise HTTPException(status_code=503, detail="Server error (reset-password)") from exc
        return _to_response(result, response=response)

    return router


def _to_response(result: ResetResult, *, response: Response) -> ApiResponse:
    response.status_code = _OUTCOME_STATUS[result.outcome]
    response.headers["Cache-Control"] = "no-store"
    return ApiResponse(
        success=result.outcome in _SUCCESS_OUTCOMES,
        message=result.detail or _OUTCOME_MESSAGES.get(result.outcome, result.outcome.value),
    )
