"""Pydantic models for account and password-reset HTTP payloads."""

from __future__ import annotations

from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RequestModel(BaseModel):
    """Base request model; services re-validate every field themselves."""

    model_config = ConfigDict(extra="ignore")


class CredentialsRequest(RequestModel):
    """Register/login payload contract."""

    email: str = ""
    password: str = ""


class ForgotPasswordRequest(RequestModel):
    """Reset-code request payload contract."""

    email: str = ""


class VerifyResetCodeRequest(RequestModel):
    """Reset-code verification payload contract."""

    email: str = ""
    otp: str = ""


class ResetPasswordRequest(RequestModel):
    """Password reset commit payload contract."""

    email: str = ""
    otp: str = ""
    new_password: str = Field(
        default="",
        validation_alias=AliasChoices("newPassword", "new_password"),
    )


class AccountPayload(BaseModel):
    """Public account identity returned after register/login."""

    id: UUID
    email: str


class ApiResponse(BaseModel):
    """Response envelope shared by account and reset endpoints."""

    success: bool
    message: str
    user: AccountPayload | None = None


class HealthResponse(BaseModel):
    """Health-check response contract."""

    ok: bool
    db: bool
    message: str
