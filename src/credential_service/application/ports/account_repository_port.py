"""Port for account and reset-challenge persistence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from credential_service.domain.auth.reset_challenge import ResetChallenge


class DuplicateEmailError(ValueError):
    """Raised when an account already exists for a normalized email."""

    def __init__(self, *, email: str) -> None:
        super().__init__(f"account already exists: {email}")
        self.email = email


class StoreUnavailableError(RuntimeError):
    """Raised when the account store cannot be reached."""


@dataclass(frozen=True)
class AccountIdentity:
    """Public account identity safe to return to callers."""

    account_id: UUID
    email: str


@dataclass(frozen=True)
class AccountRecord:
    """Account persistence model."""

    account_id: UUID
    email: str
    password_hash: str
    reset_challenge: ResetChallenge | None
    created_at: datetime
    updated_at: datetime

    def identity(self) -> AccountIdentity:
        return AccountIdentity(account_id=self.account_id, email=self.email)


class AccountRepositoryPort(Protocol):
    """Account repository contract keyed by normalized email."""

    async def get_by_email(self, *, email: str) -> AccountRecord | None:
        """Return account with its reset challenge, read as one snapshot."""

    async def create_account(self, *, email: str, password_hash: str) -> AccountRecord:
        """Insert a new account or raise DuplicateEmailError."""

    async def update_password(
        self,
        *,
        email: str,
        password_hash: str,
        otp_hash: str | None = None,
    ) -> bool:
        """Replace password hash and clear the reset challenge in one statement.

        When `otp_hash` is given, only update while that challenge is still current.
        """

    async def set_challenge(self, *, email: str, otp_hash: str, expires_at: datetime) -> bool:
        """Overwrite any reset challenge and zero its attempt counter."""

    async def increment_attempts(
        self,
        *,
        email: str,
        otp_hash: str | None = None,
        max_attempts: int | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Count one verification attempt in a single conditional statement.

        `otp_hash` scopes the update to that challenge. With `max_attempts` the
        row only matches while below the ceiling, with `now` only while the
        challenge is unexpired. Returns whether an attempt was counted.
        """

    async def clear_challenge(self, *, email: str) -> bool:
        """Drop any reset challenge for the account."""

    async def ping(self) -> None:
        """Run a trivial round trip or raise StoreUnavailableError."""
