"""Credential and reset-challenge policy passed to services at construction."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class CredentialPolicy:
    """Tunable limits for passwords and password-reset codes."""

    password_min_length: int = 6
    otp_ttl: timedelta = timedelta(minutes=5)
    max_otp_attempts: int = 5
    reveal_unknown_login_email: bool = True

    def __post_init__(self) -> None:
        if self.password_min_length < 1:
            raise ValueError("password_min_length must be positive")
        if self.otp_ttl <= timedelta(0):
            raise ValueError("otp_ttl must be positive")
        if self.max_otp_attempts < 1:
            raise ValueError("max_otp_attempts must be positive")
