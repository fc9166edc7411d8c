"""Shared normalization and policy checks for user credential inputs."""

from __future__ import annotations


def normalize_user_email(*, email: str) -> str:
    """Normalize one user email and reject blank values."""

    normalized = email.strip().lower()
    if not normalized:
        raise ValueError("email cannot be blank")
    return normalized


def require_password(*, password: str) -> str:
    """Return the plaintext password unchanged, rejecting blank values."""

    if not password:
        raise ValueError("password cannot be blank")
    return password


def validate_new_password(*, password: str, min_length: int) -> str:
    """Apply the password policy used for registration and reset."""

    require_password(password=password)
    if len(password) < min_length:
        raise ValueError(f"password must be at least {min_length} characters")
    return password


def normalize_otp_code(*, code: str) -> str:
    """Trim one candidate reset code and reject blank values."""

    normalized = code.strip()
    if not normalized:
        raise ValueError("reset code cannot be blank")
    return normalized
