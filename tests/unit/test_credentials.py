from __future__ import annotations

import pytest

from credential_service.domain.auth.credentials import (
    normalize_otp_code,
    normalize_user_email,
    require_password,
    validate_new_password,
)


def test_email_is_trimmed_and_lowercased() -> None:
    assert normalize_user_email(email="  Alice@Example.COM\t") == "alice@example.com"


def test_blank_email_is_rejected() -> None:
    with pytest.raises(ValueError, match="email cannot be blank"):
        normalize_user_email(email="   ")


def test_password_is_not_trimmed() -> None:
    assert require_password(password=" secret ") == " secret "


def test_new_password_length_bounds() -> None:
    assert validate_new_password(password="secret", min_length=6) == "secret"
    with pytest.raises(ValueError, match="at least 6"):
        validate_new_password(password="short", min_length=6)
    long_password = "密码" * 13
    assert validate_new_password(password=long_password, min_length=6) == long_password


def test_otp_code_is_trimmed() -> None:
    assert normalize_otp_code(code=" 012345 ") == "012345"
    with pytest.raises(ValueError):
        normalize_otp_code(code="")
