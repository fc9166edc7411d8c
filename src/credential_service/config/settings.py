"""Runtime settings loaded from environment variables."""

from datetime import timedelta
from functools import lru_cache
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from credential_service.domain.auth.policy import CredentialPolicy

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveFloat = Annotated[float, Field(gt=0.0)]
PositiveInt = Annotated[int, Field(gt=0)]
BcryptRounds = Annotated[int, Field(ge=4, le=31)]
PortInt = Annotated[int, Field(gt=0, le=65_535)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    password_min_length: PositiveInt = Field(default=6, validation_alias="PASSWORD_MIN_LENGTH")
    password_hash_rounds: BcryptRounds = Field(
        default=12,
        validation_alias="PASSWORD_HASH_ROUNDS",
    )
    reset_otp_ttl_seconds: PositiveInt = Field(
        default=300,
        validation_alias="RESET_OTP_TTL_SECONDS",
    )
    reset_otp_max_attempts: PositiveInt = Field(
        default=5,
        validation_alias="RESET_OTP_MAX_ATTEMPTS",
    )
    login_reveals_unknown_email: bool = Field(
        default=True,
        validation_alias="LOGIN_REVEALS_UNKNOWN_EMAIL",
    )
    smtp_host: NonEmptyStr = Field(default="smtp.gmail.com", validation_alias="SMTP_HOST")
    smtp_port: PortInt = Field(default=465, validation_alias="SMTP_PORT")
    smtp_use_ssl: bool = Field(default=True, validation_alias="SMTP_USE_SSL")
    smtp_user: str | None = Field(default=None, validation_alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, validation_alias="SMTP_PASS")
    smtp_from: str | None = Field(default=None, validation_alias="SMTP_FROM")
    smtp_timeout_seconds: PositiveFloat = Field(
        default=15.0,
        validation_alias="SMTP_TIMEOUT_SECONDS",
    )

    def credential_policy(self) -> CredentialPolicy:
        """Build the immutable policy struct handed to services."""

        return CredentialPolicy(
            password_min_length=self.password_min_length,
            otp_ttl=timedelta(seconds=self.reset_otp_ttl_seconds),
            max_otp_attempts=self.reset_otp_max_attempts,
            reveal_unknown_login_email=self.login_reveals_unknown_email,
        )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
