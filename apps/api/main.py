"""credential-api entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from credential_service.application.ports.account_repository_port import AccountRepositoryPort
from credential_service.application.ports.code_notifier_port import CodeNotifierPort
from credential_service.application.services.account_service import AccountService
from credential_service.application.services.otp_issuer import OtpIssuer
from credential_service.application.services.password_reset_service import (
    PasswordResetService,
)
from credential_service.config.settings import Settings, load_settings
from credential_service.domain.auth.policy import CredentialPolicy
from credential_service.infrastructure.db.account_repository import SqlAlchemyAccountRepository
from credential_service.infrastructure.db.session import create_session_factory
from credential_service.infrastructure.email.smtp_code_notifier import (
    SmtpCodeNotifier,
    SmtpConfig,
)
from credential_service.infrastructure.http.account_router import build_account_router
from credential_service.infrastructure.http.health_router import build_health_router
from credential_service.infrastructure.http.password_reset_router import (
    build_password_reset_router,
)
from credential_service.infrastructure.logging import configure_logging
from credential_service.infrastructure.security.secret_hasher import BcryptSecretHasher

API_HOST = "0.0.0.0"
API_PORT = 3000
logger = logging.getLogger(__name__)


def build_code_notifier(settings: Settings) -> CodeNotifierPort:
    """Build SMTP reset-code notifier from runtime settings."""

    return SmtpCodeNotifier(
        config=SmtpConfig(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.smtp_from,
            use_ssl=settings.smtp_use_ssl,
            timeout_seconds=settings.smtp_timeout_seconds,
        )
    )


def create_app(
    *,
    database_url: str | None = None,
    accounts: AccountRepositoryPort | None = None,
    notifier: CodeNotifierPort | None = None,
    secret_hasher: BcryptSecretHasher | None = None,
    policy: CredentialPolicy | None = None,
) -> FastAPI:
    """Create FastAPI app exposing account, password-reset and health routes."""

    settings = None
    if (accounts is None and database_url is None) or notifier is None or secret_hasher is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)
        if database_url is None:
            database_url = settings.database_url
        if notifier is None:
            notifier = build_code_notifier(settings)
        if secret_hasher is None:
            secret_hasher = BcryptSecretHasher(rounds=settings.password_hash_rounds)
        if policy is None:
            policy = settings.credential_policy()

    if accounts is None:
        assert database_url is not None
        accounts = SqlAlchemyAccountRepository(create_session_factory(database_url))
    if policy is None:
        policy = CredentialPolicy()

    assert notifier is not None
    assert secret_hasher is not None

    account_service = AccountService(
        accounts=accounts,
        secret_hasher=secret_hasher,
        policy=policy,
    )
    password_reset_service = PasswordResetService(
        accounts=accounts,
        secret_hasher=secret_hasher,
        otp_issuer=OtpIssuer(
            accounts=accounts,
            secret_hasher=secret_hasher,
            notifier=notifier,
            policy=policy,
        ),
        policy=policy,
    )

    app = FastAPI(title="credential-api")
    app.include_router(build_health_router(accounts=accounts))
    app.include_router(build_account_router(account_service=account_service))
    app.include_router(
        build_password_reset_router(password_reset_service=password_reset_service)
    )
    logger.info(
        "credential_api_configured otp_ttl_seconds=%s max_otp_attempts=%s",
        int(policy.otp_ttl.total_seconds()),
        policy.max_otp_attempts,
    )
    return app


def run_asgi_server(*, host: str = API_HOST, port: int = API_PORT) -> None:
    """Run credential-api as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run credential-api runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()
