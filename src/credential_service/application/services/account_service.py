"""Application service for account registration and credential verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from credential_service.application.ports.account_repository_port import (
    AccountIdentity,
    AccountRepositoryPort,
    DuplicateEmailError,
)
from credential_service.application.ports.secret_hasher_port import SecretHasherPort
from credential_service.domain.auth.credentials import (
    normalize_user_email,
    require_password,
    validate_new_password,
)
from credential_service.domain.auth.policy import CredentialPolicy

logger = logging.getLogger(__name__)

# Verified against when the email is unknown and the not-found outcome is hidden.
_UNKNOWN_ACCOUNT_SECRET = "unknown-account-timing-equalizer"


class AccountOutcome(StrEnum):
    """Supported registration and login outcomes."""

    CREATED = "created"
    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    DUPLICATE_EMAIL = "duplicate_email"
    NOT_FOUND = "not_found"
    INVALID_CREDENTIALS = "invalid_credentials"


@dataclass(frozen=True)
class AccountResult:
    """Registration/login result model."""

    outcome: AccountOutcome
    account: AccountIdentity | None = None
    detail: str | None = None


class AccountService:
    """Register accounts and verify passwords against stored hashes."""

    def __init__(
        self,
        *,
        accounts: AccountRepositoryPort,
        secret_hasher: SecretHasherPort,
        policy: CredentialPolicy | None = None,
    ) -> None:
        self._accounts = accounts
        self._secret_hasher = secret_hasher
        self._policy = policy or CredentialPolicy()
        self._unknown_account_hash: str | None = None

    async def register(self, *, email: str, password: str) -> AccountResult:
        """Create one account with a hashed password."""

        try:
            normalized_email = normalize_user_email(email=email)
            validate_new_password(
                password=password,
                min_length=self._policy.password_min_length,
            )
        except ValueError as exc:
            return AccountResult(outcome=AccountOutcome.VALIDATION_ERROR, detail=str(exc))

        existing = await self._accounts.get_by_email(email=normalized_email)
        if existing is not None:
            logger.info("account_register_duplicate email=%s", normalized_email)
            return AccountResult(outcome=AccountOutcome.DUPLICATE_EMAIL)

        try:
            account = await self._accounts.create_account(
                email=normalized_email,
                password_hash=self._secret_hasher.hash_secret(password),
            )
        except DuplicateEmailError:
            # Lost a concurrent insert race; the unique constraint decided.
            logger.info("account_register_duplicate email=%s race=true", normalized_email)
            return AccountResult(outcome=AccountOutcome.DUPLICATE_EMAIL)

        logger.info(
            "account_registered account_id=%s email=%s",
            account.account_id,
            account.email,
        )
        return AccountResult(outcome=AccountOutcome.CREATED, account=account.identity())

    async def login(self, *, email: str, password: str) -> AccountResult:
        """Verify credentials and return the public identity on success."""

        try:
            normalized_email = normalize_user_email(email=email)
            require_password(password=password)
        except ValueError as exc:
            return AccountResult(outcome=AccountOutcome.VALIDATION_ERROR, detail=str(exc))

        account = await self._accounts.get_by_email(email=normalized_email)
        if account is None:
            logger.info("login_failed email=%s reason=not_found", normalized_email)
            if self._policy.reveal_unknown_login_email:
                return AccountResult(outcome=AccountOutcome.NOT_FOUND)
            self._secret_hasher.verify_secret(
                secret=password,
                secret_hash=self._get_unknown_account_hash(),
            )
            return AccountResult(outcome=AccountOutcome.INVALID_CREDENTIALS)

        is_valid = self._secret_hasher.verify_secret(
            secret=password,
            secret_hash=account.password_hash,
        )
        if not is_valid:
            logger.info("login_failed email=%s reason=invalid_credentials", normalized_email)
            return AccountResult(outcome=AccountOutcome.INVALID_CREDENTIALS)

        logger.info("login_success account_id=%s", account.account_id)
        return AccountResult(outcome=AccountOutcome.SUCCESS, account=account.identity())

    def _get_unknown_account_hash(self) -> str:
        if self._unknown_account_hash is None:
            self._unknown_account_hash = self._secret_hasher.hash_secret(_UNKNOWN_ACCOUNT_SECRET)
        return self._unknown_account_hash
