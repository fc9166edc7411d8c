"""Three-step password reset protocol: request, verify, commit.

No ticket is handed out between steps. `commit_reset` re-checks the account,
the challenge expiry, the attempt ceiling and the code itself, so a client
cannot skip from `request_reset` straight to a password change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from credential_service.application.ports.account_repository_port import AccountRepositoryPort
from credential_service.application.ports.code_notifier_port import CodeDeliveryError
from credential_service.application.ports.secret_hasher_port import SecretHasherPort
from credential_service.application.services.otp_issuer import OtpIssuer
from credential_service.domain.auth.credentials import (
    normalize_otp_code,
    normalize_user_email,
    validate_new_password,
)
from credential_service.domain.auth.policy import CredentialPolicy
from credential_service.domain.auth.reset_challenge import (
    ResetChallenge,
    ResetChallengeState,
    classify_challenge,
)

GENERIC_REQUEST_MESSAGE = "If the email exists, a reset code has been sent."

NowCallable = Callable[[], datetime]
logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class ResetOutcome(StrEnum):
    """Supported password-reset outcomes."""

    REQUESTED = "requested"
    VALID = "valid"
    PASSWORD_UPDATED = "password_updated"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    NO_CHALLENGE = "no_challenge"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    INVALID_OTP = "invalid_otp"
    DELIVERY_FAILED = "delivery_failed"


@dataclass(frozen=True)
class ResetResult:
    """Password-reset step result model."""

    outcome: ResetOutcome
    detail: str | None = None


_STATE_OUTCOMES: dict[ResetChallengeState, ResetOutcome] = {
    ResetChallengeState.NO_CHALLENGE: ResetOutcome.NO_CHALLENGE,
    ResetChallengeState.EXPIRED: ResetOutcome.EXPIRED,
    ResetChallengeState.EXHAUSTED: ResetOutcome.EXHAUSTED,
}


class PasswordResetService:
    """Own reset-challenge policy: expiry, attempt ceiling and single use."""

    def __init__(
        self,
        *,
        accounts: AccountRepositoryPort,
        secret_hasher: SecretHasherPort,
        otp_issuer: OtpIssuer,
        policy: CredentialPolicy | None = None,
        now: NowCallable = _utc_now,
    ) -> None:
        self._accounts = accounts
        self._secret_hasher = secret_hasher
        self._otp_issuer = otp_issuer
        self._policy = policy or CredentialPolicy()
        self._now = now

    async def request_reset(self, *, email: str) -> ResetResult:
        """Issue a reset code when the account exists; answer generically either way."""

        try:
            normalized_email = normalize_user_email(email=email)
        except ValueError as exc:
            return ResetResult(outcome=ResetOutcome.VALIDATION_ERROR, detail=str(exc))

        account = await self._accounts.get_by_email(email=normalized_email)
        if account is None:
            logger.info("password_reset_requested email=%s known=false", normalized_email)
            return ResetResult(outcome=ResetOutcome.REQUESTED, detail=GENERIC_REQUEST_MESSAGE)

        try:
            await self._otp_issuer.issue(email=account.email)
        except CodeDeliveryError as exc:
            logger.warning(
                "password_reset_delivery_failed email=%s error=%s",
                account.email,
                exc,
            )
            return ResetResult(
                outcome=ResetOutcome.DELIVERY_FAILED,
                detail="reset code could not be delivered",
            )

        logger.info("password_reset_requested email=%s known=true", account.email)
        return ResetResult(outcome=ResetOutcome.REQUESTED, detail=GENERIC_REQUEST_MESSAGE)

    async def verify_code(self, *, email: str, code: str) -> ResetResult:
        """Check one candidate code; every comparison counts toward the ceiling."""

        try:
            normalized_email = normalize_user_email(email=email)
            candidate = normalize_otp_code(code=code)
        except ValueError as exc:
            return ResetResult(outcome=ResetOutcome.VALIDATION_ERROR, detail=str(exc))

        gate = await self._claim_attempt(email=normalized_email)
        if isinstance(gate, ResetResult):
            return gate

        matches = self._secret_hasher.verify_secret(secret=candidate, secret_hash=gate.otp_hash)
        logger.info("reset_code_checked email=%s valid=%s", normalized_email, matches)
        if not matches:
            return ResetResult(outcome=ResetOutcome.INVALID_OTP)
        return ResetResult(outcome=ResetOutcome.VALID)

    async def commit_reset(self, *, email: str, code: str, new_password: str) -> ResetResult:
        """Re-validate the code and replace the password, consuming the challenge."""

        try:
            normalized_email = normalize_user_email(email=email)
            candidate = normalize_otp_code(code=code)
            validate_new_password(
                password=new_password,
                min_length=self._policy.password_min_length,
            )
        except ValueError as exc:
            return ResetResult(outcome=ResetOutcome.VALIDATION_ERROR, detail=str(exc))

        # The claim is discarded with the challenge when the commit succeeds.
        gate = await self._claim_attempt(email=normalized_email)
        if isinstance(gate, ResetResult):
            return gate

        if not self._secret_hasher.verify_secret(secret=candidate, secret_hash=gate.otp_hash):
            logger.info("password_reset_commit_rejected email=%s", normalized_email)
            return ResetResult(outcome=ResetOutcome.INVALID_OTP)

        updated = await self._accounts.update_password(
            email=normalized_email,
            password_hash=self._secret_hasher.hash_secret(new_password),
            otp_hash=gate.otp_hash,
        )
        if not updated:
            # A newer request replaced the challenge after it was read.
            logger.info("password_reset_commit_superseded email=%s", normalized_email)
            return ResetResult(outcome=ResetOutcome.INVALID_OTP)

        logger.info("password_reset_committed email=%s", normalized_email)
        return ResetResult(outcome=ResetOutcome.PASSWORD_UPDATED)

    async def _claim_attempt(self, *, email: str) -> ResetChallenge | ResetResult:
        """Reserve one attempt in the store before any code comparison.

        The conditional increment is the ceiling; the snapshot read only picks
        the outcome. Concurrent callers racing for the last attempt lose here
        and are re-classified from a fresh read.
        """

        now = self._now()
        gate = await self._require_open_challenge(email=email, now=now)
        if isinstance(gate, ResetResult):
            return gate

        claimed = await self._accounts.increment_attempts(
            email=email,
            otp_hash=gate.otp_hash,
            max_attempts=self._policy.max_otp_attempts,
            now=now,
        )
        if claimed:
            return gate

        current = await self._require_open_challenge(email=email, now=now)
        if isinstance(current, ResetResult):
            return current
        # Superseded by a newer request between the read and the claim.
        logger.info("reset_attempt_claim_lost email=%s", email)
        return ResetResult(outcome=ResetOutcome.INVALID_OTP)

    async def _require_open_challenge(
        self,
        *,
        email: str,
        now: datetime,
    ) -> ResetChallenge | ResetResult:
        """Return the pending challenge, or the failure result that blocks it."""

        account = await self._accounts.get_by_email(email=email)
        if account is None:
            return ResetResult(outcome=ResetOutcome.NOT_FOUND)

        state = classify_challenge(
            account.reset_challenge,
            now=now,
            max_attempts=self._policy.max_otp_attempts,
        )
        if state is not ResetChallengeState.PENDING:
            logger.info("reset_challenge_blocked email=%s state=%s", email, state.value)
            return ResetResult(outcome=_STATE_OUTCOMES[state])

        assert account.reset_challenge is not None
        return account.reset_challenge
