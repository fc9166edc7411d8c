"""Issue password-reset codes: generate, hash, persist, then deliver."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from credential_service.application.ports.account_repository_port import AccountRepositoryPort
from credential_service.application.ports.code_notifier_port import CodeNotifierPort
from credential_service.application.ports.secret_hasher_port import SecretHasherPort
from credential_service.domain.auth.policy import CredentialPolicy

OTP_DIGITS = 6

CodeFactory = Callable[[], str]
NowCallable = Callable[[], datetime]
logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def generate_numeric_code(digits: int = OTP_DIGITS) -> str:
    """Return a uniformly random numeric code, zero-padded to `digits`."""

    return f"{secrets.randbelow(10**digits):0{digits}d}"


@dataclass(frozen=True)
class IssuedChallenge:
    """Metadata for one persisted and delivered reset code."""

    email: str
    expires_at: datetime


class OtpIssuer:
    """Create reset challenges and hand plaintext codes to the notifier."""

    def __init__(
        self,
        *,
        accounts: AccountRepositoryPort,
        secret_hasher: SecretHasherPort,
        notifier: CodeNotifierPort,
        policy: CredentialPolicy | None = None,
        code_factory: CodeFactory = generate_numeric_code,
        now: NowCallable = _utc_now,
    ) -> None:
        self._accounts = accounts
        self._secret_hasher = secret_hasher
        self._notifier = notifier
        self._policy = policy or CredentialPolicy()
        self._code_factory = code_factory
        self._now = now

    async def issue(self, *, email: str) -> IssuedChallenge | None:
        """Persist a fresh challenge for `email` and deliver its code.

        The challenge is stored before delivery, so a CodeDeliveryError from the
        notifier leaves it in place; re-requesting overwrites it. Returns None when
        no account row matched.
        """

        code = self._code_factory()
        expires_at = self._now() + self._policy.otp_ttl
        stored = await self._accounts.set_challenge(
            email=email,
            otp_hash=self._secret_hasher.hash_secret(code),
            expires_at=expires_at,
        )
        if not stored:
            logger.warning("reset_challenge_not_stored email=%s", email)
            return None

        logger.info("reset_challenge_issued email=%s expires_at=%s", email, expires_at.isoformat())
        await self._notifier.deliver_code(
            address=email,
            code=code,
            expires_in=self._policy.otp_ttl,
        )
        logger.info("reset_code_delivered email=%s", email)
        return IssuedChallenge(email=email, expires_at=expires_at)
