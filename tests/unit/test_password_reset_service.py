from __future__ import annotations

from collections.abc import Iterator
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from credential_service.application.ports.account_repository_port import (
    AccountRecord,
    DuplicateEmailError,
)
from credential_service.application.ports.code_notifier_port import CodeDeliveryError
from credential_service.application.services.account_service import (
    AccountOutcome,
    AccountService,
)
from credential_service.application.services.otp_issuer import OtpIssuer
from credential_service.application.services.password_reset_service import (
    GENERIC_REQUEST_MESSAGE,
    PasswordResetService,
    ResetOutcome,
    ResetResult,
)
from credential_service.domain.auth.policy import CredentialPolicy
from credential_service.domain.auth.reset_challenge import ResetChallenge

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class FakeSecretHasher:
    def hash_secret(self, secret: str) -> str:
        return f"hashed::{secret}"

    def verify_secret(self, *, secret: str, secret_hash: str) -> bool:
        return secret_hash == f"hashed::{secret}"


class FakeNotifier:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.deliveries: list[tuple[str, str, timedelta]] = []

    async def deliver_code(self, *, address: str, code: str, expires_in: timedelta) -> None:
        if self.fail:
            raise CodeDeliveryError("smtp down")
        self.deliveries.append((address, code, expires_in))


class InMemoryAccountRepository:
    def __init__(self) -> None:
        self.rows: dict[str, AccountRecord] = {}
        self.increment_calls = 0

    def add(self, *, email: str, password_hash: str = "hashed::old-password") -> AccountRecord:
        record = AccountRecord(
            account_id=uuid4(),
            email=email,
            password_hash=password_hash,
            reset_challenge=None,
            created_at=START,
            updated_at=START,
        )
        self.rows[email] = record
        return record

    def challenge(self, email: str) -> ResetChallenge | None:
        return self.rows[email].reset_challenge

    async def get_by_email(self, *, email: str) -> AccountRecord | None:
        return self.rows.get(email)

    async def create_account(self, *, email: str, password_hash: str) -> AccountRecord:
        if email in self.rows:
            raise DuplicateEmailError(email=email)
        return self.add(email=email, password_hash=password_hash)

    async def update_password(
        self,
        *,
        email: str,
        password_hash: str,
        otp_hash: str | None = None,
    ) -> bool:
        row = self.rows.get(email)
        if row is None or not self._matches(row, otp_hash):
            return False
        self.rows[email] = replace(row, password_hash=password_hash, reset_challenge=None)
        return True

    async def set_challenge(self, *, email: str, otp_hash: str, expires_at: datetime) -> bool:
        row = self.rows.get(email)
        if row is None:
            return False
        challenge = ResetChallenge(otp_hash=otp_hash, expires_at=expires_at, attempts=0)
        self.rows[email] = replace(row, reset_challenge=challenge)
        return True

    async def increment_attempts(
        self,
        *,
        email: str,
        otp_hash: str | None = None,
        max_attempts: int | None = None,
        now: datetime | None = None,
    ) -> bool:
        self.increment_calls += 1
        row = self.rows.get(email)
        if row is None or row.reset_challenge is None or not self._matches(row, otp_hash):
            return False
        current = row.reset_challenge
        if max_attempts is not None and current.attempts >= max_attempts:
            return False
        if now is not None and now >= current.expires_at:
            return False
        challenge = replace(current, attempts=current.attempts + 1)
        self.rows[email] = replace(row, reset_challenge=challenge)
        return True

    async def clear_challenge(self, *, email: str) -> bool:
        row = self.rows.get(email)
        if row is None:
            return False
        self.rows[email] = replace(row, reset_challenge=None)
        return True

    async def ping(self) -> None:
        return None

    @staticmethod
    def _matches(row: AccountRecord, otp_hash: str | None) -> bool:
        if otp_hash is None:
            return True
        return row.reset_challenge is not None and row.reset_challenge.otp_hash == otp_hash


def _codes(*values: str) -> Iterator[str]:
    return iter(values)


def _build(
    *,
    codes: Iterator[str] | None = None,
    notifier: FakeNotifier | None = None,
    policy: CredentialPolicy | None = None,
) -> tuple[PasswordResetService, InMemoryAccountRepository, FakeNotifier, FakeClock]:
    accounts = InMemoryAccountRepository()
    notifier = notifier or FakeNotifier()
    clock = FakeClock(START)
    hasher = FakeSecretHasher()
    code_source = codes or _codes("123456", "654321", "000042")
    issuer = OtpIssuer(
        accounts=accounts,
        secret_hasher=hasher,
        notifier=notifier,
        policy=policy,
        code_factory=lambda: next(code_source),
        now=clock,
    )
    service = PasswordResetService(
        accounts=accounts,
        secret_hasher=hasher,
        otp_issuer=issuer,
        policy=policy,
        now=clock,
    )
    return service, accounts, notifier, clock


@pytest.mark.asyncio
async def test_request_for_known_email_persists_challenge_and_delivers_code() -> None:
    service, accounts, notifier, _ = _build()
    accounts.add(email="a@x.com")

    result = await service.request_reset(email="  A@X.com ")

    assert result == ResetResult(outcome=ResetOutcome.REQUESTED, detail=GENERIC_REQUEST_MESSAGE)
    assert notifier.deliveries == [("a@x.com", "123456", timedelta(minutes=5))]
    challenge = accounts.challenge("a@x.com")
    assert challenge == ResetChallenge(
        otp_hash="hashed::123456",
        expires_at=START + timedelta(minutes=5),
        attempts=0,
    )


@pytest.mark.asyncio
async def test_request_for_unknown_email_returns_same_generic_result() -> None:
    service, accounts, notifier, _ = _build()
    accounts.add(email="a@x.com")

    known = await service.request_reset(email="a@x.com")
    unknown = await service.request_reset(email="nobody@x.com")

    assert unknown == known
    assert [address for address, _, _ in notifier.deliveries] == ["a@x.com"]


@pytest.mark.asyncio
async def test_request_with_blank_email_is_validation_error() -> None:
    service, _, notifier, _ = _build()

    result = await service.request_reset(email="   ")

    assert result.outcome is ResetOutcome.VALIDATION_ERROR
    assert notifier.deliveries == []


@pytest.mark.asyncio
async def test_delivery_failure_is_reported_and_challenge_persists() -> None:
    service, accounts, _, _ = _build(notifier=FakeNotifier(fail=True))
    accounts.add(email="a@x.com")

    result = await service.request_reset(email="a@x.com")

    assert result.outcome is ResetOutcome.DELIVERY_FAILED
    assert accounts.challenge("a@x.com") is not None


@pytest.mark.asyncio
async def test_verify_correct_code_is_valid_and_counts_attempt() -> None:
    service, accounts, _, _ = _build()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")

    result = await service.verify_code(email="a@x.com", code=" 123456 ")

    assert result.outcome is ResetOutcome.VALID
    challenge = accounts.challenge("a@x.com")
    assert challenge is not None
    assert challenge.attempts == 1


@pytest.mark.asyncio
async def test_verify_unknown_account_and_missing_challenge() -> None:
    service, accounts, _, _ = _build()
    accounts.add(email="a@x.com")

    missing = await service.verify_code(email="nobody@x.com", code="123456")
    no_challenge = await service.verify_code(email="a@x.com", code="123456")
    blank = await service.verify_code(email="a@x.com", code="  ")

    assert missing.outcome is ResetOutcome.NOT_FOUND
    assert no_challenge.outcome is ResetOutcome.NO_CHALLENGE
    assert blank.outcome is ResetOutcome.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_expired_code_is_rejected_without_consuming_attempt() -> None:
    service, accounts, _, clock = _build()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")

    clock.advance(timedelta(minutes=5))
    result = await service.verify_code(email="a@x.com", code="123456")

    assert result.outcome is ResetOutcome.EXPIRED
    challenge = accounts.challenge("a@x.com")
    assert challenge is not None
    assert challenge.attempts == 0


@pytest.mark.asyncio
async def test_expiry_wins_over_exhausted_attempts() -> None:
    service, accounts, _, clock = _build()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")
    for _ in range(5):
        await service.verify_code(email="a@x.com", code="999999")

    clock.advance(timedelta(minutes=6))
    result = await service.verify_code(email="a@x.com", code="123456")

    assert result.outcome is ResetOutcome.EXPIRED


@pytest.mark.asyncio
async def test_sixth_attempt_is_exhausted_even_with_correct_code() -> None:
    service, accounts, _, _ = _build()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")

    outcomes = [
        (await service.verify_code(email="a@x.com", code="111111")).outcome for _ in range(5)
    ]
    sixth = await service.verify_code(email="a@x.com", code="123456")

    assert outcomes == [ResetOutcome.INVALID_OTP] * 5
    assert sixth.outcome is ResetOutcome.EXHAUSTED
    challenge = accounts.challenge("a@x.com")
    assert challenge is not None
    assert challenge.attempts == 5


@pytest.mark.asyncio
async def test_successful_verifications_also_count_toward_ceiling() -> None:
    service, accounts, _, _ = _build()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")

    for _ in range(5):
        assert (await service.verify_code(email="a@x.com", code="123456")).outcome is (
            ResetOutcome.VALID
        )

    result = await service.verify_code(email="a@x.com", code="123456")

    assert result.outcome is ResetOutcome.EXHAUSTED


@pytest.mark.asyncio
async def test_new_request_supersedes_previous_code_and_resets_attempts() -> None:
    service, accounts, notifier, _ = _build()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")
    await service.verify_code(email="a@x.com", code="000000")

    await service.request_reset(email="a@x.com")
    challenge = accounts.challenge("a@x.com")
    assert challenge is not None
    assert challenge.attempts == 0
    assert [code for _, code, _ in notifier.deliveries] == ["123456", "654321"]

    stale = await service.verify_code(email="a@x.com", code="123456")
    fresh = await service.verify_code(email="a@x.com", code="654321")

    assert stale.outcome is ResetOutcome.INVALID_OTP
    assert fresh.outcome is ResetOutcome.VALID


@pytest.mark.asyncio
async def test_commit_replaces_password_and_clears_challenge() -> None:
    service, accounts, _, _ = _build()
    hasher = FakeSecretHasher()
    account_service = AccountService(accounts=accounts, secret_hasher=hasher)
    registered = await account_service.register(email="a@x.com", password="old-password")
    await service.request_reset(email="a@x.com")
    assert (await service.verify_code(email="a@x.com", code="123456")).outcome is (
        ResetOutcome.VALID
    )

    result = await service.commit_reset(
        email="a@x.com",
        code="123456",
        new_password="new-password",
    )

    assert result.outcome is ResetOutcome.PASSWORD_UPDATED
    assert accounts.challenge("a@x.com") is None
    old_login = await account_service.login(email="a@x.com", password="old-password")
    new_login = await account_service.login(email="a@x.com", password="new-password")
    assert old_login.outcome is AccountOutcome.INVALID_CREDENTIALS
    assert new_login.outcome is AccountOutcome.SUCCESS
    assert new_login.account == registered.account

    replay = await service.verify_code(email="a@x.com", code="123456")
    assert replay.outcome is ResetOutcome.NO_CHALLENGE


@pytest.mark.asyncio
async def test_commit_without_prior_verify_still_requires_correct_code() -> None:
    service, accounts, _, _ = _build()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")

    wrong = await service.commit_reset(email="a@x.com", code="000000", new_password="new-pass")
    right = await service.commit_reset(email="a@x.com", code="123456", new_password="new-pass")

    assert wrong.outcome is ResetOutcome.INVALID_OTP
    assert right.outcome is ResetOutcome.PASSWORD_UPDATED
    assert accounts.rows["a@x.com"].password_hash == "hashed::new-pass"


@pytest.mark.asyncio
async def test_commit_failures_spend_attempts_and_respect_ceiling() -> None:
    service, accounts, _, _ = _build()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")

    for _ in range(5):
        result = await service.commit_reset(
            email="a@x.com",
            code="999999",
            new_password="new-pass",
        )
        assert result.outcome is ResetOutcome.INVALID_OTP

    blocked = await service.commit_reset(email="a@x.com", code="123456", new_password="new-pass")

    assert blocked.outcome is ResetOutcome.EXHAUSTED
    assert accounts.rows["a@x.com"].password_hash == "hashed::old-password"


@pytest.mark.asyncio
async def test_commit_rejects_expired_and_missing_challenges() -> None:
    service, accounts, _, clock = _build()
    accounts.add(email="a@x.com")

    missing = await service.commit_reset(email="a@x.com", code="123456", new_password="new-pass")
    await service.request_reset(email="a@x.com")
    clock.advance(timedelta(minutes=10))
    expired = await service.commit_reset(email="a@x.com", code="123456", new_password="new-pass")
    unknown = await service.commit_reset(
        email="nobody@x.com",
        code="123456",
        new_password="new-pass",
    )

    assert missing.outcome is ResetOutcome.NO_CHALLENGE
    assert expired.outcome is ResetOutcome.EXPIRED
    assert unknown.outcome is ResetOutcome.NOT_FOUND


@pytest.mark.asyncio
async def test_commit_short_password_is_rejected_before_touching_challenge() -> None:
    service, accounts, _, _ = _build()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")

    result = await service.commit_reset(email="a@x.com", code="123456", new_password="abc")

    assert result.outcome is ResetOutcome.VALIDATION_ERROR
    challenge = accounts.challenge("a@x.com")
    assert challenge is not None
    assert challenge.attempts == 0


@pytest.mark.asyncio
async def test_policy_controls_ttl_and_attempt_ceiling() -> None:
    policy = CredentialPolicy(otp_ttl=timedelta(minutes=1), max_otp_attempts=2)
    service, accounts, _, clock = _build(policy=policy)
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")

    await service.verify_code(email="a@x.com", code="000000")
    await service.verify_code(email="a@x.com", code="000000")
    exhausted = await service.verify_code(email="a@x.com", code="123456")
    clock.advance(timedelta(seconds=61))
    expired = await service.verify_code(email="a@x.com", code="123456")

    assert exhausted.outcome is ResetOutcome.EXHAUSTED
    assert expired.outcome is ResetOutcome.EXPIRED


class StaleSnapshotRepository(InMemoryAccountRepository):
    """Serve one pinned account snapshot first, as a concurrent reader would see it."""

    def __init__(self) -> None:
        super().__init__()
        self.pinned: AccountRecord | None = None

    async def get_by_email(self, *, email: str) -> AccountRecord | None:
        if self.pinned is not None:
            pinned, self.pinned = self.pinned, None
            return pinned
        return await super().get_by_email(email=email)


class CountingSecretHasher(FakeSecretHasher):
    def __init__(self) -> None:
        self.compares = 0

    def verify_secret(self, *, secret: str, secret_hash: str) -> bool:
        self.compares += 1
        return super().verify_secret(secret=secret, secret_hash=secret_hash)


def _build_stale() -> tuple[PasswordResetService, StaleSnapshotRepository, CountingSecretHasher]:
    accounts = StaleSnapshotRepository()
    hasher = CountingSecretHasher()
    clock = FakeClock(START)
    code_source = _codes("123456", "654321")
    issuer = OtpIssuer(
        accounts=accounts,
        secret_hasher=hasher,
        notifier=FakeNotifier(),
        code_factory=lambda: next(code_source),
        now=clock,
    )
    service = PasswordResetService(
        accounts=accounts,
        secret_hasher=hasher,
        otp_issuer=issuer,
        now=clock,
    )
    return service, accounts, hasher


@pytest.mark.asyncio
async def test_verify_from_stale_snapshot_cannot_exceed_ceiling() -> None:
    service, accounts, hasher = _build_stale()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")
    for _ in range(4):
        await service.verify_code(email="a@x.com", code="000000")
    snapshot = accounts.rows["a@x.com"]
    await service.verify_code(email="a@x.com", code="000000")
    compares_before = hasher.compares

    accounts.pinned = snapshot
    result = await service.verify_code(email="a@x.com", code="123456")

    assert result.outcome is ResetOutcome.EXHAUSTED
    assert hasher.compares == compares_before
    challenge = accounts.challenge("a@x.com")
    assert challenge is not None
    assert challenge.attempts == 5


@pytest.mark.asyncio
async def test_commit_from_stale_snapshot_cannot_exceed_ceiling() -> None:
    service, accounts, hasher = _build_stale()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")
    for _ in range(4):
        await service.verify_code(email="a@x.com", code="000000")
    snapshot = accounts.rows["a@x.com"]
    await service.verify_code(email="a@x.com", code="000000")
    compares_before = hasher.compares

    accounts.pinned = snapshot
    result = await service.commit_reset(email="a@x.com", code="123456", new_password="new-pass")

    assert result.outcome is ResetOutcome.EXHAUSTED
    assert hasher.compares == compares_before
    assert accounts.rows["a@x.com"].password_hash == "hashed::old-password"


@pytest.mark.asyncio
async def test_verify_against_superseded_snapshot_is_invalid_without_charging_new_code() -> None:
    service, accounts, hasher = _build_stale()
    accounts.add(email="a@x.com")
    await service.request_reset(email="a@x.com")
    snapshot = accounts.rows["a@x.com"]
    await service.request_reset(email="a@x.com")

    accounts.pinned = snapshot
    result = await service.verify_code(email="a@x.com", code="123456")

    assert result.outcome is ResetOutcome.INVALID_OTP
    assert hasher.compares == 0
    challenge = accounts.challenge("a@x.com")
    assert challenge is not None
    assert challenge.otp_hash == "hashed::654321"
    assert challenge.attempts == 0


@pytest.mark.asyncio
async def test_blocked_checks_never_claim_attempts() -> None:
    service, accounts, _, clock = _build()
    accounts.add(email="a@x.com")

    await service.verify_code(email="a@x.com", code="123456")
    await service.request_reset(email="a@x.com")
    clock.advance(timedelta(minutes=5))
    await service.commit_reset(email="a@x.com", code="123456", new_password="new-pass")

    assert accounts.increment_calls == 0
