"""SQLAlchemy adapter for account and reset-challenge persistence."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, cast
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from credential_service.application.ports.account_repository_port import (
    AccountRecord,
    AccountRepositoryPort,
    DuplicateEmailError,
    StoreUnavailableError,
)
from credential_service.domain.auth.reset_challenge import ResetChallenge
from credential_service.infrastructure.db.metadata import users

_CLEARED_CHALLENGE = {
    "reset_otp_hash": None,
    "reset_otp_expires_at": None,
    "reset_otp_attempts": 0,
}


class SqlAlchemyAccountRepository(AccountRepositoryPort):
    """Account repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_email(self, *, email: str) -> AccountRecord | None:
        """Return account with its reset challenge, read as one snapshot."""

        statement = sa.select(*users.c).where(users.c.email == email).limit(1)

        async with self._session() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_account_record(row)

    async def create_account(self, *, email: str, password_hash: str) -> AccountRecord:
        """Insert account row; the unique email constraint rejects duplicates."""

        statement = sa.insert(users).values(
            id=uuid4(),
            email=email,
            password_hash=password_hash,
        ).returning(*users.c)

        async with self._session() as session:
            try:
                result = await session.execute(statement)
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateEmailError(email=email) from exc

        row = result.mappings().one()
        return _to_account_record(row)

    async def update_password(
        self,
        *,
        email: str,
        password_hash: str,
        otp_hash: str | None = None,
    ) -> bool:
        """Replace password hash and clear the reset challenge in one statement."""

        conditions = [users.c.email == email]
        if otp_hash is not None:
            conditions.append(users.c.reset_otp_hash == otp_hash)

        statement = (
            sa.update(users)
            .where(*conditions)
            .values(
                password_hash=password_hash,
                updated_at=sa.text("CURRENT_TIMESTAMP"),
                **_CLEARED_CHALLENGE,
            )
        )
        return await self._execute_update(statement)

    async def set_challenge(self, *, email: str, otp_hash: str, expires_at: datetime) -> bool:
        """Overwrite any reset challenge and zero its attempt counter."""

        statement = (
            sa.update(users)
            .where(users.c.email == email)
            .values(
                reset_otp_hash=otp_hash,
                reset_otp_expires_at=expires_at.astimezone(UTC),
                reset_otp_attempts=0,
                updated_at=sa.text("CURRENT_TIMESTAMP"),
            )
        )
        return await self._execute_update(statement)

    async def increment_attempts(
        self,
        *,
        email: str,
        otp_hash: str | None = None,
        max_attempts: int | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Claim one verification attempt with an in-database conditional increment."""

        conditions = [users.c.email == email]
        if otp_hash is not None:
            conditions.append(users.c.reset_otp_hash == otp_hash)
        if max_attempts is not None:
            conditions.append(users.c.reset_otp_attempts < max_attempts)
        if now is not None:
            conditions.append(users.c.reset_otp_expires_at > now.astimezone(UTC))

        statement = (
            sa.update(users)
            .where(*conditions)
            .values(reset_otp_attempts=users.c.reset_otp_attempts + 1)
        )
        return await self._execute_update(statement)

    async def clear_challenge(self, *, email: str) -> bool:
        """Drop any reset challenge for the account."""

        statement = (
            sa.update(users)
            .where(users.c.email == email)
            .values(updated_at=sa.text("CURRENT_TIMESTAMP"), **_CLEARED_CHALLENGE)
        )
        return await self._execute_update(statement)

    async def ping(self) -> None:
        """Run `SELECT 1` against the store."""

        async with self._session() as session:
            await session.execute(sa.text("SELECT 1"))

    async def _execute_update(self, statement: sa.Update) -> bool:
        async with self._session() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0) > 0

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Yield one session, normalizing connectivity failures."""

        try:
            async with self._session_factory() as session:
                yield session
        except (OperationalError, InterfaceError, OSError) as exc:
            raise StoreUnavailableError(f"account store unavailable: {exc}") from exc


def _to_account_record(row: sa.RowMapping) -> AccountRecord:
    raw_account_id = row["id"]
    account_id = raw_account_id if isinstance(raw_account_id, UUID) else UUID(str(raw_account_id))
    return AccountRecord(
        account_id=account_id,
        email=cast(str, row["email"]),
        password_hash=cast(str, row["password_hash"]),
        reset_challenge=_to_reset_challenge(row),
        created_at=_as_utc(cast(datetime, row["created_at"])),
        updated_at=_as_utc(cast(datetime, row["updated_at"])),
    )


def _to_reset_challenge(row: sa.RowMapping) -> ResetChallenge | None:
    otp_hash = cast(str | None, row["reset_otp_hash"])
    expires_at = cast(datetime | None, row["reset_otp_expires_at"])
    if not otp_hash or expires_at is None:
        return None
    return ResetChallenge(
        otp_hash=otp_hash,
        expires_at=_as_utc(expires_at),
        attempts=int(row["reset_otp_attempts"] or 0),
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns; stored values are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
