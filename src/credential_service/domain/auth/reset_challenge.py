"""Password-reset challenge model and state classification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class ResetChallengeState(StrEnum):
    """Observable states of one account's reset challenge."""

    NO_CHALLENGE = "no_challenge"
    PENDING = "pending"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ResetChallenge:
    """Active reset challenge embedded in an account row."""

    otp_hash: str
    expires_at: datetime
    attempts: int = 0


def classify_challenge(
    challenge: ResetChallenge | None,
    *,
    now: datetime,
    max_attempts: int,
) -> ResetChallengeState:
    """Return the challenge state at `now`.

    Expiry is evaluated before the attempt ceiling, so an expired code reads as
    expired no matter how many guesses were spent on it.
    """

    if challenge is None:
        return ResetChallengeState.NO_CHALLENGE
    if now >= challenge.expires_at:
        return ResetChallengeState.EXPIRED
    if challenge.attempts >= max_attempts:
        return ResetChallengeState.EXHAUSTED
    return ResetChallengeState.PENDING
