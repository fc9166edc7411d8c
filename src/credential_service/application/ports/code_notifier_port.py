"""Port for out-of-band delivery of password-reset codes."""

from __future__ import annotations

from datetime import timedelta
from typing import Protocol


class CodeDeliveryError(RuntimeError):
    """Raised when a reset code cannot be handed to the delivery transport."""


class CodeNotifierPort(Protocol):
    """Reset-code delivery contract."""

    async def deliver_code(self, *, address: str, code: str, expires_in: timedelta) -> None:
        """Deliver one plaintext code to the address or raise CodeDeliveryError."""
