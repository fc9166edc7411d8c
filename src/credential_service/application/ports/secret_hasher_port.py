"""Port for one-way hashing of passwords and reset codes."""

from __future__ import annotations

from typing import Protocol


class SecretHasherPort(Protocol):
    """Secret hashing/verification contract."""

    def hash_secret(self, secret: str) -> str:
        """Hash plaintext secret for storage."""

    def verify_secret(self, *, secret: str, secret_hash: str) -> bool:
        """Verify plaintext secret against stored hash without raising."""
