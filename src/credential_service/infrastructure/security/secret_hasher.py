"""Bcrypt secret hasher adapter."""

from __future__ import annotations

import bcrypt

from credential_service.application.ports.secret_hasher_port import SecretHasherPort

DEFAULT_BCRYPT_ROUNDS = 12
# bcrypt reads at most 72 input bytes and bcrypt>=4.1 raises on longer values.
BCRYPT_MAX_INPUT_BYTES = 72


def _bcrypt_input(secret: str) -> bytes:
    return secret.encode("utf-8")[:BCRYPT_MAX_INPUT_BYTES]


class BcryptSecretHasher(SecretHasherPort):
    """Secret hashing adapter using bcrypt with a tunable cost factor."""

    def __init__(self, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self._rounds = rounds

    def hash_secret(self, secret: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(_bcrypt_input(secret), salt).decode("utf-8")

    def verify_secret(self, *, secret: str, secret_hash: str) -> bool:
        try:
            return bcrypt.checkpw(_bcrypt_input(secret), secret_hash.encode("utf-8"))
        except ValueError:
            return False
