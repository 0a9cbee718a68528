"""
ECDSA / secp256k1 identities for kettle.

An Identity holds one private key in memory and is used for:
- Signing plain (legacy) transactions: deployments, value transfers
- Signing confidential compute requests (typed transactions)
- Exporting raw key material for out-of-band signing protocols

Keys can be loaded from a .env file as PRIVATE_KEY (hex format).

Dependencies: eth-account + eth-keys (no full web3.py needed)
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import ValidationError as KeyValidationError

from ..errors import InvalidKeyError, KeyGenerationError


# Default config directory
KETTLE_DIR = Path.home() / ".kettle"
KETTLE_ENV = KETTLE_DIR / ".env"

PRIVATE_KEY_LENGTH = 32


def _strip_0x(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


class Identity:
    """A signing key and the account address derived from it."""

    __slots__ = ("_key",)

    def __init__(self, key: keys.PrivateKey) -> None:
        self._key = key

    # ============ Constructors ============

    @classmethod
    def from_hex(cls, key_hex: str) -> "Identity":
        """
        Parse a hex-encoded private key.

        Args:
            key_hex: 64 hex characters, with or without 0x prefix

        Raises:
            InvalidKeyError: If the string is not a valid secp256k1 key
        """
        try:
            raw = bytes.fromhex(_strip_0x(key_hex.strip()))
        except (AttributeError, ValueError) as exc:
            raise InvalidKeyError(f"Private key is not valid hex: {exc}") from exc
        return cls.from_bytes(raw)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Identity":
        if len(raw) != PRIVATE_KEY_LENGTH:
            raise InvalidKeyError(
                f"Private key must be {PRIVATE_KEY_LENGTH} bytes, got {len(raw)}"
            )
        if not 0 < int.from_bytes(raw, "big") < SECPK1_N:
            raise InvalidKeyError("Private key is outside the secp256k1 group order")
        try:
            return cls(keys.PrivateKey(raw))
        except (KeyValidationError, ValueError) as exc:
            raise InvalidKeyError(f"Invalid secp256k1 private key: {exc}") from exc

    @classmethod
    def generate(cls) -> "Identity":
        """
        Generate a fresh random identity.

        Raises:
            KeyGenerationError: If the entropy source fails
        """
        try:
            raw = secrets.token_bytes(PRIVATE_KEY_LENGTH)
        except (OSError, NotImplementedError) as exc:
            raise KeyGenerationError(f"Entropy source failed: {exc}") from exc
        try:
            return cls.from_bytes(raw)
        except InvalidKeyError as exc:
            raise KeyGenerationError(str(exc)) from exc

    @classmethod
    def from_env(
        cls,
        env_path: Optional[Path] = None,
        var: str = "PRIVATE_KEY",
    ) -> "Identity":
        """
        Load an identity from a .env file or the environment.

        Args:
            env_path: Path to .env file (default: ~/.kettle/.env)
            var: Environment variable holding the hex key

        Raises:
            InvalidKeyError: If the variable is missing or malformed
        """
        env_path = env_path or KETTLE_ENV
        if env_path.exists():
            load_dotenv(env_path, override=True)

        private_key = os.environ.get(var)
        if not private_key:
            raise InvalidKeyError(f"{var} not found in environment or {env_path}")
        return cls.from_hex(private_key)

    # ============ Derived values ============

    @property
    def address(self) -> str:
        """0x-prefixed checksummed address, derived from the key on each access."""
        return self._key.public_key.to_checksum_address()

    def export_raw(self) -> bytes:
        """Raw 32-byte private scalar."""
        return self._key.to_bytes()

    def export_hex(self) -> str:
        return "0x" + self.export_raw().hex()

    def account(self) -> LocalAccount:
        """eth-account LocalAccount for signing plain transactions."""
        return Account.from_key(self.export_raw())

    def sign_hash(self, digest: bytes) -> tuple[int, int, int]:
        """
        Sign a 32-byte digest.

        Returns:
            (v, r, s) with v as the recovery id (0 or 1)
        """
        signature = self._key.sign_msg_hash(digest)
        return signature.v, signature.r, signature.s

    # ============ Dunder ============

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Identity):
            return NotImplemented
        return self.export_raw() == other.export_raw()

    def __hash__(self) -> int:
        return hash(self.address)

    def __repr__(self) -> str:
        return f"Identity(address={self.address})"
