"""Unit tests for sigil/eth.py identities."""

from __future__ import annotations

from pathlib import Path

import pytest
from eth_account import Account

from kettle.errors import InvalidKeyError, KeyGenerationError
from kettle.pneuma.abi import keccak256
from kettle.sigil.eth import Identity

from conftest import FUNDED_ADDRESS, FUNDED_KEY


class TestFromHex:
    """Tests for Identity.from_hex."""

    def test_known_key_address(self) -> None:
        identity = Identity.from_hex(FUNDED_KEY)
        assert identity.address == FUNDED_ADDRESS

    def test_accepts_0x_prefix(self) -> None:
        assert Identity.from_hex("0x" + FUNDED_KEY).address == FUNDED_ADDRESS

    def test_same_key_same_address(self) -> None:
        a = Identity.from_hex(FUNDED_KEY)
        b = Identity.from_hex(FUNDED_KEY)
        assert a.address == b.address
        assert a == b

    def test_matches_eth_account(self) -> None:
        identity = Identity.from_hex(FUNDED_KEY)
        assert identity.address == Account.from_key("0x" + FUNDED_KEY).address

    @pytest.mark.parametrize(
        "bad",
        [
            "",
            "0xPK",
            "not hex at all",
            "abcd",
            "00" * 33,
            "00" * 32,
            "ff" * 32,
        ],
    )
    def test_rejects_invalid_keys(self, bad: str) -> None:
        with pytest.raises(InvalidKeyError):
            Identity.from_hex(bad)

    def test_invalid_key_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            Identity.from_hex("zz")


class TestGenerate:
    """Tests for Identity.generate."""

    def test_distinct_identities(self) -> None:
        addresses = {Identity.generate().address for _ in range(20)}
        assert len(addresses) == 20

    def test_roundtrip_through_export(self) -> None:
        identity = Identity.generate()
        restored = Identity.from_hex(identity.export_hex())
        assert restored.address == identity.address

    def test_entropy_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def broken(n: int) -> bytes:
            raise OSError("no entropy")

        monkeypatch.setattr("kettle.sigil.eth.secrets.token_bytes", broken)
        with pytest.raises(KeyGenerationError):
            Identity.generate()


class TestExport:
    """Tests for raw key export and signing."""

    def test_export_raw_is_32_bytes(self) -> None:
        raw = Identity.from_hex(FUNDED_KEY).export_raw()
        assert raw == bytes.fromhex(FUNDED_KEY)
        assert len(raw) == 32

    def test_sign_hash_recovers(self) -> None:
        from eth_keys import keys

        identity = Identity.generate()
        digest = keccak256(b"confidential")
        v, r, s = identity.sign_hash(digest)
        assert v in (0, 1)
        recovered = keys.Signature(vrs=(v, r, s)).recover_public_key_from_msg_hash(digest)
        assert recovered.to_checksum_address() == identity.address

    def test_repr_hides_key(self) -> None:
        identity = Identity.from_hex(FUNDED_KEY)
        assert FUNDED_KEY not in repr(identity)
        assert identity.address in repr(identity)


class TestFromEnv:
    """Tests for Identity.from_env (.env loading)."""

    def test_loads_from_env_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRIVATE_KEY", "")
        env_path = tmp_path / ".env"
        env_path.write_text(f"PRIVATE_KEY=0x{FUNDED_KEY}\n", encoding="utf-8")
        identity = Identity.from_env(env_path)
        assert identity.address == FUNDED_ADDRESS

    def test_missing_key(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRIVATE_KEY", "")
        with pytest.raises(InvalidKeyError):
            Identity.from_env(tmp_path / "missing.env")
