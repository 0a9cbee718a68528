"""
Transaction Builder - Build, sign and encode kettle transactions.

Two kinds of transactions are produced:

- Plain legacy transactions (deployments, value transfers), signed with
  eth-account exactly as on any EVM chain.
- Confidential compute requests (type 0x43).  The visible calldata goes
  in the signed record, while the confidential inputs travel next to it
  in the envelope: only their keccak hash is part of the signature, so
  the kettle can tie them to this invocation without them ever reaching
  public calldata.

Wire format::

    record  = [nonce, gasPrice, gas, to, value, data,
               kettleAddress, confidentialInputsHash, chainId, v, r, s]
    request = 0x43 || rlp([record, confidentialInputs])
    sighash = keccak(0x42 || rlp([kettleAddress, confidentialInputsHash,
                                  nonce, gasPrice, gas, to, value, data, chainId]))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import rlp
from eth_keys import keys
from eth_utils import to_canonical_address, to_checksum_address
from rlp.exceptions import DecodingError as RLPDecodingError
from rlp.sedes import big_endian_int

from ..errors import TransactionSubmissionError
from ..sigil.eth import Identity
from .abi import keccak256


CONFIDENTIAL_COMPUTE_RECORD_TX_TYPE = 0x42
CONFIDENTIAL_COMPUTE_REQUEST_TX_TYPE = 0x43


def _address_bytes(address: Optional[str]) -> bytes:
    return to_canonical_address(address) if address else b""


def _address_str(raw: bytes) -> Optional[str]:
    return to_checksum_address(raw) if raw else None


# ---------------------------------------------------------------------------
# Legacy transactions
# ---------------------------------------------------------------------------


def build_legacy_tx(
    nonce: int,
    gas_price: int,
    gas: int,
    chain_id: int,
    to: Optional[str] = None,
    value: int = 0,
    data: bytes = b"",
) -> dict[str, Any]:
    """
    Build an unsigned legacy (EIP-155) transaction dict.

    A missing `to` makes it a contract creation transaction.
    """
    tx: dict[str, Any] = {
        "nonce": nonce,
        "gasPrice": gas_price,
        "gas": gas,
        "value": value,
        "data": "0x" + data.hex(),
        "chainId": chain_id,
    }
    if to is not None:
        tx["to"] = to_checksum_address(to)
    return tx


def sign_legacy_tx(identity: Identity, tx: dict[str, Any]) -> bytes:
    """Sign a legacy transaction dict and return the raw encoded transaction."""
    try:
        signed = identity.account().sign_transaction(tx)
    except (TypeError, ValueError) as exc:
        raise TransactionSubmissionError(f"Cannot sign transaction: {exc}") from exc
    return bytes(signed.raw_transaction)


# ---------------------------------------------------------------------------
# Confidential compute requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfidentialComputeRequest:
    kettle_address: str
    nonce: int
    gas_price: int
    gas: int
    to: Optional[str]
    data: bytes
    confidential_inputs: bytes = b""
    value: int = 0

    def confidential_inputs_hash(self) -> bytes:
        return keccak256(self.confidential_inputs)

    def signing_hash(self, chain_id: int) -> bytes:
        payload = rlp.encode([
            _address_bytes(self.kettle_address),
            self.confidential_inputs_hash(),
            self.nonce,
            self.gas_price,
            self.gas,
            _address_bytes(self.to),
            self.value,
            self.data,
            chain_id,
        ])
        return keccak256(bytes([CONFIDENTIAL_COMPUTE_RECORD_TX_TYPE]) + payload)

    def sign(self, identity: Identity, chain_id: int) -> bytes:
        """Sign the record and return the encoded 0x43 request."""
        v, r, s = identity.sign_hash(self.signing_hash(chain_id))
        record = [
            self.nonce,
            self.gas_price,
            self.gas,
            _address_bytes(self.to),
            self.value,
            self.data,
            _address_bytes(self.kettle_address),
            self.confidential_inputs_hash(),
            chain_id,
            v,
            r,
            s,
        ]
        return bytes([CONFIDENTIAL_COMPUTE_REQUEST_TX_TYPE]) + rlp.encode(
            [record, self.confidential_inputs]
        )


@dataclass(frozen=True)
class SignedComputeRequest:
    request: ConfidentialComputeRequest
    chain_id: int
    v: int
    r: int
    s: int

    def sender(self) -> str:
        """Recover the signer address from the record signature."""
        signature = keys.Signature(vrs=(self.v, self.r, self.s))
        public_key = signature.recover_public_key_from_msg_hash(
            self.request.signing_hash(self.chain_id)
        )
        return public_key.to_checksum_address()


def decode_compute_request(raw: bytes) -> SignedComputeRequest:
    """
    Decode an encoded 0x43 confidential compute request.

    Raises:
        ValueError: If the bytes are not a well-formed request or the
                    carried inputs do not match the signed hash
    """
    if not raw or raw[0] != CONFIDENTIAL_COMPUTE_REQUEST_TX_TYPE:
        raise ValueError("Not a confidential compute request")

    try:
        record, confidential_inputs = rlp.decode(raw[1:])
        (
            nonce, gas_price, gas, to, value, data,
            kettle, inputs_hash, chain_id, v, r, s,
        ) = record
    except (RLPDecodingError, ValueError, TypeError) as exc:
        raise ValueError(f"Malformed confidential compute request: {exc}") from exc

    if keccak256(confidential_inputs) != inputs_hash:
        raise ValueError("Confidential inputs do not match the signed hash")

    as_int = big_endian_int.deserialize
    request = ConfidentialComputeRequest(
        kettle_address=_address_str(kettle),
        nonce=as_int(nonce),
        gas_price=as_int(gas_price),
        gas=as_int(gas),
        to=_address_str(to),
        data=data,
        confidential_inputs=confidential_inputs,
        value=as_int(value),
    )
    return SignedComputeRequest(
        request=request,
        chain_id=as_int(chain_id),
        v=as_int(v),
        r=as_int(r),
        s=as_int(s),
    )
