"""
Decoder for structured kettle reverts.

When a confidential compute request fails during off-chain processing the
node reports it as a JSON-RPC error whose message is

    "execution reverted: 0x" + hex(selector || abi.encode(address, bytes))

i.e. a PeekerReverted(address, bytes) custom error naming the peeker
contract that rejected the request and its revert payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import is_hex, to_checksum_address

from .abi import keccak256


EXECUTION_REVERTED_PREFIX = "execution reverted: 0x"

PEEKER_REVERTED_SIGNATURE = "PeekerReverted(address,bytes)"
PEEKER_REVERTED_SELECTOR = keccak256(PEEKER_REVERTED_SIGNATURE.encode("utf-8"))[:4]
PEEKER_REVERTED_TYPES = ["address", "bytes"]


@dataclass(frozen=True)
class PeekerRevert:
    address: str
    payload: bytes
    selector: bytes


@dataclass(frozen=True)
class UnrecognizedRevert:
    message: str
    reason: str


RevertDecoding = Union[PeekerRevert, UnrecognizedRevert]


def matches_revert_envelope(message: str) -> bool:
    """True if the message has the "execution reverted: 0x<hex>" shape."""
    if not message.startswith(EXECUTION_REVERTED_PREFIX):
        return False
    body = message[len(EXECUTION_REVERTED_PREFIX):]
    return len(body) % 2 == 0 and is_hex("0x" + body)


def decode_revert(message: str) -> RevertDecoding:
    """
    Decode a node error message into a PeekerRevert.

    Never raises: anything that does not carry a well-formed
    (address, bytes) payload comes back as UnrecognizedRevert.
    """
    if not matches_revert_envelope(message):
        return UnrecognizedRevert(message, "not an execution-reverted hex envelope")

    raw = bytes.fromhex(message[len(EXECUTION_REVERTED_PREFIX):])
    if len(raw) < 4:
        return UnrecognizedRevert(message, "revert data shorter than a selector")

    try:
        address, payload = decode(PEEKER_REVERTED_TYPES, raw[4:])
    except (DecodingError, ValueError, TypeError, OverflowError) as exc:
        return UnrecognizedRevert(message, f"payload is not (address, bytes): {exc}")

    return PeekerRevert(address=to_checksum_address(address), payload=payload, selector=raw[:4])
