"""
ABI and artifact handling for kettle contracts.

Artifacts are Foundry compilation outputs (out/<File>.sol/<Contract>.json)
carrying the contract ABI and its deployment bytecode.  ContractAbi wraps
the ABI list and does call encoding, return decoding and event decoding
on top of eth-abi.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError, ParseError
from eth_abi.grammar import ABIType, BasicType, TupleType, parse
from eth_hash.auto import keccak
from eth_utils import to_checksum_address

from ..errors import (
    AbiDecodingError,
    AbiEncodingError,
    ArtifactNotFoundError,
    MalformedArtifactError,
)


ARTIFACTS_ENV = "KETTLE_ARTIFACTS_DIR"


def keccak256(data: bytes) -> bytes:
    """Keccak-256 hash (NOT the same as hashlib.sha3_256 / NIST SHA-3)."""
    return keccak(data)


# ---------------------------------------------------------------------------
# Type strings
# ---------------------------------------------------------------------------


def canonical_type(param: dict[str, Any]) -> str:
    """
    Canonical type string of an ABI parameter.

    Tuples are expanded from their components, keeping any array suffix:
    {"type": "tuple[]", "components": [uint256, address]} -> "(uint256,address)[]"
    """
    typ = param["type"]
    if typ.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components", []))
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def _is_hashed_topic(typ: str) -> bool:
    # Indexed reference types are stored as the keccak of their encoding
    return typ in ("string", "bytes") or typ.endswith("]") or typ.startswith("(")


def signature(entry: dict[str, Any]) -> str:
    types = ",".join(canonical_type(p) for p in entry.get("inputs", []))
    return f"{entry['name']}({types})"


def selector(entry: dict[str, Any]) -> bytes:
    return keccak256(signature(entry).encode("utf-8"))[:4]


# ---------------------------------------------------------------------------
# ContractAbi
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DecodedEvent:
    name: str
    args: dict[str, Any]
    address: Optional[str] = None


class ContractAbi:
    """Typed view over a contract ABI list."""

    def __init__(self, entries: Sequence[dict[str, Any]]) -> None:
        self.entries = list(entries)

    def _entries(self, kind: str, name: Optional[str] = None) -> list[dict[str, Any]]:
        return [
            e
            for e in self.entries
            if e.get("type") == kind and (name is None or e.get("name") == name)
        ]

    def has_function(self, name: str) -> bool:
        return bool(self._entries("function", name))

    def function(self, name: str, args: Optional[Sequence[Any]] = None) -> dict[str, Any]:
        """
        Resolve a function entry by name.

        Overloads are disambiguated by argument count when args are given.

        Raises:
            AbiEncodingError: If no (unique) matching function exists
        """
        candidates = self._entries("function", name)
        if not candidates:
            raise AbiEncodingError(f"Function {name} not found in ABI")
        if len(candidates) > 1 and args is not None:
            candidates = [c for c in candidates if len(c.get("inputs", [])) == len(args)]
        if len(candidates) != 1:
            raise AbiEncodingError(f"Ambiguous or mismatched overload for {name}")
        return candidates[0]

    def constructor(self) -> Optional[dict[str, Any]]:
        entries = self._entries("constructor")
        return entries[0] if entries else None

    # ============ Calls ============

    def encode_call(self, name: str, args: Sequence[Any]) -> bytes:
        """
        ABI-encode a function call.

        Returns:
            4-byte selector followed by the encoded arguments
        """
        func = self.function(name, args)
        return selector(func) + encode_params(func.get("inputs", []), args)

    def decode_output(
        self,
        name: str,
        data: bytes,
        args: Optional[Sequence[Any]] = None,
    ) -> list[Any]:
        """ABI-decode return data against the function's declared outputs."""
        try:
            func = self.function(name, args)
        except AbiEncodingError as exc:
            raise AbiDecodingError(str(exc)) from exc
        return decode_params(func.get("outputs", []), data)

    # ============ Events ============

    def decode_event(self, log: Any) -> DecodedEvent:
        """
        Decode a receipt log emitted by this contract.

        Indexed reference types (string, bytes, arrays, tuples) cannot be
        recovered from their topic and are returned as the raw 32-byte hash.

        Raises:
            AbiDecodingError: If the log does not match any event of this ABI
        """
        topics = list(log.topics)
        if not topics:
            raise AbiDecodingError("Anonymous logs cannot be matched to an event")

        event = None
        for entry in self._entries("event"):
            if not entry.get("anonymous") and keccak256(signature(entry).encode("utf-8")) == topics[0]:
                event = entry
                break
        if event is None:
            raise AbiDecodingError(f"No event in ABI for topic 0x{topics[0].hex()}")

        inputs = event.get("inputs", [])
        indexed = [p for p in inputs if p.get("indexed")]
        plain = [p for p in inputs if not p.get("indexed")]
        if len(indexed) != len(topics) - 1:
            raise AbiDecodingError(
                f"Event {event['name']} expects {len(indexed)} indexed topics, "
                f"got {len(topics) - 1}"
            )

        values: dict[str, Any] = {}
        for param, topic in zip(indexed, topics[1:]):
            typ = canonical_type(param)
            if _is_hashed_topic(typ):
                values[param["name"]] = topic
            else:
                values[param["name"]] = decode_params([param], topic)[0]

        for param, value in zip(plain, decode_params(plain, log.data)):
            values[param["name"]] = value

        ordered = {p["name"]: values[p["name"]] for p in inputs}
        return DecodedEvent(name=event["name"], args=ordered, address=getattr(log, "address", None))


def encode_params(params: Sequence[dict[str, Any]], args: Sequence[Any]) -> bytes:
    types = [canonical_type(p) for p in params]
    if len(types) != len(args):
        raise AbiEncodingError(f"Expected {len(types)} arguments, got {len(args)}")
    if not types:
        return b""
    try:
        return encode(types, list(args))
    except (EncodingError, ParseError, TypeError, ValueError, OverflowError) as exc:
        raise AbiEncodingError(f"Cannot encode {types}: {exc}") from exc


def decode_params(params: Sequence[dict[str, Any]], data: bytes) -> list[Any]:
    types = [canonical_type(p) for p in params]
    if not types:
        return []
    try:
        values = decode(types, data)
    except (DecodingError, ParseError, TypeError, ValueError, OverflowError) as exc:
        raise AbiDecodingError(f"Cannot decode {types}: {exc}") from exc
    return [_checksum_addresses(parse(t), v) for t, v in zip(types, values)]


def _checksum_addresses(abi_type: ABIType, value: Any) -> Any:
    # eth-abi returns lowercase addresses from 5.x on and checksummed ones before
    if abi_type.is_array:
        return tuple(_checksum_addresses(abi_type.item_type, item) for item in value)
    if isinstance(abi_type, TupleType):
        return tuple(
            _checksum_addresses(component, item)
            for component, item in zip(abi_type.components, value)
        )
    if isinstance(abi_type, BasicType) and abi_type.base == "address":
        return to_checksum_address(value)
    return value


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Artifact:
    abi: ContractAbi = field(repr=False)
    code: bytes = field(repr=False)
    path: Optional[Path] = None

    def bytecode_hex(self) -> str:
        return "0x" + self.code.hex()


def find_artifacts_dir(start: Optional[Path] = None) -> Path:
    """
    Locate the Foundry out/ directory.

    KETTLE_ARTIFACTS_DIR wins; otherwise searches from the working
    directory upward for out/ or contracts/out/.
    """
    override = os.environ.get(ARTIFACTS_ENV)
    if override:
        path = Path(override)
        if not path.is_dir():
            raise ArtifactNotFoundError(f"{ARTIFACTS_ENV} is not a directory: {path}")
        return path

    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        for candidate in (parent / "out", parent / "contracts" / "out"):
            if candidate.is_dir():
                return candidate
    raise ArtifactNotFoundError(
        "Cannot find out/. Run 'forge build' or set KETTLE_ARTIFACTS_DIR."
    )


def load_artifact(
    path: Union[str, Path],
    artifacts_dir: Optional[Path] = None,
) -> Artifact:
    """
    Load a compiled contract artifact.

    Args:
        path: Artifact path relative to the artifacts dir
              (e.g. "Puzzle.sol/ChillRobotPuzzle.json"), or absolute
        artifacts_dir: Foundry out/ directory (default: discovered)

    Raises:
        ArtifactNotFoundError: If the file does not exist
        MalformedArtifactError: If the JSON or bytecode is invalid
    """
    path = Path(path)
    if not path.is_absolute():
        path = (artifacts_dir or find_artifacts_dir()) / path

    if not path.is_file():
        raise ArtifactNotFoundError(f"Artifact not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            document = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedArtifactError(f"Invalid artifact JSON in {path}: {exc}") from exc

    return parse_artifact(document, path=path)


def parse_artifact(document: Any, path: Optional[Path] = None) -> Artifact:
    where = path or "<artifact>"
    if not isinstance(document, dict):
        raise MalformedArtifactError(f"Artifact {where} is not a JSON object")

    abi = document.get("abi")
    if not isinstance(abi, list):
        raise MalformedArtifactError(f"Artifact {where} has no abi list")

    bytecode = document.get("bytecode")
    obj = bytecode.get("object") if isinstance(bytecode, dict) else None
    if not isinstance(obj, str):
        raise MalformedArtifactError(f"Artifact {where} has no bytecode.object")

    hex_code = obj[2:] if obj.startswith("0x") else obj
    try:
        code = bytes.fromhex(hex_code)
    except ValueError as exc:
        raise MalformedArtifactError(f"Invalid bytecode hex in {where}: {exc}") from exc
    if not code:
        raise MalformedArtifactError(f"Artifact {where} has empty bytecode")

    return Artifact(abi=ContractAbi(abi), code=code, path=path)


def encode_deployment(artifact: Artifact, constructor_args: Optional[Sequence[Any]] = None) -> bytes:
    """Deployment payload: bytecode followed by ABI-encoded constructor args."""
    if not constructor_args:
        return artifact.code

    constructor = artifact.abi.constructor()
    if constructor is None:
        raise AbiEncodingError(
            "Constructor not found in ABI, but constructor_args were provided."
        )
    return artifact.code + encode_params(constructor.get("inputs", []), constructor_args)
