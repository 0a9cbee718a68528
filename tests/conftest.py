"""
Shared fixtures: an in-process fake kettle node behind httpx.MockTransport.

The fake node understands just enough of the JSON-RPC surface to deploy
the Store fixture contract, execute setValue / offchain_setSecretMessage
(plain and as confidential compute requests), answer eth_call for the
getters, and hand out receipts.  Failure modes are switched on per test.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest
import rlp
from eth_abi import decode, encode
from eth_account import Account
from eth_utils import to_canonical_address, to_checksum_address
from rlp.sedes import big_endian_int

from kettle.framework import Config, Framework
from kettle.pneuma.abi import keccak256
from kettle.pneuma.revert import (
    EXECUTION_REVERTED_PREFIX,
    PEEKER_REVERTED_SELECTOR,
    PEEKER_REVERTED_TYPES,
)
from kettle.pneuma.tx import CONFIDENTIAL_COMPUTE_REQUEST_TX_TYPE, decode_compute_request
from kettle.sigil.eth import Identity


FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"
ARTIFACTS_DIR = FIXTURES_DIR / "out"
STORE_ARTIFACT = "Store.sol/Store.json"

KETTLE_ADDRESS = "0x03493869959C866713C33669cA118E774A30A0E5"
FUNDED_KEY = "bab10e221a04567ca0445fb7570843ce36da5177bd8f33584f972d299fe74bfb"
FUNDED_ADDRESS = "0x71B21E9b8029d1E384B71B2A1708005A7d4D0428"
CHAIN_ID = 16813125


def _selector(sig: str) -> bytes:
    return keccak256(sig.encode("utf-8"))[:4]


SET_VALUE = _selector("setValue(uint256)")
GET_VALUE = _selector("getValue()")
GET_PAIR = _selector("getPair()")
SET_SECRET = _selector("offchain_setSecretMessage(uint256,string)")
VALUE_SET_TOPIC = keccak256(b"ValueSet(address,uint256)")
SECRET_SET_TOPIC = keccak256(b"SecretSet(uint256,string,bytes16)")
DATA_ID = bytes.fromhex("0123456789abcdef0123456789abcdef")


def peeker_revert_message(address: str, payload: bytes) -> str:
    """Node error message for a PeekerReverted(address, bytes) revert."""
    data = PEEKER_REVERTED_SELECTOR + encode(PEEKER_REVERTED_TYPES, [address, payload])
    return EXECUTION_REVERTED_PREFIX + data.hex()


class RpcFault(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


def _topic_address(address: str) -> str:
    return _hex(b"\x00" * 12 + to_canonical_address(address))


class FakeNode:
    def __init__(self, chain_id: int = CHAIN_ID) -> None:
        self.chain_id = chain_id
        self.gas_price = 1_000_000_000
        self.balances: dict[str, int] = {}
        self.balance_overrides: dict[str, int] = {}
        self.nonces: dict[str, int] = {}
        self.contracts: dict[str, dict[str, Any]] = {}
        self.transactions: dict[str, dict[str, Any]] = {}
        self.receipts: dict[str, dict[str, Any]] = {}
        self.compute_requests: list[Any] = []
        self.legacy_transactions: list[dict[str, Any]] = []
        self.methods: list[str] = []
        self.block_number = 0

        # Failure switches
        self.reject_with: Optional[str] = None
        self.revert_next = False
        self.hold_receipts = False
        self.forget_transactions = False
        self.offline = False

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # ============ Transport ============

    def handle(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)

        body = json.loads(request.content)
        method, params = body["method"], body["params"]
        self.methods.append(method)
        handlers: dict[str, Callable[..., Any]] = {
            "eth_chainId": lambda: hex(self.chain_id),
            "eth_gasPrice": lambda: hex(self.gas_price),
            "eth_getTransactionCount": lambda addr, block: hex(self.nonces.get(addr.lower(), 0)),
            "eth_getBalance": self._get_balance,
            "eth_call": self._call,
            "eth_sendRawTransaction": self._send_raw_transaction,
            "eth_getTransactionReceipt": lambda h: self.receipts.get(h),
            "eth_getTransactionByHash": self._get_transaction,
        }
        try:
            result = handlers[method](*params)
        except RpcFault as fault:
            error = {"code": fault.code, "message": fault.message}
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    # ============ Reads ============

    def _get_balance(self, address: str, block: str) -> str:
        key = address.lower()
        return hex(self.balance_overrides.get(key, self.balances.get(key, 0)))

    def _get_transaction(self, tx_hash: str) -> Optional[dict[str, Any]]:
        if self.forget_transactions:
            return None
        return self.transactions.get(tx_hash)

    def _call(self, msg: dict[str, Any], block: str) -> str:
        contract = self.contracts.get(msg["to"].lower())
        if contract is None:
            return "0x"
        data = bytes.fromhex(msg["data"][2:])
        if data[:4] == GET_VALUE:
            return _hex(encode(["uint256"], [contract["value"]]))
        if data[:4] == GET_PAIR:
            return _hex(encode(["(address,uint256)"], [(contract["owner"], contract["value"])]))
        raise RpcFault(3, "execution reverted")

    # ============ Writes ============

    def _execute(self, to: str, data: bytes, sender: str) -> list[dict[str, Any]]:
        contract = self.contracts.get(to.lower())
        if contract is None:
            return []
        if data[:4] == SET_VALUE:
            (value,) = decode(["uint256"], data[4:])
            contract["value"] = value
            contract["owner"] = sender
            return [{
                "address": to,
                "topics": [_hex(VALUE_SET_TOPIC), _topic_address(sender)],
                "data": _hex(encode(["uint256"], [value])),
                "logIndex": "0x0",
            }]
        if data[:4] == SET_SECRET:
            team, message = decode(["uint256", "string"], data[4:])
            return [{
                "address": to,
                "topics": [
                    _hex(SECRET_SET_TOPIC),
                    _hex(encode(["uint256"], [team])),
                    _hex(keccak256(message.encode("utf-8"))),
                ],
                "data": _hex(encode(["bytes16"], [DATA_ID])),
                "logIndex": "0x0",
            }]
        return []

    def _send_raw_transaction(self, raw_hex: str) -> str:
        if self.reject_with is not None:
            message, self.reject_with = self.reject_with, None
            raise RpcFault(-32000, message)

        raw = bytes.fromhex(raw_hex[2:])
        tx_hash = _hex(keccak256(raw))
        failed, self.revert_next = self.revert_next, False
        contract_address = None

        if raw[0] == CONFIDENTIAL_COMPUTE_REQUEST_TX_TYPE:
            signed = decode_compute_request(raw)
            self.compute_requests.append(signed)
            sender = signed.sender()
            to = signed.request.to
            logs = [] if failed else self._execute(to, signed.request.data, sender)
        else:
            sender = Account.recover_transaction(raw)
            nonce, _gas_price, _gas, to_raw, value_raw, data, _v, _r, _s = rlp.decode(raw)
            value = big_endian_int.deserialize(value_raw)
            self.legacy_transactions.append({"from": sender, "to": to_raw, "value": value, "data": data})
            logs = []
            if to_raw == b"":
                to = None
                creator_nonce = self.nonces.get(sender.lower(), 0)
                contract_address = to_checksum_address(
                    keccak256(rlp.encode([to_canonical_address(sender), creator_nonce]))[12:]
                )
                if not failed:
                    self.contracts[contract_address.lower()] = {
                        "code": data, "value": 0, "owner": sender,
                    }
            else:
                to = to_checksum_address(to_raw)
                if not failed:
                    self.balances[to.lower()] = self.balances.get(to.lower(), 0) + value

        self.nonces[sender.lower()] = self.nonces.get(sender.lower(), 0) + 1
        self.block_number += 1
        self.transactions[tx_hash] = {"hash": tx_hash, "from": sender, "to": to}

        receipt = {
            "transactionHash": tx_hash,
            "status": "0x0" if failed else "0x1",
            "blockNumber": hex(self.block_number),
            "gasUsed": hex(21_000),
            "contractAddress": None if failed else contract_address,
            "logs": logs,
        }
        if not self.hold_receipts:
            self.receipts[tx_hash] = receipt
        return tx_hash


# ============ Fixtures ============


@pytest.fixture()
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture()
def funded() -> Identity:
    return Identity.from_hex(FUNDED_KEY)


@pytest.fixture()
def config(funded: Identity) -> Config:
    return Config(
        kettle_rpc="http://kettle.test/",
        kettle_address=KETTLE_ADDRESS,
        funded_account=funded,
        receipt_timeout=2.0,
        poll_interval=0.0,
        artifacts_dir=ARTIFACTS_DIR,
    )


@pytest.fixture()
def framework(node: FakeNode, config: Config):
    fr = Framework(config, transport=node.transport())
    yield fr
    fr.close()


@pytest.fixture()
def store(framework: Framework):
    return framework.deploy_contract(STORE_ARTIFACT)
