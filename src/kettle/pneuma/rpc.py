"""
JSON-RPC client for a kettle node.

Lightweight alternative to web3.py: uses httpx for HTTP.
Supports read-only contract calls, raw transaction submission, balance
queries and transaction receipt polling.

A LedgerClient holds one httpx.Client and is not safe for unsynchronized
use from several threads.  Nothing here retries: every failure goes
straight back to the caller.
"""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ..errors import RemoteCallError, TransactionDroppedError, TransactionTimeoutError


logger = logging.getLogger(__name__)

DEFAULT_RPC_TIMEOUT = 30.0
DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 2.0

# Consecutive polls on which the node must not know the tx before it is
# considered dropped.
DROPPED_AFTER_POLLS = 3


def _hex_to_bytes(value: Optional[str]) -> bytes:
    if not value:
        return b""
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _hex_to_int(value: Optional[str]) -> int:
    if value is None:
        return 0
    return int(value, 16)


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Log:
    address: str
    topics: tuple[bytes, ...]
    data: bytes
    log_index: Optional[int] = None

    @classmethod
    def from_rpc(cls, raw: dict[str, Any]) -> "Log":
        index = raw.get("logIndex")
        return cls(
            address=raw.get("address", ""),
            topics=tuple(_hex_to_bytes(t) for t in raw.get("topics", [])),
            data=_hex_to_bytes(raw.get("data")),
            log_index=_hex_to_int(index) if index is not None else None,
        )


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    status: int
    logs: tuple[Log, ...] = ()
    contract_address: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_rpc(cls, raw: dict[str, Any]) -> "Receipt":
        block = raw.get("blockNumber")
        gas = raw.get("gasUsed")
        return cls(
            tx_hash=raw.get("transactionHash", ""),
            status=_hex_to_int(raw.get("status", "0x0")),
            logs=tuple(Log.from_rpc(entry) for entry in raw.get("logs", [])),
            contract_address=raw.get("contractAddress"),
            block_number=_hex_to_int(block) if block is not None else None,
            gas_used=_hex_to_int(gas) if gas is not None else None,
            raw=raw,
        )


@dataclass(frozen=True)
class PendingTransaction:
    """A submitted transaction that can be waited on."""

    tx_hash: str
    ledger: "LedgerClient" = field(repr=False, compare=False)

    def wait(
        self,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> Receipt:
        return self.ledger.wait(self, timeout=timeout, poll_interval=poll_interval)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LedgerClient:
    """Thin synchronous binding over the node's JSON-RPC surface."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Args:
            rpc_url: JSON-RPC endpoint URL
            timeout: Per-request timeout in seconds
            receipt_timeout: Default deadline for wait()
            poll_interval: Default receipt polling interval for wait()
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.rpc_url = rpc_url
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self._ids = itertools.count(1)
        self._http = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "LedgerClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def request(self, method: str, params: list) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            Result field from the RPC response

        Raises:
            RemoteCallError: On transport failure or an error response
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        logger.debug("rpc -> %s %s", method, params)

        try:
            response = self._http.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"{method} transport error: {exc}") from exc
        except ValueError as exc:
            raise RemoteCallError(f"{method} returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise RemoteCallError(f"{method} returned a malformed response: {data!r}")

        error = data.get("error")
        if error is not None:
            if isinstance(error, dict):
                message = str(error.get("message", error))
                logger.debug("rpc <- %s error %s", method, message)
                raise RemoteCallError(message, code=error.get("code"), data=error.get("data"))
            raise RemoteCallError(str(error))

        return data.get("result")

    # ============ Reads ============

    def call(self, to: str, data: bytes, block: str = "latest") -> bytes:
        """Read-only execution (eth_call) against current state."""
        result = self.request("eth_call", [{"to": to, "data": "0x" + data.hex()}, block])
        return _hex_to_bytes(result)

    def balance_at(self, address: str, block: str = "latest") -> int:
        return _hex_to_int(self.request("eth_getBalance", [address, block]))

    def nonce_at(self, address: str, block: str = "pending") -> int:
        return _hex_to_int(self.request("eth_getTransactionCount", [address, block]))

    def gas_price(self) -> int:
        return _hex_to_int(self.request("eth_gasPrice", []))

    def chain_id(self) -> int:
        return _hex_to_int(self.request("eth_chainId", []))

    def get_transaction(self, tx_hash: str) -> Optional[dict[str, Any]]:
        return self.request("eth_getTransactionByHash", [tx_hash])

    def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        raw = self.request("eth_getTransactionReceipt", [tx_hash])
        if raw is None:
            return None
        return Receipt.from_rpc(raw)

    # ============ Writes ============

    def send_raw_transaction(self, raw_tx: bytes) -> PendingTransaction:
        """Submit a signed, encoded transaction for inclusion."""
        tx_hash = self.request("eth_sendRawTransaction", ["0x" + raw_tx.hex()])
        if not isinstance(tx_hash, str) or not tx_hash:
            raise RemoteCallError(f"eth_sendRawTransaction returned no transaction hash: {tx_hash!r}")
        logger.debug("submitted transaction %s", tx_hash)
        return PendingTransaction(tx_hash=tx_hash, ledger=self)

    def wait(
        self,
        pending: PendingTransaction,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> Receipt:
        """
        Block until the transaction is mined.

        Raises:
            TransactionTimeoutError: If no receipt appears within timeout
            TransactionDroppedError: If the node forgets the transaction
        """
        timeout = self.receipt_timeout if timeout is None else timeout
        poll_interval = self.poll_interval if poll_interval is None else poll_interval

        unknown_polls = 0
        start = time.monotonic()
        while True:
            receipt = self.get_receipt(pending.tx_hash)
            if receipt is not None:
                logger.debug(
                    "transaction %s mined in block %s (status %s)",
                    pending.tx_hash, receipt.block_number, receipt.status,
                )
                return receipt

            if self.get_transaction(pending.tx_hash) is None:
                unknown_polls += 1
                if unknown_polls >= DROPPED_AFTER_POLLS:
                    raise TransactionDroppedError(pending.tx_hash)
            else:
                unknown_polls = 0

            if time.monotonic() - start >= timeout:
                raise TransactionTimeoutError(pending.tx_hash, timeout)
            time.sleep(poll_interval)
