"""
Contract handle: a deployed contract bound to a signing identity.

Mutating calls go out as confidential compute requests.  A failed
request surfaces in one of two ways and both are checked:

- the node rejects the submission with an "execution reverted: 0x..."
  error carrying PeekerReverted(address, bytes)   -> PeekerRejectedError
- the transaction is mined but its receipt has status 0 -> TransactionRevertedError

Any other submission error becomes TransactionSubmissionError.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from .errors import (
    PeekerRejectedError,
    RemoteCallError,
    TransactionRevertedError,
    TransactionSubmissionError,
)
from .pneuma.abi import ContractAbi, DecodedEvent
from .pneuma.client import KettleClient
from .pneuma.revert import PeekerRevert, decode_revert
from .pneuma.rpc import Log, Receipt
from .sigil.eth import Identity


logger = logging.getLogger(__name__)


class Contract:
    """Immutable handle: address + ABI + signing client."""

    __slots__ = ("_address", "_abi", "_client")

    def __init__(self, address: str, abi: ContractAbi, client: KettleClient) -> None:
        self._address = address
        self._abi = abi
        self._client = client

    @property
    def address(self) -> str:
        return self._address

    @property
    def abi(self) -> ContractAbi:
        return self._abi

    @property
    def client(self) -> KettleClient:
        return self._client

    @property
    def identity(self) -> Identity:
        return self._client.identity

    def ref(self, identity: Identity) -> "Contract":
        """The same contract bound to another identity.  No network I/O."""
        return Contract(self._address, self._abi, self._client.with_identity(identity))

    def call(self, method: str, args: Optional[Sequence[Any]] = None) -> list[Any]:
        """
        Read-only call (eth_call) of `method`.

        Returns:
            Decoded outputs, one list item per declared output

        Raises:
            AbiEncodingError: If args do not match the ABI
            AbiDecodingError: If the return data does not match the outputs
            RemoteCallError: Propagated from the ledger client
        """
        args = list(args or [])
        calldata = self._abi.encode_call(method, args)
        output = self._client.ledger.call(self._address, calldata)
        return self._abi.decode_output(method, output, args)

    def send_transaction(
        self,
        method: str,
        args: Optional[Sequence[Any]] = None,
        confidential_inputs: bytes = b"",
    ) -> Receipt:
        """
        Submit `method(args)` as a confidential compute request and wait.

        Args:
            method: Contract function name
            args: Function arguments
            confidential_inputs: Payload for the kettle, never placed in calldata

        Returns:
            The mined, successful receipt (logs left to the caller)

        Raises:
            AbiEncodingError: If args do not match the ABI
            PeekerRejectedError: Structured rejection during off-chain processing
            TransactionSubmissionError: Any other submission failure
            TransactionRevertedError: Mined with failed status
            TransactionTimeoutError / TransactionDroppedError: From waiting
        """
        calldata = self._abi.encode_call(method, list(args or []))

        try:
            pending = self._client.send_compute_request(
                self._address, calldata, confidential_inputs
            )
        except RemoteCallError as exc:
            decoded = decode_revert(exc.message)
            if isinstance(decoded, PeekerRevert):
                logger.debug("%s rejected by peeker %s", method, decoded.address)
                raise PeekerRejectedError(decoded.address, decoded.payload) from exc
            raise TransactionSubmissionError(exc.message) from exc

        receipt = pending.wait()
        if not receipt.succeeded:
            raise TransactionRevertedError(receipt)
        return receipt

    def decode_event(self, log: Log) -> DecodedEvent:
        return self._abi.decode_event(log)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Contract):
            return NotImplemented
        return (
            self._address.lower() == other._address.lower()
            and self.identity == other.identity
        )

    def __hash__(self) -> int:
        return hash((self._address.lower(), self.identity.address))

    def __repr__(self) -> str:
        return f"Contract(address={self._address}, signer={self.identity.address})"
