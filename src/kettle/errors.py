"""
Kettle error taxonomy.

Every failure surfaced by the framework is one of these.  Submission
outcomes are mutually exclusive: a transaction either succeeds, is
rejected by a peeker (structured), reverts silently on-chain, or fails
in transport.
"""

from __future__ import annotations

from typing import Any, Optional


class KettleError(RuntimeError):
    pass


# ============ Identity ============


class IdentityError(KettleError, ValueError):
    pass


class InvalidKeyError(IdentityError):
    pass


class KeyGenerationError(IdentityError):
    pass


# ============ Artifacts / ABI ============


class ArtifactError(KettleError):
    pass


class ArtifactNotFoundError(ArtifactError, FileNotFoundError):
    pass


class MalformedArtifactError(ArtifactError):
    pass


class AbiEncodingError(KettleError):
    pass


class AbiDecodingError(KettleError):
    pass


# ============ Transport ============


class RemoteCallError(KettleError):
    """JSON-RPC failure, either in transport or reported by the node."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


class TransactionSubmissionError(KettleError):
    pass


class TransactionTimeoutError(KettleError):
    def __init__(self, tx_hash: str, timeout: float) -> None:
        super().__init__(f"Transaction {tx_hash} not mined within {timeout}s")
        self.tx_hash = tx_hash
        self.timeout = timeout


class TransactionDroppedError(KettleError):
    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} was dropped by the node")
        self.tx_hash = tx_hash


# ============ Execution outcome ============


class PeekerRejectedError(KettleError):
    """A confidential compute peer rejected the request."""

    def __init__(self, address: str, payload: bytes) -> None:
        super().__init__(f"peeker {address} reverted: {payload!r}")
        self.address = address
        self.payload = payload


class TransactionRevertedError(KettleError):
    """The transaction was mined but its receipt reports failure."""

    def __init__(self, receipt: Any) -> None:
        super().__init__(f"Transaction {receipt.tx_hash} reverted on-chain")
        self.receipt = receipt


class DeploymentFailedError(KettleError):
    pass


class FundingFailedError(KettleError):
    def __init__(self, address: str, expected: int, observed: Optional[int]) -> None:
        super().__init__(
            f"Failed to fund {address}: expected balance {expected}, observed {observed}"
        )
        self.address = address
        self.expected = expected
        self.observed = observed
