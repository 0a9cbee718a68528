__all__ = [
    # Framework
    "Config",
    "Framework",
    "Contract",
    # Identity
    "Identity",
    # Artifacts / ABI
    "Artifact",
    "ContractAbi",
    "DecodedEvent",
    "load_artifact",
    # Ledger
    "KettleClient",
    "LedgerClient",
    "Log",
    "PendingTransaction",
    "Receipt",
    # Confidential compute requests
    "ConfidentialComputeRequest",
    # Revert decoding
    "PeekerRevert",
    "UnrecognizedRevert",
    "decode_revert",
    # Errors
    "KettleError",
    "InvalidKeyError",
    "KeyGenerationError",
    "ArtifactNotFoundError",
    "MalformedArtifactError",
    "AbiEncodingError",
    "AbiDecodingError",
    "RemoteCallError",
    "TransactionSubmissionError",
    "TransactionTimeoutError",
    "TransactionDroppedError",
    "PeekerRejectedError",
    "TransactionRevertedError",
    "DeploymentFailedError",
    "FundingFailedError",
]

from .errors import (
    AbiDecodingError,
    AbiEncodingError,
    ArtifactNotFoundError,
    DeploymentFailedError,
    FundingFailedError,
    InvalidKeyError,
    KettleError,
    KeyGenerationError,
    MalformedArtifactError,
    PeekerRejectedError,
    RemoteCallError,
    TransactionDroppedError,
    TransactionRevertedError,
    TransactionSubmissionError,
    TransactionTimeoutError,
)
from .sigil.eth import Identity
from .pneuma.abi import Artifact, ContractAbi, DecodedEvent, load_artifact
from .pneuma.client import KettleClient
from .pneuma.revert import PeekerRevert, UnrecognizedRevert, decode_revert
from .pneuma.rpc import LedgerClient, Log, PendingTransaction, Receipt
from .pneuma.tx import ConfidentialComputeRequest
from .contract import Contract
from .framework import Config, Framework
