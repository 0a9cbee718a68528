"""
Framework - composition root for kettle.

Holds the network configuration, owns the LedgerClient and the default
signing client (the funded account), and deploys contracts / funds
accounts / re-binds handles to other identities.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import httpx
from dotenv import load_dotenv

from .contract import Contract
from .errors import DeploymentFailedError, FundingFailedError
from .pneuma.abi import Artifact, encode_deployment, load_artifact
from .pneuma.client import (
    DEFAULT_COMPUTE_GAS,
    DEFAULT_DEPLOY_GAS,
    DEFAULT_TRANSFER_GAS,
    KettleClient,
)
from .pneuma.rpc import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RECEIPT_TIMEOUT,
    DEFAULT_RPC_TIMEOUT,
    LedgerClient,
)
from .pneuma.tx import sign_legacy_tx
from .sigil.eth import Identity


logger = logging.getLogger(__name__)


# Rigil devnet
DEFAULT_KETTLE_RPC = "https://rpc.rigil.suave.flashbots.net"
DEFAULT_KETTLE_ADDRESS = "0x03493869959C866713C33669cA118E774A30A0E5"

# Funded in both devnet networks.
# address: 0x71B21E9b8029d1E384B71B2A1708005A7d4D0428
DEFAULT_FUNDED_KEY = "bab10e221a04567ca0445fb7570843ce36da5177bd8f33584f972d299fe74bfb"


@dataclass(frozen=True)
class Config:
    kettle_rpc: str = DEFAULT_KETTLE_RPC
    kettle_address: str = DEFAULT_KETTLE_ADDRESS
    funded_account: Identity = field(
        default_factory=lambda: Identity.from_hex(DEFAULT_FUNDED_KEY), repr=False
    )
    chain_id: Optional[int] = None
    compute_gas: int = DEFAULT_COMPUTE_GAS
    deploy_gas: int = DEFAULT_DEPLOY_GAS
    transfer_gas: int = DEFAULT_TRANSFER_GAS
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    artifacts_dir: Optional[Path] = None

    @classmethod
    def default(cls) -> "Config":
        return cls()

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Config":
        """
        Default config overridden by environment variables.

        Reads KETTLE_RPC, KETTLE_ADDRESS, PRIVATE_KEY (funded account),
        CHAIN_ID and KETTLE_ARTIFACTS_DIR, loading env_path first if given.
        """
        if env_path is not None and env_path.exists():
            load_dotenv(env_path, override=True)

        overrides: dict[str, Any] = {}
        if os.environ.get("KETTLE_RPC"):
            overrides["kettle_rpc"] = os.environ["KETTLE_RPC"]
        if os.environ.get("KETTLE_ADDRESS"):
            overrides["kettle_address"] = os.environ["KETTLE_ADDRESS"]
        if os.environ.get("PRIVATE_KEY"):
            overrides["funded_account"] = Identity.from_hex(os.environ["PRIVATE_KEY"])
        if os.environ.get("CHAIN_ID"):
            overrides["chain_id"] = int(os.environ["CHAIN_ID"])
        if os.environ.get("KETTLE_ARTIFACTS_DIR"):
            overrides["artifacts_dir"] = Path(os.environ["KETTLE_ARTIFACTS_DIR"])
        return cls(**overrides)

    def with_overrides(self, **changes: Any) -> "Config":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


class Framework:
    def __init__(
        self,
        config: Optional[Config] = None,
        eager: bool = False,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Args:
            config: Network configuration (default: Config.default())
            eager: Query the node at construction so an unreachable
                   endpoint fails here instead of on first use
            transport: Optional httpx transport for the ledger connection

        Raises:
            RemoteCallError: Only with eager=True, if the node is unreachable
        """
        self.config = config or Config.default()
        self.ledger = LedgerClient(
            self.config.kettle_rpc,
            timeout=self.config.rpc_timeout,
            receipt_timeout=self.config.receipt_timeout,
            poll_interval=self.config.poll_interval,
            transport=transport,
        )
        self.client = KettleClient(
            self.ledger,
            self.config.funded_account,
            self.config.kettle_address,
            chain_id=self.config.chain_id,
            compute_gas=self.config.compute_gas,
            deploy_gas=self.config.deploy_gas,
            transfer_gas=self.config.transfer_gas,
        )
        if eager:
            chain_id = self.ledger.chain_id()
            logger.debug("connected to %s (chain %d)", self.config.kettle_rpc, chain_id)

    def close(self) -> None:
        self.ledger.close()

    def __enter__(self) -> "Framework":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def new_client(self, identity: Identity) -> KettleClient:
        """Signing client for `identity` sharing this framework's connection."""
        return self.client.with_identity(identity)

    def load_artifact(self, path: Union[str, Path]) -> Artifact:
        return load_artifact(path, artifacts_dir=self.config.artifacts_dir)

    def deploy_contract(
        self,
        artifact_path: Union[str, Path],
        constructor_args: Optional[Sequence[Any]] = None,
    ) -> Contract:
        """
        Deploy a contract artifact from the funded account.

        Raises:
            ArtifactNotFoundError / MalformedArtifactError: From loading
            DeploymentFailedError: If the creation transaction fails
        """
        artifact = self.load_artifact(artifact_path)
        receipt = self.client.deploy(encode_deployment(artifact, constructor_args)).wait()

        if not receipt.succeeded:
            raise DeploymentFailedError(f"Deployment of {artifact_path} failed (tx {receipt.tx_hash})")
        if not receipt.contract_address:
            raise DeploymentFailedError(
                f"Deployment of {artifact_path} returned no contract address (tx {receipt.tx_hash})"
            )

        logger.info("deployed %s at %s", artifact_path, receipt.contract_address)
        return Contract(receipt.contract_address, artifact.abi, self.client)

    def contract_at(
        self,
        address: str,
        artifact_path: Union[str, Path],
        identity: Optional[Identity] = None,
    ) -> Contract:
        """Handle for an already deployed contract."""
        artifact = self.load_artifact(artifact_path)
        client = self.new_client(identity) if identity is not None else self.client
        return Contract(address, artifact.abi, client)

    def fund_account(self, address: str, amount: int) -> None:
        """
        Transfer `amount` wei from the funded account to `address`.

        Raises:
            FundingFailedError: If the transfer fails or the resulting
                                balance is not exactly `amount`
        """
        receipt = self.client.send_transaction(to=address, value=amount).wait()
        if not receipt.succeeded:
            raise FundingFailedError(address, amount, None)

        balance = self.ledger.balance_at(address)
        if balance != amount:
            raise FundingFailedError(address, amount, balance)
        logger.info("funded %s with %d wei", address, amount)

    def sign_transaction(self, identity: Identity, tx: dict[str, Any]) -> bytes:
        """Sign a legacy transaction dict with `identity` for out-of-band submission."""
        return sign_legacy_tx(identity, tx)
