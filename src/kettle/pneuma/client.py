"""
KettleClient - a LedgerClient bound to one signing identity.

Fills in nonce, gas price and chain id for each submission, signs with
the bound identity and hands the raw bytes to the ledger.  Several
clients may share one LedgerClient.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..sigil.eth import Identity
from .rpc import LedgerClient, PendingTransaction
from .tx import ConfidentialComputeRequest, build_legacy_tx, sign_legacy_tx


logger = logging.getLogger(__name__)

DEFAULT_COMPUTE_GAS = 1_000_000
DEFAULT_DEPLOY_GAS = 10_000_000
DEFAULT_TRANSFER_GAS = 21_000


class KettleClient:
    def __init__(
        self,
        ledger: LedgerClient,
        identity: Identity,
        kettle_address: str,
        chain_id: Optional[int] = None,
        compute_gas: int = DEFAULT_COMPUTE_GAS,
        deploy_gas: int = DEFAULT_DEPLOY_GAS,
        transfer_gas: int = DEFAULT_TRANSFER_GAS,
    ) -> None:
        self.ledger = ledger
        self.identity = identity
        self.kettle_address = kettle_address
        self.compute_gas = compute_gas
        self.deploy_gas = deploy_gas
        self.transfer_gas = transfer_gas
        self._chain_id = chain_id

    @property
    def address(self) -> str:
        return self.identity.address

    @property
    def chain_id(self) -> int:
        """Chain id, queried from the node on first use unless configured."""
        if self._chain_id is None:
            self._chain_id = self.ledger.chain_id()
        return self._chain_id

    def with_identity(self, identity: Identity) -> "KettleClient":
        """Same connection and settings, different signer."""
        return KettleClient(
            self.ledger,
            identity,
            self.kettle_address,
            chain_id=self._chain_id,
            compute_gas=self.compute_gas,
            deploy_gas=self.deploy_gas,
            transfer_gas=self.transfer_gas,
        )

    # ============ Plain transactions ============

    def sign_transaction(
        self,
        to: Optional[str] = None,
        value: int = 0,
        data: bytes = b"",
        gas: Optional[int] = None,
    ) -> bytes:
        """Build and sign a legacy transaction without submitting it."""
        tx = build_legacy_tx(
            nonce=self.ledger.nonce_at(self.address),
            gas_price=self.ledger.gas_price(),
            gas=gas or self.transfer_gas,
            chain_id=self.chain_id,
            to=to,
            value=value,
            data=data,
        )
        return sign_legacy_tx(self.identity, tx)

    def send_transaction(
        self,
        to: Optional[str] = None,
        value: int = 0,
        data: bytes = b"",
        gas: Optional[int] = None,
    ) -> PendingTransaction:
        raw = self.sign_transaction(to=to, value=value, data=data, gas=gas)
        return self.ledger.send_raw_transaction(raw)

    def deploy(self, code: bytes) -> PendingTransaction:
        """Submit a contract creation transaction carrying the bytecode."""
        logger.debug("deploying %d bytes of code from %s", len(code), self.address)
        return self.send_transaction(to=None, data=code, gas=self.deploy_gas)

    # ============ Confidential compute requests ============

    def build_compute_request(
        self,
        to: str,
        calldata: bytes,
        confidential_inputs: bytes = b"",
    ) -> ConfidentialComputeRequest:
        return ConfidentialComputeRequest(
            kettle_address=self.kettle_address,
            nonce=self.ledger.nonce_at(self.address),
            gas_price=self.ledger.gas_price(),
            gas=self.compute_gas,
            to=to,
            data=calldata,
            confidential_inputs=confidential_inputs,
        )

    def send_compute_request(
        self,
        to: str,
        calldata: bytes,
        confidential_inputs: bytes = b"",
    ) -> PendingTransaction:
        """Sign and submit a confidential compute request to `to`."""
        request = self.build_compute_request(to, calldata, confidential_inputs)
        raw = request.sign(self.identity, self.chain_id)
        logger.debug(
            "compute request to %s: %d bytes calldata, %d bytes confidential",
            to, len(calldata), len(confidential_inputs),
        )
        return self.ledger.send_raw_transaction(raw)
