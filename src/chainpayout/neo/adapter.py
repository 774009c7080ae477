"""
chainpayout/neo/adapter.py

Payout adapter for the NEO N3 payout contract.

Payout flow:
    1. Resolve the payout contract hash
    2. Translate recipient addresses to script hashes
    3. Emit System.Contract.Call(contract, "batchPayout", All, [hashes, amounts])
    4. Resolve network magic, validity window and fees (account lock held)
    5. Sign sha256(magic || tx hash) with secp256r1
    6. Submit with sendrawtransaction
    7. Return the transaction hash

Steps 1-3 make no network call; any failure there aborts the batch.
"""

import logging
import secrets
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

from ..adapter import PayoutAdapter
from ..config import CHAIN_NEO, NEO_INT_MAX, NEO_PAYOUT_METHOD
from ..errors import (
    BatchError,
    ConfigurationError,
    ContractRevert,
    FeeEstimationError,
    RpcError,
    TransportError,
)
from ..models import Deployment, PayoutBatch, PayoutResult
from ..signing import NeoSigner
from .address import address_to_script_hash, script_hash_from_string, script_hash_to_string
from .contract import compute_contract_hash, load_artifacts
from .script import CallFlags, ScriptBuilder
from .transaction import Signer, Transaction, WitnessScope

if TYPE_CHECKING:
    from ..rpc.neo import NeoRpcClient

logger = logging.getLogger("chainpayout.neo.adapter")


CONTRACT_MANAGEMENT = "ContractManagement"
VM_STATE_HALT = "HALT"


class NeoPayoutAdapter(PayoutAdapter):
    """
    Batched payouts through the ``batchPayout`` method.

    Example:
        signer = NeoSigner.from_wif(wif)
        adapter = NeoPayoutAdapter(rpc, signer, "0x1b4357bf...")
        result = adapter.payout(PayoutBatch(["NZNov..."], [100]))
    """

    chain = CHAIN_NEO

    def __init__(
        self,
        rpc: "NeoRpcClient",
        signer: NeoSigner,
        contract_hash: Optional[str] = None,
    ):
        """
        Initialize the adapter.

        Args:
            rpc: Connected NEO JSON-RPC client
            signer: Signer of the paying account
            contract_hash: Payout contract hash (0x-prefixed display form)

        Raises:
            ConfigurationError: If contract_hash is malformed
        """
        super().__init__(rpc)
        self.signer = signer
        self._contract: Optional[bytes] = None
        if contract_hash:
            self._contract = script_hash_from_string(contract_hash)
        self._protocol: Optional[Tuple[int, int]] = None

    @property
    def account_address(self) -> str:
        return self.signer.address

    @property
    def contract_hash(self) -> Optional[str]:
        return script_hash_to_string(self._contract) if self._contract else None

    def _require_contract(self) -> bytes:
        if self._contract is None:
            raise ConfigurationError("NEO payout contract hash is not configured")
        return self._contract

    # ========================================================================
    # PAYOUT
    # ========================================================================

    def validate_batch(self, batch: PayoutBatch) -> Tuple[List[bytes], List[int]]:
        """
        Returns:
            (recipient script hashes, amounts)

        Raises:
            AddressError: If any address is not a valid N3 address
            BatchError: If an amount exceeds the VM integer range
        """
        hashes = [address_to_script_hash(address) for address in batch.addresses]
        for index, amount in enumerate(batch.amounts):
            if amount > NEO_INT_MAX:
                raise BatchError(f"Amount #{index} exceeds the VM integer range")
        return hashes, list(batch.amounts)

    def build_payout_script(self, batch: PayoutBatch) -> bytes:
        """Invocation script for one batchPayout call; no network access."""
        contract = self._require_contract()
        hashes, amounts = self.validate_batch(batch)
        return (
            ScriptBuilder()
            .emit_contract_call(contract, NEO_PAYOUT_METHOD, CallFlags.ALL, [hashes, amounts])
            .to_bytes()
        )

    def payout(self, batch: PayoutBatch) -> PayoutResult:
        script = self.build_payout_script(batch)
        logger.info(f"About to execute {NEO_PAYOUT_METHOD} for {len(batch)} recipients")

        tx_hash = self._submit(script, WitnessScope.CALLED_BY_ENTRY)
        return PayoutResult(
            tx_hash=tx_hash,
            chain=self.chain,
            recipient_count=len(batch),
            total_amount=batch.total,
        )

    # ========================================================================
    # DEPLOY
    # ========================================================================

    def deploy(
        self,
        nef_path: Union[str, Path],
        manifest_path: Union[str, Path],
    ) -> Deployment:
        """
        Deploy the payout contract through the native ContractManagement.

        Both artifacts are read and validated before any network call.
        The contract hash is computed locally from the deployer, the NEF
        checksum and the manifest name.

        Raises:
            ArtifactError: If an artifact is missing, unreadable or malformed
        """
        nef, manifest = load_artifacts(nef_path, manifest_path)
        contract = compute_contract_hash(self.signer.script_hash, nef.checksum, manifest.name)

        management = self.rpc.get_native_contract_hash(CONTRACT_MANAGEMENT)
        script = (
            ScriptBuilder()
            .emit_contract_call(
                management,
                "deploy",
                CallFlags.ALL,
                [nef.raw, manifest.raw, self.signer.public_key],
            )
            .to_bytes()
        )

        tx_hash = self._submit(script, WitnessScope.GLOBAL)
        contract_hash = script_hash_to_string(contract)
        logger.info(f"NEO contract {manifest.name} deployed as {contract_hash} in {tx_hash}")
        return Deployment(chain=self.chain, contract_hash=contract_hash, tx_hash=tx_hash)

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    def _get_protocol(self) -> Tuple[int, int]:
        """(network magic, max validUntilBlock increment), resolved once."""
        if self._protocol is None:
            self._protocol = (
                self.rpc.get_network(),
                self.rpc.get_max_valid_until_block_increment(),
            )
        return self._protocol

    def _system_fee(self, script: bytes, signer: Signer) -> int:
        try:
            result = self.rpc.invoke_script(script, [signer.to_json()])
        except RpcError as e:
            raise FeeEstimationError(f"System fee estimation failed: {e.message}") from e
        if not isinstance(result, dict):
            raise TransportError(f"Malformed invokescript result: {result!r}")
        state = result.get("state")
        if state != VM_STATE_HALT:
            reason = result.get("exception") or f"VM state {state}"
            logger.error(f"Script test invocation failed: {reason}")
            raise ContractRevert(reason)
        try:
            return int(result["gasconsumed"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed invokescript result: {result!r}") from e

    def _submit(self, script: bytes, scope: WitnessScope) -> str:
        signer = Signer(self.signer.script_hash, scope)

        with self.signer.lock:
            network, increment = self._get_protocol()
            valid_until = self.rpc.get_block_count() + increment

            tx = Transaction(
                script=script,
                signers=[signer],
                nonce=secrets.randbits(32),
                valid_until_block=valid_until,
            )
            tx.system_fee = self._system_fee(script, signer)

            tx.witnesses = [self.signer.witness_template()]
            tx.network_fee = self.rpc.calculate_network_fee(tx.to_bytes())
            logger.debug(
                f"system_fee={tx.system_fee} network_fee={tx.network_fee} "
                f"valid_until={valid_until}"
            )

            self.signer.sign_transaction(tx, network)
            tx_hash = self.rpc.send_raw_transaction(tx.to_bytes())

        logger.info(f"NEO Transaction: {tx_hash}")
        return tx_hash
