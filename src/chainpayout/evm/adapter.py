"""
chainpayout/evm/adapter.py

Payout adapter for the EVM payout contract.

Every state-changing call goes through the same steps while holding the
account lock:

    1. Fetch the pending nonce
    2. Fetch gas price (and chain id, once)
    3. Estimate gas; a revert here is decoded and raised
    4. Sign a legacy EIP-155 transaction
    5. Submit with eth_sendRawTransaction

Usage:
    adapter = EvmPayoutAdapter(rpc, EvmSigner(key), contract_address)
    result = adapter.payout(PayoutBatch(addresses, amounts))
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import rlp
import trio
from eth_utils import keccak, to_bytes, to_checksum_address

from ..adapter import PayoutAdapter
from ..config import CHAIN_ETH, GAS_LIMIT_MULTIPLIER, LOG_CHUNK_SIZE, UINT256_MAX
from ..errors import (
    AddressError,
    BatchError,
    ConfigurationError,
    FeeEstimationError,
    RpcError,
)
from ..models import Deployment, PayoutBatch, PayoutResult
from ..signing import EvmSigner
from .abi import BalanceOfCall, FillCall, ReleaseCall, normalize_address, revert_from_rpc_error
from .bytecode import PAYOUT_BYTECODE
from .events import PaymentReleasedFilter, PaymentReleasedSubscription

if TYPE_CHECKING:
    from ..rpc.evm import EthRpcClient
    from ..rpc.websocket import WebSocketLogSource

logger = logging.getLogger("chainpayout.evm.adapter")


def contract_address_for(sender: str, nonce: int) -> str:
    """Address of the contract created by ``sender`` with ``nonce``."""
    encoded = rlp.encode([to_bytes(hexstr=sender), nonce])
    return to_checksum_address(keccak(encoded)[12:])


class EvmPayoutAdapter(PayoutAdapter):
    """
    Batched payouts through ``fill(address[], uint256[])``.

    ``value`` of every fill transaction is the batch total; the contract
    credits each recipient, who later withdraws with ``release()``.
    """

    chain = CHAIN_ETH

    def __init__(
        self,
        rpc: "EthRpcClient",
        signer: EvmSigner,
        contract_address: Optional[str] = None,
        log_source: Optional["WebSocketLogSource"] = None,
        gas_multiplier: float = GAS_LIMIT_MULTIPLIER,
    ):
        """
        Initialize the adapter.

        Args:
            rpc: Connected Ethereum JSON-RPC client
            signer: Signer of the contract owner account
            contract_address: Payout contract (may be set later by deploy)
            log_source: Websocket log source for live subscriptions
            gas_multiplier: Headroom applied to eth_estimateGas

        Raises:
            ConfigurationError: If contract_address is malformed
        """
        super().__init__(rpc)
        self.signer = signer
        self.log_source = log_source
        self.gas_multiplier = gas_multiplier
        self._chain_id: Optional[int] = None

        self.contract_address: Optional[str] = None
        if contract_address:
            try:
                self.contract_address = normalize_address(contract_address)
            except AddressError as e:
                raise ConfigurationError(f"Invalid payout contract address: {e}") from e

    @property
    def account_address(self) -> str:
        return self.signer.address

    def _require_contract(self) -> str:
        if not self.contract_address:
            raise ConfigurationError("EVM payout contract address is not configured")
        return self.contract_address

    # ========================================================================
    # VALIDATION
    # ========================================================================

    def validate_batch(self, batch: PayoutBatch) -> Tuple[List[str], List[int]]:
        """
        Returns:
            (checksummed addresses, amounts)

        Raises:
            AddressError: If a recipient is not a valid address
            BatchError: If an amount or the total exceeds uint256
        """
        addresses = [normalize_address(address) for address in batch.addresses]
        for index, amount in enumerate(batch.amounts):
            if amount > UINT256_MAX:
                raise BatchError(f"Amount #{index} does not fit in uint256")
        if batch.total > UINT256_MAX:
            raise BatchError("Batch total does not fit in uint256")
        return addresses, list(batch.amounts)

    # ========================================================================
    # CONTRACT OPERATIONS
    # ========================================================================

    def payout(self, batch: PayoutBatch) -> PayoutResult:
        contract = self._require_contract()
        addresses, amounts = self.validate_batch(batch)
        data = FillCall(tuple(addresses), tuple(amounts)).encode()

        logger.info(f"Paying {len(batch)} recipients {batch.total} wei via {contract}")
        tx_hash = self._transact(contract, data, value=batch.total)
        return PayoutResult(
            tx_hash=tx_hash,
            chain=self.chain,
            recipient_count=len(batch),
            total_amount=batch.total,
        )

    def release(self) -> PayoutResult:
        """Withdraw the signer's own balance from the contract."""
        contract = self._require_contract()
        tx_hash = self._transact(contract, ReleaseCall().encode(), value=0)
        return PayoutResult(tx_hash=tx_hash, chain=self.chain, recipient_count=1)

    def balance_of(self, address: str) -> int:
        """
        Read the withdrawable balance of ``address``.

        Raises:
            AddressError: If the address is malformed
            ContractRevert: If the call reverts
        """
        contract = self._require_contract()
        account = normalize_address(address)
        call = {"to": contract, "data": BalanceOfCall(account).encode()}
        try:
            data = self.rpc.call(call)
        except RpcError as e:
            revert = revert_from_rpc_error(e)
            if revert is not None:
                raise revert from e
            raise
        return BalanceOfCall.decode_balance(data)

    def deploy(self, bytecode: Optional[bytes] = None) -> Deployment:
        """
        Deploy a new payout contract owned by the signer.

        The contract address is derived from the sender and nonce, so it
        is returned without waiting for confirmation. The adapter is not
        rebound; build a new one with the returned address.
        """
        code = bytecode if bytecode is not None else PAYOUT_BYTECODE
        tx_hash, nonce = self._send(None, code, value=0)
        address = contract_address_for(self.account_address, nonce)
        logger.info(f"Deployed payout contract at {address} in {tx_hash}")
        return Deployment(chain=self.chain, contract_hash=address, tx_hash=tx_hash)

    # ========================================================================
    # EVENTS
    # ========================================================================

    def filter_payment_released(
        self,
        from_block: int = 0,
        to_block: Optional[int] = None,
        chunk_size: int = LOG_CHUNK_SIZE,
    ) -> PaymentReleasedFilter:
        """Historical PaymentReleased events; no RPC is made until iterated."""
        return PaymentReleasedFilter(
            self.rpc, self._require_contract(), from_block, to_block, chunk_size
        )

    async def subscribe_payment_released(
        self,
        nursery: trio.Nursery,
        from_block: Optional[int] = None,
    ) -> PaymentReleasedSubscription:
        """
        Start streaming PaymentReleased events into ``nursery``.

        Args:
            nursery: Nursery that runs the subscription task
            from_block: Replay history from this block before live events

        Raises:
            ConfigurationError: If no log source is configured
            SubscriptionError: If the log stream cannot be opened
        """
        if self.log_source is None:
            raise ConfigurationError("No websocket endpoint configured for event subscriptions")
        contract = self._require_contract()
        history = None
        if from_block is not None:
            history = self.filter_payment_released(from_block)

        subscription = PaymentReleasedSubscription(self.log_source, contract, history)
        await subscription.start(nursery)
        return subscription

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    def _get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.rpc.chain_id()
        return self._chain_id

    def _estimate_gas(self, call: Dict[str, Any]) -> int:
        try:
            estimate = self.rpc.estimate_gas(call)
        except RpcError as e:
            revert = revert_from_rpc_error(e)
            if revert is not None:
                logger.error(f"Transaction would revert: {revert.reason}")
                raise revert from e
            raise FeeEstimationError(f"Gas estimation failed: {e.message}") from e
        return int(estimate * self.gas_multiplier)

    def _send(self, to: Optional[str], data: bytes, value: int) -> Tuple[str, int]:
        sender = self.account_address
        with self.signer.lock:
            nonce = self.rpc.get_transaction_count(sender, "pending")
            chain_id = self._get_chain_id()
            gas_price = self.rpc.gas_price()

            call: Dict[str, Any] = {"from": sender, "data": data, "value": value}
            if to is not None:
                call["to"] = to
            gas = self._estimate_gas(call)
            logger.debug(f"nonce={nonce} gas={gas} gas_price={gas_price} chain_id={chain_id}")

            tx: Dict[str, Any] = {
                "nonce": nonce,
                "gasPrice": gas_price,
                "gas": gas,
                "value": value,
                "data": data,
                "chainId": chain_id,
            }
            if to is not None:
                tx["to"] = to
            raw_tx, _ = self.signer.sign_transaction(tx)
            tx_hash = self.rpc.send_raw_transaction(raw_tx)

        logger.info(f"Submitted {tx_hash} (nonce {nonce})")
        return tx_hash, nonce

    def _transact(self, to: str, data: bytes, value: int) -> str:
        tx_hash, _ = self._send(to, data, value)
        return tx_hash
