"""
chainpayout/adapter.py

Chain-agnostic payout interface.

Architecture:
    PayoutAdapter (abstract)
    ├── EvmPayoutAdapter (fill() on the EVM payout contract)
    └── NeoPayoutAdapter (batchPayout on the NEO N3 payout contract)

    PayoutRouter dispatches a batch to the adapter registered for a chain.

Usage:
    from chainpayout import PayoutBatch, PayoutRouter

    router = PayoutRouter([evm_adapter, neo_adapter])
    result = router.payout("neo", PayoutBatch(addresses, amounts))
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from .errors import ConfigurationError
from .models import PayoutBatch, PayoutResult

logger = logging.getLogger("chainpayout.adapter")


class PayoutAdapter(ABC):
    """
    Abstract base class for chain payout adapters.

    An adapter owns one RPC client, one signer and one contract binding.
    Adapters share no mutable state; transactions of the same account are
    serialized by the signer's account lock.
    """

    chain: str = ""

    def __init__(self, rpc: Any):
        self.rpc = rpc

    @property
    @abstractmethod
    def account_address(self) -> str:
        """Address of the signing account."""
        pass

    @abstractmethod
    def validate_batch(self, batch: PayoutBatch) -> Any:
        """
        Check a batch against chain rules without any network call.

        Returns:
            The batch translated to the chain's argument form

        Raises:
            ValidationError: If an address or amount is not acceptable
        """
        pass

    @abstractmethod
    def payout(self, batch: PayoutBatch) -> PayoutResult:
        """
        Sign and submit one transaction paying every recipient of ``batch``.

        Returns:
            PayoutResult carrying the chain-native transaction hash

        Raises:
            ValidationError: Before any network call
            TransportError: If the node is unreachable or refuses the tx
            ContractRevert: If the contract rejects the call
        """
        pass

    def close(self) -> None:
        """Close the underlying RPC client."""
        self.rpc.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(account={self.account_address})"


class PayoutRouter:
    """Holds one adapter per chain and routes payouts by chain name."""

    def __init__(self, adapters: Iterable[PayoutAdapter] = ()):
        self._adapters: Dict[str, PayoutAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: PayoutAdapter) -> None:
        if not adapter.chain:
            raise ConfigurationError(f"{type(adapter).__name__} does not declare a chain")
        if adapter.chain in self._adapters:
            logger.warning(f"Replacing adapter for chain {adapter.chain}")
        self._adapters[adapter.chain] = adapter

    @property
    def chains(self) -> List[str]:
        return sorted(self._adapters)

    def get(self, chain: str) -> PayoutAdapter:
        """
        Raises:
            ConfigurationError: If no adapter is registered for ``chain``
        """
        try:
            return self._adapters[chain]
        except KeyError:
            raise ConfigurationError(f"No payout adapter configured for chain {chain!r}") from None

    def payout(self, chain: str, batch: PayoutBatch) -> PayoutResult:
        adapter = self.get(chain)
        logger.info(f"Routing payout of {len(batch)} recipients to {chain}")
        return adapter.payout(batch)

    def close(self) -> None:
        for adapter in self._adapters.values():
            adapter.close()
