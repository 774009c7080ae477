"""
chainpayout - Batched payouts over EVM and NEO N3 payout contracts

One payout call builds, signs and submits a single batched transaction:
- EVM: fill(address[], uint256[]) with the batch total attached
- NEO N3: batchPayout(Hash160[], Integer[])

Usage:
    from chainpayout import PayoutBatch, PayoutRouter
    from chainpayout.config import EvmConfig, NeoConfig
    from chainpayout.factory import create_evm_adapter, create_neo_adapter

    router = PayoutRouter([
        create_evm_adapter(EvmConfig.from_env()),
        create_neo_adapter(NeoConfig.from_env()),
    ])

    batch = PayoutBatch.from_mapping({"0xAb58...": 10 ** 16})
    result = router.payout("eth", batch)
    print(result.tx_hash)

Event Usage:
    async with trio.open_nursery() as nursery:
        subscription = await evm_adapter.subscribe_payment_released(nursery)
        async for event in subscription:
            print(event.to, event.amount)
"""

from .adapter import PayoutAdapter, PayoutRouter
from .config import CHAIN_ETH, CHAIN_NEO, EvmConfig, NeoConfig
from .errors import (
    AddressError,
    ArtifactError,
    BatchError,
    ConfigurationError,
    ContractRevert,
    FeeEstimationError,
    InsufficientValue,
    LengthMismatch,
    PayoutError,
    RpcError,
    SigningError,
    SubmissionRejected,
    SubscriptionError,
    TransportError,
    Unauthorized,
    ValidationError,
    ZeroBalance,
)
from .evm.adapter import EvmPayoutAdapter
from .factory import create_evm_adapter, create_neo_adapter
from .models import Deployment, PayoutBatch, PayoutResult
from .neo.adapter import NeoPayoutAdapter
from .signing import EvmSigner, NeoSigner, account_lock

__version__ = "0.1.0"

__all__ = [
    # Core
    "PayoutAdapter",
    "PayoutRouter",
    "EvmPayoutAdapter",
    "NeoPayoutAdapter",
    "PayoutBatch",
    "PayoutResult",
    "Deployment",
    # Signing
    "EvmSigner",
    "NeoSigner",
    "account_lock",
    # Configuration
    "CHAIN_ETH",
    "CHAIN_NEO",
    "EvmConfig",
    "NeoConfig",
    "create_evm_adapter",
    "create_neo_adapter",
    # Errors
    "PayoutError",
    "ValidationError",
    "BatchError",
    "AddressError",
    "ConfigurationError",
    "TransportError",
    "RpcError",
    "SubmissionRejected",
    "FeeEstimationError",
    "SubscriptionError",
    "ContractRevert",
    "InsufficientValue",
    "LengthMismatch",
    "Unauthorized",
    "ZeroBalance",
    "SigningError",
    "ArtifactError",
]
