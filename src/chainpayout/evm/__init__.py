"""
chainpayout/evm - EVM payout contract support.

Provides:
- Typed ABI schema (balanceOf, fill, release, PaymentReleased)
- EvmPayoutAdapter
- PaymentReleased history filter and live subscription
"""

from .abi import (
    BalanceOfCall,
    FillCall,
    PaymentReleased,
    ReleaseCall,
    normalize_address,
)
from .adapter import EvmPayoutAdapter, contract_address_for
from .bytecode import PAYOUT_BYTECODE
from .events import PaymentReleasedFilter, PaymentReleasedSubscription

__all__ = [
    "BalanceOfCall",
    "FillCall",
    "PaymentReleased",
    "ReleaseCall",
    "normalize_address",
    "EvmPayoutAdapter",
    "contract_address_for",
    "PAYOUT_BYTECODE",
    "PaymentReleasedFilter",
    "PaymentReleasedSubscription",
]
