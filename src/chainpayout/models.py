"""
chainpayout/models.py

Chain-independent data model for payouts.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Iterator, Mapping, Tuple

from .errors import BatchError


@dataclass(frozen=True)
class PayoutBatch:
    """
    Ordered (recipient, amount) pairs paid out in one transaction.

    Amounts are integers in the chain's minimal unit (wei, GAS fractions).
    Chain-specific checks (address format, integer width) are done by the
    adapter that submits the batch.
    """
    addresses: Tuple[str, ...]
    amounts: Tuple[int, ...]

    def __post_init__(self):
        addresses = tuple(self.addresses)
        amounts = tuple(self.amounts)

        if len(addresses) != len(amounts):
            raise BatchError(
                f"Addresses and amounts must have the same length "
                f"({len(addresses)} != {len(amounts)})"
            )
        if not addresses:
            raise BatchError("Payout batch is empty")

        for index, address in enumerate(addresses):
            if not isinstance(address, str) or not address:
                raise BatchError(f"Recipient #{index} is not a non-empty string")

        for index, amount in enumerate(amounts):
            # bool is an int subclass, but True is not an amount
            if isinstance(amount, bool) or not isinstance(amount, int):
                raise BatchError(f"Amount #{index} must be an integer, got {type(amount).__name__}")
            if amount < 0:
                raise BatchError(f"Amount #{index} is negative: {amount}")

        object.__setattr__(self, "addresses", addresses)
        object.__setattr__(self, "amounts", amounts)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, int]]) -> "PayoutBatch":
        """Build a batch from (address, amount) pairs."""
        pairs = list(pairs)
        return cls(
            addresses=tuple(address for address, _ in pairs),
            amounts=tuple(amount for _, amount in pairs),
        )

    @classmethod
    def from_mapping(cls, recipients: Mapping[str, int]) -> "PayoutBatch":
        """Build a batch from an {address: amount} mapping (insertion order kept)."""
        return cls.from_pairs(recipients.items())

    @property
    def total(self) -> int:
        """Sum of all amounts."""
        return sum(self.amounts)

    def __len__(self) -> int:
        return len(self.addresses)

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(zip(self.addresses, self.amounts))

    def to_dict(self) -> dict:
        return {
            "addresses": list(self.addresses),
            "amounts": [str(amount) for amount in self.amounts],
        }


@dataclass(frozen=True)
class PayoutResult:
    """Acknowledged submission of a payout transaction."""
    tx_hash: str
    chain: str
    recipient_count: int = 0
    total_amount: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["total_amount"] = str(self.total_amount)
        return data


@dataclass(frozen=True)
class Deployment:
    """
    Result of a one-time contract deployment.

    ``contract_hash`` is computed locally, so it is known before the
    deploy transaction is confirmed.
    """
    chain: str
    contract_hash: str
    tx_hash: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

