"""
chainpayout/evm/abi.py

Typed ABI schema of the EVM payout contract.

    balanceOf(address) view returns (uint256)
    fill(address[], uint256[]) payable
    release()
    event PaymentReleased(address to, uint256 amount)

Each call or event declares its ABI types once; encoding and decoding go
through ``eth-abi`` against those types only.
"""

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Tuple, Type

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import (
    event_signature_to_log_topic,
    function_signature_to_4byte_selector,
    is_checksum_address,
    is_hex_address,
    to_checksum_address,
    to_hex,
)

from ..errors import (
    AddressError,
    ContractRevert,
    InsufficientValue,
    LengthMismatch,
    RpcError,
    TransportError,
    Unauthorized,
    ZeroBalance,
)

logger = logging.getLogger("chainpayout.evm.abi")


# ============================================================================
# ADDRESSES
# ============================================================================

def normalize_address(address: str) -> str:
    """
    Validate a 20-byte hex address and return its checksummed form.

    All-lowercase and all-uppercase addresses are accepted as-is; mixed
    case must carry a valid EIP-55 checksum.

    Raises:
        AddressError: If the address is malformed
    """
    if not isinstance(address, str) or not is_hex_address(address):
        raise AddressError(str(address), "not a 20-byte hex address")
    body = address[2:] if address.lower().startswith("0x") else address
    if body != body.lower() and body != body.upper() and not is_checksum_address(address):
        raise AddressError(address, "bad EIP-55 checksum")
    return to_checksum_address(address)


# ============================================================================
# CALLS
# ============================================================================

class ContractCall:
    """A contract function call with fixed argument types."""
    SIGNATURE: ClassVar[str] = ""
    ARG_TYPES: ClassVar[Tuple[str, ...]] = ()
    RETURN_TYPES: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def selector(cls) -> bytes:
        return function_signature_to_4byte_selector(cls.SIGNATURE)

    def arguments(self) -> Tuple[Any, ...]:
        return ()

    def encode(self) -> bytes:
        """Calldata: selector followed by the ABI-encoded arguments."""
        return self.selector() + encode(list(self.ARG_TYPES), list(self.arguments()))

    @classmethod
    def decode_result(cls, data: bytes) -> Tuple[Any, ...]:
        try:
            return decode(list(cls.RETURN_TYPES), data)
        except DecodingError as e:
            raise TransportError(f"Cannot decode {cls.SIGNATURE} result: {e}") from e


@dataclass(frozen=True)
class BalanceOfCall(ContractCall):
    SIGNATURE: ClassVar[str] = "balanceOf(address)"
    ARG_TYPES: ClassVar[Tuple[str, ...]] = ("address",)
    RETURN_TYPES: ClassVar[Tuple[str, ...]] = ("uint256",)

    account: str

    def arguments(self) -> Tuple[Any, ...]:
        return (self.account,)

    @classmethod
    def decode_balance(cls, data: bytes) -> int:
        return cls.decode_result(data)[0]


@dataclass(frozen=True)
class FillCall(ContractCall):
    """Credit each address with its amount; ``msg.value`` must cover the sum."""
    SIGNATURE: ClassVar[str] = "fill(address[],uint256[])"
    ARG_TYPES: ClassVar[Tuple[str, ...]] = ("address[]", "uint256[]")

    addresses: Tuple[str, ...]
    amounts: Tuple[int, ...]

    def arguments(self) -> Tuple[Any, ...]:
        return (list(self.addresses), list(self.amounts))


@dataclass(frozen=True)
class ReleaseCall(ContractCall):
    """Withdraw the caller's whole balance."""
    SIGNATURE: ClassVar[str] = "release()"


# ============================================================================
# EVENTS
# ============================================================================

def _hex_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


@dataclass(frozen=True)
class PaymentReleased:
    """Decoded ``PaymentReleased(address to, uint256 amount)`` log."""
    SIGNATURE: ClassVar[str] = "PaymentReleased(address,uint256)"
    DATA_TYPES: ClassVar[Tuple[str, ...]] = ("address", "uint256")

    to: str
    amount: int
    block_number: int
    log_index: int
    tx_hash: str
    removed: bool = False

    @classmethod
    def topic(cls) -> str:
        return to_hex(event_signature_to_log_topic(cls.SIGNATURE))

    @property
    def position(self) -> Tuple[int, int]:
        """Chain order of the log: (block number, log index)."""
        return (self.block_number, self.log_index)

    @classmethod
    def from_log(cls, log: Dict[str, Any]) -> "PaymentReleased":
        """
        Decode a raw JSON-RPC log object.

        Raises:
            TransportError: If the log is not a PaymentReleased log or is
                malformed
        """
        try:
            topics = log["topics"]
            if not topics or topics[0].lower() != cls.topic():
                raise TransportError(f"Log is not a PaymentReleased event: {topics!r}")
            data = log["data"]
            raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
            to, amount = decode(list(cls.DATA_TYPES), raw)
            return cls(
                to=to_checksum_address(to),
                amount=amount,
                block_number=_hex_int(log["blockNumber"]),
                log_index=_hex_int(log["logIndex"]),
                tx_hash=log["transactionHash"],
                removed=bool(log.get("removed", False)),
            )
        except (KeyError, TypeError, ValueError, DecodingError) as e:
            raise TransportError(f"Malformed PaymentReleased log: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "to": self.to,
            "amount": str(self.amount),
            "block_number": self.block_number,
            "log_index": self.log_index,
            "tx_hash": self.tx_hash,
        }


# ============================================================================
# REVERTS
# ============================================================================

ERROR_SELECTOR = function_signature_to_4byte_selector("Error(string)")

# require() messages compiled into the payout contract
REVERT_REASONS: Dict[str, Type[ContractRevert]] = {
    "Sum of balances is higher than paid amount": InsufficientValue,
    "Addresses and balances array must have the same length": LengthMismatch,
    "Only the owner can add new payouts": Unauthorized,
    "PaymentSplitter: account has no balance": ZeroBalance,
}

_REVERT_PREFIX = "execution reverted"


def decode_revert_reason(data: bytes) -> Optional[str]:
    """Extract the message of ``Error(string)`` revert data, if that is what it is."""
    if len(data) < 4 or data[:4] != ERROR_SELECTOR:
        return None
    try:
        return decode(["string"], data[4:])[0]
    except DecodingError:
        return None


def revert_for_reason(reason: str) -> ContractRevert:
    """Map a revert message to its failure kind."""
    kind = REVERT_REASONS.get(reason, ContractRevert)
    return kind(reason)


def _revert_data(data: Any) -> Optional[bytes]:
    # some nodes nest the payload: {"data": "0x..."}
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, str) or not data.startswith("0x"):
        return None
    try:
        return bytes.fromhex(data[2:])
    except ValueError:
        return None


def revert_from_rpc_error(error: RpcError) -> Optional[ContractRevert]:
    """
    Interpret an ``eth_call``/``eth_estimateGas`` error as a contract revert.

    Returns:
        The decoded revert, or None if the error is not a revert
    """
    payload = _revert_data(error.data)
    if payload is not None:
        reason = decode_revert_reason(payload)
        if reason is not None:
            return revert_for_reason(reason)

    message = error.message or ""
    if not message.lower().startswith(_REVERT_PREFIX):
        return None
    reason = message[len(_REVERT_PREFIX):].lstrip(": ").strip()
    return revert_for_reason(reason) if reason else ContractRevert(message)

