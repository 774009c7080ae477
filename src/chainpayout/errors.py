"""
chainpayout/errors.py

Failure kinds raised by the payout core.

Every failure path raises one of these to the immediate caller:

    PayoutError
    ├── ValidationError        (before any network call)
    │   ├── BatchError
    │   ├── AddressError
    │   └── ConfigurationError
    ├── TransportError         (node unreachable / rejected request)
    │   ├── RpcError
    │   ├── SubmissionRejected
    │   ├── FeeEstimationError
    │   └── SubscriptionError
    ├── ContractRevert         (on-chain rejection)
    │   ├── InsufficientValue
    │   ├── LengthMismatch
    │   ├── Unauthorized
    │   └── ZeroBalance
    ├── SigningError
    └── ArtifactError
"""

from typing import Any, Optional


class PayoutError(Exception):
    """Base class for all payout failures."""
    pass


# ============================================================================
# VALIDATION
# ============================================================================

class ValidationError(PayoutError):
    """A precondition was violated before any network call was made."""
    pass


class BatchError(ValidationError):
    """Malformed payout batch (length mismatch, bad amount, empty)."""
    pass


class AddressError(ValidationError):
    """A recipient or account address could not be translated."""

    def __init__(self, address: str, reason: str = "invalid address"):
        self.address = address
        self.reason = reason
        super().__init__(f"{reason}: {address!r}")


class ConfigurationError(ValidationError):
    """Required configuration (key, contract hash, endpoint) is missing or malformed."""
    pass


# ============================================================================
# TRANSPORT
# ============================================================================

class TransportError(PayoutError):
    """Communication with a chain node failed."""
    pass


class RpcError(TransportError):
    """The node answered a JSON-RPC request with an error object."""

    def __init__(self, method: str, code: Optional[int], message: str, data: Any = None):
        self.method = method
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"{method} failed ({code}): {message}")


class SubmissionRejected(TransportError):
    """The node refused a signed transaction."""
    pass


class FeeEstimationError(TransportError):
    """The node could not estimate fees for a transaction."""
    pass


class SubscriptionError(TransportError):
    """An event subscription could not be established or was dropped."""
    pass


# ============================================================================
# ON-CHAIN REJECTION
# ============================================================================

class ContractRevert(PayoutError):
    """The contract rejected the call; ``reason`` holds the decoded message."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"execution reverted: {reason}")


class InsufficientValue(ContractRevert):
    """Attached value is lower than the sum of the batch."""
    pass


class LengthMismatch(ContractRevert):
    """Contract saw address and amount arrays of different lengths."""
    pass


class Unauthorized(ContractRevert):
    """Caller is not allowed to invoke the method."""
    pass


class ZeroBalance(ContractRevert):
    """Release requested by an account with nothing to withdraw."""
    pass


# ============================================================================
# SIGNING / ARTIFACTS
# ============================================================================

class SigningError(PayoutError):
    """Key material is invalid or a payload could not be signed."""
    pass


class ArtifactError(PayoutError):
    """A deploy artifact (NEF, manifest, bytecode) is missing or malformed."""
    pass
