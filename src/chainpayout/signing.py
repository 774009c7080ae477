"""
chainpayout/signing.py

Transaction signers holding one custody key each.

Usage:
    from chainpayout.signing import EvmSigner, NeoSigner

    evm = EvmSigner("0x4c0883a6...")
    raw_tx, tx_hash = evm.sign_transaction(tx_dict)

    neo = NeoSigner.from_wif("KxDgvEKz...")
    neo.sign_transaction(tx, network_magic)

Key material never appears in repr(), log lines or error messages.
Each signer exposes ``lock``: the process-wide lock of its account, held
while a transaction is resolved, built, signed and submitted.
"""

import logging
import threading
from typing import Any, Dict, Optional, Tuple

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from eth_account import Account

from .config import CHAIN_ETH, CHAIN_NEO
from .errors import ConfigurationError, SigningError
from .neo.address import hash160, script_hash_to_address
from .neo.script import invocation_script, verification_script
from .neo.transaction import Transaction, Witness

logger = logging.getLogger("chainpayout.signing")


WIF_VERSION = 0x80
WIF_COMPRESSED_FLAG = 0x01


# ============================================================================
# PER-ACCOUNT SERIALIZATION
# ============================================================================

_ACCOUNT_LOCKS: Dict[Tuple[str, str], threading.Lock] = {}
_ACCOUNT_LOCKS_GUARD = threading.Lock()


def account_lock(chain: str, address: str) -> threading.Lock:
    """
    Get the lock serializing transaction construction for one account.

    Every signer of the same account on the same chain shares the lock,
    even across adapter instances. EVM addresses are matched without
    regard to checksum case; other account keys are case-sensitive.
    """
    key = (chain, address.lower() if chain == CHAIN_ETH else address)
    with _ACCOUNT_LOCKS_GUARD:
        lock = _ACCOUNT_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _ACCOUNT_LOCKS[key] = lock
        return lock


# ============================================================================
# EVM SIGNER
# ============================================================================

class EvmSigner:
    """Signs EVM transactions with an ``eth-account`` local account."""

    def __init__(self, private_key: str):
        """
        Args:
            private_key: Hex private key (with or without 0x)

        Raises:
            ConfigurationError: If no key was supplied
            SigningError: If the key is malformed
        """
        if not private_key:
            raise ConfigurationError("EVM private key is not configured")
        try:
            self._account = Account.from_key(private_key)
        except Exception:
            # original exception may echo the key
            raise SigningError("Invalid EVM private key") from None

    @property
    def address(self) -> str:
        """Checksummed account address."""
        return self._account.address

    @property
    def lock(self) -> threading.Lock:
        return account_lock(CHAIN_ETH, self.address)

    def sign_transaction(self, tx: Dict[str, Any]) -> Tuple[bytes, str]:
        """
        Sign a transaction dict.

        Returns:
            (raw signed transaction, 0x-hex transaction hash)
        """
        try:
            signed = self._account.sign_transaction(tx)
        except Exception as e:
            raise SigningError(f"Cannot sign EVM transaction: {type(e).__name__}") from None
        return bytes(signed.raw_transaction), "0x" + bytes(signed.hash).hex()

    def __repr__(self) -> str:
        return f"EvmSigner(address={self.address})"


# ============================================================================
# NEO SIGNER
# ============================================================================

class NeoSigner:
    """
    secp256r1 signer for NEO N3 transactions.

    Derives the compressed public key, the single-signature verification
    script, the account script hash and address once at construction.
    """

    def __init__(self, secret: bytes):
        """
        Args:
            secret: 32-byte private key

        Raises:
            SigningError: If the key is not a valid secp256r1 scalar
        """
        if not isinstance(secret, (bytes, bytearray)) or len(secret) != 32:
            raise SigningError("NEO private key must be 32 bytes")
        try:
            self._key = ec.derive_private_key(int.from_bytes(secret, "big"), ec.SECP256R1())
        except ValueError:
            raise SigningError("NEO private key is out of range") from None

        self.public_key: bytes = self._key.public_key().public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.CompressedPoint,
        )
        self.verification_script: bytes = verification_script(self.public_key)
        self.script_hash: bytes = hash160(self.verification_script)
        self.address: str = script_hash_to_address(self.script_hash)

    @classmethod
    def from_wif(cls, wif: str) -> "NeoSigner":
        """
        Create a signer from a WIF-encoded private key.

        Raises:
            ConfigurationError: If no key was supplied
            SigningError: If the WIF is malformed
        """
        if not wif:
            raise ConfigurationError("NEO private key is not configured")
        try:
            payload = base58.b58decode_check(wif)
        except ValueError:
            raise SigningError("Invalid WIF encoding") from None
        if len(payload) != 34 or payload[0] != WIF_VERSION or payload[33] != WIF_COMPRESSED_FLAG:
            raise SigningError("Invalid WIF payload")
        return cls(payload[1:33])

    @classmethod
    def from_pem(cls, pem: bytes, password: Optional[bytes] = None) -> "NeoSigner":
        """
        Create a signer from a PEM-encoded secp256r1 private key.

        Raises:
            SigningError: If the PEM cannot be loaded or uses another curve
        """
        try:
            key = serialization.load_pem_private_key(pem, password=password)
        except (ValueError, TypeError):
            raise SigningError("Cannot load PEM private key") from None
        if not isinstance(key, ec.EllipticCurvePrivateKey) or key.curve.name != "secp256r1":
            raise SigningError("PEM key is not a secp256r1 key")
        return cls(key.private_numbers().private_value.to_bytes(32, "big"))

    @property
    def lock(self) -> threading.Lock:
        return account_lock(CHAIN_NEO, self.script_hash.hex())

    def sign(self, data: bytes) -> bytes:
        """
        ECDSA-sign ``sha256(data)``.

        Returns:
            64-byte r || s signature
        """
        der = self._key.sign(data, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")

    def verify(self, data: bytes, signature: bytes) -> bool:
        """Check a 64-byte signature produced by :meth:`sign`."""
        if len(signature) != 64:
            return False
        der = encode_dss_signature(
            int.from_bytes(signature[:32], "big"),
            int.from_bytes(signature[32:], "big"),
        )
        try:
            self._key.public_key().verify(der, data, ec.ECDSA(hashes.SHA256()))
            return True
        except InvalidSignature:
            return False

    def witness_template(self) -> Witness:
        """Witness with an empty invocation script, used for fee calculation."""
        return Witness(b"", self.verification_script)

    def sign_transaction(self, tx: Transaction, network: int) -> None:
        """Attach this account's witness to ``tx`` for ``network``."""
        signature = self.sign(tx.signing_data(network))
        tx.witnesses = [Witness(invocation_script(signature), self.verification_script)]
        logger.debug(f"Signed {tx.hash_string} for network {network}")

    def __repr__(self) -> str:
        return f"NeoSigner(address={self.address})"
