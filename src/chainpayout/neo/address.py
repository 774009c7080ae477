"""
chainpayout/neo/address.py

NEO N3 address and script-hash conversions.

A script hash is ``ripemd160(sha256(script))``. Its serialized byte order
is the order found inside a base58check address; the conventional
``0x...`` string shows the same bytes reversed.
"""

import hashlib

import base58
from Crypto.Hash import RIPEMD160

from ..config import NEO_ADDRESS_VERSION
from ..errors import AddressError, ConfigurationError

SCRIPT_HASH_SIZE = 20


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))."""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def address_to_script_hash(address: str) -> bytes:
    """
    Translate a base58check address to its script hash.

    Raises:
        AddressError: On bad encoding, checksum, length or version byte
    """
    if not isinstance(address, str) or not address:
        raise AddressError(str(address), "empty address")
    try:
        payload = base58.b58decode_check(address)
    except ValueError as e:
        raise AddressError(address, "bad base58check encoding") from e

    if len(payload) != SCRIPT_HASH_SIZE + 1:
        raise AddressError(address, "wrong address length")
    if payload[0] != NEO_ADDRESS_VERSION:
        raise AddressError(address, f"unexpected address version 0x{payload[0]:02x}")
    return payload[1:]


def script_hash_to_address(script_hash: bytes) -> str:
    """Encode a serialized-order script hash as an address."""
    if len(script_hash) != SCRIPT_HASH_SIZE:
        raise ValueError("Script hash must be 20 bytes")
    return base58.b58encode_check(bytes([NEO_ADDRESS_VERSION]) + script_hash).decode("ascii")


def script_hash_from_string(value: str) -> bytes:
    """
    Parse a ``0x``-prefixed (or bare) hex script hash.

    Raises:
        ConfigurationError: If the value is not 20 bytes of hex
    """
    if not isinstance(value, str) or not value:
        raise ConfigurationError("Contract hash is not configured")
    text = value[2:] if value.lower().startswith("0x") else value
    if len(text) != SCRIPT_HASH_SIZE * 2:
        raise ConfigurationError(f"Contract hash must be 40 hex digits: {value!r}")
    try:
        raw = bytes.fromhex(text)
    except ValueError as e:
        raise ConfigurationError(f"Contract hash is not hex: {value!r}") from e
    return raw[::-1]


def script_hash_to_string(script_hash: bytes) -> str:
    """Display form of a serialized-order script hash."""
    return "0x" + script_hash[::-1].hex()
