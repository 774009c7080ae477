"""
chainpayout/neo/transaction.py

NEO N3 transaction model and binary serialization.

Layout:
    version         uint8
    nonce           uint32
    system_fee      int64
    network_fee     int64
    valid_until     uint32
    signers         var-array of (account[20], scope uint8)
    attributes      var-array (always empty here)
    script          var-bytes
    witnesses       var-array of (invocation var-bytes, verification var-bytes)

The transaction hash is sha256 of everything before the witnesses.
"""

import hashlib
import struct
from dataclasses import dataclass, field
from enum import IntFlag
from typing import Dict, List

from .address import SCRIPT_HASH_SIZE, script_hash_to_string


# ============================================================================
# ENCODING HELPERS
# ============================================================================

def var_int(value: int) -> bytes:
    """NEO variable-length integer prefix."""
    if value < 0:
        raise ValueError("var_int cannot encode negative values")
    if value < 0xFD:
        return struct.pack("<B", value)
    if value <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", value)
    if value <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", value)
    return b"\xff" + struct.pack("<Q", value)


def var_bytes(data: bytes) -> bytes:
    """Length-prefixed byte string."""
    return var_int(len(data)) + data


# ============================================================================
# SIGNERS / WITNESSES
# ============================================================================

class WitnessScope(IntFlag):
    """How far a signer's witness is valid during execution."""
    NONE = 0x00
    CALLED_BY_ENTRY = 0x01
    CUSTOM_CONTRACTS = 0x10
    CUSTOM_GROUPS = 0x20
    WITNESS_RULES = 0x40
    GLOBAL = 0x80


_SCOPE_NAMES = {
    WitnessScope.NONE: "None",
    WitnessScope.CALLED_BY_ENTRY: "CalledByEntry",
    WitnessScope.GLOBAL: "Global",
}


@dataclass(frozen=True)
class Signer:
    """Account whose witness the transaction carries."""
    account: bytes
    scopes: WitnessScope = WitnessScope.CALLED_BY_ENTRY

    def __post_init__(self):
        if len(self.account) != SCRIPT_HASH_SIZE:
            raise ValueError("Signer account must be a 20-byte script hash")
        if self.scopes not in _SCOPE_NAMES:
            raise ValueError(f"Unsupported witness scope: {self.scopes!r}")

    def serialize(self) -> bytes:
        return self.account + struct.pack("<B", int(self.scopes))

    def to_json(self) -> Dict[str, str]:
        """Form expected by ``invokescript``."""
        return {
            "account": script_hash_to_string(self.account),
            "scopes": _SCOPE_NAMES[self.scopes],
        }


@dataclass(frozen=True)
class Witness:
    """Invocation (signatures) + verification (public key check) scripts."""
    invocation_script: bytes
    verification_script: bytes

    def serialize(self) -> bytes:
        return var_bytes(self.invocation_script) + var_bytes(self.verification_script)


# ============================================================================
# TRANSACTION
# ============================================================================

@dataclass
class Transaction:
    """An N3 transaction; built unsigned, then witnessed once."""
    script: bytes
    signers: List[Signer]
    nonce: int
    valid_until_block: int
    system_fee: int = 0
    network_fee: int = 0
    version: int = 0
    witnesses: List[Witness] = field(default_factory=list)

    def unsigned_bytes(self) -> bytes:
        """Serialization without witnesses; the signed part."""
        return b"".join([
            struct.pack("<B", self.version),
            struct.pack("<I", self.nonce),
            struct.pack("<q", self.system_fee),
            struct.pack("<q", self.network_fee),
            struct.pack("<I", self.valid_until_block),
            var_int(len(self.signers)),
            b"".join(signer.serialize() for signer in self.signers),
            var_int(0),
            var_bytes(self.script),
        ])

    def to_bytes(self) -> bytes:
        """Full serialization including witnesses."""
        return (
            self.unsigned_bytes()
            + var_int(len(self.witnesses))
            + b"".join(witness.serialize() for witness in self.witnesses)
        )

    def hash(self) -> bytes:
        return hashlib.sha256(self.unsigned_bytes()).digest()

    @property
    def hash_string(self) -> str:
        """Transaction id in display form (reversed hex)."""
        return "0x" + self.hash()[::-1].hex()

    def signing_data(self, network: int) -> bytes:
        """Bytes a witness signs: network magic followed by the hash."""
        return struct.pack("<I", network) + self.hash()
