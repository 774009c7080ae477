"""
chainpayout/neo - NEO N3 payout support.

Provides:
- Address and script-hash conversion
- VM script emission (System.Contract.Call)
- Transaction serialization and hashing
- NEF / manifest loading and deterministic contract hashes

The payout adapter lives in :mod:`chainpayout.neo.adapter`.
"""

from .address import (
    address_to_script_hash,
    hash160,
    script_hash_from_string,
    script_hash_to_address,
    script_hash_to_string,
)
from .contract import ContractManifest, NefFile, compute_contract_hash, load_artifacts
from .script import CallFlags, OpCode, ScriptBuilder
from .transaction import Signer, Transaction, Witness, WitnessScope

__all__ = [
    "address_to_script_hash",
    "hash160",
    "script_hash_from_string",
    "script_hash_to_address",
    "script_hash_to_string",
    "ContractManifest",
    "NefFile",
    "compute_contract_hash",
    "load_artifacts",
    "CallFlags",
    "OpCode",
    "ScriptBuilder",
    "Signer",
    "Transaction",
    "Witness",
    "WitnessScope",
]
