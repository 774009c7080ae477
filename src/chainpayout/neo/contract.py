"""
chainpayout/neo/contract.py

Deploy artifacts (NEF + manifest) and deterministic contract hashes.

A deployed contract's hash depends only on the deployer, the NEF
checksum and the manifest name:

    hash160(ABORT, push(sender), push(checksum), push(name))

so it can be computed before the deploy transaction is confirmed.
"""

import hashlib
import json
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from ..errors import ArtifactError
from .address import SCRIPT_HASH_SIZE, hash160
from .script import OpCode, ScriptBuilder

logger = logging.getLogger("chainpayout.neo.contract")


NEF_MAGIC = 0x3346454E  # "NEF3"
NEF_COMPILER_SIZE = 64
NEF_MAX_SOURCE = 256
NEF_MAX_TOKENS = 128
NEF_MAX_METHOD_NAME = 32
NEF_MAX_SCRIPT = 512 * 1024


# ============================================================================
# NEF
# ============================================================================

class _Reader:
    """Sequential little-endian reader raising ArtifactError on truncation."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    def read(self, size: int) -> bytes:
        if self._pos + size > len(self._data):
            raise ArtifactError("NEF file is truncated")
        chunk = self._data[self._pos:self._pos + size]
        self._pos += size
        return chunk

    def uint8(self) -> int:
        return self.read(1)[0]

    def uint16(self) -> int:
        return struct.unpack("<H", self.read(2))[0]

    def uint32(self) -> int:
        return struct.unpack("<I", self.read(4))[0]

    def var_int(self) -> int:
        prefix = self.uint8()
        if prefix == 0xFD:
            return self.uint16()
        if prefix == 0xFE:
            return self.uint32()
        if prefix == 0xFF:
            return struct.unpack("<Q", self.read(8))[0]
        return prefix

    def var_bytes(self, limit: int) -> bytes:
        size = self.var_int()
        if size > limit:
            raise ArtifactError(f"NEF field exceeds {limit} bytes")
        return self.read(size)

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos


def nef_checksum(body: bytes) -> int:
    """Checksum over every NEF byte preceding the checksum field."""
    digest = hashlib.sha256(hashlib.sha256(body).digest()).digest()
    return struct.unpack("<I", digest[:4])[0]


@dataclass(frozen=True)
class NefFile:
    """Parsed compiled-script artifact."""
    compiler: str
    source: str
    script: bytes
    checksum: int
    raw: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "NefFile":
        """
        Parse and validate a NEF file.

        Raises:
            ArtifactError: On bad magic, reserved fields, sizes or checksum
        """
        reader = _Reader(data)
        if reader.uint32() != NEF_MAGIC:
            raise ArtifactError("Not a NEF file (bad magic)")

        compiler = reader.read(NEF_COMPILER_SIZE).rstrip(b"\x00").decode("utf-8", "replace")
        source = reader.var_bytes(NEF_MAX_SOURCE).decode("utf-8", "replace")
        if reader.uint8() != 0:
            raise ArtifactError("NEF reserved byte is not zero")

        token_count = reader.var_int()
        if token_count > NEF_MAX_TOKENS:
            raise ArtifactError("NEF has too many method tokens")
        for _ in range(token_count):
            reader.read(SCRIPT_HASH_SIZE)
            reader.var_bytes(NEF_MAX_METHOD_NAME)
            reader.uint16()
            reader.uint8()
            reader.uint8()

        if reader.uint16() != 0:
            raise ArtifactError("NEF reserved field is not zero")
        script = reader.var_bytes(NEF_MAX_SCRIPT)
        if not script:
            raise ArtifactError("NEF script is empty")

        checksum = reader.uint32()
        if reader.remaining:
            raise ArtifactError("Trailing bytes after NEF checksum")
        if checksum != nef_checksum(data[:-4]):
            raise ArtifactError("NEF checksum mismatch")

        return cls(compiler=compiler, source=source, script=script, checksum=checksum, raw=data)


# ============================================================================
# MANIFEST
# ============================================================================

@dataclass(frozen=True)
class ContractManifest:
    """The parts of a manifest the deploy flow relies on."""
    name: str
    abi: Dict[str, Any]
    raw: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "ContractManifest":
        """
        Parse a manifest JSON document.

        Raises:
            ArtifactError: If the document is not JSON or lacks name/abi
        """
        try:
            document = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ArtifactError(f"Manifest is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise ArtifactError("Manifest must be a JSON object")
        name = document.get("name")
        if not isinstance(name, str) or not name:
            raise ArtifactError("Manifest has no contract name")
        abi = document.get("abi")
        if not isinstance(abi, dict):
            raise ArtifactError("Manifest has no abi section")

        return cls(name=name, abi=abi, raw=data)

    def has_method(self, method: str) -> bool:
        return any(m.get("name") == method for m in self.abi.get("methods", []))


def _read_artifact(path: Union[str, Path], kind: str) -> bytes:
    if not path:
        raise ArtifactError(f"No {kind} file was provided")
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ArtifactError(f"Cannot read {kind} file {path}: {e}") from e


def load_artifacts(
    nef_path: Union[str, Path],
    manifest_path: Union[str, Path],
) -> Tuple[NefFile, ContractManifest]:
    """
    Read and validate both deploy artifacts.

    Raises:
        ArtifactError: If either file is missing, unreadable or malformed
    """
    nef = NefFile.from_bytes(_read_artifact(nef_path, "NEF"))
    manifest = ContractManifest.from_bytes(_read_artifact(manifest_path, "manifest"))
    logger.debug(f"Loaded artifacts for {manifest.name} (checksum {nef.checksum})")
    return nef, manifest


# ============================================================================
# CONTRACT HASH
# ============================================================================

def compute_contract_hash(sender: bytes, nef_checksum_value: int, name: str) -> bytes:
    """
    Hash a contract will get when ``sender`` deploys it.

    Args:
        sender: Deployer script hash (serialized order)
        nef_checksum_value: Checksum field of the NEF
        name: Contract name from the manifest

    Returns:
        Contract script hash (serialized order)
    """
    if len(sender) != SCRIPT_HASH_SIZE:
        raise ValueError("Sender must be a 20-byte script hash")
    script = (
        ScriptBuilder()
        .emit(OpCode.ABORT)
        .emit_push_bytes(sender)
        .emit_push_int(nef_checksum_value)
        .emit_push_string(name)
        .to_bytes()
    )
    return hash160(script)
