"""
chainpayout/neo/script.py

NEO VM script emission.

Only the instructions needed to call a contract method with bytes,
integers and arrays as arguments are supported.
"""

import hashlib
import struct
from enum import IntEnum, IntFlag
from typing import Sequence, Union


# ============================================================================
# OPCODES / FLAGS
# ============================================================================

class OpCode(IntEnum):
    """Subset of NEO VM opcodes."""
    PUSHINT8 = 0x00
    PUSHINT16 = 0x01
    PUSHINT32 = 0x02
    PUSHINT64 = 0x03
    PUSHINT128 = 0x04
    PUSHINT256 = 0x05
    PUSHT = 0x08
    PUSHF = 0x09
    PUSHNULL = 0x0B
    PUSHDATA1 = 0x0C
    PUSHDATA2 = 0x0D
    PUSHDATA4 = 0x0E
    PUSHM1 = 0x0F
    PUSH0 = 0x10
    PUSH1 = 0x11
    PUSH2 = 0x12
    PUSH3 = 0x13
    PUSH4 = 0x14
    PUSH5 = 0x15
    PUSH6 = 0x16
    PUSH7 = 0x17
    PUSH8 = 0x18
    PUSH9 = 0x19
    PUSH10 = 0x1A
    PUSH11 = 0x1B
    PUSH12 = 0x1C
    PUSH13 = 0x1D
    PUSH14 = 0x1E
    PUSH15 = 0x1F
    PUSH16 = 0x20
    ABORT = 0x38
    SYSCALL = 0x41
    PACK = 0xC0
    NEWARRAY0 = 0xC2


class CallFlags(IntFlag):
    """Permissions granted to a called contract."""
    NONE = 0
    READ_STATES = 0x01
    WRITE_STATES = 0x02
    ALLOW_CALL = 0x04
    ALLOW_NOTIFY = 0x08
    STATES = READ_STATES | WRITE_STATES
    READ_ONLY = READ_STATES | ALLOW_CALL
    ALL = STATES | ALLOW_CALL | ALLOW_NOTIFY


SYSTEM_CONTRACT_CALL = "System.Contract.Call"
SYSTEM_CRYPTO_CHECKSIG = "System.Crypto.CheckSig"

# (opcode, byte width) for PUSHINT variants
_INT_WIDTHS = (
    (OpCode.PUSHINT8, 1),
    (OpCode.PUSHINT16, 2),
    (OpCode.PUSHINT32, 4),
    (OpCode.PUSHINT64, 8),
    (OpCode.PUSHINT128, 16),
    (OpCode.PUSHINT256, 32),
)

Argument = Union[bytes, int, bool, str, None, Sequence]


def interop_id(name: str) -> bytes:
    """SYSCALL operand: first four bytes of sha256(name)."""
    return hashlib.sha256(name.encode("ascii")).digest()[:4]


def _int_to_bytes(value: int) -> bytes:
    """Minimal two's-complement little-endian encoding."""
    magnitude = value if value >= 0 else ~value
    length = (magnitude.bit_length() + 8) // 8
    return value.to_bytes(length, "little", signed=True)


# ============================================================================
# SCRIPT BUILDER
# ============================================================================

class ScriptBuilder:
    """
    Accumulates VM instructions.

    Example:
        sb = ScriptBuilder()
        sb.emit_contract_call(contract_hash, "batchPayout", CallFlags.ALL,
                              [addresses, amounts])
        script = sb.to_bytes()
    """

    def __init__(self):
        self._buffer = bytearray()

    def emit(self, opcode: OpCode, operand: bytes = b"") -> "ScriptBuilder":
        self._buffer.append(opcode)
        self._buffer.extend(operand)
        return self

    def emit_push_int(self, value: int) -> "ScriptBuilder":
        if value == -1:
            return self.emit(OpCode.PUSHM1)
        if 0 <= value <= 16:
            return self.emit(OpCode(OpCode.PUSH0 + value))

        data = _int_to_bytes(value)
        for opcode, width in _INT_WIDTHS:
            if len(data) <= width:
                pad = b"\xff" if value < 0 else b"\x00"
                return self.emit(opcode, data + pad * (width - len(data)))
        raise ValueError(f"Integer does not fit in 256 bits: {value}")

    def emit_push_bytes(self, data: bytes) -> "ScriptBuilder":
        size = len(data)
        if size < 0x100:
            self.emit(OpCode.PUSHDATA1, struct.pack("<B", size))
        elif size < 0x10000:
            self.emit(OpCode.PUSHDATA2, struct.pack("<H", size))
        else:
            self.emit(OpCode.PUSHDATA4, struct.pack("<I", size))
        self._buffer.extend(data)
        return self

    def emit_push_string(self, value: str) -> "ScriptBuilder":
        return self.emit_push_bytes(value.encode("utf-8"))

    def emit_push(self, value: Argument) -> "ScriptBuilder":
        """Push a Python value: bytes, int, bool, str, None or a nested sequence."""
        if value is None:
            return self.emit(OpCode.PUSHNULL)
        if isinstance(value, bool):
            return self.emit(OpCode.PUSHT if value else OpCode.PUSHF)
        if isinstance(value, int):
            return self.emit_push_int(value)
        if isinstance(value, (bytes, bytearray)):
            return self.emit_push_bytes(bytes(value))
        if isinstance(value, str):
            return self.emit_push_string(value)
        if isinstance(value, (list, tuple)):
            return self.emit_push_array(value)
        raise TypeError(f"Cannot push {type(value).__name__} onto the VM stack")

    def emit_push_array(self, items: Sequence[Argument]) -> "ScriptBuilder":
        """Arrays are built by pushing items in reverse, then count and PACK."""
        if not items:
            return self.emit(OpCode.NEWARRAY0)
        for item in reversed(items):
            self.emit_push(item)
        self.emit_push_int(len(items))
        return self.emit(OpCode.PACK)

    def emit_syscall(self, name: str) -> "ScriptBuilder":
        return self.emit(OpCode.SYSCALL, interop_id(name))

    def emit_contract_call(
        self,
        contract_hash: bytes,
        method: str,
        flags: CallFlags,
        args: Sequence[Argument] = (),
    ) -> "ScriptBuilder":
        """
        Emit ``System.Contract.Call(contract_hash, method, flags, args)``.

        ``contract_hash`` is in serialized byte order.
        """
        self.emit_push_array(list(args))
        self.emit_push_int(int(flags))
        self.emit_push_string(method)
        self.emit_push_bytes(contract_hash)
        return self.emit_syscall(SYSTEM_CONTRACT_CALL)

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)


def verification_script(public_key: bytes) -> bytes:
    """Standard single-signature verification script for a compressed key."""
    return (
        ScriptBuilder()
        .emit_push_bytes(public_key)
        .emit_syscall(SYSTEM_CRYPTO_CHECKSIG)
        .to_bytes()
    )


def invocation_script(signature: bytes) -> bytes:
    """Invocation script pushing one 64-byte signature."""
    return ScriptBuilder().emit_push_bytes(signature).to_bytes()
