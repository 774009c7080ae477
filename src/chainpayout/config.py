"""
chainpayout/config.py

Configuration constants and data classes for chainpayout.

Configuration is always passed to constructors explicitly. ``from_env``
is a convenience for services that keep their settings in the
environment:

    CHAINPAYOUT_ETH_RPC_URL, CHAINPAYOUT_ETH_WS_URL,
    CHAINPAYOUT_ETH_PRIVATE_KEY, CHAINPAYOUT_ETH_CONTRACT,
    CHAINPAYOUT_ETH_DEPLOY, CHAINPAYOUT_ETH_BYTECODE

    CHAINPAYOUT_NEO_RPC_URL, CHAINPAYOUT_NEO_PRIVATE_KEY,
    CHAINPAYOUT_NEO_CONTRACT, CHAINPAYOUT_NEO_DEPLOY,
    CHAINPAYOUT_NEO_NEF, CHAINPAYOUT_NEO_MANIFEST
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional
import os

from .errors import ConfigurationError


# ============================================================================
# CONSTANTS
# ============================================================================

CHAIN_ETH = "eth"
CHAIN_NEO = "neo"

# JSON-RPC transport
DEFAULT_RPC_TIMEOUT = 30.0          # seconds

# EVM
UINT256_MAX = 2 ** 256 - 1
GAS_LIMIT_MULTIPLIER = 1.2          # headroom on top of eth_estimateGas
LOG_CHUNK_SIZE = 5_000              # blocks per eth_getLogs request
SUBSCRIPTION_BUFFER = 100           # events buffered per subscription

# NEO N3
NEO_ADDRESS_VERSION = 0x35
NEO_INT_MAX = 2 ** 255 - 1          # VM integers are signed 256-bit
MAX_VALID_UNTIL_BLOCK_INCREMENT = 5760
NEO_PAYOUT_METHOD = "batchPayout"
DEFAULT_NEF_PATH = "./PayoutNeo.nef"
DEFAULT_MANIFEST_PATH = "./PayoutNeo.manifest.json"

ENV_PREFIX = "CHAINPAYOUT"


def _env_flag(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in ("1", "true", "yes", "on")


# ============================================================================
# CONFIG DATA CLASSES
# ============================================================================

@dataclass(frozen=True)
class EvmConfig:
    """Settings for the EVM payout adapter."""
    rpc_url: str
    private_key: str = field(repr=False)
    contract_address: Optional[str] = None
    ws_url: Optional[str] = None
    deploy: bool = False
    bytecode_path: Optional[str] = None
    timeout: float = DEFAULT_RPC_TIMEOUT

    def require(self) -> None:
        """Raise ConfigurationError if a mandatory setting is missing."""
        if not self.rpc_url:
            raise ConfigurationError("EVM RPC endpoint is not configured")
        if not self.private_key:
            raise ConfigurationError("EVM private key is not configured")
        if not self.deploy and not self.contract_address:
            raise ConfigurationError("EVM payout contract address is not configured")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EvmConfig":
        env = os.environ if environ is None else environ
        prefix = f"{ENV_PREFIX}_ETH_"
        return cls(
            rpc_url=env.get(prefix + "RPC_URL", ""),
            private_key=env.get(prefix + "PRIVATE_KEY", ""),
            contract_address=env.get(prefix + "CONTRACT") or None,
            ws_url=env.get(prefix + "WS_URL") or None,
            deploy=_env_flag(env.get(prefix + "DEPLOY")),
            bytecode_path=env.get(prefix + "BYTECODE") or None,
            timeout=float(env.get(prefix + "TIMEOUT", DEFAULT_RPC_TIMEOUT)),
        )


@dataclass(frozen=True)
class NeoConfig:
    """Settings for the NEO payout adapter."""
    rpc_url: str
    private_key: str = field(repr=False)      # WIF
    contract_hash: Optional[str] = None
    deploy: bool = False
    nef_path: str = DEFAULT_NEF_PATH
    manifest_path: str = DEFAULT_MANIFEST_PATH
    timeout: float = DEFAULT_RPC_TIMEOUT

    def require(self) -> None:
        """Raise ConfigurationError if a mandatory setting is missing."""
        if not self.rpc_url:
            raise ConfigurationError("NEO RPC endpoint is not configured")
        if not self.private_key:
            raise ConfigurationError("NEO private key is not configured")
        if not self.deploy and not self.contract_hash:
            raise ConfigurationError("NEO payout contract hash is not configured")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "NeoConfig":
        env = os.environ if environ is None else environ
        prefix = f"{ENV_PREFIX}_NEO_"
        return cls(
            rpc_url=env.get(prefix + "RPC_URL", ""),
            private_key=env.get(prefix + "PRIVATE_KEY", ""),
            contract_hash=env.get(prefix + "CONTRACT") or None,
            deploy=_env_flag(env.get(prefix + "DEPLOY")),
            nef_path=env.get(prefix + "NEF", DEFAULT_NEF_PATH),
            manifest_path=env.get(prefix + "MANIFEST", DEFAULT_MANIFEST_PATH),
            timeout=float(env.get(prefix + "TIMEOUT", DEFAULT_RPC_TIMEOUT)),
        )
