"""
chainpayout/factory.py

Build ready-to-use adapters from configuration.

When a config sets ``deploy``, the payout contract is deployed first and
the returned adapter is bound to the new contract. The config itself is
never mutated; a copy carrying the new address is built instead.

Usage:
    from chainpayout.config import EvmConfig, NeoConfig
    from chainpayout.factory import create_evm_adapter, create_neo_adapter

    evm = create_evm_adapter(EvmConfig.from_env())
    neo = create_neo_adapter(NeoConfig.from_env())
"""

import dataclasses
import logging
from pathlib import Path
from typing import Optional

from .config import EvmConfig, NeoConfig
from .errors import ArtifactError
from .evm.adapter import EvmPayoutAdapter
from .neo.adapter import NeoPayoutAdapter
from .rpc.evm import EthRpcClient
from .rpc.neo import NeoRpcClient
from .rpc.websocket import WebSocketLogSource
from .signing import EvmSigner, NeoSigner

logger = logging.getLogger("chainpayout.factory")


def _read_bytecode(path: Optional[str]) -> Optional[bytes]:
    """Read a hex (optionally 0x-prefixed) bytecode artifact."""
    if not path:
        return None
    try:
        text = Path(path).read_text().strip()
    except OSError as e:
        raise ArtifactError(f"Cannot read bytecode file {path}: {e}") from e
    try:
        return bytes.fromhex(text[2:] if text.startswith("0x") else text)
    except ValueError as e:
        raise ArtifactError(f"Bytecode file {path} is not hex") from e


def create_evm_adapter(
    config: EvmConfig,
    rpc: Optional[EthRpcClient] = None,
) -> EvmPayoutAdapter:
    """
    Connect, load the signer and (optionally) deploy.

    Args:
        config: EVM settings
        rpc: Pre-built client; one is created and connected otherwise
    """
    config.require()
    signer = EvmSigner(config.private_key)
    if rpc is None:
        rpc = EthRpcClient(config.rpc_url, timeout=config.timeout)
        rpc.connect()
    log_source = WebSocketLogSource(config.ws_url, config.timeout) if config.ws_url else None

    if config.deploy:
        deployer = EvmPayoutAdapter(rpc, signer)
        deployment = deployer.deploy(_read_bytecode(config.bytecode_path))
        config = dataclasses.replace(config, contract_address=deployment.contract_hash, deploy=False)
        logger.info(f"Using freshly deployed EVM contract {config.contract_address}")

    return EvmPayoutAdapter(rpc, signer, config.contract_address, log_source)


def create_neo_adapter(
    config: NeoConfig,
    rpc: Optional[NeoRpcClient] = None,
) -> NeoPayoutAdapter:
    """
    Connect, load the signer and (optionally) deploy.

    Args:
        config: NEO settings
        rpc: Pre-built client; one is created and connected otherwise
    """
    config.require()
    signer = NeoSigner.from_wif(config.private_key)
    if rpc is None:
        rpc = NeoRpcClient(config.rpc_url, timeout=config.timeout)
        rpc.connect()

    if config.deploy:
        deployer = NeoPayoutAdapter(rpc, signer)
        deployment = deployer.deploy(config.nef_path, config.manifest_path)
        config = dataclasses.replace(config, contract_hash=deployment.contract_hash, deploy=False)
        logger.info(f"Using freshly deployed NEO contract {config.contract_hash}")

    return NeoPayoutAdapter(rpc, signer, config.contract_hash)
