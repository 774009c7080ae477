"""
chainpayout/rpc/evm.py

Ethereum JSON-RPC client, carried by a web3 HTTPProvider.

Provides the narrow surface the EVM payout adapter needs:
- Network parameters (chain id, gas price, nonce)
- Gas estimation and read-only calls
- Raw transaction submission
- Log queries
"""

import logging
from typing import Any, Dict, List, Optional, Union

from eth_utils import to_hex

from ..errors import RpcError, SubmissionRejected, TransportError
from .client import JsonRpcClient
from .connection import Web3Connection

logger = logging.getLogger("chainpayout.rpc.evm")


BlockId = Union[int, str]


def _quantity(value: str) -> int:
    """Decode a hex QUANTITY returned by the node."""
    if not isinstance(value, str):
        raise TransportError(f"Expected hex quantity, got {value!r}")
    try:
        return int(value, 16)
    except ValueError as e:
        raise TransportError(f"Invalid hex quantity: {value!r}") from e


def _block_param(block: BlockId) -> str:
    return hex(block) if isinstance(block, int) else block


def format_call(tx: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a call/transaction dict to its JSON-RPC form.

    Integers become hex quantities and ``data`` bytes become 0x-hex.
    """
    formatted: Dict[str, Any] = {}
    for key, value in tx.items():
        if value is None:
            continue
        if isinstance(value, bool):
            formatted[key] = value
        elif isinstance(value, int):
            formatted[key] = hex(value)
        elif isinstance(value, (bytes, bytearray)):
            formatted[key] = to_hex(bytes(value))
        else:
            formatted[key] = value
    return formatted


class EthRpcClient(JsonRpcClient):
    """
    JSON-RPC client for an EVM node.

    Example:
        client = EthRpcClient("https://rpc.example.org")
        client.connect()

        nonce = client.get_transaction_count("0xabc...", "pending")
        tx_hash = client.send_raw_transaction(signed_bytes)

        client.close()
    """

    connection_class = Web3Connection

    def _handshake(self) -> None:
        self.chain_id()

    # ========================================================================
    # NETWORK PARAMETERS
    # ========================================================================

    def chain_id(self) -> int:
        """Get the EIP-155 chain id."""
        return _quantity(self._call("eth_chainId"))

    def gas_price(self) -> int:
        """Get the node's suggested gas price in wei."""
        return _quantity(self._call("eth_gasPrice"))

    def get_transaction_count(self, address: str, block: BlockId = "pending") -> int:
        """Get the next nonce for ``address``."""
        return _quantity(self._call("eth_getTransactionCount", address, _block_param(block)))

    def block_number(self) -> int:
        """Get the latest block number."""
        return _quantity(self._call("eth_blockNumber"))

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def estimate_gas(self, tx: Dict[str, Any]) -> int:
        """
        Estimate gas for a transaction.

        Raises:
            RpcError: If execution reverts (``data`` carries the revert payload)
        """
        return _quantity(self._call("eth_estimateGas", format_call(tx)))

    def call(self, tx: Dict[str, Any], block: BlockId = "latest") -> bytes:
        """Execute a read-only call and return the raw return data."""
        result = self._call("eth_call", format_call(tx), _block_param(block))
        if not isinstance(result, str):
            raise TransportError(f"Malformed eth_call result: {result!r}")
        return bytes.fromhex(result[2:] if result.startswith("0x") else result)

    def send_raw_transaction(self, raw_tx: bytes) -> str:
        """
        Broadcast a signed transaction.

        Returns:
            Transaction hash (0x-hex)

        Raises:
            SubmissionRejected: If the node refuses the transaction
        """
        try:
            result = self._call("eth_sendRawTransaction", to_hex(raw_tx))
        except RpcError as e:
            logger.error(f"Transaction rejected: {e.message}")
            raise SubmissionRejected(f"Transaction rejected: {e.message}") from e

        if not isinstance(result, str) or not result.startswith("0x"):
            raise SubmissionRejected(f"Unexpected submission result: {result!r}")
        return result

    # ========================================================================
    # LOGS
    # ========================================================================

    def get_logs(
        self,
        address: str,
        topics: List[Optional[str]],
        from_block: BlockId,
        to_block: BlockId = "latest",
    ) -> List[Dict[str, Any]]:
        """Query logs emitted by ``address`` matching ``topics``."""
        result = self._call("eth_getLogs", {
            "address": address,
            "topics": topics,
            "fromBlock": _block_param(from_block),
            "toBlock": _block_param(to_block),
        })
        if not isinstance(result, list):
            raise TransportError(f"Malformed eth_getLogs result: {result!r}")
        return result
