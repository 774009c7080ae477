"""
chainpayout/rpc/neo.py

NEO N3 JSON-RPC client.

Provides:
- Network magic and validity window (getversion)
- Native contract resolution (getnativecontracts)
- Script test-invocation for system fee (invokescript)
- Network fee calculation (calculatenetworkfee)
- Raw transaction submission (sendrawtransaction)
"""

import base64
import logging
from typing import Any, Dict, List, Optional

from ..config import MAX_VALID_UNTIL_BLOCK_INCREMENT
from ..errors import FeeEstimationError, RpcError, SubmissionRejected, TransportError
from .client import JsonRpcClient

logger = logging.getLogger("chainpayout.rpc.neo")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class NeoRpcClient(JsonRpcClient):
    """
    JSON-RPC client for a NEO N3 node.

    Example:
        client = NeoRpcClient("http://seed1.neo.org:10332")
        client.connect()

        magic = client.get_network()
        tx_hash = client.send_raw_transaction(signed_tx_bytes)
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._protocol: Optional[Dict[str, Any]] = None

    def _handshake(self) -> None:
        self.get_protocol()

    def get_version(self) -> Dict[str, Any]:
        """Get node version and protocol settings."""
        result = self._call("getversion")
        if not isinstance(result, dict) or "protocol" not in result:
            raise TransportError(f"Malformed getversion result: {result!r}")
        return result

    def get_protocol(self) -> Dict[str, Any]:
        """Protocol settings from getversion; fetched once per client."""
        if self._protocol is None:
            protocol = self.get_version()["protocol"]
            if not isinstance(protocol, dict):
                raise TransportError(f"Malformed protocol settings: {protocol!r}")
            self._protocol = protocol
        return self._protocol

    def get_network(self) -> int:
        """Get the network magic number used for signing."""
        network = self.get_protocol().get("network")
        if not isinstance(network, int):
            raise TransportError(f"Node did not report a network magic: {network!r}")
        return network

    def get_max_valid_until_block_increment(self) -> int:
        """Get how many blocks ahead a transaction may stay valid."""
        protocol = self.get_protocol()
        return int(protocol.get("maxvaliduntilblockincrement", MAX_VALID_UNTIL_BLOCK_INCREMENT))

    def get_block_count(self) -> int:
        """Get the current block count (height + 1)."""
        return int(self._call("getblockcount"))

    def get_native_contract_hash(self, name: str) -> bytes:
        """
        Resolve a native contract (e.g. ``ContractManagement``) by name.

        Returns:
            Script hash in serialized (little-endian) byte order
        """
        contracts: List[Dict[str, Any]] = self._call("getnativecontracts")
        for contract in contracts:
            manifest = contract.get("manifest") or {}
            if manifest.get("name") == name:
                value = contract["hash"]
                value = value[2:] if value.startswith("0x") else value
                return bytes.fromhex(value)[::-1]
        raise TransportError(f"Native contract {name} not reported by node")

    def invoke_script(
        self,
        script: bytes,
        signers: Optional[List[Dict[str, str]]] = None,
    ) -> Dict[str, Any]:
        """
        Test-run a script without persisting it.

        Returns:
            Invocation result with ``state``, ``gasconsumed`` and ``exception``
        """
        params: List[Any] = [_b64(script)]
        if signers:
            params.append(signers)
        return self._call("invokescript", *params)

    def calculate_network_fee(self, tx_bytes: bytes) -> int:
        """
        Ask the node for the network fee of a transaction whose witnesses
        carry verification scripts only.

        Raises:
            FeeEstimationError: If the node cannot price the transaction
        """
        try:
            result = self._call("calculatenetworkfee", _b64(tx_bytes))
        except RpcError as e:
            raise FeeEstimationError(f"Network fee calculation failed: {e.message}") from e
        try:
            return int(result["networkfee"])
        except (KeyError, TypeError, ValueError) as e:
            raise FeeEstimationError(f"Malformed calculatenetworkfee result: {result!r}") from e

    def send_raw_transaction(self, tx_bytes: bytes) -> str:
        """
        Broadcast a signed transaction.

        Returns:
            Transaction hash as reported by the node (0x-hex)

        Raises:
            SubmissionRejected: If the node refuses the transaction
        """
        try:
            result = self._call("sendrawtransaction", _b64(tx_bytes))
        except RpcError as e:
            logger.error(f"Transaction rejected: {e.message}")
            raise SubmissionRejected(f"Transaction rejected: {e.message}") from e

        tx_hash = result.get("hash") if isinstance(result, dict) else None
        if not tx_hash:
            raise SubmissionRejected(f"Unexpected submission result: {result!r}")
        logger.info(f"Transaction broadcast successful: {tx_hash}")
        return tx_hash
