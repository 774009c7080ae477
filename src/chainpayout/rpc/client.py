"""
chainpayout/rpc/client.py

Generic JSON-RPC 2.0 client shared by the chain-specific clients.
"""

import logging
import threading
from typing import Any, Optional, Type

from ..config import DEFAULT_RPC_TIMEOUT
from ..errors import RpcError, TransportError
from .connection import JsonRpcConnection

logger = logging.getLogger("chainpayout.rpc.client")


class JsonRpcClient:
    """
    JSON-RPC client over a :class:`JsonRpcConnection`.

    Subclasses add typed methods on top of :meth:`_call`, implement
    :meth:`_handshake` and may pick another transport through
    ``connection_class``.
    """

    connection_class: Type[Any] = JsonRpcConnection

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        connection: Optional[Any] = None,
    ):
        """
        Initialize the client.

        Args:
            url: Node endpoint
            timeout: Request timeout in seconds
            connection: Optional connection to use instead of a new one
        """
        self.url = url
        self.timeout = timeout

        self._connection = connection
        self._request_id = 0
        self._id_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        """Check if connected to a node."""
        return self._connection is not None and self._connection.connected

    def connect(self) -> None:
        """
        Connect to the node and verify it answers.

        Raises:
            TransportError: If the node is unreachable or the handshake fails
        """
        if self._connection is None:
            self._connection = self.connection_class(self.url, timeout=self.timeout)
        self._connection.connect()

        try:
            self._handshake()
        except TransportError:
            self.close()
            raise
        logger.info(f"Connected to {self.url}")

    def close(self) -> None:
        """Close the connection."""
        if self._connection:
            self._connection.close()

    def _handshake(self) -> None:
        """Perform a cheap request proving the endpoint speaks this protocol."""
        raise NotImplementedError

    def _next_id(self) -> int:
        """Get next request ID."""
        with self._id_lock:
            self._request_id += 1
            return self._request_id

    def _call(self, method: str, *params) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method name
            *params: Positional method parameters

        Returns:
            The ``result`` member of the response

        Raises:
            RpcError: If the node returned an error object
            TransportError: On communication failure
        """
        if not self.connected:
            raise TransportError(f"Not connected to {self.url}")

        request = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": method,
            "params": list(params),
        }

        response = self._connection.post(request)
        if not isinstance(response, dict):
            raise TransportError(f"Malformed response to {method}: {response!r}")

        error = response.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcError(
                    method,
                    error.get("code"),
                    error.get("message", str(error)),
                    error.get("data"),
                )
            raise RpcError(method, None, str(error))

        if "result" not in response:
            raise TransportError(f"Response to {method} has no result")
        return response["result"]

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
