"""
chainpayout/rpc/connection.py

Low-level HTTP connection handling for JSON-RPC endpoints.

Two transports share one interface (connect / close / post):

- JsonRpcConnection: plain ``requests`` session, used for NEO nodes
- Web3Connection: web3 ``HTTPProvider``, used for EVM nodes
"""

import json
import logging
from typing import Any, Optional

import requests
from web3 import HTTPProvider

from ..config import DEFAULT_RPC_TIMEOUT
from ..errors import TransportError

logger = logging.getLogger("chainpayout.rpc.connection")


class JsonRpcConnection:
    """
    Manages an HTTP session to a JSON-RPC node.

    One POST per request; the session keeps the underlying TCP/TLS
    connection alive between calls.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize connection parameters.

        Args:
            url: Node endpoint (http:// or https://)
            timeout: Request timeout in seconds
            session: Optional pre-configured session (proxies, auth headers)
        """
        self.url = url
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    @property
    def connected(self) -> bool:
        """Check if a session is open."""
        return self._session is not None

    def connect(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Content-Type": "application/json"})
            self._owns_session = True
            logger.debug(f"Session opened for {self.url}")

    def close(self) -> None:
        """Close the session if this connection created it."""
        if self._session is not None and self._owns_session:
            self._session.close()
        self._session = None

    def post(self, payload: dict) -> Any:
        """
        Send one JSON-RPC request and return the decoded response body.

        Raises:
            TransportError: On network failure, HTTP error status or a
                body that is not JSON
        """
        if self._session is None:
            raise TransportError(f"Not connected to {self.url}")

        try:
            response = self._session.post(
                self.url,
                data=json.dumps(payload),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Request to {self.url} failed: {e}")
            raise TransportError(f"Request to {self.url} failed: {e}") from e

        if response.status_code >= 400:
            raise TransportError(
                f"{self.url} answered HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON response from {self.url}") from e

    def __enter__(self) -> "JsonRpcConnection":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


class Web3Connection:
    """
    JSON-RPC transport over a web3 ``HTTPProvider``.

    web3 encodes the request and owns the HTTP session. The response
    object comes back undecoded, so error objects keep their revert data
    for the payout adapter. Retries are disabled: a failed request is
    reported to the caller, never silently repeated.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        provider: Optional[HTTPProvider] = None,
    ):
        """
        Initialize connection parameters.

        Args:
            url: Node endpoint (http:// or https://)
            timeout: Request timeout in seconds
            provider: Optional pre-built provider (custom session, headers)
        """
        self.url = url
        self.timeout = timeout
        self._provider = provider

    @property
    def provider(self) -> Optional[HTTPProvider]:
        return self._provider

    @property
    def connected(self) -> bool:
        """Check if a provider is available."""
        return self._provider is not None

    def connect(self) -> None:
        """Build the HTTP provider."""
        if self._provider is None:
            self._provider = HTTPProvider(
                self.url,
                request_kwargs={"timeout": self.timeout},
                exception_retry_configuration=None,
            )
            logger.debug(f"web3 provider created for {self.url}")

    def close(self) -> None:
        self._provider = None

    def post(self, payload: dict) -> Any:
        """
        Send one JSON-RPC request through the provider.

        The provider numbers requests itself; ``payload["id"]`` is not sent.

        Raises:
            TransportError: On network failure, HTTP error status or a
                body that is not JSON
        """
        if self._provider is None:
            raise TransportError(f"Not connected to {self.url}")

        try:
            return self._provider.make_request(payload["method"], payload["params"])
        except requests.RequestException as e:
            logger.error(f"Request to {self.url} failed: {e}")
            raise TransportError(f"Request to {self.url} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON response from {self.url}") from e

    def __enter__(self) -> "Web3Connection":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
