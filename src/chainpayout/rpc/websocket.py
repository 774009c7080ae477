"""
chainpayout/rpc/websocket.py

Live EVM log delivery over ``eth_subscribe("logs")``.

Usage (inside a trio task):

    source = WebSocketLogSource("wss://rpc.example.org/ws")
    async with source.open_log_stream(contract, [topic]) as stream:
        while True:
            log = await stream.receive()
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import trio
from trio_websocket import ConnectionClosed, HandshakeError, WebSocketConnection, open_websocket_url

from ..config import DEFAULT_RPC_TIMEOUT
from ..errors import SubscriptionError

logger = logging.getLogger("chainpayout.rpc.websocket")


def _decode_frame(message: Any) -> Dict[str, Any]:
    """
    Decode one JSON-RPC frame.

    Raises:
        SubscriptionError: If the frame is not a JSON object
    """
    try:
        data = json.loads(message)
    except (TypeError, ValueError) as e:
        raise SubscriptionError(f"Non-JSON frame on log subscription: {str(message)[:200]!r}") from e
    if not isinstance(data, dict):
        raise SubscriptionError(f"Unexpected frame on log subscription: {str(message)[:200]!r}")
    return data


class WebSocketLogStream:
    """Logs pushed by the node for one subscription id."""

    def __init__(self, ws: WebSocketConnection, subscription_id: str):
        self._ws = ws
        self.subscription_id = subscription_id

    async def receive(self) -> Dict[str, Any]:
        """
        Wait for the next log of this subscription.

        Raises:
            SubscriptionError: If the connection drops or the node sends
                a frame that is not a JSON-RPC object
        """
        while True:
            try:
                message = await self._ws.get_message()
            except ConnectionClosed as e:
                raise SubscriptionError(f"Log subscription dropped: {e.reason}") from e

            data = _decode_frame(message)
            params = data.get("params")
            if data.get("method") != "eth_subscription" or not isinstance(params, dict):
                continue
            if params.get("subscription") != self.subscription_id:
                continue
            if not isinstance(params.get("result"), dict):
                raise SubscriptionError(f"Malformed log notification: {message[:200]!r}")
            return params["result"]


class WebSocketLogSource:
    """Opens ``eth_subscribe`` log streams against a websocket endpoint."""

    def __init__(self, url: str, timeout: float = DEFAULT_RPC_TIMEOUT):
        self.url = url
        self.timeout = timeout

    @asynccontextmanager
    async def open_log_stream(
        self,
        address: str,
        topics: List[Optional[str]],
    ) -> AsyncIterator[WebSocketLogStream]:
        """
        Subscribe to logs and yield the stream; unsubscribes on exit.

        Raises:
            SubscriptionError: If the endpoint is unreachable or refuses
                the subscription
        """
        try:
            async with open_websocket_url(self.url) as ws:
                subscription_id = await self._subscribe(ws, address, topics)
                logger.info(f"Log subscription {subscription_id} opened on {self.url}")
                try:
                    yield WebSocketLogStream(ws, subscription_id)
                finally:
                    await self._unsubscribe(ws, subscription_id)
        except (HandshakeError, OSError) as e:
            raise SubscriptionError(f"Cannot open log subscription on {self.url}: {e}") from e

    async def _subscribe(
        self,
        ws: WebSocketConnection,
        address: str,
        topics: List[Optional[str]],
    ) -> str:
        request = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_subscribe",
            "params": ["logs", {"address": address, "topics": topics}],
        }
        try:
            with trio.fail_after(self.timeout):
                await ws.send_message(json.dumps(request))
                while True:
                    reply = _decode_frame(await ws.get_message())
                    if reply.get("id") == 1:
                        break
        except trio.TooSlowError as e:
            raise SubscriptionError("eth_subscribe timed out") from e
        except ConnectionClosed as e:
            raise SubscriptionError(f"Connection closed during eth_subscribe: {e.reason}") from e

        if reply.get("error"):
            raise SubscriptionError(f"eth_subscribe refused: {reply['error']}")
        subscription_id = reply.get("result")
        if not isinstance(subscription_id, str) or not subscription_id:
            raise SubscriptionError(f"eth_subscribe returned no subscription id: {reply!r}")
        return subscription_id

    async def _unsubscribe(self, ws: WebSocketConnection, subscription_id: str) -> None:
        request = {
            "jsonrpc": "2.0",
            "id": 2,
            "method": "eth_unsubscribe",
            "params": [subscription_id],
        }
        with trio.CancelScope(shield=True):
            with trio.move_on_after(self.timeout):
                try:
                    await ws.send_message(json.dumps(request))
                except ConnectionClosed:
                    # subscription died with the connection
                    pass
        logger.info(f"Log subscription {subscription_id} released")
