"""
chainpayout/rpc - JSON-RPC transports for the supported chains.

Provides transaction submission, network parameter queries and log
access for the payout adapters.
"""

from .client import JsonRpcClient
from .connection import JsonRpcConnection, Web3Connection
from .evm import EthRpcClient
from .neo import NeoRpcClient
from .websocket import WebSocketLogSource, WebSocketLogStream

__all__ = [
    "JsonRpcClient",
    "JsonRpcConnection",
    "Web3Connection",
    "EthRpcClient",
    "NeoRpcClient",
    "WebSocketLogSource",
    "WebSocketLogStream",
]
