"""
Tests for chainpayout/rpc/

Tests the JSON-RPC transports, the generic client and the chain clients
against a mocked requests session or web3 provider.
"""

import base64
import json

import pytest
import requests
import trio
from trio_websocket import CloseReason, ConnectionClosed
from unittest.mock import Mock
from web3 import HTTPProvider

from chainpayout.errors import (
    FeeEstimationError,
    RpcError,
    SubmissionRejected,
    SubscriptionError,
    TransportError,
)
from chainpayout.rpc import (
    EthRpcClient,
    JsonRpcConnection,
    NeoRpcClient,
    Web3Connection,
    WebSocketLogSource,
    WebSocketLogStream,
)
from chainpayout.rpc.evm import format_call


# ============================================================================
# HELPERS
# ============================================================================

def make_response(body, status=200):
    response = Mock()
    response.status_code = status
    response.text = json.dumps(body)
    response.json.return_value = body
    return response


def make_session(*results):
    """Session answering successive POSTs with the given ``result`` values."""
    session = Mock(spec=requests.Session)
    session.post.side_effect = [
        make_response({"jsonrpc": "2.0", "id": 1, "result": result}) for result in results
    ]
    return session


def sent_payloads(session):
    return [json.loads(call.kwargs["data"]) for call in session.post.call_args_list]


def connected(client_cls, session):
    connection = JsonRpcConnection("http://node", session=session)
    connection.connect()
    return client_cls("http://node", connection=connection)


def rpc_reply(result):
    return {"jsonrpc": "2.0", "id": 1, "result": result}


def make_provider(*replies):
    """web3 provider answering successive requests with the given responses."""
    provider = Mock(spec=HTTPProvider)
    provider.make_request.side_effect = list(replies)
    return provider


def provider_calls(provider):
    return [(call.args[0], call.args[1]) for call in provider.make_request.call_args_list]


def eth_client(provider):
    return EthRpcClient("http://node", connection=Web3Connection("http://node", provider=provider))


# ============================================================================
# CONNECTION TESTS
# ============================================================================

class TestJsonRpcConnection:
    """Tests for JsonRpcConnection."""

    def test_initialization(self):
        conn = JsonRpcConnection("http://node", timeout=5.0)
        assert conn.url == "http://node"
        assert conn.timeout == 5.0
        assert not conn.connected

    def test_post_not_connected(self):
        conn = JsonRpcConnection("http://node")
        with pytest.raises(TransportError):
            conn.post({})

    def test_post_network_error(self):
        session = Mock(spec=requests.Session)
        session.post.side_effect = requests.ConnectionError("refused")
        conn = JsonRpcConnection("http://node", session=session)
        with pytest.raises(TransportError) as exc:
            conn.post({"method": "x"})
        assert isinstance(exc.value.__cause__, requests.ConnectionError)

    def test_post_http_error(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = make_response({}, status=502)
        conn = JsonRpcConnection("http://node", session=session)
        with pytest.raises(TransportError) as exc:
            conn.post({})
        assert "502" in str(exc.value)

    def test_post_bad_json(self):
        session = Mock(spec=requests.Session)
        response = make_response({})
        response.json.side_effect = ValueError("not json")
        session.post.return_value = response
        conn = JsonRpcConnection("http://node", session=session)
        with pytest.raises(TransportError):
            conn.post({})

    def test_external_session_not_closed(self):
        """Test a caller-supplied session is left open on close()."""
        session = Mock(spec=requests.Session)
        conn = JsonRpcConnection("http://node", session=session)
        conn.close()
        session.close.assert_not_called()
        assert not conn.connected


class TestWeb3Connection:
    """Tests for Web3Connection."""

    def test_connect_builds_provider(self):
        conn = Web3Connection("http://node", timeout=5.0)
        assert not conn.connected
        conn.connect()
        assert conn.connected
        assert isinstance(conn.provider, HTTPProvider)
        assert conn.provider.endpoint_uri == "http://node"
        conn.close()
        assert not conn.connected

    def test_post_not_connected(self):
        with pytest.raises(TransportError):
            Web3Connection("http://node").post({"method": "eth_chainId", "params": []})

    def test_post_forwards_method_and_params(self):
        provider = make_provider(rpc_reply("0x1"))
        conn = Web3Connection("http://node", provider=provider)
        reply = conn.post({"jsonrpc": "2.0", "id": 9, "method": "eth_blockNumber", "params": []})
        assert reply == rpc_reply("0x1")
        assert provider_calls(provider) == [("eth_blockNumber", [])]

    def test_post_network_error(self):
        provider = make_provider(requests.ConnectionError("refused"))
        conn = Web3Connection("http://node", provider=provider)
        with pytest.raises(TransportError) as exc:
            conn.post({"method": "eth_chainId", "params": []})
        assert isinstance(exc.value.__cause__, requests.ConnectionError)

    def test_post_http_error(self):
        provider = make_provider(requests.HTTPError("502 Server Error: Bad Gateway"))
        conn = Web3Connection("http://node", provider=provider)
        with pytest.raises(TransportError) as exc:
            conn.post({"method": "eth_chainId", "params": []})
        assert "502" in str(exc.value)

    def test_post_bad_json(self):
        provider = make_provider(json.JSONDecodeError("Expecting value", "<html>", 0))
        conn = Web3Connection("http://node", provider=provider)
        with pytest.raises(TransportError):
            conn.post({"method": "eth_chainId", "params": []})


# ============================================================================
# CLIENT TESTS
# ============================================================================

class TestJsonRpcClient:
    """Tests for request framing and error mapping."""

    def test_call_not_connected(self):
        client = EthRpcClient("http://node")
        with pytest.raises(TransportError):
            client.block_number()

    def test_default_transports(self):
        assert EthRpcClient.connection_class is Web3Connection
        assert NeoRpcClient.connection_class is JsonRpcConnection

    def test_request_ids_increase(self):
        session = make_session(1, 2)
        client = connected(NeoRpcClient, session)
        client.get_block_count()
        client.get_block_count()
        ids = [payload["id"] for payload in sent_payloads(session)]
        assert ids == [1, 2]

    def test_error_object_becomes_rpc_error(self):
        provider = make_provider({
            "jsonrpc": "2.0",
            "id": 1,
            "error": {"code": -32000, "message": "boom", "data": "0x12"},
        })
        client = eth_client(provider)
        with pytest.raises(RpcError) as exc:
            client.block_number()
        assert exc.value.method == "eth_blockNumber"
        assert exc.value.code == -32000
        assert exc.value.message == "boom"
        assert exc.value.data == "0x12"
        assert isinstance(exc.value, TransportError)

    def test_missing_result(self):
        client = eth_client(make_provider({"jsonrpc": "2.0", "id": 1}))
        with pytest.raises(TransportError):
            client.block_number()

    def test_connect_runs_handshake(self):
        provider = make_provider(rpc_reply("0x539"))
        client = eth_client(provider)
        client.connect()
        assert client.connected
        assert provider_calls(provider)[0][0] == "eth_chainId"

    def test_connect_closes_on_failed_handshake(self):
        client = eth_client(make_provider(requests.ConnectionError("down")))
        with pytest.raises(TransportError):
            client.connect()
        assert not client.connected


# ============================================================================
# ETH CLIENT TESTS
# ============================================================================

class TestEthRpcClient:
    """Tests for EthRpcClient."""

    def test_format_call(self):
        formatted = format_call({"to": "0xabc", "value": 10, "data": b"\x01\x02", "gas": None})
        assert formatted == {"to": "0xabc", "value": "0xa", "data": "0x0102"}

    def test_quantities(self):
        provider = make_provider(rpc_reply("0x539"), rpc_reply("0x3b9aca00"), rpc_reply("0x7"))
        client = eth_client(provider)
        assert client.chain_id() == 1337
        assert client.gas_price() == 10 ** 9
        assert client.get_transaction_count("0xabc") == 7
        assert provider_calls(provider)[2] == ("eth_getTransactionCount", ["0xabc", "pending"])

    def test_call_returns_bytes(self):
        provider = make_provider(rpc_reply("0x" + "00" * 31 + "05"))
        client = eth_client(provider)
        assert client.call({"to": "0xabc", "data": b"\x70"}) == bytes(31) + b"\x05"
        assert provider_calls(provider)[0][1] == [{"to": "0xabc", "data": "0x70"}, "latest"]

    def test_send_raw_transaction(self):
        provider = make_provider(rpc_reply("0x" + "aa" * 32))
        client = eth_client(provider)
        assert client.send_raw_transaction(b"\x01") == "0x" + "aa" * 32
        assert provider_calls(provider)[0] == ("eth_sendRawTransaction", ["0x01"])

    def test_send_raw_transaction_rejected(self):
        provider = make_provider({
            "jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "nonce too low"},
        })
        with pytest.raises(SubmissionRejected) as exc:
            eth_client(provider).send_raw_transaction(b"\x01")
        assert "nonce too low" in str(exc.value)

    def test_get_logs(self):
        provider = make_provider(rpc_reply([{"data": "0x"}]))
        client = eth_client(provider)
        logs = client.get_logs("0xabc", ["0xtopic"], 10, 20)
        assert logs == [{"data": "0x"}]
        assert provider_calls(provider)[0][1][0] == {
            "address": "0xabc",
            "topics": ["0xtopic"],
            "fromBlock": "0xa",
            "toBlock": "0x14",
        }


# ============================================================================
# NEO CLIENT TESTS
# ============================================================================

VERSION = {
    "tcpport": 10333,
    "protocol": {"network": 860833102, "maxvaliduntilblockincrement": 5760},
}


class TestNeoRpcClient:
    """Tests for NeoRpcClient."""

    def test_network(self):
        client = connected(NeoRpcClient, make_session(VERSION))
        assert client.get_network() == 860833102
        assert client.get_max_valid_until_block_increment() == 5760

    def test_protocol_fetched_once(self):
        session = make_session(VERSION)
        client = connected(NeoRpcClient, session)
        for _ in range(3):
            client.get_network()
            client.get_max_valid_until_block_increment()
        assert session.post.call_count == 1
        assert sent_payloads(session)[0]["method"] == "getversion"

    def test_malformed_version(self):
        client = connected(NeoRpcClient, make_session({"nonce": 1}))
        with pytest.raises(TransportError):
            client.get_version()

    def test_malformed_protocol(self):
        client = connected(NeoRpcClient, make_session({"tcpport": 1, "protocol": 5}))
        with pytest.raises(TransportError):
            client.get_network()

    def test_native_contract_hash_is_reversed(self):
        contracts = [
            {"id": -1, "hash": "0xfffdc93764dbaddd97c48f252a53ea4643faa3fd",
             "manifest": {"name": "ContractManagement"}},
        ]
        client = connected(NeoRpcClient, make_session(contracts))
        value = client.get_native_contract_hash("ContractManagement")
        assert value == bytes.fromhex("fffdc93764dbaddd97c48f252a53ea4643faa3fd")[::-1]

    def test_native_contract_missing(self):
        client = connected(NeoRpcClient, make_session([]))
        with pytest.raises(TransportError):
            client.get_native_contract_hash("ContractManagement")

    def test_invoke_script_encodes_base64(self):
        session = make_session({"state": "HALT", "gasconsumed": "10"})
        client = connected(NeoRpcClient, session)
        signers = [{"account": "0x" + "00" * 20, "scopes": "CalledByEntry"}]
        client.invoke_script(b"\x10\x40", signers)
        params = sent_payloads(session)[0]["params"]
        assert base64.b64decode(params[0]) == b"\x10\x40"
        assert params[1] == signers

    def test_calculate_network_fee(self):
        client = connected(NeoRpcClient, make_session({"networkfee": "1230000"}))
        assert client.calculate_network_fee(b"\x00") == 1230000

    def test_calculate_network_fee_failure(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = make_response({
            "jsonrpc": "2.0", "id": 1, "error": {"code": -500, "message": "invalid tx"},
        })
        client = connected(NeoRpcClient, session)
        with pytest.raises(FeeEstimationError):
            client.calculate_network_fee(b"\x00")

    def test_send_raw_transaction(self):
        client = connected(NeoRpcClient, make_session({"hash": "0x" + "cd" * 32}))
        assert client.send_raw_transaction(b"\x00") == "0x" + "cd" * 32

    def test_send_raw_transaction_rejected(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = make_response({
            "jsonrpc": "2.0", "id": 1, "error": {"code": -501, "message": "Insufficient funds"},
        })
        client = connected(NeoRpcClient, session)
        with pytest.raises(SubmissionRejected):
            client.send_raw_transaction(b"\x00")


# ============================================================================
# WEBSOCKET STREAM TESTS
# ============================================================================

class FakeWebSocket:
    def __init__(self, messages):
        self._messages = list(messages)
        self.sent = []

    async def send_message(self, message):
        await trio.lowlevel.checkpoint()
        self.sent.append(json.loads(message))

    async def get_message(self):
        await trio.lowlevel.checkpoint()
        if not self._messages:
            raise ConnectionClosed(CloseReason(1006, "gone"))
        return self._messages.pop(0)


def notification(subscription, result):
    return json.dumps({
        "jsonrpc": "2.0",
        "method": "eth_subscription",
        "params": {"subscription": subscription, "result": result},
    })


class TestWebSocketLogStream:
    """Tests for WebSocketLogStream."""

    @pytest.mark.trio
    async def test_filters_by_subscription(self):
        messages = [
            json.dumps({"jsonrpc": "2.0", "id": 7, "result": True}),
            notification("0xother", {"n": 1}),
            notification("0xsub", {"n": 2}),
        ]
        stream = WebSocketLogStream(FakeWebSocket(messages), "0xsub")
        assert await stream.receive() == {"n": 2}

    @pytest.mark.trio
    async def test_connection_drop(self):
        stream = WebSocketLogStream(FakeWebSocket([]), "0xsub")
        with pytest.raises(SubscriptionError):
            await stream.receive()

    @pytest.mark.trio
    async def test_non_json_frame(self):
        stream = WebSocketLogStream(FakeWebSocket(["not json"]), "0xsub")
        with pytest.raises(SubscriptionError):
            await stream.receive()

    @pytest.mark.trio
    async def test_non_object_frame(self):
        """Test a JSON array or scalar frame is a SubscriptionError."""
        for frame in ("[1, 2]", "42", "null"):
            stream = WebSocketLogStream(FakeWebSocket([frame]), "0xsub")
            with pytest.raises(SubscriptionError):
                await stream.receive()

    @pytest.mark.trio
    async def test_notification_without_log(self):
        for result in (None, "0x", [1]):
            stream = WebSocketLogStream(FakeWebSocket([notification("0xsub", result)]), "0xsub")
            with pytest.raises(SubscriptionError):
                await stream.receive()

    @pytest.mark.trio
    async def test_notification_with_bad_params_skipped(self):
        messages = [
            json.dumps({"method": "eth_subscription", "params": "0xsub"}),
            notification("0xsub", {"n": 3}),
        ]
        stream = WebSocketLogStream(FakeWebSocket(messages), "0xsub")
        assert await stream.receive() == {"n": 3}


class TestWebSocketSubscribe:
    """Tests for the eth_subscribe handshake."""

    async def subscribe(self, ws):
        return await WebSocketLogSource("ws://node")._subscribe(ws, "0xabc", ["0xtopic"])

    @pytest.mark.trio
    async def test_returns_subscription_id(self):
        ws = FakeWebSocket([
            notification("0xstale", {"n": 0}),
            json.dumps({"jsonrpc": "2.0", "id": 1, "result": "0xsub"}),
        ])
        assert await self.subscribe(ws) == "0xsub"
        assert ws.sent[0]["method"] == "eth_subscribe"
        assert ws.sent[0]["params"] == ["logs", {"address": "0xabc", "topics": ["0xtopic"]}]

    @pytest.mark.trio
    async def test_non_json_reply(self):
        with pytest.raises(SubscriptionError):
            await self.subscribe(FakeWebSocket(["<html>502</html>"]))

    @pytest.mark.trio
    async def test_reply_without_id(self):
        for result in (None, "", 5):
            ws = FakeWebSocket([json.dumps({"jsonrpc": "2.0", "id": 1, "result": result})])
            with pytest.raises(SubscriptionError):
                await self.subscribe(ws)

    @pytest.mark.trio
    async def test_refused(self):
        ws = FakeWebSocket([
            json.dumps({"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "no"}}),
        ])
        with pytest.raises(SubscriptionError) as exc:
            await self.subscribe(ws)
        assert "refused" in str(exc.value)

    @pytest.mark.trio
    async def test_closed_during_subscribe(self):
        with pytest.raises(SubscriptionError):
            await self.subscribe(FakeWebSocket([]))
