"""
Shared fixtures for chainpayout tests.

Fake RPC nodes record every call so tests can assert that validation
failures never reach the network.
"""

import hashlib
import json
import struct
import threading
import time
from contextlib import asynccontextmanager

import pytest
import trio
from eth_abi import encode
from eth_utils import keccak

from chainpayout.evm.abi import PaymentReleased
from chainpayout.neo.address import script_hash_to_address
from chainpayout.neo.contract import NEF_MAGIC, nef_checksum
from chainpayout.neo.transaction import var_bytes, var_int
from chainpayout.signing import EvmSigner, NeoSigner


# ============================================================================
# TEST DATA
# ============================================================================

# hardhat development account #0
EVM_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
EVM_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
EVM_CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
EVM_RECIPIENTS = [
    "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
    "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
]

NEO_SECRET = bytes.fromhex("1dd37fba80fec4e6a6f13fd708d8dcb3b29def768017052f6c930fa1c5d90bbb")
NEO_CONTRACT = "0x" + "ab" * 20
NEO_NETWORK = 860833102
NEO_MANAGEMENT_HASH = bytes.fromhex("fffdc93764dbaddd97c48f252a53ea4643faa3fd")


def neo_address(fill: int) -> str:
    """Deterministic N3 address for a one-byte pattern."""
    return script_hash_to_address(bytes([fill]) * 20)


def build_nef(script: bytes = b"\x10\x40", compiler: str = "neo-test 1.0", source: str = "") -> bytes:
    """Assemble a minimal valid NEF file."""
    body = (
        struct.pack("<I", NEF_MAGIC)
        + compiler.encode("utf-8").ljust(64, b"\x00")
        + var_bytes(source.encode("utf-8"))
        + b"\x00"
        + var_int(0)
        + b"\x00\x00"
        + var_bytes(script)
    )
    return body + struct.pack("<I", nef_checksum(body))


def build_manifest(name: str = "PayoutNeo") -> bytes:
    return json.dumps({
        "name": name,
        "groups": [],
        "abi": {"methods": [{"name": "batchPayout", "parameters": []}], "events": []},
        "permissions": [],
    }).encode("utf-8")


def make_log(to: str, amount: int, block: int, index: int, removed: bool = False) -> dict:
    """Raw eth_getLogs / eth_subscription log for PaymentReleased."""
    return {
        "address": EVM_CONTRACT,
        "topics": [PaymentReleased.topic()],
        "data": "0x" + encode(["address", "uint256"], [to, amount]).hex(),
        "blockNumber": hex(block),
        "logIndex": hex(index),
        "transactionHash": "0x" + hashlib.sha256(f"{block}:{index}".encode()).hexdigest(),
        "removed": removed,
    }


# ============================================================================
# FAKE NODES
# ============================================================================

class FakeEthRpc:
    """In-memory EVM node. The pending nonce is the number of accepted txs."""

    def __init__(self, chain_id: int = 1337, gas_price: int = 10 ** 9, gas: int = 100_000):
        self.calls = []
        self.sent = []
        self.logs = []
        self.head = 0
        self.estimate_error = None
        self.call_error = None
        self.send_error = None
        self.call_result = b""
        self.estimate_delay = 0.0
        self._chain_id = chain_id
        self._gas_price = gas_price
        self._gas = gas
        self.closed = False

    def chain_id(self):
        self.calls.append(("chain_id",))
        return self._chain_id

    def gas_price(self):
        self.calls.append(("gas_price",))
        return self._gas_price

    def get_transaction_count(self, address, block="pending"):
        self.calls.append(("get_transaction_count", address, block))
        return len(self.sent)

    def estimate_gas(self, tx):
        self.calls.append(("estimate_gas", tx))
        if self.estimate_delay:
            time.sleep(self.estimate_delay)
        if self.estimate_error is not None:
            raise self.estimate_error
        return self._gas

    def call(self, tx, block="latest"):
        self.calls.append(("call", tx, block))
        if self.call_error is not None:
            raise self.call_error
        return self.call_result

    def send_raw_transaction(self, raw_tx):
        self.calls.append(("send_raw_transaction", raw_tx))
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(raw_tx)
        return "0x" + keccak(raw_tx).hex()

    def block_number(self):
        self.calls.append(("block_number",))
        return self.head

    def get_logs(self, address, topics, from_block, to_block="latest"):
        self.calls.append(("get_logs", address, topics, from_block, to_block))
        return [
            log for log in self.logs
            if from_block <= int(log["blockNumber"], 16) <= to_block
        ]

    def close(self):
        self.closed = True


class FakeNeoRpc:
    """In-memory NEO N3 node."""

    def __init__(self):
        self.calls = []
        self.sent = []
        self.fee_requests = []
        self.invoke_result = {"state": "HALT", "gasconsumed": "1000000", "exception": None}
        self.network_fee = 123_456
        self.block_count = 100
        self.increment = 5760
        self.invoke_error = None
        self.fee_error = None
        self.send_error = None
        self.closed = False

    def get_network(self):
        self.calls.append(("get_network",))
        return NEO_NETWORK

    def get_block_count(self):
        self.calls.append(("get_block_count",))
        return self.block_count

    def get_max_valid_until_block_increment(self):
        self.calls.append(("get_max_valid_until_block_increment",))
        return self.increment

    def get_native_contract_hash(self, name):
        self.calls.append(("get_native_contract_hash", name))
        return NEO_MANAGEMENT_HASH

    def invoke_script(self, script, signers=None):
        self.calls.append(("invoke_script", script, signers))
        if self.invoke_error is not None:
            raise self.invoke_error
        return self.invoke_result

    def calculate_network_fee(self, tx_bytes):
        self.calls.append(("calculate_network_fee", tx_bytes))
        if self.fee_error is not None:
            raise self.fee_error
        self.fee_requests.append(tx_bytes)
        return self.network_fee

    def send_raw_transaction(self, tx_bytes):
        self.calls.append(("send_raw_transaction", tx_bytes))
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(tx_bytes)
        return "0x" + hashlib.sha256(tx_bytes).hexdigest()

    def close(self):
        self.closed = True


class FakeLogStream:
    def __init__(self, channel):
        self._channel = channel

    async def receive(self):
        item = await self._channel.receive()
        if isinstance(item, Exception):
            raise item
        return item


class FakeLogSource:
    """Log source fed by the test; exceptions injected are raised by receive()."""

    def __init__(self):
        self._send, self._receive = trio.open_memory_channel(100)
        self.open_error = None
        self.opened = 0
        self.closed = 0
        self.topics = None

    @asynccontextmanager
    async def open_log_stream(self, address, topics):
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1
        self.topics = topics
        try:
            yield FakeLogStream(self._receive)
        finally:
            self.closed += 1

    async def inject(self, item):
        await self._send.send(item)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def evm_signer():
    return EvmSigner(EVM_PRIVATE_KEY)


@pytest.fixture
def neo_signer():
    return NeoSigner(NEO_SECRET)


@pytest.fixture
def eth_rpc():
    return FakeEthRpc()


@pytest.fixture
def neo_rpc():
    return FakeNeoRpc()


@pytest.fixture
def log_source():
    return FakeLogSource()


@pytest.fixture
def artifacts(tmp_path):
    """Valid NEF + manifest written to disk."""
    nef_path = tmp_path / "PayoutNeo.nef"
    manifest_path = tmp_path / "PayoutNeo.manifest.json"
    nef_path.write_bytes(build_nef())
    manifest_path.write_bytes(build_manifest())
    return nef_path, manifest_path


@pytest.fixture
def run_threads():
    """Run callables concurrently and collect results/exceptions."""
    def runner(targets):
        results = [None] * len(targets)
        errors = []

        def wrap(index, target):
            try:
                results[index] = target()
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=wrap, args=(index, target))
            for index, target in enumerate(targets)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    return runner
