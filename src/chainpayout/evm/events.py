"""
chainpayout/evm/events.py

PaymentReleased event retrieval.

Two ways to read events:

- PaymentReleasedFilter: synchronous, restartable iteration over
  historical logs (eth_getLogs, chunked by block range)
- PaymentReleasedSubscription: trio async stream of live logs, optionally
  preceded by a replay of history

Usage:
    for event in adapter.filter_payment_released(from_block=1_000_000):
        print(event.to, event.amount)

    async with trio.open_nursery() as nursery:
        subscription = await adapter.subscribe_payment_released(nursery)
        async for event in subscription:
            ...
        subscription.cancel()
"""

import logging
from typing import TYPE_CHECKING, Iterator, List, Optional, Tuple

import trio

from ..config import LOG_CHUNK_SIZE, SUBSCRIPTION_BUFFER
from ..errors import PayoutError
from .abi import PaymentReleased

if TYPE_CHECKING:
    from ..rpc.evm import EthRpcClient
    from ..rpc.websocket import WebSocketLogSource

logger = logging.getLogger("chainpayout.evm.events")


# ============================================================================
# HISTORICAL FILTER
# ============================================================================

class PaymentReleasedFilter:
    """
    Iterates PaymentReleased events of one contract in chain order.

    Iteration is lazy: logs are fetched one block chunk at a time. The
    filter remembers the position of the last event it delivered, so
    iterating again (or after an interruption) resumes right after it.
    Logs flagged ``removed`` by the node are skipped.
    """

    def __init__(
        self,
        rpc: "EthRpcClient",
        contract_address: str,
        from_block: int = 0,
        to_block: Optional[int] = None,
        chunk_size: int = LOG_CHUNK_SIZE,
    ):
        if from_block < 0:
            raise ValueError("from_block must be non-negative")
        if to_block is not None and to_block < from_block:
            raise ValueError("to_block must not be lower than from_block")
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")

        self._rpc = rpc
        self.contract_address = contract_address
        self.from_block = from_block
        self.to_block = to_block
        self.chunk_size = chunk_size
        self._cursor: Optional[Tuple[int, int]] = None

    @property
    def cursor(self) -> Optional[Tuple[int, int]]:
        """(block, log index) of the last delivered event."""
        return self._cursor

    def __iter__(self) -> Iterator[PaymentReleased]:
        end = self.to_block if self.to_block is not None else self._rpc.block_number()
        start = self.from_block if self._cursor is None else self._cursor[0]
        topics = [PaymentReleased.topic()]

        while start <= end:
            stop = min(start + self.chunk_size - 1, end)
            logs = self._rpc.get_logs(self.contract_address, topics, start, stop)
            logger.debug(f"Fetched {len(logs)} logs for blocks {start}-{stop}")

            events = sorted(
                (PaymentReleased.from_log(log) for log in logs),
                key=lambda event: event.position,
            )
            for event in events:
                if event.removed:
                    continue
                if self._cursor is not None and event.position <= self._cursor:
                    continue
                self._cursor = event.position
                yield event
            start = stop + 1

    def events(self) -> List[PaymentReleased]:
        """Drain the filter into a list."""
        return list(self)


# ============================================================================
# LIVE SUBSCRIPTION
# ============================================================================

class PaymentReleasedSubscription:
    """
    Cancellable async stream of PaymentReleased events.

    A pump task, started in a caller-supplied nursery, owns the log
    stream and forwards decoded events through a bounded memory channel.
    The subscription ends when:

    - cancel() is called: delivery stops at once and the log stream is
      released; iteration finishes normally
    - the transport drops: iteration raises the SubscriptionError
    """

    def __init__(
        self,
        source: "WebSocketLogSource",
        contract_address: str,
        history: Optional[PaymentReleasedFilter] = None,
        buffer_size: int = SUBSCRIPTION_BUFFER,
    ):
        self._source = source
        self.contract_address = contract_address
        self._history = history
        self._send_channel, self._receive_channel = trio.open_memory_channel(buffer_size)
        self._cancel_scope = trio.CancelScope()
        self._error: Optional[PayoutError] = None
        self.released = False

    @property
    def error(self) -> Optional[PayoutError]:
        """Failure that ended the stream, if any."""
        return self._error

    async def start(self, nursery: trio.Nursery) -> None:
        """
        Start the pump task and wait for the log stream to open.

        Raises:
            SubscriptionError: If the stream could not be opened
        """
        await nursery.start(self._run)
        if self._error is not None:
            raise self._error

    def cancel(self) -> None:
        """Stop delivery and release the underlying log stream."""
        self._cancel_scope.cancel()
        self._receive_channel.close()

    async def _run(self, task_status=trio.TASK_STATUS_IGNORED) -> None:
        started = False
        async with self._send_channel:
            try:
                with self._cancel_scope:
                    async with self._source.open_log_stream(
                        self.contract_address, [PaymentReleased.topic()]
                    ) as stream:
                        task_status.started()
                        started = True
                        await self._pump(stream)
            except trio.BrokenResourceError:
                logger.debug("Subscriber closed the event stream")
            except PayoutError as e:
                logger.warning(f"PaymentReleased subscription ended: {e}")
                self._error = e
            finally:
                self.released = True
                if not started:
                    task_status.started()

    async def _pump(self, stream) -> None:
        last: Optional[Tuple[int, int]] = None

        if self._history is not None:
            replay = await trio.to_thread.run_sync(self._history.events)
            for event in replay:
                await self._send_channel.send(event)
                last = event.position
            logger.debug(f"Replayed {len(replay)} historical events")

        while True:
            event = PaymentReleased.from_log(await stream.receive())
            if event.removed:
                continue
            # already delivered by the replay
            if last is not None and event.position <= last:
                continue
            await self._send_channel.send(event)

    # ========================================================================
    # ASYNC ITERATION
    # ========================================================================

    def __aiter__(self) -> "PaymentReleasedSubscription":
        return self

    async def __anext__(self) -> PaymentReleased:
        try:
            return await self._receive_channel.receive()
        except trio.EndOfChannel:
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration
        except trio.ClosedResourceError:
            raise StopAsyncIteration

    async def __aenter__(self) -> "PaymentReleasedSubscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel()
