"""
Work Scheduler - turns the record sequence into a stream of work items.

Single pass (no duration): every record is enqueued once and the stream is
closed. Time-boxed (duration > 0): a producer task enqueues records round
robin until the scope stops, then closes the stream.
"""

import asyncio
import logging
from typing import Iterator, List, Optional, Sequence

from promreplay.cancel import CancelScope
from promreplay.errors import ConfigurationError
from promreplay.record import Record

logger = logging.getLogger(__name__)


class StreamClosed(Exception):
    """Raised by WorkStream.get() once the stream is closed and drained."""


class WorkStream:
    """
    A closable asyncio queue.

    close() is idempotent. get() on a closed stream returns the remaining
    items and then raises StreamClosed without blocking.
    """

    def __init__(self, maxsize: int = 0):
        self._queue = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def qsize(self) -> int:
        return self._queue.qsize()

    def close(self):
        self._closed.set()

    def put_nowait(self, item):
        if self.closed:
            raise StreamClosed("put on closed stream")
        self._queue.put_nowait(item)

    async def put(self, item, scope: CancelScope) -> bool:
        """Enqueue item, giving up when the scope stops. Returns False if it gave up."""
        if self.closed:
            raise StreamClosed("put on closed stream")
        if scope.is_stopping:
            return False
        ok, _ = await scope.race(self._queue.put(item), scope.stopping)
        return ok

    async def get(self):
        while True:
            try:
                return self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            if self.closed:
                raise StreamClosed()

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                closer.cancel()
                if not getter.done():
                    getter.cancel()
            if getter.done() and not getter.cancelled():
                return getter.result()


def cycle(records: Sequence[Record]) -> Iterator[Record]:
    """Yield records round robin forever, wrapping the index into [0, N)."""
    if not records:
        raise ConfigurationError("cannot cycle over zero records")

    def gen():
        i = 0
        while True:
            yield records[i]
            i = (i + 1) % len(records)

    return gen()


def single_pass(records: Sequence[Record]) -> WorkStream:
    """Enqueue every record once and close the stream."""
    stream = WorkStream()
    for rec in records:
        stream.put_nowait(rec)
    stream.close()
    return stream


async def produce_cyclic(stream: WorkStream, source: Iterator[Record], scope: CancelScope) -> int:
    """Enqueue from source until the scope stops; always closes the stream."""
    n = 0
    try:
        for rec in source:
            if scope.is_stopping:
                break
            if not await stream.put(rec, scope):
                break
            n += 1
            # let workers run when the queue never fills up
            await asyncio.sleep(0)
    finally:
        stream.close()
        logger.debug("# producer stopped after %d items", n)
    return n


def cyclic(records: Sequence[Record], scope: CancelScope, maxsize: Optional[int] = None):
    """
    Start the round robin producer.

    Returns the stream and the producer task. Raises ConfigurationError for an
    empty record sequence before anything is scheduled.
    """
    source = cycle(records)
    stream = WorkStream(maxsize=maxsize or len(records))
    task = asyncio.ensure_future(produce_cyclic(stream, source, scope))
    return stream, task


def schedule(records: List[Record], scope: CancelScope, duration: Optional[float] = None,
             maxsize: Optional[int] = None):
    """
    Build the work stream for the given mode.

    Returns (stream, producer) where producer is None in single pass mode.
    """
    if not duration:
        return single_pass(records), None

    if not records:
        raise ConfigurationError("--duration requires at least one record")

    stream, task = cyclic(records, scope, maxsize)
    scope.stop_after(duration)
    return stream, task
