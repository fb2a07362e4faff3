"""
Worker Pool - a fixed number of asyncio workers draining a WorkStream.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from promreplay.cancel import CancelScope
from promreplay.errors import ConfigurationError
from promreplay.record import Record
from promreplay.scheduler import StreamClosed, WorkStream

logger = logging.getLogger(__name__)

ReplayFunc = Callable[[Record], Awaitable[object]]


class WorkerPool:
    def __init__(self, size: int, scope: CancelScope):
        if size < 1:
            raise ConfigurationError(f"parallelism must be at least 1, got {size}")
        self.size = size
        self.scope = scope

    async def run(self, stream: WorkStream, replay: ReplayFunc):
        """Run the workers and return once every one of them has exited."""
        workers = [
            asyncio.ensure_future(self._worker(i, stream, replay))
            for i in range(self.size)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for w in workers:
                w.cancel()

    async def _worker(self, wid: int, stream: WorkStream, replay: ReplayFunc):
        n = 0
        while True:
            if self.scope.is_stopping:
                break
            try:
                got, rec = await self.scope.race(stream.get(), self.scope.stopping)
            except StreamClosed:
                break
            if not got:
                break

            n += 1
            try:
                await replay(rec)
            except Exception:
                logger.exception("worker %d: unexpected error replaying %s", wid, rec.request.url)

        logger.debug("worker %d: exiting after %d items", wid, n)
