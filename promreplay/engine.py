"""
Replay Engine - drives records against their endpoints.

    records -> schedule() -> WorkStream -> WorkerPool -> replay()
"""

import asyncio
import logging
from typing import List, Optional

import httpx

from promreplay.cancel import CancelScope
from promreplay.config import ReplayConfig
from promreplay.errors import ConfigurationError
from promreplay.metrics import ReplayMetrics
from promreplay.pool import WorkerPool
from promreplay.record import Record
from promreplay.replay import Outcome, replay
from promreplay.scheduler import schedule

logger = logging.getLogger(__name__)


def build_client(config: ReplayConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
    limits = httpx.Limits(max_connections=None, max_keepalive_connections=config.parallel)
    return httpx.AsyncClient(timeout=config.timeout, limits=limits, transport=transport)


class ReplayEngine:
    def __init__(self, config: ReplayConfig, metrics: Optional[ReplayMetrics] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config.validate()
        self.metrics = metrics or ReplayMetrics()
        self.transport = transport

    async def run(self, records: List[Record], scope: Optional[CancelScope] = None,
                  handle_signals: bool = False) -> ReplayMetrics:
        """
        Replay records until the stream is exhausted, the duration elapses or
        the scope is aborted.

        Raises:
            ConfigurationError: if a duration is set and there are no records
        """
        if self.config.cyclic and not records:
            raise ConfigurationError("--duration requires at least one record")

        scope = scope or CancelScope()
        pool = WorkerPool(self.config.parallel, scope)
        logger.info("# warming up with %d workers ...", self.config.parallel)

        producer = None
        try:
            if handle_signals:
                scope.install_signal_handlers()
            async with build_client(self.config, self.transport) as client:

                async def work(rec: Record) -> Outcome:
                    outcome = await replay(client, rec, scope, self.config.timeout)
                    self.metrics.observe(outcome)
                    return outcome

                stream, producer = schedule(
                    records,
                    scope,
                    duration=self.config.duration,
                    maxsize=max(len(records), self.config.parallel),
                )

                logger.info("# replaying requests ...")
                await pool.run(stream, work)
                if producer is not None:
                    scope.stop()
                    await producer
        finally:
            if producer is not None and not producer.done():
                producer.cancel()
            scope.close()

        logger.info(
            "# done: %d requests (%d success, %d replay-error, %d transport-error)",
            self.metrics.total(),
            self.metrics.count(Outcome.SUCCESS),
            self.metrics.count(Outcome.REPLAY_ERROR),
            self.metrics.count(Outcome.TRANSPORT_ERROR),
        )
        return self.metrics


def run_replay(records: List[Record], config: ReplayConfig, transport=None,
               handle_signals: bool = True) -> ReplayMetrics:
    """Run the engine on a fresh event loop with OS signal handling."""
    engine = ReplayEngine(config, transport=transport)
    if config.metrics_port:
        engine.metrics.serve(config.metrics_port)
        logger.info("# serving metrics on :%d", config.metrics_port)
    return asyncio.run(engine.run(records, handle_signals=handle_signals))
