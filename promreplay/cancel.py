"""
Cancellation scope shared by the producer, the workers and in-flight requests.

Two levels:
    stopping - no more work is scheduled or dequeued (duration expiry, abort)
    aborted  - in-flight requests are cancelled too (OS signal, abort())
"""

import asyncio
import logging
import signal

logger = logging.getLogger(__name__)

TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGQUIT") if hasattr(signal, name)
)


class CancelScope:
    def __init__(self):
        self.stopping = asyncio.Event()
        self.aborted = asyncio.Event()
        self._deadline = None
        self._signals = []

    def stop(self):
        """Stop scheduling; in-flight requests keep their own timeout."""
        self.stopping.set()

    def abort(self):
        """Stop scheduling and cancel in-flight requests."""
        self.aborted.set()
        self.stopping.set()

    @property
    def is_stopping(self) -> bool:
        return self.stopping.is_set()

    def stop_after(self, seconds: float):
        """Arm a deadline that calls stop() after the given number of seconds."""
        loop = asyncio.get_running_loop()
        self._deadline = loop.call_later(seconds, self._on_deadline)

    def _on_deadline(self):
        logger.info("# duration elapsed, stopping ...")
        self.stop()

    def install_signal_handlers(self, signals=TERMINATION_SIGNALS):
        loop = asyncio.get_running_loop()
        for sig in signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # not supported on this platform or outside the main thread
                logger.debug("cannot handle signal %s", sig)
                continue
            self._signals.append(sig)

    def _on_signal(self, sig):
        logger.info("# received %s, aborting ...", signal.Signals(sig).name)
        self.abort()

    def close(self):
        """Disarm the deadline and restore default signal handling."""
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None
        loop = asyncio.get_running_loop()
        for sig in self._signals:
            loop.remove_signal_handler(sig)
        self._signals = []

    async def race(self, aw, event: asyncio.Event):
        """
        Await aw unless event fires first.

        Returns (True, result) when aw completed, (False, None) when the event
        won; in that case aw is cancelled.
        """
        task = asyncio.ensure_future(aw)
        if event.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            return False, None

        waiter = asyncio.ensure_future(event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return True, task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return False, None
