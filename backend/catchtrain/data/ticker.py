"""Cancellable fixed-interval asyncio ticker."""
import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class Ticker:
    """
    Calls callback every `interval` seconds on the running event loop until stopped.
    A callback returning an awaitable is awaited before the next sleep, so ticks never overlap.
    start() needs a running loop; stop() is safe to call any number of times.
    """

    def __init__(self, interval: float, callback: Callable[[], Awaitable[None] | None], name: str = "ticker"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                result = self._callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("telemetry ticker_callback_failed name=%s", self._name)
