import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

SettledCallback = Callable[[str], Awaitable[object] | object]


class QueryDebouncer:
    """Holds back query text until typing pauses for ``delay_seconds``.

    Every ``push`` restarts the window. An empty value is emitted right away so
    clearing the search box is instant. Async callbacks run as their own tasks,
    so a newer push never interrupts work that was already handed off.
    """

    def __init__(self, delay_seconds: float = 0.3):
        self.delay_seconds = delay_seconds
        self._callback: SettledCallback | None = None
        self._timer: asyncio.Task | None = None
        self._dispatched: set[asyncio.Task] = set()

    def on_settled(self, callback: SettledCallback) -> None:
        self._callback = callback

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def push(self, text: str) -> None:
        self.cancel()
        if not text.strip():
            self._emit("")
            return
        self._timer = asyncio.get_running_loop().create_task(self._emit_after_delay(text))

    def cancel(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def drain(self) -> None:
        """Wait for the armed timer and any callbacks it started."""
        if self._timer is not None:
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
        while self._dispatched:
            await asyncio.gather(*list(self._dispatched), return_exceptions=True)

    async def close(self) -> None:
        self.cancel()
        for task in list(self._dispatched):
            task.cancel()
        if self._dispatched:
            await asyncio.gather(*list(self._dispatched), return_exceptions=True)

    async def _emit_after_delay(self, text: str) -> None:
        await asyncio.sleep(self.delay_seconds)
        self._timer = None
        self._emit(text)

    def _emit(self, text: str) -> None:
        if self._callback is None:
            return
        result = self._callback(text)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._dispatched.add(task)
            task.add_done_callback(self._on_dispatch_done)

    def _on_dispatch_done(self, task: asyncio.Task) -> None:
        self._dispatched.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Settled query callback failed", exc_info=exc)
