"""
The interactive context.

All dashboard state (view model, recents, suggestions, selected place) is
owned by whoever drains the UiDispatcher queue. Background work (fetches,
debounce timers, refresh ticks) never touches that state: it posts a
callable carrying an immutable result, and run() applies it in order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set, Tuple

logger = logging.getLogger(__name__)

_Message = Tuple[Callable[..., Any], Tuple[Any, ...]]


class UiDispatcher:
    """Single-consumer message channel drained by the interactive loop."""

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[_Message]" = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()

    def bind(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self.bind()
        return self._loop

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Schedule fn(*args) on the interactive context. Safe from any thread."""
        loop = self.loop
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._queue.put_nowait((fn, args))
        else:
            loop.call_soon_threadsafe(self._queue.put_nowait, (fn, args))

    async def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run fn on the interactive context and wait for its return value."""
        future = self.loop.create_future()

        def invoke() -> None:
            if future.cancelled():
                return
            try:
                future.set_result(fn(*args))
            except Exception as exc:
                future.set_exception(exc)

        self.post(invoke)
        return await future

    def spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        """Start background work; a reference is kept until it finishes."""
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self) -> None:
        self.bind()
        while True:
            fn, args = await self._queue.get()
            try:
                fn(*args)
            except Exception:
                logger.exception("Unhandled error in interactive callback %r", fn)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every posted message has been applied."""
        await self._queue.join()

    async def settle(self) -> None:
        """Wait for in-flight background work and the messages it posts."""
        await self.join()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await self.join()

    def cancel_background(self) -> None:
        for task in list(self._tasks):
            task.cancel()


class Debouncer:
    """
    Runs an action once input has been quiet for `delay_s`.

    Each trigger() cancels the pending timer, so only the last one fires.
    Cancelling a timer does not stop an action that already started.
    """

    def __init__(self, delay_s: float) -> None:
        self.delay_s = delay_s
        self._handle: Optional[asyncio.TimerHandle] = None

    def trigger(self, action: Callable[..., Any], *args: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_s, self._fire, action, args)

    def _fire(self, action: Callable[..., Any], args: Tuple[Any, ...]) -> None:
        self._handle = None
        action(*args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None
