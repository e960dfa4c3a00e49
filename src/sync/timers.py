"""Named, cancellable timer and task handles bound to the running event loop."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Dict, Optional, Set


logger = logging.getLogger(__name__)


class Timers:
    """
    A small registry of cancellable callbacks.

    Each name holds at most one pending timer; starting a timer under a name
    that is already armed replaces it. Background tasks spawned here are
    tracked so that cancel_all() leaves nothing able to fire afterwards.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._handles: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def start(self, name: str, delay: float, callback: Callable[[], Any]) -> None:
        """Run callback once after delay seconds."""
        self.cancel(name)

        def fire() -> None:
            self._handles.pop(name, None)
            callback()

        self._handles[name] = self.loop.call_later(delay, fire)

    def start_repeating(self, name: str, interval: float, callback: Callable[[], Any]) -> None:
        """Run callback every interval seconds until cancelled."""
        self.cancel(name)

        def fire() -> None:
            self._handles[name] = self.loop.call_later(interval, fire)
            callback()

        self._handles[name] = self.loop.call_later(interval, fire)

    def active(self, name: str) -> bool:
        return name in self._handles

    def cancel(self, name: str) -> None:
        handle = self._handles.pop(name, None)
        if handle is not None:
            handle.cancel()

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Schedule a coroutine as a tracked background task."""
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed", exc_info=task.exception())

    def cancel_all(self) -> None:
        """Cancel every timer and background task."""
        for name in list(self._handles):
            self.cancel(name)
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
