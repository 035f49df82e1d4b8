"""Ways of running pipeline callbacks on the caller's context.

A dispatcher is any callable accepting a zero-argument function and
scheduling it somewhere. Workers hand every callback to the dispatcher of
their request instead of invoking it themselves.
"""

from __future__ import annotations

import asyncio
import logging
import queue
from typing import Callable

logger = logging.getLogger(__name__)

Task = Callable[[], None]
Dispatcher = Callable[[Task], None]


def immediate(task: Task) -> None:
    """Run ``task`` right away on the calling (worker) thread."""

    task()


class AsyncioDispatcher:
    """Schedule callbacks on an asyncio event loop.

    Attributes:
        loop: Loop receiving the callbacks.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop

    def __call__(self, task: Task) -> None:
        if self.loop.is_closed():
            logger.warning("Event loop closed, dropping callback %r", task)
            return
        self.loop.call_soon_threadsafe(task)


class QueueDispatcher:
    """Collect callbacks until the owner thread runs them.

    Suited to threads that own their own loop, e.g. a GUI main loop that
    polls ``run_pending`` on every tick.
    """

    def __init__(self) -> None:
        self._tasks: queue.SimpleQueue[Task] = queue.SimpleQueue()

    def __call__(self, task: Task) -> None:
        self._tasks.put(task)

    def __len__(self) -> int:
        return self._tasks.qsize()

    def run_pending(self, timeout: float | None = None) -> int:
        """Run the queued callbacks on the calling thread.

        Args:
            timeout: When given and nothing is queued, wait up to this many
                seconds for a first callback.

        Returns:
            Number of callbacks that were run.
        """

        count = 0
        if timeout is not None:
            try:
                task = self._tasks.get(timeout=timeout)
            except queue.Empty:
                return 0
            task()
            count += 1

        while True:
            try:
                task = self._tasks.get_nowait()
            except queue.Empty:
                return count
            task()
            count += 1


def default_dispatcher() -> Dispatcher:
    """Return the dispatcher for the calling thread.

    Callers running inside an asyncio loop get their callbacks on that loop;
    everyone else gets them on the worker thread.
    """

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return immediate
    return AsyncioDispatcher(loop)
