"""
Serialized execution context for the gateway.

All registries are touched from a single context only. Callbacks coming from
other threads, and replies which must not be delivered on the call stack of
the request that caused them, are posted to the dispatcher.
"""

from __future__ import annotations

import abc
import asyncio
from collections import deque
from collections.abc import Callable
import logging
from typing import Any

_LOGGER = logging.getLogger(__name__)


class Dispatcher(abc.ABC):
    """Inbox of the gateway's execution context."""

    @abc.abstractmethod
    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        """Schedule callback(*args) to run later in the execution context.

        Must be safe to call from any thread."""


class AsyncioDispatcher(Dispatcher):
    """Runs posted callbacks on an asyncio event loop.

    Without loop, must be created from a coroutine running on the loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        self._loop.call_soon_threadsafe(callback, *args)


class QueueDispatcher(Dispatcher):
    """FIFO inbox which is drained by explicitly calling run_pending."""

    def __init__(self) -> None:
        self._queue: deque[tuple[Callable[..., Any], tuple]] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        self._queue.append((callback, args))

    def run_pending(self) -> int:
        """Run callbacks until the inbox is empty, including callbacks posted
        while running. Returns the number of callbacks run."""
        count = 0
        while self._queue:
            callback, args = self._queue.popleft()
            count += 1
            try:
                callback(*args)
            except Exception:  # pylint: disable=broad-except
                _LOGGER.exception("Exception thrown when running %s", callback)
        return count
