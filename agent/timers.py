"""
Delayed-call handles for the event loop.

Auto-dismiss and highlight timers are stored as cancellable handles keyed by
the id of the entity they affect, so dismissing or deleting the entity early
can cancel the callback before it fires against a stale id.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class DelayedCall:
    """Handle for a callback scheduled to run once after a delay."""

    def __init__(self, cancel_fn: Optional[Callable[[], None]] = None):
        self._cancel_fn = cancel_fn
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        if self.cancelled or self.fired:
            return
        self.cancelled = True
        if self._cancel_fn:
            self._cancel_fn()

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)


class Scheduler:
    """Owns delayed callbacks and fire-and-forget coroutines."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> DelayedCall:
        raise NotImplementedError

    def spawn(self, coro: Awaitable[Any]) -> Any:
        raise NotImplementedError


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio loop."""

    def __init__(self):
        self._tasks = set()

    def call_later(self, delay: float, callback: Callable[[], None]) -> DelayedCall:
        loop = asyncio.get_running_loop()
        handle = DelayedCall()

        def _fire():
            if not handle.active:
                return
            handle.fired = True
            try:
                callback()
            except Exception:
                logger.exception("Delayed callback failed")

        timer = loop.call_later(delay, _fire)
        handle._cancel_fn = timer.cancel
        return handle

    def spawn(self, coro: Awaitable[Any]) -> "asyncio.Task":
        task = asyncio.ensure_future(coro)
        # Keep a strong reference until done; the loop only holds weak ones
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


class TimerRegistry:
    """Cancellable timers keyed by entity id; scheduling a key replaces its old timer."""

    def __init__(self, scheduler: Scheduler):
        self.scheduler = scheduler
        self._timers: Dict[str, DelayedCall] = {}

    def schedule(self, key: str, delay: float, callback: Callable[[], None]) -> DelayedCall:
        self.cancel(key)

        handle: Optional[DelayedCall] = None

        def _run():
            # Only drop our own entry; a newer timer may already own the key
            if self._timers.get(key) is handle:
                del self._timers[key]
            callback()

        handle = self.scheduler.call_later(delay, _run)
        self._timers[key] = handle
        return handle

    def cancel(self, key: str) -> bool:
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._timers):
            self.cancel(key)

    def has(self, key: str) -> bool:
        return key in self._timers

    def __len__(self) -> int:
        return len(self._timers)
