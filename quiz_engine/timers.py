# quiz_engine/timers.py
# Cancellable deferred continuations and a debounce wrapper for validation.

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

logger = logging.getLogger(__name__)

# scheduler(delay_seconds, callback) -> handle with a cancel() method
Scheduler = Callable[[float, Callable[[], None]], Any]


class TimerToken:
    """
    Handle for one deferred continuation.

    The owning session invalidates the token on teardown; the callback
    checks `active` before applying any effect.
    """

    def __init__(self, owner_id: str, step: int):
        self.owner_id = owner_id
        self.step = step
        self._handle = None
        self._cancelled = False
        self._fired = False

    def bind(self, handle: Any) -> "TimerToken":
        self._handle = handle
        return self

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._fired)

    def mark_fired(self):
        self._fired = True

    def cancel(self):
        if not self.active:
            return
        self._cancelled = True
        if self._handle is not None and hasattr(self._handle, "cancel"):
            self._handle.cancel()
        logger.debug(f"Cancelled timer for session {self.owner_id} at step {self.step}")


def asyncio_scheduler(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    """Default scheduler: runs the callback on the running event loop after `delay` seconds."""
    loop = asyncio.get_running_loop()
    return loop.call_later(delay, callback)


class DebouncedValidator:
    """
    Delays a validation call until input has been quiet for `delay` seconds.

    Each call cancels the pending timer and restarts it. Only the last call
    within the window runs; every caller waiting on the window receives its
    result (or its exception).
    """

    def __init__(self, fn: Callable[..., Union[Any, Awaitable[Any]]], delay: float = 0.3):
        self.fn = fn
        self.delay = delay
        self._timer: Optional[asyncio.TimerHandle] = None
        self._waiters: List[asyncio.Future] = []
        self._args: tuple = ()
        self._kwargs: dict = {}
        self._task: Optional[asyncio.Future] = None

    async def __call__(self, *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._args, self._kwargs = args, kwargs

        waiter = loop.create_future()
        self._waiters.append(waiter)
        self._timer = loop.call_later(self.delay, self._start_fire)
        return await waiter

    def _start_fire(self):
        self._task = asyncio.ensure_future(self._fire())

    async def _fire(self):
        self._timer = None
        waiters, self._waiters = self._waiters, []
        try:
            result = self.fn(*self._args, **self._kwargs)
            if asyncio.iscoroutine(result):
                result = await result
        except Exception as e:
            logger.warning(f"Debounced call failed: {e}")
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(e)
            return
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(result)

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def cancel(self):
        """Drops the pending call; waiters are cancelled."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()
