"""
Progress update scheduling.

All update triggers converge on ProgressScheduler.flush():

  - viewport changes      throttled (leading call + one trailing call)
  - visibility loss       immediate
  - focus loss            immediate
  - pointer / keyboard    debounced
  - periodic timer        every periodic_interval seconds
  - stop() (page leave)   cancels timers, then one unthrottled flush

Timers are asyncio handles and every one of them can be cancelled.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class CancellableTimer:
    """One-shot timer on the running loop."""

    def __init__(self, delay: float, callback: Callable[[], None]):
        self._handle = asyncio.get_running_loop().call_later(delay, self._fire)
        self._callback = callback
        self._done = False

    def _fire(self) -> None:
        self._done = True
        self._callback()

    @property
    def active(self) -> bool:
        return not self._done and not self._handle.cancelled()

    def cancel(self) -> None:
        self._handle.cancel()


class ProgressScheduler:
    """Turns reader events into calls of one flush coroutine."""

    def __init__(
        self,
        flush_callback: Callable[[], Awaitable[object]],
        throttle_interval: float = 0.5,
        debounce_delay: float = 2.0,
        periodic_interval: float = 10.0,
    ):
        self._flush_callback = flush_callback
        self.throttle_interval = throttle_interval
        self.debounce_delay = debounce_delay
        self.periodic_interval = periodic_interval

        # Created on first flush so it belongs to the running loop
        self._lock: Optional[asyncio.Lock] = None
        self._tasks: Set[asyncio.Task] = set()
        self._last_sample: Optional[float] = None
        self._trailing: Optional[CancellableTimer] = None
        self._debounce: Optional[CancellableTimer] = None
        self._periodic: Optional[CancellableTimer] = None
        self._running = False
        self.flush_count = 0

    # =========================================================================
    # FLUSH
    # =========================================================================

    async def flush(self, reason: str = 'manual') -> None:
        """Run the update once. Concurrent flushes are serialized."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            await self._flush_callback()
            self.flush_count += 1
        logger.debug(f"Progress flush ({reason})")

    def _schedule_flush(self, reason: str) -> None:
        task = asyncio.get_running_loop().create_task(self.flush(reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def on_viewport_change(self) -> None:
        now = asyncio.get_running_loop().time()
        if self._last_sample is None or now - self._last_sample >= self.throttle_interval:
            self._last_sample = now
            self._schedule_flush('viewport')
            return

        # Inside the window: make sure the final position still gets sampled
        if self._trailing is None or not self._trailing.active:
            remaining = self.throttle_interval - (now - self._last_sample)
            self._trailing = CancellableTimer(remaining, self._trailing_flush)

    def _trailing_flush(self) -> None:
        self._trailing = None
        self._last_sample = asyncio.get_running_loop().time()
        self._schedule_flush('viewport-trailing')

    def on_visibility_hidden(self) -> None:
        self._schedule_flush('visibility')

    def on_focus_lost(self) -> None:
        self._schedule_flush('focus')

    def on_activity(self) -> None:
        """Pointer or keyboard activity."""
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = CancellableTimer(self.debounce_delay, self._debounced_flush)

    def _debounced_flush(self) -> None:
        self._debounce = None
        self._schedule_flush('activity')

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._arm_periodic()

    def _arm_periodic(self) -> None:
        self._periodic = CancellableTimer(self.periodic_interval, self._periodic_tick)

    def _periodic_tick(self) -> None:
        if not self._running:
            return
        self._schedule_flush('periodic')
        self._arm_periodic()

    def cancel_timers(self) -> None:
        self._running = False
        for timer in (self._trailing, self._debounce, self._periodic):
            if timer is not None:
                timer.cancel()
        self._trailing = self._debounce = self._periodic = None

    async def stop(self) -> None:
        """Page leave: drop pending timers, wait for in-flight flushes, flush once more."""
        self.cancel_timers()
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
        await self.flush('leave')
