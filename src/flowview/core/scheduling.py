"""
Scheduling Contracts.

The engine is single-threaded and event driven. The only deferred work is:
- a leading-plus-trailing throttle on virtualization during continuous
  pan/zoom (at most once per frame), and
- a debounce on resize-triggered fit-to-view.

Both are expressed against an injectable Scheduler so the host can drive
them from its own frame loop, and tests can drive them deterministically
with ManualScheduler.
"""

from __future__ import annotations

import heapq
import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus one-shot timers, in milliseconds."""

    def now(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle: ...


@dataclass(order=True)
class _ScheduledCall:
    due: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler advanced explicitly by the caller.

    Hosts that own a frame loop call advance() once per frame; tests call it
    to step time without sleeping.
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms
        self._queue: List[_ScheduledCall] = []
        self._sequence = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> _ScheduledCall:
        call = _ScheduledCall(self._now + max(0.0, delay_ms), next(self._sequence), callback)
        heapq.heappush(self._queue, call)
        return call

    def advance(self, delta_ms: float) -> int:
        """Move the clock forward, running every timer that falls due in order."""
        target = self._now + delta_ms
        fired = 0
        while self._queue and self._queue[0].due <= target:
            call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self._now = call.due
            call.callback()
            fired += 1
        self._now = target
        return fired

    @property
    def pending(self) -> int:
        return sum(1 for call in self._queue if not call.cancelled)


class MonotonicScheduler:
    """
    Wall-clock scheduler for hosts without their own timer facility.

    Timers are not fired on a background thread; the host calls poll() from
    its event loop, keeping every mutation on the single event thread.
    """

    def __init__(self):
        self._inner = ManualScheduler(start_ms=self._clock())

    @staticmethod
    def _clock() -> float:
        return time.monotonic() * 1000.0

    def now(self) -> float:
        return self._clock()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        self._sync()
        return self._inner.call_later(delay_ms, callback)

    def poll(self) -> int:
        """Run every timer that is due by now."""
        return self._sync()

    def _sync(self) -> int:
        return self._inner.advance(max(0.0, self._clock() - self._inner.now()))


class FrameThrottle:
    """
    Leading-edge plus trailing throttle.

    The first call in a quiet period runs immediately; calls inside the
    interval collapse into one trailing run at the end of the interval.
    """

    def __init__(self, scheduler: Scheduler, callback: Callable[[], None], interval_ms: float):
        self._scheduler = scheduler
        self._callback = callback
        self._interval = interval_ms
        self._last_run: Optional[float] = None
        self._pending: Optional[TimerHandle] = None

    def __call__(self) -> None:
        now = self._scheduler.now()
        elapsed = None if self._last_run is None else now - self._last_run

        if elapsed is None or elapsed >= self._interval:
            self._run()
        elif self._pending is None:
            self._pending = self._scheduler.call_later(self._interval - elapsed, self._trailing)

    def flush(self) -> None:
        """Run now, unthrottled, dropping any pending trailing call."""
        self.cancel()
        self._run()

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def _trailing(self) -> None:
        self._pending = None
        self._run()

    def _run(self) -> None:
        self._last_run = self._scheduler.now()
        self._callback()


class Debouncer:
    """Runs the callback once after delay_ms of quiescence."""

    def __init__(self, scheduler: Scheduler, callback: Callable[[], None], delay_ms: float):
        self._scheduler = scheduler
        self._callback = callback
        self._delay = delay_ms
        self._pending: Optional[TimerHandle] = None

    def __call__(self) -> None:
        self.cancel()
        self._pending = self._scheduler.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def _fire(self) -> None:
        self._pending = None
        self._callback()
