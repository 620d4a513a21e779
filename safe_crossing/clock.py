"""Logical clock, cadences and delayed callbacks driving the simulation.

Every timer in the system is expressed against a single :class:`SimulationClock`
that advances in fixed steps.  Periodic work (the 100 ms motion tick, the 5 s
learning sample, the 3 s health fluctuation) is modelled with :class:`Cadence`
counters and one-shot delays (amber/red phases, deferred requests, audio
pauses) with the :class:`Scheduler`.  Nothing here touches wall-clock time, so
tests can drive hours of simulated traffic deterministically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import heapq
import logging
from typing import Any, Callable, List, Tuple

logger = logging.getLogger(__name__)

_EPSILON = 1e-9


class SimulationClock:
    """Monotonic logical clock measured in seconds."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("the simulation clock cannot run backwards")
        # rounding keeps repeated 0.1 s steps landing on exact cadence boundaries
        self.now = round(self.now + seconds, 9)
        return self.now


class Cadence:
    """Fixed-interval counter checked against a shared clock."""

    def __init__(self, name: str, interval: float, clock: Callable[[], float]) -> None:
        if interval <= 0:
            raise ValueError(f"cadence {name!r} needs a positive interval")
        self.name = name
        self.interval = interval
        self._clock = clock
        self.next_due = clock() + interval

    def due(self) -> int:
        """Return how many periods elapsed since the last call and rearm."""

        now = self._clock()
        fired = 0
        while now + _EPSILON >= self.next_due:
            self.next_due += self.interval
            fired += 1
        return fired

    def reset(self) -> None:
        self.next_due = self._clock() + self.interval


@dataclass(slots=True)
class Timer:
    """Handle returned by :meth:`Scheduler.call_later`."""

    deadline: float
    callback: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    label: str = ""
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)


@dataclass(slots=True)
class Scheduler:
    """One-shot delayed callbacks ordered by deadline, then by insertion."""

    clock: Callable[[], float]
    _queue: List[Tuple[float, int, Timer]] = field(default_factory=list)
    _sequence: int = 0

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any, label: str = ""
    ) -> Timer:
        timer = Timer(
            deadline=self.clock() + max(0.0, delay),
            callback=callback,
            args=args,
            label=label or getattr(callback, "__name__", "callback"),
        )
        heapq.heappush(self._queue, (timer.deadline, self._sequence, timer))
        self._sequence += 1
        return timer

    def run_due(self) -> int:
        """Fire every live timer whose deadline has passed; return how many ran."""

        ran = 0
        while self._queue and self._queue[0][0] <= self.clock() + _EPSILON:
            _, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            timer.fired = True
            logger.debug("Firing timer %s at t=%.1f", timer.label, self.clock())
            timer.callback(*timer.args)
            ran += 1
        return ran

    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if timer.active)

    def cancel_all(self) -> None:
        for _, _, timer in self._queue:
            timer.cancel()
        self._queue.clear()
