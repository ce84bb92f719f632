"""Clock abstraction for pacing, settle delays and duplicate detection."""

import asyncio
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Source of monotonic time and suspension."""

    @abstractmethod
    def now_ms(self) -> float:
        """Current monotonic time in milliseconds."""

    @abstractmethod
    async def sleep(self, ms: float) -> None:
        """Suspend for ``ms`` milliseconds (no-op for non-positive values)."""


class SystemClock(Clock):
    """Wall-clock implementation backed by the event loop."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000

    async def sleep(self, ms: float) -> None:
        if ms > 0:
            await asyncio.sleep(ms / 1000)


class ManualClock(Clock):
    """Deterministic clock that advances only when told to.

    ``sleep`` advances time instantly and records the requested duration,
    so pacing logic can be asserted without waiting.

    Example:
        clock = ManualClock()
        await clock.sleep(250)
        assert clock.now_ms() == 250
        assert clock.sleeps == [250]
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms
        self.sleeps: list[float] = []

    def now_ms(self) -> float:
        return self._now

    def advance(self, ms: float) -> None:
        self._now += ms

    async def sleep(self, ms: float) -> None:
        self.sleeps.append(ms)
        if ms > 0:
            self._now += ms
        # Yield so cancellation and other tasks still get a turn
        await asyncio.sleep(0)
