"""Reusable retry policy shared by element resolution and navigation."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog

from .clock import Clock

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Bounded retry schedule.

    An attempt that returns None counts as a miss. An attempt that raises one
    of ``retry_on`` counts as a miss too; any other exception propagates
    immediately. When the last attempt raised, that exception is re-raised.

    Example:
        policy = RetryPolicy(max_attempts=4, delays_ms=(1000, 2000, 3000))
        element = await policy.run(find_once, clock, between=wait_for_idle)
    """

    max_attempts: int = 4
    delays_ms: tuple[int, ...] = (1000, 2000, 3000)
    retry_on: tuple[type[BaseException], ...] = field(default_factory=tuple)
    name: str = "retry"

    def delay_before(self, attempt: int) -> int:
        """Delay before the given zero-based attempt (0 for the first)."""
        if attempt <= 0 or not self.delays_ms:
            return 0
        return self.delays_ms[min(attempt - 1, len(self.delays_ms) - 1)]

    async def run(
        self,
        attempt: Callable[[int], Awaitable[T | None]],
        clock: Clock,
        between: Callable[[int], Awaitable[Any]] | None = None,
    ) -> T | None:
        """Run ``attempt`` until it returns a value or attempts run out.

        Args:
            attempt: Coroutine factory receiving the zero-based attempt number
            clock: Clock used for the inter-attempt delays
            between: Optional side effect awaited before every retry
                (for example a bounded network-idle wait)

        Returns:
            The first non-None result, or None when every attempt missed
        """
        last_error: BaseException | None = None

        for number in range(self.max_attempts):
            if number > 0:
                delay = self.delay_before(number)
                logger.debug("Retrying", policy=self.name, attempt=number + 1, delay_ms=delay)
                await clock.sleep(delay)
                if between is not None:
                    await between(number)

            try:
                result = await attempt(number)
            except self.retry_on as e:
                last_error = e
                continue

            last_error = None
            if result is not None:
                return result

        if last_error is not None:
            raise last_error
        return None
