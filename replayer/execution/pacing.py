"""Replay pacing and duplicate action suppression."""

from typing import Optional

import structlog

from ..recording.models import Action, get_selector
from .clock import Clock
from .models import RunOptions

logger = structlog.get_logger()

# Two identical actions closer than this are one recorded event captured twice
DUPLICATE_WINDOW_MS = 500


def compute_delay_ms(target_offset_ms: float, elapsed_ms: float, max_delay_ms: float) -> float:
    """Delay needed to reach a target offset, clamped to [0, max_delay_ms]."""
    return max(0.0, min(target_offset_ms - elapsed_ms, max_delay_ms))


class ActionPacer:
    """Keeps replay on the recorded timeline, scaled by the speed multiplier."""

    def __init__(self, options: RunOptions, clock: Clock):
        self.options = options
        self.clock = clock
        self.multiplier = options.speed_multiplier_for_run()
        self._started_at: Optional[float] = None

    def start(self) -> None:
        self._started_at = self.clock.now_ms()

    def delay_for(self, action: Action, index: int) -> float:
        """Milliseconds to wait before the action at ``index`` (0-based)."""
        if index == 0 or not self.options.enable_timing or self.multiplier <= 0:
            return 0.0
        if self._started_at is None:
            self.start()
        elapsed = self.clock.now_ms() - self._started_at
        return compute_delay_ms(
            action.timestamp * self.multiplier,
            elapsed,
            self.options.max_action_delay_ms,
        )

    async def wait(self, action: Action, index: int) -> float:
        delay = self.delay_for(action, index)
        if delay > 0:
            logger.debug("Pacing delay", action_id=action.id, delay_ms=round(delay))
            await self.clock.sleep(delay)
        return delay


class DuplicateDetector:
    """Flags an action that repeats the previously executed one.

    An action is a duplicate when the last executed action ran less than the
    window ago, has the same type, and has a structurally identical selector.
    Actions without an element selector are never duplicates.
    """

    def __init__(self, clock: Clock, window_ms: float = DUPLICATE_WINDOW_MS):
        self.clock = clock
        self.window_ms = window_ms
        self._last_signature: Optional[tuple[str, str]] = None
        self._last_at: Optional[float] = None

    @staticmethod
    def signature(action: Action) -> Optional[tuple[str, str]]:
        selector = get_selector(action)
        if selector is None or not selector.candidates:
            return None
        return action.type.value, selector.signature()

    def is_duplicate(self, action: Action) -> bool:
        signature = self.signature(action)
        if signature is None or self._last_signature is None or self._last_at is None:
            return False
        if self.clock.now_ms() - self._last_at >= self.window_ms:
            return False
        return signature == self._last_signature

    def record(self, action: Action) -> None:
        """Remember an action that actually executed."""
        self._last_signature = self.signature(action)
        self._last_at = self.clock.now_ms()
