"""Data models for replay runs.

This module defines the structures the ReplayEngine works with:
- RunOptions: Recognized run configuration keys
- TimingMode / BrowserKind: Enumerated option values
- RunState / ActionState: Run and per-action state machines
- ActionError / ActionOutcome: Per-action records
- RunResult: The single result produced by a run
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class TimingMode(str, Enum):
    """Replay pacing relative to the recorded timeline."""

    REALISTIC = "realistic"  # Recorded gaps as-is
    FAST = "fast"  # Quarter of the recorded gaps
    INSTANT = "instant"  # No pacing delays


TIMING_MODE_MULTIPLIERS = {
    TimingMode.INSTANT: 0.0,
    TimingMode.FAST: 0.25,
    TimingMode.REALISTIC: 1.0,
}


class BrowserKind(str, Enum):
    """Browser engines a run can launch."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class RunStatus(str, Enum):
    """Final status of a run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunState(str, Enum):
    """Lifecycle of a ReplayEngine instance."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ActionState(str, Enum):
    """Lifecycle of a single action within a run."""

    PENDING = "pending"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RunOptions:
    """Configuration for one replay run.

    Example:
        options = RunOptions(
            browser=BrowserKind.FIREFOX,
            timing_mode=TimingMode.FAST,
            screenshot=True,
        )
    """

    # Browser
    browser: BrowserKind = BrowserKind.CHROMIUM
    headless: bool = True

    # Capture toggles
    video: bool = False
    video_dir: str = "videos"
    screenshot: bool = False  # Attach a screenshot to each recorded error

    # Default bound for every driver operation
    timeout_ms: int = 30000

    # Pacing
    enable_timing: bool = True
    timing_mode: TimingMode = TimingMode.REALISTIC
    speed_multiplier: float = 1.0  # Any value other than 1.0 overrides timing_mode
    max_action_delay_ms: int = 30000

    def speed_multiplier_for_run(self) -> float:
        """Effective multiplier applied to recorded offsets."""
        if self.speed_multiplier != 1.0:
            return self.speed_multiplier
        return TIMING_MODE_MULTIPLIERS[TimingMode(self.timing_mode)]


@dataclass
class ActionError:
    """An error recorded against one action."""

    action_id: str
    action_type: str
    error: str
    error_type: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    screenshot: Optional[bytes] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage/API response."""
        return {
            "action_id": self.action_id,
            "action_type": self.action_type,
            "error": self.error,
            "error_type": self.error_type,
            "timestamp": self.timestamp.isoformat(),
            "has_screenshot": self.screenshot is not None,
        }


@dataclass
class ActionOutcome:
    """Final state of one action."""

    index: int
    action_id: str
    action_type: str
    state: ActionState = ActionState.PENDING
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "action_id": self.action_id,
            "action_type": self.action_type,
            "state": self.state.value,
            "duration_ms": self.duration_ms,
        }


@dataclass
class RunResult:
    """Result of one replay run.

    Created at run start, mutated only by the engine, finalized exactly once.
    Counters always satisfy
    ``actions_executed + actions_failed + actions_skipped == actions_attempted``.
    """

    test_name: str = ""
    status: RunStatus = RunStatus.PARTIAL
    duration_ms: int = 0
    actions_total: int = 0
    actions_executed: int = 0
    actions_failed: int = 0
    actions_skipped: int = 0
    errors: list[ActionError] = field(default_factory=list)
    outcomes: list[ActionOutcome] = field(default_factory=list)
    timing_enabled: bool = True
    video_path: Optional[str] = None
    abort_reason: Optional[str] = None
    finalized: bool = False

    @property
    def actions_attempted(self) -> int:
        return self.actions_executed + self.actions_failed + self.actions_skipped

    @property
    def cancelled(self) -> bool:
        return self.status == RunStatus.CANCELLED

    def aggregate_status(self) -> RunStatus:
        """Status implied by the counters alone."""
        if self.actions_failed == 0 and self.actions_executed > 0:
            return RunStatus.SUCCESS
        if self.actions_attempted > 0 and self.actions_failed == self.actions_attempted:
            return RunStatus.FAILED
        return RunStatus.PARTIAL

    def finalize(self, status: RunStatus, duration_ms: int) -> None:
        """Freeze the result with its final status.

        Raises:
            RuntimeError: If the result was already finalized
        """
        if self.finalized:
            raise RuntimeError("RunResult is already finalized")
        self.status = status
        self.duration_ms = duration_ms
        self.finalized = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage/API response."""
        return {
            "test_name": self.test_name,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "actions_total": self.actions_total,
            "actions_attempted": self.actions_attempted,
            "actions_executed": self.actions_executed,
            "actions_failed": self.actions_failed,
            "actions_skipped": self.actions_skipped,
            "errors": [e.to_dict() for e in self.errors],
            "outcomes": [o.to_dict() for o in self.outcomes],
            "timing_enabled": self.timing_enabled,
            "video_path": self.video_path,
            "abort_reason": self.abort_reason,
        }
