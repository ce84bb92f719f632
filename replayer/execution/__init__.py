"""Replay execution for recorded browser sessions.

Provides:
- ReplayEngine: drives one recording through a live page
- ActionDispatcher: per-kind action handlers
- Pacing, duplicate suppression and page-state correction
- Error classification and retry policies
"""

from .clock import Clock, ManualClock, SystemClock
from .errors import (
    ActionTimeoutError,
    BrowserFatalError,
    ElementNotFoundError,
    ErrorSeverity,
    NavigationTimeoutError,
    PageStateMismatchError,
    ReplayError,
    classify_error,
    is_fatal,
)
from .retry import RetryPolicy
from .models import (
    ActionError,
    ActionOutcome,
    ActionState,
    BrowserKind,
    RunOptions,
    RunResult,
    RunState,
    RunStatus,
    TimingMode,
)
from .reporter import NullReporter, ProgressReporter, StructlogReporter
from .engine import ReplayEngine, run_recording

__all__ = [
    # Engine
    "ReplayEngine",
    "run_recording",
    # Models
    "ActionError",
    "ActionOutcome",
    "ActionState",
    "BrowserKind",
    "RunOptions",
    "RunResult",
    "RunState",
    "RunStatus",
    "TimingMode",
    # Reporting
    "ProgressReporter",
    "NullReporter",
    "StructlogReporter",
    # Errors
    "ReplayError",
    "ElementNotFoundError",
    "PageStateMismatchError",
    "NavigationTimeoutError",
    "ActionTimeoutError",
    "BrowserFatalError",
    "ErrorSeverity",
    "classify_error",
    "is_fatal",
    # Timing
    "Clock",
    "SystemClock",
    "ManualClock",
    "RetryPolicy",
]
