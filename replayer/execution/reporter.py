"""Progress reporting for replay runs.

The engine never prints; lifecycle callbacks and diagnostic narration all go
through a ProgressReporter. Silent and batch runs use NullReporter.
"""

from typing import Any

import structlog

from ..recording.models import Action, get_selector
from .models import RunResult

logger = structlog.get_logger()


class ProgressReporter:
    """Lifecycle callbacks invoked by the ReplayEngine.

    Every method is a no-op; subclasses override what they need. Action
    indexes are 1-based.
    """

    def on_start(self, test_name: str, actions_total: int) -> None:
        pass

    def on_action_start(self, action: Action, index: int) -> None:
        pass

    def on_action_success(self, action: Action, index: int, duration_ms: int) -> None:
        pass

    def on_action_error(self, action: Action, index: int, error: BaseException) -> None:
        pass

    def on_complete(self, result: RunResult) -> None:
        pass

    def on_diagnostic(self, level: str, event: str, **fields: Any) -> None:
        """Structured diagnostic event (level is debug, info, warning or error)."""
        pass


class NullReporter(ProgressReporter):
    """Reporter that drops everything."""

    pass


class StructlogReporter(ProgressReporter):
    """Reporter that writes every callback to structlog.

    Usage:
        reporter = StructlogReporter()
        result = await run_recording(recording, reporter=reporter)
    """

    def __init__(self, **context: Any):
        self.log = logger.bind(component="replay_reporter", **context)
        self.test_name: str | None = None

    def on_start(self, test_name: str, actions_total: int) -> None:
        self.test_name = test_name
        self.log = self.log.bind(test_name=test_name)
        self.log.info("Replay started", actions_total=actions_total)

    def on_action_start(self, action: Action, index: int) -> None:
        selector = get_selector(action)
        self.log.debug(
            "Action started",
            index=index,
            action_id=action.id,
            action_type=action.type.value,
            target=selector.describe() if selector else None,
        )

    def on_action_success(self, action: Action, index: int, duration_ms: int) -> None:
        self.log.debug(
            "Action completed",
            index=index,
            action_id=action.id,
            action_type=action.type.value,
            duration_ms=duration_ms,
        )

    def on_action_error(self, action: Action, index: int, error: BaseException) -> None:
        self.log.error(
            "Action failed",
            index=index,
            action_id=action.id,
            action_type=action.type.value,
            error=str(error),
            error_type=type(error).__name__,
        )

    def on_complete(self, result: RunResult) -> None:
        self.log.info(
            "Replay completed",
            status=result.status.value,
            duration_ms=result.duration_ms,
            actions_executed=result.actions_executed,
            actions_failed=result.actions_failed,
            actions_skipped=result.actions_skipped,
        )

    def on_diagnostic(self, level: str, event: str, **fields: Any) -> None:
        log_method = getattr(self.log, level, self.log.info)
        log_method(event, **fields)
