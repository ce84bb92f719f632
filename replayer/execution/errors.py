"""Error taxonomy and severity classification for replay runs.

Per-action failures (element not found, page-state mismatch, timeouts and
anything else classified recoverable) are recorded on the run result and
execution continues. Fatal errors stop the run. Expected errors signal that
the page navigated underneath an action and count as success.
"""

from enum import Enum


class ReplayError(Exception):
    """Base exception for replay failures."""

    pass


class ElementNotFoundError(ReplayError):
    """No live element could be resolved for a selector."""

    def __init__(self, description: str = "", detail: str | None = None):
        message = f"Element not found: {description}" if description else "Element not found"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.description = description


class PageStateMismatchError(ReplayError):
    """The live page is not the page the action expects."""

    def __init__(self, expected_url: str, actual_url: str):
        super().__init__(f"Page state mismatch: expected {expected_url}, but page is on {actual_url}")
        self.expected_url = expected_url
        self.actual_url = actual_url


class NavigationTimeoutError(ReplayError):
    """A navigation did not reach its target within the bound."""

    pass


class ActionTimeoutError(ReplayError):
    """A bounded wait inside an action expired."""

    pass


class BrowserFatalError(ReplayError):
    """The browser, context or page is gone; the run cannot continue."""

    pass


class ErrorSeverity(str, Enum):
    """How the engine reacts to an error raised while executing an action."""

    FATAL = "fatal"  # Stop the run
    RECOVERABLE = "recoverable"  # Record, recover locally, continue
    EXPECTED = "expected"  # Navigation side effect, counts as success


FATAL_MARKERS = (
    "browser has been closed",
    "context has been closed",
    "target closed",
)

NAVIGATION_CLOSED_MARKER = "target page, context or browser has been closed"


def classify_error(error: BaseException) -> ErrorSeverity:
    """Classify an error raised during action dispatch.

    Works on both the replay taxonomy and raw driver errors, whose only
    reliable signal is their message text.

    Args:
        error: The exception to classify

    Returns:
        The severity the engine should apply
    """
    if isinstance(error, BrowserFatalError):
        return ErrorSeverity.FATAL
    if isinstance(error, ReplayError):
        return ErrorSeverity.RECOVERABLE

    message = str(error).lower()
    if any(marker in message for marker in FATAL_MARKERS):
        return ErrorSeverity.FATAL
    if ("navigation" in message and "timeout" not in message) or "page navigated" in message:
        return ErrorSeverity.EXPECTED
    return ErrorSeverity.RECOVERABLE


def is_fatal(error: BaseException) -> bool:
    """Whether an error means the browser session is gone."""
    return classify_error(error) == ErrorSeverity.FATAL
