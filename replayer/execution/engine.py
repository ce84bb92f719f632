"""Replay engine: drives one recording through a live browser page.

Per action:
1. Pacing (recorded offset scaled by the speed multiplier, capped)
2. Duplicate suppression
3. Page-state validation and correction (not for navigation actions)
4. Dispatch by action kind
5. Error classification: fatal stops the run, expected counts as success,
   recoverable is recorded and followed by a bounded local recovery
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..browser.session import BrowserSession
from ..navigation.history import NavigationHistory
from ..navigation.urls import is_plausible_cross_domain
from ..recording.models import Action, NavigationAction, Recording
from ..resolution.locator import ElementLocator
from ..utils.logging import LogContext, log_operation
from .clock import Clock, SystemClock
from .dispatcher import ActionDispatcher
from .errors import ErrorSeverity, classify_error, is_fatal
from .models import (
    ActionError,
    ActionOutcome,
    ActionState,
    RunOptions,
    RunResult,
    RunState,
    RunStatus,
)
from .pacing import ActionPacer, DuplicateDetector
from .page_state import PageStateValidator
from .preprocessing import RecordingPreprocessor
from .reporter import NullReporter, ProgressReporter

logger = structlog.get_logger()

T = TypeVar("T")

RECOVERY_SETTLE_MS = 300
RECOVERY_IDLE_TIMEOUT_MS = 3000
SCREENSHOT_TIMEOUT_MS = 5000


class _RunCancelled(Exception):
    """Cancellation was requested while an action was in flight."""


class ReplayEngine:
    """Replays one recording and produces exactly one RunResult.

    An engine instance is single-use. ``cancel()`` may be called from any
    task; the run stops between actions or interrupts the action in flight,
    and the result is finalized as cancelled.

    Example:
        engine = ReplayEngine(RunOptions(timing_mode=TimingMode.FAST), StructlogReporter())
        result = await engine.execute(recording)
        print(result.status)
    """

    def __init__(
        self,
        options: RunOptions | None = None,
        reporter: ProgressReporter | None = None,
        clock: Clock | None = None,
        session_factory: Callable[[Recording], BrowserSession] | None = None,
        resolver: ElementLocator | None = None,
        navigator: NavigationHistory | None = None,
    ):
        self.options = options or RunOptions()
        self.reporter = reporter or NullReporter()
        self.clock = clock or SystemClock()
        self._session_factory = session_factory or self._default_session
        self.navigator = navigator or NavigationHistory(self.clock)
        self.resolver = resolver or ElementLocator(self.clock)
        self.dispatcher = ActionDispatcher(self.resolver, self.navigator, self.clock, self.options)
        self.page_state = PageStateValidator(self.navigator, self.options.timeout_ms, self.reporter)
        self.pacer = ActionPacer(self.options, self.clock)
        self.duplicates = DuplicateDetector(self.clock)
        self.preprocessor = RecordingPreprocessor(self.reporter)
        self.state = RunState.NOT_STARTED
        self._cancel_requested = asyncio.Event()
        self.log = logger.bind(component="replay_engine")

    def _default_session(self, recording: Recording) -> BrowserSession:
        return BrowserSession(self.options, recording.viewport, recording.user_agent)

    def cancel(self) -> None:
        """Request cooperative cancellation of the run."""
        if not self._cancel_requested.is_set():
            self.log.info("Cancellation requested")
            self._cancel_requested.set()

    async def execute(self, recording: Recording) -> RunResult:
        """Replay a recording.

        Raises:
            RuntimeError: If this engine already ran
        """
        if self.state != RunState.NOT_STARTED:
            raise RuntimeError("ReplayEngine runs a single recording; create a new engine per run")
        self.state = RunState.RUNNING
        started_at = self.clock.now_ms()

        result = RunResult(
            test_name=recording.test_name,
            actions_total=len(recording.actions),
            timing_enabled=self.options.enable_timing,
        )

        with LogContext(run_id=uuid.uuid4().hex[:12], recording_id=recording.id):
            actions = self.preprocessor.run(list(recording.actions))
            result.actions_total = len(actions)
            self.reporter.on_start(recording.test_name, len(actions))

            terminal: Optional[RunStatus] = None
            session = self._session_factory(recording)
            try:
                page = await self._open(session, recording, result)
                if page is None:
                    terminal = RunStatus.FAILED
                else:
                    terminal = await self._run_actions(page, actions, result, recording.hostnames())
            finally:
                await session.close()
                result.video_path = session.video_path

            status = terminal or result.aggregate_status()
            result.finalize(status, int(self.clock.now_ms() - started_at))
            self.state = RunState.CANCELLED if status == RunStatus.CANCELLED else RunState.COMPLETED
            self.log.info(
                "Run finished",
                status=status.value,
                executed=result.actions_executed,
                failed=result.actions_failed,
                skipped=result.actions_skipped,
            )
            self.reporter.on_complete(result)

        return result

    async def _open(self, session: BrowserSession, recording: Recording, result: RunResult) -> Optional[Page]:
        """Launch the browser and load the start URL; None aborts the run."""
        try:
            with log_operation("open_start_page", logger=self.log, url=recording.url):
                page = await session.start()
                await page.goto(recording.url, wait_until="domcontentloaded", timeout=self.options.timeout_ms)
        except Exception as e:
            result.abort_reason = f"{type(e).__name__}: {e}"
            self.reporter.on_diagnostic("error", "run_aborted", reason=result.abort_reason)
            return None

        self.navigator.record_navigation(page.url or recording.url, "initial")
        return page

    async def _run_actions(
        self,
        page: Page,
        actions: list[Action],
        result: RunResult,
        known_hosts: set[str],
    ) -> Optional[RunStatus]:
        """Execute actions in order; returns a status only when the run stops early."""
        self.pacer.start()

        for index, action in enumerate(actions):
            if self._cancel_requested.is_set():
                return RunStatus.CANCELLED
            try:
                await self._until_cancelled(self.pacer.wait(action, index))
            except _RunCancelled:
                return RunStatus.CANCELLED

            outcome = ActionOutcome(index=index + 1, action_id=action.id, action_type=action.type.value)
            if self.duplicates.is_duplicate(action):
                outcome.state = ActionState.SKIPPED
                result.outcomes.append(outcome)
                result.actions_skipped += 1
                self.reporter.on_diagnostic(
                    "info", "duplicate_action_skipped", action_id=action.id, action_type=action.type.value
                )
                continue

            outcome.state = ActionState.EXECUTING
            self.reporter.on_action_start(action, index + 1)
            action_started = self.clock.now_ms()
            try:
                await self._until_cancelled(self._execute(page, action))
            except _RunCancelled:
                return RunStatus.CANCELLED
            except Exception as e:
                outcome.duration_ms = int(self.clock.now_ms() - action_started)
                severity = classify_error(e)
                if severity == ErrorSeverity.EXPECTED:
                    self.reporter.on_diagnostic(
                        "info", "navigation_side_effect", action_id=action.id, error=str(e)
                    )
                    self._succeeded(action, outcome, result)
                    continue

                await self._record_failure(page, action, e, outcome, result)
                if severity == ErrorSeverity.FATAL:
                    self.log.error("Browser lost, stopping run", action_id=action.id, error=str(e))
                    return RunStatus.FAILED
                if not await self._recover(page, action, known_hosts):
                    return RunStatus.FAILED
                continue

            outcome.duration_ms = int(self.clock.now_ms() - action_started)
            self._succeeded(action, outcome, result)

        return None

    async def _execute(self, page: Page, action: Action) -> None:
        if not isinstance(action, NavigationAction):
            await self.page_state.ensure(page, action.url)
        await self.dispatcher.dispatch(page, action)

    async def _until_cancelled(self, operation: Awaitable[T]) -> T:
        """Await an operation unless cancellation is requested first."""
        task = asyncio.ensure_future(operation)
        cancel_wait = asyncio.ensure_future(self._cancel_requested.wait())
        try:
            done, _ = await asyncio.wait({task, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancel_wait.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.log.debug("Interrupted action raised while cancelling", error=str(e))
        raise _RunCancelled()

    def _succeeded(self, action: Action, outcome: ActionOutcome, result: RunResult) -> None:
        outcome.state = ActionState.SUCCEEDED
        result.outcomes.append(outcome)
        result.actions_executed += 1
        self.duplicates.record(action)
        self.reporter.on_action_success(action, outcome.index, outcome.duration_ms)

    async def _record_failure(
        self,
        page: Page,
        action: Action,
        error: Exception,
        outcome: ActionOutcome,
        result: RunResult,
    ) -> None:
        screenshot = await self._capture_screenshot(page) if self.options.screenshot else None
        result.errors.append(
            ActionError(
                action_id=action.id,
                action_type=action.type.value,
                error=str(error),
                error_type=type(error).__name__,
                screenshot=screenshot,
            )
        )
        outcome.state = ActionState.FAILED
        result.outcomes.append(outcome)
        result.actions_failed += 1
        self.reporter.on_action_error(action, outcome.index, error)

    async def _capture_screenshot(self, page: Page) -> Optional[bytes]:
        if page.is_closed():
            return None
        try:
            return await page.screenshot(timeout=SCREENSHOT_TIMEOUT_MS)
        except PlaywrightError as e:
            self.log.debug("Error screenshot failed", error=str(e))
            return None

    async def _recover(self, page: Page, action: Action, known_hosts: set[str]) -> bool:
        """Local recovery after a recoverable failure.

        Returns:
            False if the browser turned out to be gone
        """
        if action.url and is_plausible_cross_domain(action.url, page.url, known_hosts):
            self.reporter.on_diagnostic(
                "info", "cross_domain_navigation_accepted", expected=action.url, actual=page.url
            )
            return True

        steps = (
            lambda: page.keyboard.press("Escape"),
            lambda: self.clock.sleep(RECOVERY_SETTLE_MS),
            lambda: page.wait_for_load_state("networkidle", timeout=RECOVERY_IDLE_TIMEOUT_MS),
        )
        for step in steps:
            try:
                await step()
            except PlaywrightError as e:
                if is_fatal(e):
                    self.log.error("Browser lost during recovery", action_id=action.id, error=str(e))
                    return False
                self.log.debug("Recovery step failed", action_id=action.id, error=str(e))
        return True


async def run_recording(
    recording: Recording,
    options: RunOptions | None = None,
    reporter: ProgressReporter | None = None,
) -> RunResult:
    """Replay a recording with a fresh engine.

    Example:
        result = await run_recording(recording, RunOptions(headless=False))
    """
    engine = ReplayEngine(options=options, reporter=reporter)
    return await engine.execute(recording)
