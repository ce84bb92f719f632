"""Navigation history tracking and history-aware navigation.

The history serves two purposes within one run:
- An append-only log of every navigation that happened (issued here or
  inferred from click and submit side effects)
- A model of the browser's back/forward stack so that returning to a page
  seen earlier can reuse the browser history instead of reloading
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..execution.clock import Clock, SystemClock
from ..execution.errors import BrowserFatalError, is_fatal
from ..execution.retry import RetryPolicy
from .urls import urls_match

logger = structlog.get_logger()

# Longest back/forward walk attempted before falling back to goto
MAX_HISTORY_STEPS = 5

# Bound for each individual back/forward step
HISTORY_STEP_TIMEOUT_MS = 5000


class NavigationMethod(str, Enum):
    """How a navigation request was satisfied."""

    ALREADY_THERE = "already-there"
    GO_BACK = "go-back"
    GO_FORWARD = "go-forward"
    GOTO = "goto"
    GOTO_FALLBACK = "goto-fallback"  # History walk missed, direct navigation worked
    ALL_FAILED = "all-failed"


@dataclass(frozen=True)
class NavigationEntry:
    """One recorded navigation."""

    url: str
    timestamp: float  # Clock milliseconds
    method: str = "observed"


@dataclass
class NavigationOutcome:
    """Result of NavigationHistory.navigate."""

    success: bool
    method: NavigationMethod
    url: Optional[str] = None
    error: Optional[str] = None


class NavigationHistory:
    """Tracks visited URLs and reconciles the live page with a target URL.

    Scoped to one run; nothing is persisted.

    Example:
        history = NavigationHistory(clock)
        history.record_navigation(page.url)
        outcome = await history.navigate(page, "https://shop.test/cart", timeout_ms=30000)
        if not outcome.success:
            ...
    """

    def __init__(
        self,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.clock = clock or SystemClock()
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=2,
            delays_ms=(500,),
            retry_on=(PlaywrightError,),
            name="goto",
        )
        self.entries: list[NavigationEntry] = []
        self._stack: list[str] = []
        self._index = -1
        self.log = logger.bind(component="navigation_history")

    def record_navigation(self, url: str, method: str = "observed") -> None:
        """Append a navigation to the log and push it onto the session stack."""
        self.entries.append(NavigationEntry(url=url, timestamp=self.clock.now_ms(), method=method))

        if self._index >= 0 and urls_match(self._stack[self._index], url):
            self._stack[self._index] = url
            return

        # A new page drops any forward history, as in a real browser
        del self._stack[self._index + 1:]
        self._stack.append(url)
        self._index = len(self._stack) - 1
        self.log.debug("Navigation recorded", url=url, method=method, depth=len(self._stack))

    def current_url(self) -> Optional[str]:
        """URL at the current position of the session stack."""
        if self._index < 0:
            return None
        return self._stack[self._index]

    def urls(self) -> list[str]:
        """Every URL in the append-only log, oldest first."""
        return [entry.url for entry in self.entries]

    def _find_in_stack(self, target_url: str) -> Optional[int]:
        """Index of the nearest stack entry matching the target, if any."""
        matches = [
            i for i, url in enumerate(self._stack)
            if i != self._index and urls_match(url, target_url)
        ]
        if not matches:
            return None
        return min(matches, key=lambda i: abs(i - self._index))

    async def navigate(
        self,
        page: Page,
        target_url: str,
        timeout_ms: int = 30000,
        wait_until: str = "domcontentloaded",
    ) -> NavigationOutcome:
        """Bring the page to ``target_url``.

        Tries, in order: already there, a back/forward walk to an equal entry
        in history, then a direct navigation.

        Raises:
            BrowserFatalError: If the page or browser is gone
        """
        if urls_match(page.url, target_url):
            if not urls_match(self.current_url(), page.url):
                self.record_navigation(page.url, NavigationMethod.ALREADY_THERE.value)
            return NavigationOutcome(True, NavigationMethod.ALREADY_THERE, page.url)

        walked = False
        position = self._find_in_stack(target_url)
        if position is not None and abs(position - self._index) <= MAX_HISTORY_STEPS:
            walked = True
            method = await self._walk_history(page, position, target_url)
            if method is not None:
                return NavigationOutcome(True, method, page.url)

        outcome = await self._goto(page, target_url, timeout_ms, wait_until)
        if outcome.success and walked:
            outcome.method = NavigationMethod.GOTO_FALLBACK
        return outcome

    async def _walk_history(
        self,
        page: Page,
        position: int,
        target_url: str,
    ) -> Optional[NavigationMethod]:
        distance = position - self._index
        method = NavigationMethod.GO_BACK if distance < 0 else NavigationMethod.GO_FORWARD
        step = page.go_back if distance < 0 else page.go_forward

        self.log.info("Navigating through history", target=target_url, method=method.value, steps=abs(distance))
        try:
            for _ in range(abs(distance)):
                await step(wait_until="domcontentloaded", timeout=HISTORY_STEP_TIMEOUT_MS)
        except PlaywrightError as e:
            if is_fatal(e):
                raise BrowserFatalError(str(e)) from e
            self.log.debug("History walk failed", target=target_url, error=str(e))
            self._resync(page.url, position)
            return None

        if not urls_match(page.url, target_url):
            self.log.debug("History walk landed elsewhere", target=target_url, landed=page.url)
            self._resync(page.url, position)
            return None

        self._index = position
        self.entries.append(NavigationEntry(url=page.url, timestamp=self.clock.now_ms(), method=method.value))
        return method

    def _resync(self, landed_url: str, position: int) -> None:
        """Move the stack position to where a partial walk left the browser."""
        low, high = sorted((self._index, position))
        matches = [i for i in range(low, high + 1) if urls_match(self._stack[i], landed_url)]
        if not matches:
            return
        self._index = min(matches, key=lambda i: abs(i - position))
        self.log.debug("History position resynced", url=landed_url, index=self._index)

    async def _goto(
        self,
        page: Page,
        target_url: str,
        timeout_ms: int,
        wait_until: str,
    ) -> NavigationOutcome:
        async def attempt(number: int) -> bool:
            try:
                await page.goto(target_url, wait_until=wait_until, timeout=timeout_ms)
            except PlaywrightError as e:
                if is_fatal(e):
                    raise BrowserFatalError(str(e)) from e
                self.log.debug("Direct navigation attempt failed", target=target_url, attempt=number + 1, error=str(e))
                raise
            return True

        try:
            await self.retry_policy.run(attempt, self.clock)
        except PlaywrightError as e:
            self.log.warning("All navigation methods failed", target=target_url, error=str(e))
            return NavigationOutcome(False, NavigationMethod.ALL_FAILED, page.url, error=str(e))

        self.record_navigation(page.url, NavigationMethod.GOTO.value)
        return NavigationOutcome(True, NavigationMethod.GOTO, page.url)
