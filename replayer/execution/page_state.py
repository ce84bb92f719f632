"""Page-state validation and correction before each action."""

from dataclasses import dataclass

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..navigation.history import NavigationHistory
from ..navigation.urls import urls_match
from .errors import BrowserFatalError, PageStateMismatchError, is_fatal
from .reporter import NullReporter, ProgressReporter

logger = structlog.get_logger()


@dataclass
class PageStateCheck:
    """Result of a successful validation."""

    corrected: bool
    method: str = "none"


class PageStateValidator:
    """Makes sure the live page is the one an action was recorded on.

    Correction order on mismatch:
    1. History-aware navigation
    2. Direct navigation to the expected URL
    3. One final direct navigation waiting for the full load
    """

    def __init__(
        self,
        navigator: NavigationHistory,
        timeout_ms: int = 30000,
        reporter: ProgressReporter | None = None,
    ):
        self.navigator = navigator
        self.timeout_ms = timeout_ms
        self.reporter = reporter or NullReporter()
        self.log = logger.bind(component="page_state")

    async def ensure(self, page: Page, expected_url: str) -> PageStateCheck:
        """Validate, and correct if needed, the page for an action.

        Raises:
            PageStateMismatchError: If every correction attempt failed
            BrowserFatalError: If the page or browser is gone
        """
        if not expected_url or urls_match(page.url, expected_url):
            return PageStateCheck(corrected=False)

        actual = page.url
        self.reporter.on_diagnostic("info", "page_state_mismatch", expected=expected_url, actual=actual)

        outcome = await self.navigator.navigate(page, expected_url, self.timeout_ms)
        if outcome.success and urls_match(page.url, expected_url):
            return self._corrected(outcome.method.value, expected_url)

        for method, wait_until in (("reload", "domcontentloaded"), ("final-goto", "load")):
            try:
                await page.goto(expected_url, wait_until=wait_until, timeout=self.timeout_ms)
            except PlaywrightError as e:
                if is_fatal(e):
                    raise BrowserFatalError(str(e)) from e
                self.log.debug("Page state correction failed", method=method, error=str(e))
                continue
            if urls_match(page.url, expected_url):
                self.navigator.record_navigation(page.url, method)
                return self._corrected(method, expected_url)

        raise PageStateMismatchError(expected_url, page.url)

    def _corrected(self, method: str, expected_url: str) -> PageStateCheck:
        self.reporter.on_diagnostic("info", "page_state_corrected", expected=expected_url, method=method)
        return PageStateCheck(corrected=True, method=method)
