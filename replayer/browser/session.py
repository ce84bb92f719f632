"""Playwright browser session scoped to one replay run."""

from pathlib import Path
from typing import Optional

import structlog
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from ..execution.models import BrowserKind, RunOptions
from ..recording.models import Viewport

logger = structlog.get_logger()


class BrowserSession:
    """
    Owns the browser, context and page of a single run.

    Resources are released page first, then context, then browser, then the
    Playwright driver, on every exit path.

    Usage:
        async with BrowserSession(options, recording.viewport) as page:
            await page.goto(recording.url)
    """

    def __init__(
        self,
        options: RunOptions | None = None,
        viewport: Viewport | None = None,
        user_agent: str | None = None,
    ):
        self.options = options or RunOptions()
        self.viewport = viewport or Viewport()
        self.user_agent = user_agent or None
        self.video_path: Optional[str] = None
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self.log = logger.bind(component="browser_session")

    @property
    def page(self) -> Optional[Page]:
        return self._page

    async def start(self) -> Page:
        """Launch the browser and open the run's page."""
        browser_kind = BrowserKind(self.options.browser)
        self.log.info("Starting browser", browser=browser_kind.value, headless=self.options.headless)

        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, browser_kind.value)
        self._browser = await launcher.launch(headless=self.options.headless)

        context_options = {"viewport": self.viewport.to_dict()}
        if self.user_agent:
            context_options["user_agent"] = self.user_agent
        if self.options.video:
            Path(self.options.video_dir).mkdir(parents=True, exist_ok=True)
            context_options["record_video_dir"] = self.options.video_dir
            context_options["record_video_size"] = self.viewport.to_dict()

        self._context = await self._browser.new_context(**context_options)
        self._context.set_default_timeout(self.options.timeout_ms)
        self._page = await self._context.new_page()

        self.log.info("Browser started")
        return self._page

    async def close(self) -> None:
        """Release page, context, browser and driver, in that order."""
        if self._page is not None:
            if self._page.video is not None:
                try:
                    self.video_path = str(await self._page.video.path())
                except Exception as e:
                    self.log.warning("Could not read video path", error=str(e))
            await self._release("page", self._page.close)
            self._page = None
        if self._context is not None:
            await self._release("context", self._context.close)
            self._context = None
        if self._browser is not None:
            await self._release("browser", self._browser.close)
            self._browser = None
        if self._playwright is not None:
            await self._release("playwright", self._playwright.stop)
            self._playwright = None
        self.log.info("Browser stopped")

    async def _release(self, name: str, close) -> None:
        try:
            await close()
        except Exception as e:
            # Keep releasing the remaining resources
            self.log.warning("Failed to release browser resource", resource=name, error=str(e))

    async def __aenter__(self) -> Page:
        try:
            return await self.start()
        except BaseException:
            await self.close()
            raise

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
