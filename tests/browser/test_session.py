"""Tests for BrowserSession."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from replayer.browser.session import BrowserSession
from replayer.execution.models import BrowserKind, RunOptions
from replayer.recording.models import Viewport


@pytest.fixture
def driver():
    """Mocked Playwright driver recording the release order."""
    released = []

    def closer(name):
        async def close():
            released.append(name)
        return AsyncMock(side_effect=close)

    page = MagicMock()
    page.video = None
    page.close = closer("page")

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = closer("context")

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = closer("browser")

    playwright = MagicMock()
    playwright.stop = closer("playwright")
    for kind in BrowserKind:
        getattr(playwright, kind.value).launch = AsyncMock(return_value=browser)

    with patch("replayer.browser.session.async_playwright") as async_playwright:
        async_playwright.return_value.start = AsyncMock(return_value=playwright)
        yield {
            "playwright": playwright,
            "browser": browser,
            "context": context,
            "page": page,
            "released": released,
        }


class TestBrowserSession:
    """Tests for session startup and teardown."""

    @pytest.mark.asyncio
    async def test_start_configures_context(self, driver):
        session = BrowserSession(
            RunOptions(browser=BrowserKind.FIREFOX, headless=False, timeout_ms=15000),
            Viewport(width=390, height=844),
            user_agent="Mozilla/5.0 (iPhone)",
        )

        page = await session.start()

        assert page is driver["page"]
        driver["playwright"].firefox.launch.assert_awaited_once_with(headless=False)
        driver["browser"].new_context.assert_awaited_once_with(
            viewport={"width": 390, "height": 844},
            user_agent="Mozilla/5.0 (iPhone)",
        )
        driver["context"].set_default_timeout.assert_called_once_with(15000)

    @pytest.mark.asyncio
    async def test_close_releases_in_order(self, driver):
        session = BrowserSession()
        await session.start()

        await session.close()

        assert driver["released"] == ["page", "context", "browser", "playwright"]
        assert session.page is None

    @pytest.mark.asyncio
    async def test_close_continues_after_release_failure(self, driver):
        driver["context"].close = AsyncMock(side_effect=RuntimeError("context already closed"))
        session = BrowserSession()
        await session.start()

        await session.close()

        assert driver["released"] == ["page", "browser", "playwright"]

    @pytest.mark.asyncio
    async def test_video_recording(self, driver, tmp_path):
        video_dir = tmp_path / "videos"
        driver["page"].video = MagicMock()
        driver["page"].video.path = AsyncMock(return_value=video_dir / "run.webm")
        session = BrowserSession(RunOptions(video=True, video_dir=str(video_dir)))

        await session.start()
        await session.close()

        kwargs = driver["browser"].new_context.await_args.kwargs
        assert kwargs["record_video_dir"] == str(video_dir)
        assert video_dir.is_dir()
        assert session.video_path == str(video_dir / "run.webm")

    @pytest.mark.asyncio
    async def test_close_without_start(self):
        session = BrowserSession()

        await session.close()

        assert session.video_path is None

    @pytest.mark.asyncio
    async def test_context_manager(self, driver):
        async with BrowserSession() as page:
            assert page is driver["page"]

        assert driver["released"] == ["page", "context", "browser", "playwright"]
