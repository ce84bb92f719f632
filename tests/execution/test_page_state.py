"""Tests for PageStateValidator."""

import pytest
from playwright.async_api import Error as PlaywrightError

from fakes import FakePage
from replayer.execution.errors import BrowserFatalError, PageStateMismatchError
from replayer.execution.page_state import PageStateValidator
from replayer.execution.reporter import NullReporter
from replayer.navigation.history import NavigationHistory

HOME = "https://shop.test/"
PRODUCTS = "https://shop.test/products"
PRODUCT = "https://shop.test/products/42"


def browse(page, navigator, *urls):
    """Move the page through urls, recording each as the engine would."""
    for url in urls:
        page.navigate_to(url)
        navigator.record_navigation(url, "interaction")


@pytest.fixture
def navigator(clock):
    return NavigationHistory(clock)


@pytest.fixture
def validator(navigator, reporter):
    return PageStateValidator(navigator, timeout_ms=30000, reporter=reporter)


class TestEnsure:
    """Test validation and the correction chain."""

    @pytest.mark.asyncio
    async def test_matching_page_untouched(self, validator, reporter):
        page = FakePage(PRODUCTS + "?sort=price#top")

        check = await validator.ensure(page, PRODUCTS + "/")

        assert not check.corrected
        assert page.gotos == []
        assert reporter.diagnostics == []

    @pytest.mark.asyncio
    async def test_no_expected_url(self, validator):
        page = FakePage(HOME)

        check = await validator.ensure(page, "")

        assert not check.corrected

    @pytest.mark.asyncio
    @pytest.mark.scenario
    async def test_back_navigation_through_history(self, validator, navigator, reporter):
        """Test returning to a listing page reuses the browser history."""
        page = FakePage(HOME)
        navigator.record_navigation(HOME, "initial")
        browse(page, navigator, PRODUCTS, PRODUCT)

        check = await validator.ensure(page, PRODUCTS)

        assert check.corrected
        assert check.method == "go-back"
        assert page.url == PRODUCTS
        assert page.history_calls == ["back"]
        assert page.gotos == []
        assert reporter.diagnostic_events() == ["page_state_mismatch", "page_state_corrected"]

    @pytest.mark.asyncio
    async def test_unknown_page_uses_goto(self, validator, navigator):
        page = FakePage(HOME)
        navigator.record_navigation(HOME, "initial")

        check = await validator.ensure(page, "https://shop.test/cart")

        assert check.method == "goto"
        assert page.gotos == [("https://shop.test/cart", "domcontentloaded")]

    @pytest.mark.asyncio
    async def test_redirect_keeps_trying_then_fails(self, validator, navigator, reporter):
        """Test a login redirect exhausts every correction and raises."""
        page = FakePage(HOME)
        navigator.record_navigation(HOME, "initial")
        page.redirects["https://shop.test/account"] = "https://shop.test/login"

        with pytest.raises(PageStateMismatchError) as exc_info:
            await validator.ensure(page, "https://shop.test/account")

        assert exc_info.value.actual_url == "https://shop.test/login"
        assert [wait for _, wait in page.gotos] == ["domcontentloaded", "domcontentloaded", "load"]
        assert "page_state_corrected" not in reporter.diagnostic_events()

    @pytest.mark.asyncio
    async def test_failed_gotos(self, validator, navigator, clock):
        page = FakePage(HOME)
        navigator.record_navigation(HOME, "initial")
        page.goto_errors["https://shop.test/cart"] = PlaywrightError("net::ERR_CONNECTION_REFUSED")

        with pytest.raises(PageStateMismatchError):
            await validator.ensure(page, "https://shop.test/cart")

        # Two direct attempts from the history navigator, then reload and final goto
        assert len(page.gotos) == 4
        assert clock.sleeps == [500]

    @pytest.mark.asyncio
    async def test_closed_page_is_fatal(self, validator, navigator):
        page = FakePage(HOME)
        navigator.record_navigation(HOME, "initial")
        page.closed = True

        with pytest.raises(BrowserFatalError):
            await validator.ensure(page, "https://shop.test/cart")


class TestDefaults:
    def test_reporter_optional(self, navigator):
        validator = PageStateValidator(navigator)

        assert validator.timeout_ms == 30000
        assert isinstance(validator.reporter, NullReporter)
