"""Narrowing several matches of one selector down to a single element."""

import re
from dataclasses import dataclass
from typing import Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from ..execution.errors import BrowserFatalError, is_fatal
from ..recording.models import PositionValue

logger = structlog.get_logger()

# Text hints this short match too much to be useful
MIN_TEXT_HINT_LENGTH = 3

# Visibility scans stop after this many matches
MAX_VISIBLE_SCAN = 10

# Selectors that look like list widgets but rotate their items
CAROUSEL_EXCLUSIONS = ("carousel", "arrow", ".next", ".prev", "slide", "swiper")

AUTOCOMPLETE_HINTS = ("autocomplete", "dropdown", "suggestion", "menu-item")

LIST_ITEM_PATTERN = re.compile(r"\bul\b.*\bli\b")


@dataclass
class DisambiguationHints:
    """What is known about the intended element beyond the selector."""

    selector_text: str = ""
    text_contains: Optional[str] = None
    position: Optional[PositionValue] = None
    validated_unique: bool = False


def is_carousel_selector(selector_text: str) -> bool:
    lowered = selector_text.lower()
    return any(term in lowered for term in CAROUSEL_EXCLUSIONS)


def is_autocomplete_selector(selector_text: str) -> bool:
    lowered = selector_text.lower()
    if any(term in lowered for term in AUTOCOMPLETE_HINTS):
        return True
    return bool(LIST_ITEM_PATTERN.search(lowered))


class Disambiguator:
    """Picks one element out of an ambiguous match set.

    Steps, first hit wins:
    1. Text hint: filter by substring, unique or first visible of a narrower set
    2. Autocomplete/dropdown-shaped selectors: first visible, else first
    3. Position hint: nth child of the recorded parent
    4. First visible of the first matches
    5. First match

    A query that fails (for example a malformed recorded parent selector)
    counts as no match for its step. Only fatal driver errors raise.
    """

    def __init__(self):
        self.log = logger.bind(component="disambiguator")

    async def narrow(
        self,
        page: Page,
        locator: Locator,
        count: int,
        hints: DisambiguationHints,
    ) -> Locator:
        """Return a single-element locator for an ambiguous match set.

        Raises:
            BrowserFatalError: If the page or browser is gone
        """
        text = hints.text_contains
        if text and len(text) > MIN_TEXT_HINT_LENGTH:
            filtered = locator.filter(has_text=text)
            filtered_count = await self._count(filtered, "text")
            if filtered_count == 1:
                self.log.debug("Disambiguated by text", text=text, matches=count)
                return filtered.first
            if 0 < filtered_count < count:
                visible = await self.first_visible(filtered, filtered_count)
                self.log.debug("Narrowed by text", text=text, matches=count, filtered=filtered_count)
                return visible or filtered.first

        selector_text = hints.selector_text
        if (
            not is_carousel_selector(selector_text)
            and not hints.validated_unique
            and is_autocomplete_selector(selector_text)
        ):
            visible = await self.first_visible(locator, count)
            self.log.debug("Autocomplete-shaped selector", selector=selector_text, visible=visible is not None)
            return visible or locator.first

        if hints.position is not None:
            positioned = page.locator(f"{hints.position.parent} > :nth-child({hints.position.index + 1})")
            if await self._count(positioned, "position") > 0:
                self.log.debug("Disambiguated by position", parent=hints.position.parent, index=hints.position.index)
                return positioned.first

        visible = await self.first_visible(locator, count)
        if visible is not None:
            return visible

        self.log.debug("Falling back to first match", selector=selector_text, matches=count)
        return locator.first

    async def first_visible(self, locator: Locator, count: int) -> Optional[Locator]:
        """First visible element among the first matches of a locator."""
        for index in range(min(count, MAX_VISIBLE_SCAN)):
            element = locator.nth(index)
            try:
                visible = await element.is_visible()
            except PlaywrightError as e:
                self._raise_if_fatal(e)
                self.log.debug("Visibility check failed", index=index, error=str(e))
                continue
            if visible:
                return element
        return None

    async def _count(self, locator: Locator, step: str) -> int:
        try:
            return await locator.count()
        except PlaywrightError as e:
            self._raise_if_fatal(e)
            self.log.debug("Disambiguation query failed", step=step, error=str(e))
            return 0

    def _raise_if_fatal(self, error: PlaywrightError) -> None:
        if is_fatal(error):
            raise BrowserFatalError(str(error)) from error
