"""Selector candidate ordering and query materialization."""

import re

from playwright.async_api import Locator, Page

from ..recording.models import PositionValue, SelectorCandidate, SelectorStrategy

# CSS candidates that target buttons sort ahead of text-content candidates.
# Generic text matches are unreliable for buttons.
BUTTON_HINTS = ("button", 'type="submit"', "type='submit'", ".btn")

CSS_STRATEGIES = (SelectorStrategy.CSS, SelectorStrategy.CSS_SEMANTIC)

SIMPLE_IDENTIFIER = re.compile(r"^[A-Za-z_][\w-]*$")


def quote(value: str) -> str:
    """Escape a value for use inside a double-quoted CSS attribute selector."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def is_button_like(candidate: SelectorCandidate) -> bool:
    """Whether a CSS candidate references a button-like target."""
    if candidate.strategy not in CSS_STRATEGIES:
        return False
    value = candidate.text_value.lower()
    return any(hint in value for hint in BUTTON_HINTS)


def order_candidates(candidates: tuple[SelectorCandidate, ...] | list[SelectorCandidate]) -> list[SelectorCandidate]:
    """Sort candidates ascending by priority with the button override applied.

    The sort is stable. Button-like CSS candidates that would sort after the
    first text-content candidate are moved just ahead of it, keeping their
    relative order.
    """
    ordered = sorted(candidates, key=lambda c: c.priority)

    text_position = next(
        (i for i, c in enumerate(ordered) if c.strategy == SelectorStrategy.TEXT_CONTENT),
        None,
    )
    if text_position is None:
        return ordered

    promoted = [i for i in range(text_position + 1, len(ordered)) if is_button_like(ordered[i])]
    if not promoted:
        return ordered

    head = ordered[:text_position]
    moved = [ordered[i] for i in promoted]
    rest = [c for i, c in enumerate(ordered[text_position:], start=text_position) if i not in promoted]
    return head + moved + rest


def selector_for(candidate: SelectorCandidate) -> str | None:
    """Playwright selector string for a candidate, if it has one.

    aria-label and text-content candidates go through role/text queries and
    have no plain selector form.
    """
    value = candidate.value
    strategy = candidate.strategy

    if strategy == SelectorStrategy.POSITION:
        if isinstance(value, PositionValue):
            return f"{value.parent} > :nth-child({value.index + 1})"
        return value
    if strategy == SelectorStrategy.ID:
        return f"#{value}" if SIMPLE_IDENTIFIER.match(value) else f'[id="{quote(value)}"]'
    if strategy == SelectorStrategy.NAME:
        return f'[name="{quote(value)}"]'
    if strategy in CSS_STRATEGIES:
        return value
    if strategy == SelectorStrategy.HREF_PATTERN:
        return f'a[href*="{quote(value)}"]'
    if strategy == SelectorStrategy.SRC_PATTERN:
        return f'img[src*="{quote(value)}"]'
    if strategy == SelectorStrategy.XPATH:
        return f"xpath={value}"
    return None


def build_locator(page: Page, candidate: SelectorCandidate) -> Locator:
    """Materialize a candidate into a live query on the page."""
    if candidate.strategy == SelectorStrategy.ARIA_LABEL:
        return page.get_by_label(candidate.text_value)
    if candidate.strategy == SelectorStrategy.TEXT_CONTENT:
        scope = page.locator(f".{candidate.context}") if candidate.context else page
        return scope.get_by_text(candidate.text_value, exact=False)
    return page.locator(selector_for(candidate))
