"""Recovery for resolved elements that exist but are hidden.

Targets inside menus, dropdowns and tabs are usually hidden until an ancestor
is hovered or clicked. Recovery only ever uses interactions a user could
perform; an element that stays hidden is reported as a failure.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from ..execution.clock import Clock, SystemClock
from ..execution.errors import BrowserFatalError, is_fatal
from .probes import (
    ANCESTOR_CHAIN_PROBE,
    MAX_ANCESTOR_LEVELS,
    TRANSITION_END_PROBE,
    AncestorDescriptor,
    TriggerTier,
    parse_ancestor_chain,
    rank_ancestors,
)

logger = structlog.get_logger()

TRIGGER_HOVER_TIMEOUT_MS = 3000
TRIGGER_TRANSITION_MS = 1000
PARENT_INTERACTION_TIMEOUT_MS = 2000
PARENT_TRANSITION_MS = 500
PARENT_LEVELS = 3
TAB_PRESSES = 5
TAB_DELAY_MS = 200
SCROLL_TIMEOUT_MS = 2000
SCROLL_SETTLE_MS = 500


@dataclass
class RecoveryResult:
    """Outcome of a visibility recovery attempt."""

    success: bool
    method: str
    trigger: Optional[AncestorDescriptor] = None


def ancestor_of(target: Locator, level: int) -> Locator:
    """Locator for the ancestor ``level`` steps above the target."""
    return target.locator(f"xpath=ancestor::*[{level}]")


class VisibilityRecovery:
    """Makes a hidden element visible through realistic interactions.

    Escalation:
    1. Probe up to 5 ancestors, hover then click the best-ranked trigger
    2. Hover then click each visible ancestor at levels 1-3
    3. Tab through focusable elements
    4. Scroll the element into view
    """

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self.log = logger.bind(component="visibility_recovery")

    async def recover(self, page: Page, target: Locator) -> RecoveryResult:
        """Try to reveal ``target``; never interacts with the target itself."""
        trigger = await self._find_trigger(target)
        if trigger is not None and trigger.tier != TriggerTier.LOW:
            self.log.info(
                "Trigger ancestor found",
                level=trigger.level,
                selector=trigger.selector,
                tier=trigger.tier.value,
                score=trigger.score,
            )
            element = ancestor_of(target, trigger.level)
            if await self._interact(element.hover, TRIGGER_HOVER_TIMEOUT_MS):
                await self._wait_for_transitions(element, TRIGGER_TRANSITION_MS)
                if await self._is_visible(target):
                    return RecoveryResult(True, "hover-trigger", trigger)
            if await self._interact(element.click, TRIGGER_HOVER_TIMEOUT_MS):
                await self._wait_for_transitions(element, TRIGGER_TRANSITION_MS)
                if await self._is_visible(target):
                    return RecoveryResult(True, "click-trigger", trigger)

        for level in range(1, PARENT_LEVELS + 1):
            parent = ancestor_of(target, level)
            if not await self._is_visible(parent):
                continue
            for name, interaction in (("hover", parent.hover), ("click", parent.click)):
                if await self._interact(interaction, PARENT_INTERACTION_TIMEOUT_MS):
                    await self._wait_for_transitions(parent, PARENT_TRANSITION_MS)
                if await self._is_visible(target):
                    return RecoveryResult(True, f"{name}-parent-{level}")

        for _ in range(TAB_PRESSES):
            await self._interact(page.keyboard.press, None, "Tab")
            await self.clock.sleep(TAB_DELAY_MS)
            if await self._is_visible(target):
                return RecoveryResult(True, "keyboard")

        if await self._interact(target.scroll_into_view_if_needed, SCROLL_TIMEOUT_MS):
            await self.clock.sleep(SCROLL_SETTLE_MS)
            if await self._is_visible(target):
                return RecoveryResult(True, "scroll")

        self.log.warning("Element stays hidden after recovery")
        return RecoveryResult(False, "exhausted", trigger)

    async def _find_trigger(self, target: Locator) -> Optional[AncestorDescriptor]:
        try:
            raw = await target.evaluate(ANCESTOR_CHAIN_PROBE, MAX_ANCESTOR_LEVELS)
        except PlaywrightError as e:
            self._raise_if_fatal(e)
            self.log.debug("Ancestor probe failed", error=str(e))
            return None
        ranked = rank_ancestors(parse_ancestor_chain(raw))
        return ranked[0] if ranked else None

    async def _wait_for_transitions(self, element: Locator, timeout_ms: int) -> None:
        try:
            await element.evaluate(TRANSITION_END_PROBE, timeout_ms, timeout=timeout_ms + 1000)
        except PlaywrightError as e:
            self._raise_if_fatal(e)
            await self.clock.sleep(timeout_ms)

    async def _interact(self, interaction, timeout_ms: int | None, *args) -> bool:
        try:
            if timeout_ms is None:
                await interaction(*args)
            else:
                await interaction(*args, timeout=timeout_ms)
        except PlaywrightError as e:
            self._raise_if_fatal(e)
            self.log.debug("Recovery interaction failed", error=str(e))
            return False
        return True

    async def _is_visible(self, element: Locator) -> bool:
        try:
            return await element.is_visible()
        except PlaywrightError as e:
            self._raise_if_fatal(e)
            return False

    def _raise_if_fatal(self, error: PlaywrightError) -> None:
        if is_fatal(error):
            raise BrowserFatalError(str(error)) from error
