"""Per-kind execution of recorded actions against a live page."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..navigation.history import NavigationHistory
from ..navigation.urls import urls_match
from ..recording.models import (
    Action,
    CheckpointAction,
    ClickAction,
    ContentSignature,
    HoverAction,
    InputAction,
    KeypressAction,
    ModalLifecycleAction,
    NavigationAction,
    ScrollAction,
    SelectAction,
    SelectorModel,
    SubmitAction,
)
from ..resolution.locator import ElementLocator, ResolvedElement
from .clock import Clock
from .errors import (
    NAVIGATION_CLOSED_MARKER,
    ActionTimeoutError,
    BrowserFatalError,
    ElementNotFoundError,
    NavigationTimeoutError,
    PageStateMismatchError,
    is_fatal,
)
from .models import RunOptions

logger = structlog.get_logger()

# Bounded waits and settle delays (milliseconds)
VISIBLE_WAIT_MS = 5000
CLICK_NAVIGATION_WAIT_MS = 1000
SUBMIT_NAVIGATION_WAIT_MS = 5000
OVERLAY_DISMISS_MS = 100
CLICK_SETTLE_MS = 300
INPUT_SETTLE_MS = 300
SCROLL_SETTLE_MS = 200
HOVER_SETTLE_MS = 300
KEYPRESS_SETTLE_MS = 100
PREREQUISITE_HOVER_MS = 2000
LOAD_STABILITY_MS = 5000

# A navigation this soon after a click or submit is that click's side effect
RECENT_INTERACTION_MS = 2000

VANISHED_MARKERS = ("not attached", "detached", "element is not")

MODIFIER_KEYS = {
    "ctrl": "Control",
    "control": "Control",
    "shift": "Shift",
    "alt": "Alt",
    "option": "Alt",
    "meta": "Meta",
    "cmd": "Meta",
    "command": "Meta",
}

WINDOW_SCROLL_SCRIPT = "([x, y]) => window.scrollTo(x, y)"
ELEMENT_SCROLL_SCRIPT = "(element, [x, y]) => { element.scrollLeft = x; element.scrollTop = y; }"
FORM_SUBMIT_SCRIPT = """
(element) => {
  const form = element.tagName === 'FORM' ? element : element.closest('form');
  if (!form) {
    throw new Error('No form element to submit');
  }
  if (typeof form.requestSubmit === 'function') {
    form.requestSubmit();
  } else {
    form.submit();
  }
}
"""


def key_combination(key: str, modifiers: tuple[str, ...]) -> str:
    """Playwright key string such as ``Control+Shift+Enter``."""
    names = [MODIFIER_KEYS.get(m.lower(), m) for m in modifiers]
    return "+".join(names + [key])


class ActionDispatcher:
    """Executes one action of any kind.

    One dispatcher serves one run; it remembers when the last click or submit
    finished so navigation actions can recognize their own side effects.

    Example:
        dispatcher = ActionDispatcher(resolver, history, clock, options)
        await dispatcher.dispatch(page, action)
    """

    def __init__(
        self,
        resolver: ElementLocator,
        navigator: NavigationHistory,
        clock: Clock,
        options: RunOptions,
    ):
        self.resolver = resolver
        self.navigator = navigator
        self.clock = clock
        self.options = options
        self._last_interaction_at: Optional[float] = None
        self.log = logger.bind(component="action_dispatcher")

        self._handlers: dict[type, Callable[[Page, Any], Awaitable[None]]] = {
            ClickAction: self._click,
            InputAction: self._input,
            ScrollAction: self._scroll,
            NavigationAction: self._navigate,
            SubmitAction: self._submit,
            HoverAction: self._hover,
            SelectAction: self._select,
            KeypressAction: self._keypress,
            CheckpointAction: self._checkpoint,
            ModalLifecycleAction: self._modal_lifecycle,
        }

    @property
    def handled_types(self) -> set[type]:
        return set(self._handlers)

    async def dispatch(self, page: Page, action: Action) -> None:
        """Execute an action.

        Raises:
            ElementNotFoundError, ActionTimeoutError, NavigationTimeoutError,
            PageStateMismatchError: Per-action failures
            BrowserFatalError: If the page or browser is gone
            TypeError: If the action kind has no handler
        """
        handler = self._handlers.get(type(action))
        if handler is None:
            raise TypeError(f"No handler for action type {type(action).__name__}")

        try:
            await handler(page, action)
        except PlaywrightTimeoutError as e:
            raise ActionTimeoutError(f"{action.type.value} timed out: {e}") from e
        except PlaywrightError as e:
            if is_fatal(e):
                raise BrowserFatalError(str(e)) from e
            raise

    # Element helpers

    async def _resolve_visible(
        self,
        page: Page,
        selector: SelectorModel,
        signature: ContentSignature | None,
    ) -> ResolvedElement:
        resolved = await self.resolver.resolve(page, selector, signature, ensure_visible=True)
        if resolved is None:
            raise ElementNotFoundError(selector.describe())
        if not resolved.visible:
            raise ElementNotFoundError(selector.describe(), detail="still hidden after recovery")
        await resolved.locator.wait_for(state="visible", timeout=min(VISIBLE_WAIT_MS, self.options.timeout_ms))
        return resolved

    async def _navigation_signal(self, page: Page, timeout_ms: int) -> bool:
        """Wait up to ``timeout_ms`` for the main frame to navigate."""
        try:
            await page.wait_for_event(
                "framenavigated",
                predicate=lambda frame: frame == page.main_frame,
                timeout=timeout_ms,
            )
        except PlaywrightError:
            return False
        return True

    async def _best_effort(self, operation: Callable[..., Awaitable[Any]], *args, **kwargs) -> None:
        try:
            await operation(*args, **kwargs)
        except PlaywrightError as e:
            if is_fatal(e):
                raise BrowserFatalError(str(e)) from e
            self.log.debug("Best-effort step failed", error=str(e))

    def _record_if_navigated(self, page: Page, url_before: str) -> bool:
        if urls_match(page.url, url_before):
            return False
        self.navigator.record_navigation(page.url, "interaction")
        return True

    def _recent_interaction(self) -> bool:
        if self._last_interaction_at is None:
            return False
        return self.clock.now_ms() - self._last_interaction_at < RECENT_INTERACTION_MS

    # Handlers

    async def _click(self, page: Page, action: ClickAction) -> None:
        url_before = page.url
        if action.recovery_hint:
            await self._best_effort(page.locator(action.recovery_hint).first.hover, timeout=PREREQUISITE_HOVER_MS)
            await self.clock.sleep(HOVER_SETTLE_MS)

        try:
            resolved = await self._resolve_visible(page, action.selector, action.content_signature)
        except ElementNotFoundError:
            if self._record_if_navigated(page, url_before):
                self.log.info("Click target gone after navigation, treating as done", action_id=action.id)
                return
            raise

        # Escape would close a menu that visibility recovery just opened
        if resolved.recovery is None:
            await self._best_effort(page.keyboard.press, "Escape")
            await self.clock.sleep(OVERLAY_DISMISS_MS)

        modifiers = [MODIFIER_KEYS.get(m.lower(), m) for m in action.modifiers]
        await self._racing_navigation(
            page,
            resolved.locator.click(
                button=action.button,
                click_count=action.click_count,
                modifiers=modifiers or None,
                timeout=self.options.timeout_ms,
            ),
            CLICK_NAVIGATION_WAIT_MS,
            url_before,
        )

        await self.clock.sleep(CLICK_SETTLE_MS)
        self._record_if_navigated(page, url_before)
        self._last_interaction_at = self.clock.now_ms()

    async def _racing_navigation(
        self,
        page: Page,
        operation: Awaitable[Any],
        timeout_ms: int,
        url_before: str,
        tolerate_vanished: bool = False,
    ) -> None:
        """Run an interaction while listening for the navigation it may cause.

        Errors that only say the page moved on are swallowed; anything else
        propagates.
        """
        navigation = asyncio.ensure_future(self._navigation_signal(page, timeout_ms))
        try:
            try:
                await operation
            except PlaywrightError as e:
                message = str(e).lower()
                vanished = tolerate_vanished and any(marker in message for marker in VANISHED_MARKERS)
                if not vanished and not self._is_navigation_side_effect(page, e, url_before):
                    raise
                self.log.info("Interaction interrupted by navigation", error=str(e))
            await navigation
        finally:
            if not navigation.done():
                navigation.cancel()

    def _is_navigation_side_effect(self, page: Page, error: PlaywrightError, url_before: str) -> bool:
        if isinstance(error, PlaywrightTimeoutError):
            return False
        message = str(error).lower()
        if NAVIGATION_CLOSED_MARKER in message and not page.is_closed():
            return True
        if "navigation" in message and "timeout" not in message:
            return True
        return not urls_match(page.url, url_before)

    async def _input(self, page: Page, action: InputAction) -> None:
        element = (await self._resolve_visible(page, action.selector, action.content_signature)).locator
        await element.clear(timeout=self.options.timeout_ms)

        # Keystrokes only when the recording captured both the mode and its cadence
        if action.simulation_type == "type" and action.typing_delay:
            await element.press_sequentially(
                action.value,
                delay=action.typing_delay,
                timeout=self.options.timeout_ms,
            )
        else:
            await element.fill(action.value, timeout=self.options.timeout_ms)

        self.log.debug(
            "Input filled",
            action_id=action.id,
            length=len(action.value),
            value=None if action.is_sensitive else action.value,
        )
        # Autocomplete dropdowns may open after typing
        await self.clock.sleep(INPUT_SETTLE_MS)

    async def _scroll(self, page: Page, action: ScrollAction) -> None:
        offsets = [action.scroll_x, action.scroll_y]
        if action.is_window:
            await page.evaluate(WINDOW_SCROLL_SCRIPT, offsets)
        else:
            resolved = await self.resolver.resolve(page, action.element, ensure_visible=False)
            if resolved is None:
                raise ElementNotFoundError(action.element.describe())
            await resolved.locator.evaluate(ELEMENT_SCROLL_SCRIPT, offsets)
        await self.clock.sleep(SCROLL_SETTLE_MS)

    async def _navigate(self, page: Page, action: NavigationAction) -> None:
        target = action.to or action.url
        if urls_match(page.url, target):
            if self._recent_interaction():
                self.log.debug("Navigation already satisfied by interaction", target=target)
            else:
                await self._best_effort(page.wait_for_load_state, "networkidle", timeout=LOAD_STABILITY_MS)
            if not urls_match(self.navigator.current_url(), page.url):
                self.navigator.record_navigation(page.url, "already-there")
            return

        outcome = await self.navigator.navigate(
            page,
            target,
            self.options.timeout_ms,
            wait_until=action.wait_until or "domcontentloaded",
        )
        if outcome.success:
            return
        if urls_match(page.url, target):
            self.navigator.record_navigation(page.url, "timeout-accepted")
            return
        raise NavigationTimeoutError(f"Navigation to {target} failed: {outcome.error}")

    async def _submit(self, page: Page, action: SubmitAction) -> None:
        url_before = page.url
        resolved = await self.resolver.resolve(page, action.selector, action.content_signature, ensure_visible=False)
        if resolved is None:
            if self._record_if_navigated(page, url_before):
                return
            raise ElementNotFoundError(action.selector.describe())

        await self._racing_navigation(
            page,
            resolved.locator.evaluate(FORM_SUBMIT_SCRIPT, timeout=self.options.timeout_ms),
            SUBMIT_NAVIGATION_WAIT_MS,
            url_before,
            tolerate_vanished=True,
        )

        self._record_if_navigated(page, url_before)
        self._last_interaction_at = self.clock.now_ms()

    async def _hover(self, page: Page, action: HoverAction) -> None:
        element = (await self._resolve_visible(page, action.selector, action.content_signature)).locator
        await element.hover(timeout=self.options.timeout_ms)
        await self.clock.sleep(HOVER_SETTLE_MS)

    async def _select(self, page: Page, action: SelectAction) -> None:
        element = (await self._resolve_visible(page, action.selector, action.content_signature)).locator
        if action.selected_value is not None:
            await element.select_option(value=action.selected_value, timeout=self.options.timeout_ms)
        elif action.selected_text is not None:
            await element.select_option(label=action.selected_text, timeout=self.options.timeout_ms)
        elif action.selected_index is not None:
            await element.select_option(index=action.selected_index, timeout=self.options.timeout_ms)
        else:
            raise ValueError(f"Select action {action.id} has no value, text or index")
        await self.clock.sleep(INPUT_SETTLE_MS)

    async def _keypress(self, page: Page, action: KeypressAction) -> None:
        await page.keyboard.press(key_combination(action.key, action.modifiers))
        await self.clock.sleep(KEYPRESS_SETTLE_MS)

    async def _checkpoint(self, page: Page, action: CheckpointAction) -> None:
        if action.check_type != "urlMatch" or not action.passed or not action.expected_url:
            self.log.debug("Informational checkpoint", action_id=action.id, check_type=action.check_type)
            return
        if not urls_match(page.url, action.expected_url):
            raise PageStateMismatchError(action.expected_url, page.url)

    async def _modal_lifecycle(self, page: Page, action: ModalLifecycleAction) -> None:
        self.log.debug("Modal lifecycle event", action_id=action.id, event=action.event, modal_id=action.modal_id)

