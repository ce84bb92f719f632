"""In-memory stand-ins for the Playwright page, locator and session.

FakePage keeps a registry of selector -> elements. Elements know their parent,
so ancestor xpath queries and the ancestor probe work on a small tree.
"""

import asyncio
import re
from typing import Any, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from replayer.execution.reporter import ProgressReporter
from replayer.recording.models import PositionValue, SelectorCandidate, SelectorModel, SelectorStrategy
from replayer.resolution.probes import ANCESTOR_CHAIN_PROBE, TRANSITION_END_PROBE

CLOSED_MESSAGE = "Target page, context or browser has been closed"

ANCESTOR_XPATH = re.compile(r"^xpath=ancestor::\*\[(\d+)\]$")


class FakeElement:
    """One DOM element with optional behavior on interaction."""

    def __init__(
        self,
        name: str,
        text: str = "",
        visible: bool = True,
        parent: Optional["FakeElement"] = None,
        tag: str = "div",
        classes: str = "",
        role: str = "",
        on_hover: Callable[["FakePage"], Any] | None = None,
        on_click: Callable[["FakePage"], Any] | None = None,
        on_evaluate: Callable[["FakePage", Any], Any] | None = None,
    ):
        self.name = name
        self.text = text
        self.visible = visible
        self.parent = parent
        self.tag = tag
        self.classes = classes
        self.role = role
        self.on_hover = on_hover
        self.on_click = on_click
        self.on_evaluate = on_evaluate
        self.value = ""

    def ancestor(self, level: int) -> Optional["FakeElement"]:
        node = self
        for _ in range(level):
            node = node.parent
            if node is None:
                return None
        return node

    def probe(self, max_levels: int) -> list[dict[str, Any]]:
        chain = []
        node = self.parent
        level = 1
        while node is not None and level <= max_levels:
            chain.append({
                "level": level,
                "tag": node.tag,
                "id": "",
                "classes": node.classes,
                "role": node.role,
                "visible": node.visible,
                "clickHandler": node.on_click is not None,
                "selector": f"{node.tag}.{node.classes}" if node.classes else node.tag,
            })
            node = node.parent
            level += 1
        return chain


class FakeLocator:
    """Lazy query over the page's element registry."""

    def __init__(self, page: "FakePage", query: Callable[[], list[FakeElement]], key: str = ""):
        self.page = page
        self._query = query
        self.key = key

    def _elements(self) -> list[FakeElement]:
        self.page.check_open()
        return list(self._query())

    def _target(self) -> FakeElement:
        elements = self._elements()
        if not elements:
            raise PlaywrightTimeoutError(f"Timeout exceeded waiting for locator({self.key!r})")
        return elements[0]

    @property
    def first(self) -> "FakeLocator":
        return self.nth(0)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.page, lambda: self._elements()[index:index + 1], f"{self.key} >> nth={index}")

    def filter(self, has_text: str) -> "FakeLocator":
        return FakeLocator(
            self.page,
            lambda: [e for e in self._elements() if has_text in e.text],
            f"{self.key} >> has_text={has_text}",
        )

    def locator(self, selector: str) -> "FakeLocator":
        match = ANCESTOR_XPATH.match(selector)
        if match is None:
            return self.page.locator(f"{self.key} >> {selector}")
        level = int(match.group(1))

        def ancestors() -> list[FakeElement]:
            found = [e.ancestor(level) for e in self._elements()[:1]]
            return [e for e in found if e is not None]

        return FakeLocator(self.page, ancestors, f"{self.key} >> {selector}")

    def get_by_text(self, text: str, exact: bool = False) -> "FakeLocator":
        return self.page.locator(f"{self.key} >> text={text}")

    def names(self) -> list[str]:
        """Names of the currently matched elements."""
        return [e.name for e in self._elements()]

    async def count(self) -> int:
        return len(self._elements())

    async def wait_for(self, state: str = "visible", timeout: float | None = None) -> None:
        elements = self._elements()
        ready = bool(elements) if state == "attached" else bool(elements) and elements[0].visible
        if not ready:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {state}")

    async def is_visible(self) -> bool:
        elements = self._elements()
        return bool(elements) and elements[0].visible

    async def hover(self, timeout: float | None = None) -> None:
        element = self._target()
        self.page.events.append(("hover", element.name))
        if element.on_hover is not None:
            element.on_hover(self.page)

    async def click(self, **options: Any) -> None:
        element = self._target()
        self.page.events.append(("click", element.name))
        self.page.click_options.append(options)
        if element.on_click is not None:
            element.on_click(self.page)

    async def clear(self, timeout: float | None = None) -> None:
        element = self._target()
        element.value = ""
        self.page.events.append(("clear", element.name))

    async def fill(self, value: str, timeout: float | None = None) -> None:
        element = self._target()
        element.value = value
        self.page.events.append(("fill", element.name, value))

    async def press_sequentially(self, text: str, delay: float | None = None, timeout: float | None = None) -> None:
        element = self._target()
        element.value += text
        self.page.events.append(("type", element.name, text, delay))

    async def select_option(self, **options: Any) -> list[str]:
        element = self._target()
        self.page.events.append(("select", element.name, options))
        return []

    async def scroll_into_view_if_needed(self, timeout: float | None = None) -> None:
        element = self._target()
        self.page.events.append(("scroll_into_view", element.name))

    async def evaluate(self, expression: str, arg: Any = None, timeout: float | None = None) -> Any:
        element = self._target()
        if expression == ANCESTOR_CHAIN_PROBE:
            return element.probe(arg)
        if expression == TRANSITION_END_PROBE:
            return None
        self.page.events.append(("evaluate", element.name, arg))
        if element.on_evaluate is not None:
            return element.on_evaluate(self.page, arg)
        return None


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self.page = page

    async def press(self, key: str, **options: Any) -> None:
        self.page.check_open()
        self.page.keys.append(key)
        if self.page.on_key is not None:
            self.page.on_key(self.page, key)


class FakePage:
    """Page with a linear back/forward history and an element registry."""

    def __init__(self, url: str = "about:blank"):
        self._history = [url]
        self._index = 0
        self._pending_navigation = False
        self.elements: dict[str, list[FakeElement]] = {}
        self.events: list[tuple] = []
        self.click_options: list[dict[str, Any]] = []
        self.keys: list[str] = []
        self.gotos: list[tuple[str, Optional[str]]] = []
        self.goto_errors: dict[str, BaseException] = {}
        self.redirects: dict[str, str] = {}
        self.load_states: list[str] = []
        self.query_errors: dict[str, BaseException] = {}
        self.on_load_state: Callable[["FakePage", str], Any] | None = None
        self.history_calls: list[str] = []
        self.on_key: Callable[["FakePage", str], Any] | None = None
        self.on_history: Callable[["FakePage", str], Any] | None = None
        self.closed = False
        self.main_frame = object()
        self.video = None
        self.keyboard = FakeKeyboard(self)

    @property
    def url(self) -> str:
        return self._history[self._index]

    def check_open(self) -> None:
        if self.closed:
            raise PlaywrightError(CLOSED_MESSAGE)

    def register(self, selector: str, *elements: FakeElement) -> list[FakeElement]:
        self.elements[selector] = list(elements)
        return self.elements[selector]

    def remove(self, selector: str) -> None:
        self.elements.pop(selector, None)

    def navigate_to(self, url: str) -> None:
        """Simulate the page moving to a new document."""
        del self._history[self._index + 1:]
        self._history.append(url)
        self._index = len(self._history) - 1
        self._pending_navigation = True

    def locator(self, selector: str) -> FakeLocator:
        def query() -> list[FakeElement]:
            if selector in self.query_errors:
                raise self.query_errors[selector]
            return self.elements.get(selector, [])

        return FakeLocator(self, query, selector)

    def get_by_label(self, text: str) -> FakeLocator:
        return self.locator(f"label={text}")

    def get_by_text(self, text: str, exact: bool = False) -> FakeLocator:
        return self.locator(f"text={text}")

    async def goto(self, url: str, wait_until: str | None = None, timeout: float | None = None) -> None:
        self.check_open()
        self.gotos.append((url, wait_until))
        if url in self.goto_errors:
            raise self.goto_errors[url]
        self.navigate_to(self.redirects.get(url, url))

    async def go_back(self, wait_until: str | None = None, timeout: float | None = None) -> None:
        self.check_open()
        self.history_calls.append("back")
        if self.on_history is not None:
            self.on_history(self, "back")
        if self._index > 0:
            self._index -= 1
            self._pending_navigation = True

    async def go_forward(self, wait_until: str | None = None, timeout: float | None = None) -> None:
        self.check_open()
        self.history_calls.append("forward")
        if self.on_history is not None:
            self.on_history(self, "forward")
        if self._index < len(self._history) - 1:
            self._index += 1
            self._pending_navigation = True

    async def wait_for_load_state(self, state: str = "load", timeout: float | None = None) -> None:
        self.check_open()
        self.load_states.append(state)
        if self.on_load_state is not None:
            self.on_load_state(self, state)

    async def wait_for_event(self, event: str, predicate: Callable | None = None, timeout: float | None = None) -> Any:
        self.check_open()
        await asyncio.sleep(0)
        if self._pending_navigation:
            self._pending_navigation = False
            return self.main_frame
        raise PlaywrightTimeoutError(f'Timeout {timeout}ms exceeded while waiting for event "{event}"')

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.check_open()
        self.events.append(("page_evaluate", arg))
        return None

    async def screenshot(self, timeout: float | None = None) -> bytes:
        self.check_open()
        return b"\x89PNG"

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True


class FakeSession:
    """BrowserSession stand-in handing out a FakePage."""

    def __init__(self, page: FakePage, start_error: BaseException | None = None):
        self.page = page
        self.start_error = start_error
        self.started = False
        self.closed = False
        self.video_path: Optional[str] = None

    async def start(self) -> FakePage:
        if self.start_error is not None:
            raise self.start_error
        self.started = True
        return self.page

    async def close(self) -> None:
        self.closed = True
        self.page.closed = True


class RecordingReporter(ProgressReporter):
    """Reporter that keeps every callback for assertions."""

    def __init__(self):
        self.events: list[tuple] = []
        self.diagnostics: list[tuple[str, str, dict[str, Any]]] = []
        self.result = None

    def on_start(self, test_name: str, actions_total: int) -> None:
        self.events.append(("start", test_name, actions_total))

    def on_action_start(self, action, index: int) -> None:
        self.events.append(("action_start", action.id, index))

    def on_action_success(self, action, index: int, duration_ms: int) -> None:
        self.events.append(("success", action.id, index))

    def on_action_error(self, action, index: int, error: BaseException) -> None:
        self.events.append(("error", action.id, index, type(error).__name__))

    def on_complete(self, result) -> None:
        self.events.append(("complete", result.status))
        self.result = result

    def on_diagnostic(self, level: str, event: str, **fields: Any) -> None:
        self.diagnostics.append((level, event, fields))

    def diagnostic_events(self) -> list[str]:
        return [event for _, event, _ in self.diagnostics]


def candidate(
    strategy: str,
    value: Any,
    priority: int = 1,
    confidence: int = 95,
    **extra: Any,
) -> SelectorCandidate:
    """SelectorCandidate with readable defaults; dict values become positions."""
    if isinstance(value, dict):
        value = PositionValue(**value)
    return SelectorCandidate(
        strategy=SelectorStrategy(strategy),
        value=value,
        priority=priority,
        confidence=confidence,
        **extra,
    )


def model(*candidates: SelectorCandidate, **extra: Any) -> SelectorModel:
    return SelectorModel(candidates=tuple(candidates), **extra)
