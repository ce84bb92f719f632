"""Data models for captured browser recordings.

A recording is an ordered list of actions. Each action kind is its own
dataclass so that dispatch tables can be checked for exhaustiveness, and
every selector is normalized into a SelectorModel regardless of whether the
recorder emitted the multi-candidate form or the legacy single-selector form.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union
from urllib.parse import urlsplit


class ActionType(str, Enum):
    """Kinds of recorded browser interactions."""

    CLICK = "click"
    INPUT = "input"
    SCROLL = "scroll"
    NAVIGATION = "navigation"
    SUBMIT = "submit"
    HOVER = "hover"
    SELECT = "select"
    KEYPRESS = "keypress"
    CHECKPOINT = "checkpoint"
    MODAL_LIFECYCLE = "modal-lifecycle"


class SelectorStrategy(str, Enum):
    """How a selector candidate locates its element."""

    ID = "id"
    CSS = "css"
    XPATH = "xpath"
    NAME = "name"
    ARIA_LABEL = "aria-label"
    TEXT_CONTENT = "text-content"
    CSS_SEMANTIC = "css-semantic"
    HREF_PATTERN = "href-pattern"
    SRC_PATTERN = "src-pattern"
    POSITION = "position"


# Confidence assigned to every candidate converted from a legacy selector
LEGACY_CONFIDENCE = 50

# Legacy selector fields, tried in this order when no priority list is given
DEFAULT_LEGACY_ORDER = (
    "dataTestId",
    "id",
    "ariaLabel",
    "name",
    "css",
    "text",
    "xpath",
    "xpathAbsolute",
    "position",
)


@dataclass(frozen=True)
class PositionValue:
    """Structured payload of the position strategy: nth child of a parent."""

    parent: str
    index: int

    def to_dict(self) -> dict[str, Any]:
        return {"parent": self.parent, "index": self.index}


@dataclass(frozen=True)
class SelectorCandidate:
    """One way of locating an element, with priority and confidence.

    Lower priority numbers are tried first. Confidence (0-100) expresses how
    certain the recorder was that the selector identifies a single element.
    """

    strategy: SelectorStrategy
    value: Union[str, PositionValue]
    priority: int = 0
    confidence: int = LEGACY_CONFIDENCE
    context: Optional[str] = None  # Scoping container class for text matches
    text_contains: Optional[str] = None
    validated_unique: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.value, PositionValue) and self.strategy != SelectorStrategy.POSITION:
            raise ValueError(f"Structured position value is only valid for the position strategy, got {self.strategy.value}")
        if not isinstance(self.value, (str, PositionValue)):
            raise ValueError(f"Unsupported selector value: {self.value!r}")
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence must be within 0-100, got {self.confidence}")

    @property
    def text_value(self) -> str:
        """The candidate value rendered as text, for pattern checks and logs."""
        if isinstance(self.value, PositionValue):
            return f"{self.value.parent} > :nth-child({self.value.index + 1})"
        return self.value

    @classmethod
    def from_dict(cls, data: dict) -> "SelectorCandidate":
        """Create a candidate from the recorder's JSON form."""
        strategy = SelectorStrategy(data["strategy"])
        raw_value = data.get("value", "")
        if isinstance(raw_value, dict):
            value: Union[str, PositionValue] = PositionValue(
                parent=raw_value.get("parent", ""),
                index=int(raw_value.get("index", 0)),
            )
        else:
            value = str(raw_value)

        return cls(
            strategy=strategy,
            value=value,
            priority=int(data.get("priority", 0)),
            confidence=int(data.get("confidence", LEGACY_CONFIDENCE)),
            context=data.get("context"),
            text_contains=data.get("textContains"),
            validated_unique=bool(data.get("validatedUnique", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "value": self.value.to_dict() if isinstance(self.value, PositionValue) else self.value,
            "priority": self.priority,
            "confidence": self.confidence,
            "context": self.context,
            "text_contains": self.text_contains,
            "validated_unique": self.validated_unique,
        }


@dataclass(frozen=True)
class SelectorModel:
    """Ordered set of selector candidates describing one element."""

    candidates: tuple[SelectorCandidate, ...] = ()
    text_contains: Optional[str] = None
    position: Optional[PositionValue] = None
    validated_unique: bool = False
    legacy: bool = False

    @classmethod
    def from_candidates(cls, items: list[dict]) -> "SelectorModel":
        """Build a model from the multi-candidate ``selectors`` array."""
        candidates = tuple(SelectorCandidate.from_dict(item) for item in items)
        text_hint = next((c.text_contains for c in candidates if c.text_contains), None)
        position = next(
            (c.value for c in candidates if isinstance(c.value, PositionValue)),
            None,
        )
        return cls(candidates=candidates, text_contains=text_hint, position=position)

    @classmethod
    def from_legacy(cls, data: dict) -> "SelectorModel":
        """Convert a legacy single selector object into candidates.

        Every converted candidate shares one implicit confidence level, so
        the resolver treats multiple matches as ambiguous and disambiguates.
        Candidate priorities follow the legacy ``priority`` field order.
        """
        order = [name for name in data.get("priority") or [] if name in DEFAULT_LEGACY_ORDER]
        order += [name for name in DEFAULT_LEGACY_ORDER if name not in order]

        validation = data.get("validation") or {}
        validated_unique = validation.get("cssMatches") == 1 and bool(validation.get("isUnique"))

        position = None
        raw_position = data.get("position")
        if isinstance(raw_position, dict) and raw_position.get("parent"):
            position = PositionValue(
                parent=raw_position["parent"],
                index=int(raw_position.get("index", 0)),
            )

        candidates = []
        for name in order:
            raw = data.get(name)
            if not raw:
                continue
            candidate = _legacy_candidate(name, raw, position)
            if candidate is None:
                continue
            candidates.append(
                SelectorCandidate(
                    strategy=candidate[0],
                    value=candidate[1],
                    priority=len(candidates),
                    confidence=LEGACY_CONFIDENCE,
                    text_contains=data.get("textContains"),
                    validated_unique=validated_unique,
                )
            )

        return cls(
            candidates=tuple(candidates),
            text_contains=data.get("textContains") or data.get("text"),
            position=position,
            validated_unique=validated_unique,
            legacy=True,
        )

    @property
    def css(self) -> Optional[str]:
        """First CSS-like candidate value, if any."""
        for candidate in self.candidates:
            if candidate.strategy in (SelectorStrategy.CSS, SelectorStrategy.CSS_SEMANTIC):
                return candidate.text_value
        return None

    def describe(self) -> str:
        """Short human-readable description used in errors and logs."""
        if not self.candidates:
            return "<no selector>"
        first = sorted(self.candidates, key=lambda c: c.priority)[0]
        return f"{first.strategy.value}={first.text_value}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidates": [c.to_dict() for c in self.candidates],
            "text_contains": self.text_contains,
            "position": self.position.to_dict() if self.position else None,
            "validated_unique": self.validated_unique,
            "legacy": self.legacy,
        }

    def signature(self) -> str:
        """Canonical text form; equal for structurally identical selectors."""
        return json.dumps(self.to_dict(), sort_keys=True)


def _legacy_candidate(
    name: str,
    raw: Any,
    position: Optional[PositionValue],
) -> Optional[tuple[SelectorStrategy, Union[str, PositionValue]]]:
    if name == "position":
        return (SelectorStrategy.POSITION, position) if position else None
    value = str(raw)
    if name == "dataTestId":
        return SelectorStrategy.CSS, f'[data-testid="{value}"]'
    if name == "id":
        return SelectorStrategy.ID, value
    if name == "ariaLabel":
        return SelectorStrategy.ARIA_LABEL, value
    if name == "name":
        return SelectorStrategy.NAME, value
    if name == "css":
        return SelectorStrategy.CSS, value
    if name == "text":
        return SelectorStrategy.TEXT_CONTENT, value
    if name in ("xpath", "xpathAbsolute"):
        return SelectorStrategy.XPATH, value
    return None


@dataclass(frozen=True)
class ContentFingerprint:
    """Visible content captured for an element at record time."""

    heading: Optional[str] = None
    link_href: Optional[str] = None
    image_src: Optional[str] = None
    price: Optional[str] = None


@dataclass(frozen=True)
class ContentSignature:
    """Fallback description of an element by its content."""

    element_type: Optional[str] = None
    fingerprint: ContentFingerprint = field(default_factory=ContentFingerprint)
    fallback_position: Optional[int] = None
    list_container: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ContentSignature":
        """Create ContentSignature from the recorder's JSON form."""
        fingerprint = data.get("contentFingerprint") or {}
        fallback_position = data.get("fallbackPosition")
        return cls(
            element_type=data.get("elementType") or None,
            fingerprint=ContentFingerprint(
                heading=fingerprint.get("heading"),
                link_href=fingerprint.get("linkHref"),
                image_src=fingerprint.get("imageSrc"),
                price=fingerprint.get("price"),
            ),
            fallback_position=int(fallback_position) if fallback_position is not None else None,
            list_container=data.get("listContainer"),
        )


@dataclass
class Viewport:
    """Browser viewport size at record time."""

    width: int = 1280
    height: int = 720

    def to_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass
class BaseAction:
    """Fields shared by every recorded action."""

    type: ClassVar[ActionType]

    id: str
    timestamp: float  # Milliseconds; absolute at capture, run-relative after normalization
    url: str = ""  # Page the browser is expected to be on when the action fires
    completed_at: Optional[float] = None
    is_optional: bool = False
    skip_if_not_found: bool = False
    reason: Optional[str] = None


@dataclass
class ClickAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.CLICK

    selector: SelectorModel = field(default_factory=SelectorModel)
    content_signature: Optional[ContentSignature] = None
    button: str = "left"
    click_count: int = 1
    text: Optional[str] = None
    tag_name: Optional[str] = None
    modifiers: tuple[str, ...] = ()
    recovery_hint: Optional[str] = None  # Parent to hover before resolving


@dataclass
class InputAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.INPUT

    selector: SelectorModel = field(default_factory=SelectorModel)
    content_signature: Optional[ContentSignature] = None
    value: str = ""
    input_type: str = "text"
    is_sensitive: bool = False
    simulation_type: Optional[str] = None  # "type" requests key-by-key typing
    typing_delay: Optional[int] = None


@dataclass
class ScrollAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.SCROLL

    element: Union[str, SelectorModel] = "window"
    scroll_x: int = 0
    scroll_y: int = 0

    @property
    def is_window(self) -> bool:
        return not isinstance(self.element, SelectorModel)


@dataclass
class NavigationAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.NAVIGATION

    to: str = ""
    from_url: Optional[str] = None
    navigation_trigger: Optional[str] = None
    wait_until: str = "domcontentloaded"
    original_trigger: Optional[str] = None
    correction_reason: Optional[str] = None


@dataclass
class SubmitAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.SUBMIT

    selector: SelectorModel = field(default_factory=SelectorModel)
    content_signature: Optional[ContentSignature] = None


@dataclass
class HoverAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.HOVER

    selector: SelectorModel = field(default_factory=SelectorModel)
    content_signature: Optional[ContentSignature] = None
    text: Optional[str] = None


@dataclass
class SelectAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.SELECT

    selector: SelectorModel = field(default_factory=SelectorModel)
    content_signature: Optional[ContentSignature] = None
    selected_value: Optional[str] = None
    selected_text: Optional[str] = None
    selected_index: Optional[int] = None


@dataclass
class KeypressAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.KEYPRESS

    key: str = ""
    code: Optional[str] = None
    modifiers: tuple[str, ...] = ()


@dataclass
class CheckpointAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.CHECKPOINT

    check_type: str = ""
    expected_url: Optional[str] = None
    passed: bool = False


@dataclass
class ModalLifecycleAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.MODAL_LIFECYCLE

    event: str = ""
    modal_id: Optional[str] = None


Action = Union[
    ClickAction,
    InputAction,
    ScrollAction,
    NavigationAction,
    SubmitAction,
    HoverAction,
    SelectAction,
    KeypressAction,
    CheckpointAction,
    ModalLifecycleAction,
]

ACTION_CLASSES: dict[ActionType, type] = {
    ActionType.CLICK: ClickAction,
    ActionType.INPUT: InputAction,
    ActionType.SCROLL: ScrollAction,
    ActionType.NAVIGATION: NavigationAction,
    ActionType.SUBMIT: SubmitAction,
    ActionType.HOVER: HoverAction,
    ActionType.SELECT: SelectAction,
    ActionType.KEYPRESS: KeypressAction,
    ActionType.CHECKPOINT: CheckpointAction,
    ActionType.MODAL_LIFECYCLE: ModalLifecycleAction,
}


def selector_from_dict(data: dict) -> SelectorModel:
    """Pick the authoritative selector description of a raw action.

    The multi-candidate ``selectors`` array wins over the legacy ``selector``
    object when both are present.
    """
    candidates = data.get("selectors")
    if candidates:
        return SelectorModel.from_candidates(candidates)
    legacy = data.get("selector")
    if isinstance(legacy, dict):
        return SelectorModel.from_legacy(legacy)
    if isinstance(legacy, str) and legacy:
        return SelectorModel.from_legacy({"css": legacy})
    return SelectorModel()


def get_selector(action: Action) -> Optional[SelectorModel]:
    """Return the element selector of an action, if it targets one."""
    if isinstance(action, ScrollAction):
        return None if action.is_window else action.element
    return getattr(action, "selector", None)


def action_from_dict(data: dict) -> Action:
    """Create an Action variant from the recorder's JSON form.

    Raises:
        ValueError: If the action type is unknown
        KeyError: If a required common field is missing
    """
    action_type = ActionType(data["type"])
    common: dict[str, Any] = {
        "id": str(data["id"]),
        "timestamp": float(data["timestamp"]),
        "url": data.get("url", ""),
        "completed_at": data.get("completedAt"),
        "is_optional": bool(data.get("isOptional", False)),
        "skip_if_not_found": bool(data.get("skipIfNotFound", False)),
        "reason": data.get("reason"),
    }
    signature = None
    if data.get("contentSignature"):
        signature = ContentSignature.from_dict(data["contentSignature"])

    if action_type == ActionType.CLICK:
        return ClickAction(
            **common,
            selector=selector_from_dict(data),
            content_signature=signature,
            button=data.get("button", "left"),
            click_count=int(data.get("clickCount", 1)),
            text=data.get("text"),
            tag_name=data.get("tagName"),
            modifiers=tuple(data.get("modifiers") or ()),
        )
    if action_type == ActionType.INPUT:
        return InputAction(
            **common,
            selector=selector_from_dict(data),
            content_signature=signature,
            value=str(data.get("value", "")),
            input_type=data.get("inputType", "text"),
            is_sensitive=bool(data.get("isSensitive", False)),
            simulation_type=data.get("simulationType"),
            typing_delay=data.get("typingDelay"),
        )
    if action_type == ActionType.SCROLL:
        element = data.get("element", "window")
        if element != "window":
            element = selector_from_dict({"selector": element})
        return ScrollAction(
            **common,
            element=element,
            scroll_x=int(data.get("scrollX", 0)),
            scroll_y=int(data.get("scrollY", 0)),
        )
    if action_type == ActionType.NAVIGATION:
        return NavigationAction(
            **common,
            to=data.get("to", ""),
            from_url=data.get("from"),
            navigation_trigger=data.get("navigationTrigger"),
            wait_until=data.get("waitUntil", "domcontentloaded"),
        )
    if action_type == ActionType.SUBMIT:
        return SubmitAction(**common, selector=selector_from_dict(data), content_signature=signature)
    if action_type == ActionType.HOVER:
        return HoverAction(
            **common,
            selector=selector_from_dict(data),
            content_signature=signature,
            text=data.get("text"),
        )
    if action_type == ActionType.SELECT:
        return SelectAction(
            **common,
            selector=selector_from_dict(data),
            content_signature=signature,
            selected_value=data.get("selectedValue"),
            selected_text=data.get("selectedText"),
            selected_index=data.get("selectedIndex"),
        )
    if action_type == ActionType.KEYPRESS:
        return KeypressAction(
            **common,
            key=data.get("key", ""),
            code=data.get("code"),
            modifiers=tuple(data.get("modifiers") or ()),
        )
    if action_type == ActionType.CHECKPOINT:
        return CheckpointAction(
            **common,
            check_type=data.get("checkType", ""),
            expected_url=data.get("expectedUrl"),
            passed=bool(data.get("passed", False)),
        )
    modal = data.get("modalElement") or {}
    return ModalLifecycleAction(
        **common,
        event=data.get("event", ""),
        modal_id=modal.get("id") if isinstance(modal, dict) else None,
    )


@dataclass
class Recording:
    """A captured session, read-only input to a replay run."""

    id: str
    test_name: str
    url: str
    viewport: Viewport = field(default_factory=Viewport)
    user_agent: str = ""
    actions: list[Action] = field(default_factory=list)
    version: str = "1.0"
    start_time: Optional[Any] = None
    end_time: Optional[Any] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Recording":
        """Create Recording from the recorder's JSON form."""
        viewport = data.get("viewport") or {}
        return cls(
            id=str(data["id"]),
            test_name=data.get("testName", ""),
            url=data.get("url", ""),
            viewport=Viewport(
                width=int(viewport.get("width", 1280)),
                height=int(viewport.get("height", 720)),
            ),
            user_agent=data.get("userAgent", ""),
            actions=[action_from_dict(item) for item in data.get("actions", [])],
            version=data.get("version", "1.0"),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
        )

    def hostnames(self) -> set[str]:
        """Hostnames of every URL the recording visits."""
        urls = [self.url] + [a.url for a in self.actions]
        urls += [a.to for a in self.actions if isinstance(a, NavigationAction)]
        return {urlsplit(u).hostname for u in urls if u and urlsplit(u).hostname}


__all__ = [
    "Action",
    "ACTION_CLASSES",
    "ActionType",
    "BaseAction",
    "CheckpointAction",
    "ClickAction",
    "ContentFingerprint",
    "ContentSignature",
    "HoverAction",
    "InputAction",
    "KeypressAction",
    "ModalLifecycleAction",
    "NavigationAction",
    "PositionValue",
    "Recording",
    "ScrollAction",
    "SelectAction",
    "SelectorCandidate",
    "SelectorModel",
    "SelectorStrategy",
    "SubmitAction",
    "Viewport",
    "action_from_dict",
    "get_selector",
    "selector_from_dict",
]
