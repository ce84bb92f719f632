"""Parser for recorder JSON files.

Validates the recording envelope, converts raw actions into typed Action
variants, and provides the normalization passes the engine applies before a
run (timestamp normalization and form sequence repair).
"""

import json
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import (
    Action,
    ClickAction,
    InputAction,
    Recording,
    SubmitAction,
    Viewport,
    action_from_dict,
)

logger = structlog.get_logger()

# Anything above this is a Unix epoch timestamp in milliseconds
ABSOLUTE_TIMESTAMP_THRESHOLD = 1_000_000_000_000

# An input recorded this soon after a submit in the same form was typed first
SEQUENCE_LOOKBACK_ACTIONS = 5
SEQUENCE_WINDOW_MS = 5000

SUBMIT_TEXT_HINTS = ("submit", "calculate", "send", "save")

FORM_PATTERN = re.compile(r"form[#.][\w-]+")
PARENT_SEGMENT_PATTERN = re.compile(r">(.*?)>")


class RecordingValidationError(ValueError):
    """The recording file does not have the expected shape."""

    pass


class ViewportModel(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class RecordingEnvelope(BaseModel):
    """Top-level shape of a recording file."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    version: str = "1.0"
    test_name: str = Field(alias="testName")
    url: str
    start_time: Any = Field(alias="startTime")
    end_time: Optional[Any] = Field(None, alias="endTime")
    viewport: ViewportModel
    user_agent: str = Field("", alias="userAgent")
    actions: list[dict[str, Any]]

    @field_validator("actions")
    @classmethod
    def actions_have_common_fields(cls, actions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        for position, action in enumerate(actions):
            missing = [key for key in ("id", "type", "timestamp") if key not in action]
            if missing:
                raise ValueError(f"action {position} is missing {', '.join(missing)}")
        return actions


def _numeric_id(action_id: str) -> Optional[int]:
    digits = re.sub(r"\D", "", action_id)
    return int(digits) if digits else None


def sort_by_id(actions: list[Action]) -> list[Action]:
    """Order actions by the numeric part of their sequential ids.

    Recorders number actions in capture order (act_001, act_002...), which is
    more reliable than timestamps. Left untouched when any id has no number.
    """
    keys = [_numeric_id(action.id) for action in actions]
    if any(key is None for key in keys):
        return list(actions)
    return [action for _, action in sorted(zip(keys, actions), key=lambda pair: pair[0])]


def normalize_timestamps(actions: list[Action]) -> list[Action]:
    """Make timestamps relative to the first action and monotonic.

    The first action lands at 0; any action earlier than its predecessor is
    clamped to the predecessor's timestamp. Order is preserved and the
    operation is idempotent.
    """
    if not actions:
        return []

    start = actions[0].timestamp
    normalized: list[Action] = []
    previous = 0.0
    for action in actions:
        relative = max(action.timestamp - start, previous)
        if relative != action.timestamp - start:
            logger.debug(
                "Timestamp inversion clamped",
                action_id=action.id,
                recorded=action.timestamp - start,
                clamped=relative,
            )
        previous = relative
        normalized.append(action if relative == action.timestamp else replace(action, timestamp=relative))
    return normalized


def is_form_submit_click(action: Action) -> bool:
    """Whether a click targets a form's submit button."""
    if not isinstance(action, ClickAction):
        return False
    css = action.selector.css or ""
    text = (action.text or "").lower()
    if "button" not in css:
        return False
    return any(hint in text for hint in SUBMIT_TEXT_HINTS) or '[type="submit"]' in css


def _css(action: Action) -> str:
    selector = getattr(action, "selector", None)
    return (selector.css if selector is not None else None) or ""


def in_same_form(first: Action, second: Action) -> bool:
    """Whether two actions target elements of the same form."""
    first_css = _css(first)
    second_css = _css(second)

    first_form = FORM_PATTERN.search(first_css)
    second_form = FORM_PATTERN.search(second_css)
    if first_form and second_form:
        return first_form.group(0) == second_form.group(0)

    first_parents = set(PARENT_SEGMENT_PATTERN.findall(first_css))
    second_parents = set(PARENT_SEGMENT_PATTERN.findall(second_css))
    return bool(first_parents & second_parents)


def fix_illogical_sequences(actions: list[Action]) -> tuple[list[Action], list[str]]:
    """Move inputs recorded just after their form's submit to before it.

    Returns:
        Tuple of (actions, warnings), one warning per move
    """
    result = list(actions)
    warnings: list[str] = []

    index = 0
    while index < len(result):
        action = result[index]
        moved = False
        if isinstance(action, InputAction):
            for position in range(index - 1, max(0, index - SEQUENCE_LOOKBACK_ACTIONS) - 1, -1):
                previous = result[position]
                submit_related = isinstance(previous, SubmitAction) or is_form_submit_click(previous)
                if not submit_related or not in_same_form(previous, action):
                    continue
                gap = action.timestamp - previous.timestamp
                if 0 <= gap < SEQUENCE_WINDOW_MS:
                    result.pop(index)
                    result.insert(position, action)
                    warnings.append(
                        f"[{action.id}] Input recorded after {previous.type.value} "
                        f"{previous.id} of the same form; moved before it"
                    )
                    moved = True
                    break
        # Rescan from the start after every move
        index = 0 if moved else index + 1

    return result, warnings


class RecordingParser:
    """Loads and validates recording files.

    Example:
        parser = RecordingParser()
        recording = parser.parse_file("recordings/checkout.json")
    """

    def __init__(self):
        self.log = logger.bind(component="recording_parser")

    def parse_file(self, path: str | Path) -> Recording:
        """Parse a recording from a JSON file."""
        text = Path(path).read_text(encoding="utf-8")
        return self.parse_string(text)

    def parse_string(self, text: str) -> Recording:
        """Parse a recording from a JSON string."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RecordingValidationError(f"Invalid recording JSON: {e}") from e
        return self.parse_dict(data)

    def parse_dict(self, data: dict[str, Any]) -> Recording:
        """Validate raw recording data and build a Recording.

        Raises:
            RecordingValidationError: If the envelope or an action is invalid
        """
        if not isinstance(data, dict):
            raise RecordingValidationError("Invalid recording format: expected a JSON object")

        try:
            envelope = RecordingEnvelope.model_validate(data)
        except ValidationError as e:
            raise RecordingValidationError(f"Invalid recording format: {e}") from e

        try:
            actions = [action_from_dict(item) for item in envelope.actions]
        except (KeyError, TypeError, ValueError) as e:
            raise RecordingValidationError(f"Invalid action: {e}") from e

        actions = sort_by_id(actions)
        if actions and actions[0].timestamp > ABSOLUTE_TIMESTAMP_THRESHOLD:
            start = actions[0].timestamp
            actions = [replace(a, timestamp=a.timestamp - start) for a in actions]

        recording = Recording(
            id=envelope.id,
            test_name=envelope.test_name,
            url=envelope.url,
            viewport=Viewport(width=envelope.viewport.width, height=envelope.viewport.height),
            user_agent=envelope.user_agent,
            actions=actions,
            version=envelope.version,
            start_time=envelope.start_time,
            end_time=envelope.end_time,
        )
        self.log.info("Recording parsed", recording_id=recording.id, actions=len(actions))
        return recording
