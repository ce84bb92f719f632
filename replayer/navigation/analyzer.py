"""Navigation trigger analysis and prerequisite detection.

Recorders label navigations by what the browser reported, which is often
wrong (a link click reported as a reload, a back button as a link). This
module infers the real trigger from the surrounding actions and URL shape,
and spots dropdown clicks recorded without the hover that opened the menu.
"""

import re
from dataclasses import dataclass, replace
from typing import Optional
from urllib.parse import urlsplit

import structlog

from ..recording.models import (
    Action,
    ClickAction,
    HoverAction,
    NavigationAction,
    SubmitAction,
)

logger = structlog.get_logger()

# A navigation within this window of a click/submit is attributed to it
TRIGGER_WINDOW_MS = 2000

# Gap after which a navigation with no related action is treated as browser UI
IDLE_GAP_MS = 3000

PREREQUISITE_LOOKBACK_ACTIONS = 3
PREREQUISITE_WINDOW_MS = 2000

MENU_ITEM_HINTS = ("dropdown", "menu-item", "submenu")

LINK_PATTERN = re.compile(r"(^|[\s>])a([.#\[:]|$)|href")


@dataclass
class NavigationAnalysis:
    """Inferred trigger of a navigation action."""

    real_trigger: str  # back, forward, form-submit, link-click, redirect or unknown
    confidence: str  # high, medium or low
    reason: str


@dataclass
class PrerequisiteHint:
    """A parent element that must be hovered before a menu item click."""

    after_index: int
    action_id: str
    parent_selector: str
    reason: str


def url_relationship(from_url: Optional[str], to_url: Optional[str]) -> str:
    """Relationship between two URLs in the site hierarchy.

    Returns:
        parent-to-child, child-to-parent, same-level or different-domain
    """
    if not from_url or not to_url:
        return "same-level"
    source = urlsplit(from_url)
    target = urlsplit(to_url)
    if source.hostname != target.hostname:
        return "different-domain"

    source_parts = [p for p in source.path.split("/") if p]
    target_parts = [p for p in target.path.split("/") if p]

    if len(target_parts) > len(source_parts) and target_parts[: len(source_parts)] == source_parts:
        return "parent-to-child"
    if len(source_parts) > len(target_parts) and source_parts[: len(target_parts)] == target_parts:
        return "child-to-parent"
    return "same-level"


def parent_selector(css: str) -> Optional[str]:
    """Drop the last compound of a CSS selector.

    ``div.menu > ul.dropdown > li`` becomes ``div.menu > ul.dropdown``.
    """
    parts = [p.strip() for p in css.split(">")]
    if len(parts) > 1:
        return " > ".join(parts[:-1])
    space_parts = css.split()
    if len(space_parts) > 1:
        return " ".join(space_parts[:-1])
    return None


class NavigationAnalyzer:
    """Corrects navigation triggers and finds missing menu hovers.

    Example:
        analyzer = NavigationAnalyzer()
        actions, warnings = analyzer.correct_navigation_triggers(actions)
        hints = analyzer.detect_missing_prerequisites(actions)
    """

    def __init__(self):
        self.log = logger.bind(component="navigation_analyzer")

    def analyze_navigation(
        self,
        action: NavigationAction,
        previous: Optional[Action],
    ) -> NavigationAnalysis:
        """Infer what really triggered a navigation."""
        if previous is not None:
            gap = action.timestamp - previous.timestamp
            if isinstance(previous, SubmitAction) and gap < TRIGGER_WINDOW_MS:
                return NavigationAnalysis("form-submit", "high", "Previous action was form submit")
            if isinstance(previous, ClickAction) and gap < TRIGGER_WINDOW_MS:
                css = previous.selector.css or ""
                if previous.tag_name == "a" or LINK_PATTERN.search(css):
                    return NavigationAnalysis("link-click", "high", "Previous action was click on link")
                return NavigationAnalysis(
                    "link-click", "medium", "Previous action was click (likely triggered navigation)"
                )

        relationship = url_relationship(action.from_url or action.url, action.to)
        if relationship == "parent-to-child":
            return NavigationAnalysis("link-click", "high", "URL moved deeper into site hierarchy")
        if relationship == "child-to-parent":
            return NavigationAnalysis("back", "medium", "URL moved up in site hierarchy")
        if relationship == "same-level":
            return NavigationAnalysis("link-click", "low", "URL at same hierarchy level")

        if previous is None or action.timestamp - previous.timestamp > IDLE_GAP_MS:
            return NavigationAnalysis("back", "medium", "No recent action triggered this navigation")
        return NavigationAnalysis("unknown", "low", "Could not determine navigation trigger")

    def correct_navigation_triggers(self, actions: list[Action]) -> tuple[list[Action], list[str]]:
        """Rewrite high-confidence mislabeled navigation triggers.

        Returns:
            Tuple of (actions, warnings); input actions are never mutated
        """
        corrected: list[Action] = []
        warnings: list[str] = []

        for index, action in enumerate(actions):
            if not isinstance(action, NavigationAction):
                corrected.append(action)
                continue

            previous = actions[index - 1] if index > 0 else None
            analysis = self.analyze_navigation(action, previous)
            if analysis.confidence == "high" and action.navigation_trigger != analysis.real_trigger:
                warnings.append(
                    f"[{action.id}] Navigation mislabeled: recorded as "
                    f'"{action.navigation_trigger}", analysis indicates '
                    f'"{analysis.real_trigger}" ({analysis.reason})'
                )
                action = replace(
                    action,
                    navigation_trigger=analysis.real_trigger,
                    original_trigger=action.navigation_trigger,
                    correction_reason=analysis.reason,
                )
            corrected.append(action)

        return corrected, warnings

    def detect_missing_prerequisites(self, actions: list[Action]) -> list[PrerequisiteHint]:
        """Find menu item clicks with no recent interaction on their parent."""
        hints: list[PrerequisiteHint] = []

        for index, action in enumerate(actions):
            if not isinstance(action, ClickAction):
                continue
            css = action.selector.css
            if not css or not any(hint in css for hint in MENU_ITEM_HINTS):
                continue
            if self._has_recent_parent_interaction(actions, index, css):
                continue
            parent = parent_selector(css)
            if parent:
                hints.append(
                    PrerequisiteHint(
                        after_index=index - 1,
                        action_id=action.id,
                        parent_selector=parent,
                        reason=f"Dropdown item click requires parent hover: {parent}",
                    )
                )

        return hints

    def _has_recent_parent_interaction(self, actions: list[Action], index: int, css: str) -> bool:
        current = actions[index]
        for position in range(index - 1, max(0, index - PREREQUISITE_LOOKBACK_ACTIONS) - 1, -1):
            previous = actions[position]
            if current.timestamp - previous.timestamp > PREREQUISITE_WINDOW_MS:
                break
            if isinstance(previous, (ClickAction, HoverAction)):
                previous_css = previous.selector.css
                if previous_css and css.startswith(previous_css):
                    return True
        return False

    def apply_prerequisites(self, actions: list[Action], hints: list[PrerequisiteHint]) -> list[Action]:
        """Attach each hint's parent selector to its click as a recovery hint."""
        by_id = {hint.action_id: hint.parent_selector for hint in hints}
        result: list[Action] = []
        for action in actions:
            if isinstance(action, ClickAction) and action.id in by_id:
                action = replace(action, recovery_hint=by_id[action.id])
            result.append(action)
        return result
