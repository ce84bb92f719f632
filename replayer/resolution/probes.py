"""Browser-side probes used by visibility recovery.

Each probe is a script evaluated against an element in the page. The input is
always the element reference (plus an optional argument) and the output has a
fixed schema, parsed here into Python types. Ranking happens on this side so
it can be tested without a browser.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

# Ancestor levels inspected above a hidden element
MAX_ANCESTOR_LEVELS = 5

# Input: element, max levels. Output: [{level, tag, id, classes, role,
# visible, clickHandler, selector}] nearest ancestor first.
ANCESTOR_CHAIN_PROBE = """
(element, maxLevels) => {
  const results = [];
  let current = element.parentElement;
  let level = 1;
  while (current && level <= maxLevels) {
    const styles = window.getComputedStyle(current);
    const classes = typeof current.className === 'string' ? current.className : '';
    const role = current.getAttribute('role') || '';
    const tag = current.tagName.toLowerCase();
    const visible = styles.display !== 'none'
      && styles.visibility !== 'hidden'
      && styles.opacity !== '0';
    const classNames = classes.split(/\\s+/).filter(Boolean).slice(0, 3);
    const selector = tag
      + (current.id ? '#' + current.id : '')
      + (classNames.length ? '.' + classNames.join('.') : '');
    results.push({
      level,
      tag,
      id: current.id || '',
      classes,
      role,
      visible,
      clickHandler: Boolean(current.onclick || current.getAttribute('onclick')),
      selector,
    });
    current = current.parentElement;
    level += 1;
  }
  return results;
}
"""

# Input: element, timeout ms. Output: true once a transition ends or the
# timeout passes, whichever comes first.
TRANSITION_END_PROBE = """
(element, timeoutMs) => new Promise((resolve) => {
  let settled = false;
  const finish = () => {
    if (!settled) {
      settled = true;
      resolve(true);
    }
  };
  element.addEventListener('transitionend', finish, { once: true });
  setTimeout(finish, timeoutMs);
})
"""

MENU_PATTERN = re.compile(r"menu|dropdown|accordion|tab|popover|nav", re.IGNORECASE)
CLICK_AFFORDANCE_PATTERN = re.compile(r"button|link|trigger", re.IGNORECASE)

MENU_SCORE = 3
CLICK_SCORE = 2
VISIBLE_SCORE = 1
PROXIMITY_SCORE = 1

HIGH_TIER_SCORE = 5
MEDIUM_TIER_SCORE = 3


class TriggerTier(str, Enum):
    """Confidence that an ancestor reveals its hidden descendant."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class AncestorDescriptor:
    """One ancestor of a hidden element as reported by the probe."""

    level: int
    tag: str
    selector: str = ""
    element_id: str = ""
    classes: str = ""
    role: str = ""
    visible: bool = False
    click_handler: bool = False

    @classmethod
    def from_probe(cls, data: dict[str, Any]) -> "AncestorDescriptor":
        return cls(
            level=int(data.get("level", 0)),
            tag=data.get("tag", ""),
            selector=data.get("selector", ""),
            element_id=data.get("id", ""),
            classes=data.get("classes", ""),
            role=data.get("role", ""),
            visible=bool(data.get("visible", False)),
            click_handler=bool(data.get("clickHandler", False)),
        )

    @property
    def score(self) -> int:
        score = 0
        if MENU_PATTERN.search(f"{self.classes} {self.role} {self.tag}"):
            score += MENU_SCORE
        if self.click_handler or CLICK_AFFORDANCE_PATTERN.search(f"{self.classes} {self.role}"):
            score += CLICK_SCORE
        if self.visible:
            score += VISIBLE_SCORE
        if self.level == 1:
            score += PROXIMITY_SCORE
        return score

    @property
    def tier(self) -> TriggerTier:
        if self.score >= HIGH_TIER_SCORE:
            return TriggerTier.HIGH
        if self.score >= MEDIUM_TIER_SCORE:
            return TriggerTier.MEDIUM
        return TriggerTier.LOW


def parse_ancestor_chain(raw: Any) -> list[AncestorDescriptor]:
    """Parse the ancestor chain probe output, ignoring malformed entries."""
    if not isinstance(raw, list):
        return []
    return [AncestorDescriptor.from_probe(item) for item in raw if isinstance(item, dict)]


def rank_ancestors(descriptors: list[AncestorDescriptor]) -> list[AncestorDescriptor]:
    """Visible ancestors, best trigger candidate first (nearest wins ties)."""
    visible = [d for d in descriptors if d.visible]
    return sorted(visible, key=lambda d: (-d.score, d.level))
