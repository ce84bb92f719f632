"""Recording model, parsing and analysis."""

from .models import (
    Action,
    ActionType,
    ClickAction,
    InputAction,
    NavigationAction,
    Recording,
    SelectorCandidate,
    SelectorModel,
    SelectorStrategy,
    action_from_dict,
    get_selector,
)
from .parser import RecordingParser, RecordingValidationError
from .analyzer import RecordingAnalysis, RecordingAnalyzer

__all__ = [
    "Action",
    "ActionType",
    "ClickAction",
    "InputAction",
    "NavigationAction",
    "Recording",
    "SelectorCandidate",
    "SelectorModel",
    "SelectorStrategy",
    "action_from_dict",
    "get_selector",
    "RecordingParser",
    "RecordingValidationError",
    "RecordingAnalysis",
    "RecordingAnalyzer",
]
