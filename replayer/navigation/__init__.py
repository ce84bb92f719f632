"""Navigation history, URL comparison and recorded navigation analysis."""

from .history import NavigationEntry, NavigationHistory, NavigationMethod, NavigationOutcome
from .analyzer import NavigationAnalysis, NavigationAnalyzer, PrerequisiteHint
from .urls import is_plausible_cross_domain, urls_match

__all__ = [
    "NavigationHistory",
    "NavigationEntry",
    "NavigationMethod",
    "NavigationOutcome",
    "NavigationAnalyzer",
    "NavigationAnalysis",
    "PrerequisiteHint",
    "urls_match",
    "is_plausible_cross_domain",
]
