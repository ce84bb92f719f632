"""Element resolution.

Provides:
- ElementLocator: ranked multi-strategy selector resolution with retries
- Disambiguator: narrowing of multi-match selectors
- VisibilityRecovery: revealing hidden targets through their triggers
"""

from .disambiguation import DisambiguationHints, Disambiguator
from .locator import ElementLocator, ResolvedElement
from .visibility import RecoveryResult, VisibilityRecovery

__all__ = [
    "ElementLocator",
    "ResolvedElement",
    "Disambiguator",
    "DisambiguationHints",
    "VisibilityRecovery",
    "RecoveryResult",
]
