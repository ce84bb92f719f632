"""Browser lifecycle for replay runs."""

from .session import BrowserSession

__all__ = ["BrowserSession"]
