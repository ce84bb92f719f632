"""Recording replayer: replays captured browser sessions with Playwright."""

from .execution import ReplayEngine, RunOptions, RunResult, RunStatus, TimingMode, run_recording
from .config import Settings, get_settings
from .recording import Recording, RecordingParser

__version__ = "0.1.0"

__all__ = [
    "ReplayEngine",
    "run_recording",
    "RunOptions",
    "RunResult",
    "RunStatus",
    "TimingMode",
    "Recording",
    "RecordingParser",
    "Settings",
    "get_settings",
]
