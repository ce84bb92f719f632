"""Statistics about a recording, for inspection before replaying it."""

import statistics
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Optional

import structlog

from ..navigation.urls import normalize_url
from .models import Recording

logger = structlog.get_logger()

MOBILE_MAX_WIDTH = 768
TABLET_MAX_WIDTH = 1024


@dataclass
class GapStats:
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    median: float = 0.0


@dataclass
class TimingAnalysis:
    recording_duration_ms: float = 0.0
    action_span_ms: float = 0.0
    gaps: GapStats = field(default_factory=GapStats)


@dataclass
class ViewportInfo:
    category: str  # Mobile, Tablet, Desktop or Unknown
    width: int
    height: int


@dataclass
class ActionStatistics:
    total: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_page: dict[str, int] = field(default_factory=dict)
    percentages: dict[str, float] = field(default_factory=dict)


@dataclass
class NavigationInsights:
    unique_pages: int = 0
    transitions: int = 0
    flow_type: str = "N/A"  # SPA, MPA or N/A


@dataclass
class RecordingAnalysis:
    """Full analysis of one recording."""

    file: str
    metadata: dict[str, Any]
    viewport: ViewportInfo
    statistics: ActionStatistics
    timing: TimingAnalysis
    navigation: NavigationInsights

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _parse_time(value: Any) -> Optional[datetime]:
    """Epoch milliseconds or ISO 8601, as a UTC-aware datetime.

    ISO strings without an offset are taken as UTC.
    """
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


class RecordingAnalyzer:
    """Summarizes a recording: action mix, pacing and page flow.

    Example:
        analysis = RecordingAnalyzer().analyze(recording, "recordings/checkout.json")
        print(analysis.navigation.flow_type)
    """

    def __init__(self):
        self.log = logger.bind(component="recording_analyzer")

    def analyze(self, recording: Recording, file_path: str = "") -> RecordingAnalysis:
        """Analyze a recording."""
        return RecordingAnalysis(
            file=PurePath(file_path.replace("\\", "/")).name if file_path else "",
            metadata=self._metadata(recording),
            viewport=self._viewport(recording),
            statistics=self._statistics(recording),
            timing=self._timing(recording),
            navigation=self._navigation(recording),
        )

    def _metadata(self, recording: Recording) -> dict[str, Any]:
        version = recording.version or "unknown"
        if version not in ("1.0", "unknown"):
            self.log.warning("Recording uses a newer schema version", version=version, supported="1.0")
        return {
            "test_name": recording.test_name,
            "recording_id": recording.id,
            "start_url": recording.url,
            "recorded_at": recording.start_time,
            "completed_at": recording.end_time or recording.start_time,
            "schema_version": version,
            "user_agent": recording.user_agent,
        }

    def _viewport(self, recording: Recording) -> ViewportInfo:
        if recording.viewport is None:
            return ViewportInfo("Unknown", 0, 0)
        width = max(1, recording.viewport.width)
        height = max(1, recording.viewport.height)
        if width <= MOBILE_MAX_WIDTH:
            category = "Mobile"
        elif width <= TABLET_MAX_WIDTH:
            category = "Tablet"
        else:
            category = "Desktop"
        return ViewportInfo(category, width, height)

    def _statistics(self, recording: Recording) -> ActionStatistics:
        actions = recording.actions
        if not actions:
            return ActionStatistics()

        by_type = Counter(action.type.value for action in actions)
        by_page = Counter(normalize_url(action.url) for action in actions if action.url)
        total = len(actions)
        return ActionStatistics(
            total=total,
            by_type=dict(by_type),
            by_page=dict(by_page),
            percentages={kind: count / total * 100 for kind, count in by_type.items()},
        )

    def _timing(self, recording: Recording) -> TimingAnalysis:
        timestamps = [a.timestamp for a in recording.actions if a.timestamp >= 0]
        if not timestamps:
            return TimingAnalysis()

        started = _parse_time(recording.start_time)
        ended = _parse_time(recording.end_time) or started
        duration = (ended - started).total_seconds() * 1000 if started and ended else 0.0

        gaps = [later - earlier for earlier, later in zip(timestamps, timestamps[1:])]
        timing = TimingAnalysis(
            recording_duration_ms=duration,
            action_span_ms=max(timestamps) - min(timestamps),
        )
        if gaps:
            timing.gaps = GapStats(
                min=min(gaps),
                max=max(gaps),
                avg=sum(gaps) / len(gaps),
                median=statistics.median(gaps),
            )
        return timing

    def _navigation(self, recording: Recording) -> NavigationInsights:
        pages = {normalize_url(a.url) for a in recording.actions if a.url}
        if not pages:
            return NavigationInsights()
        return NavigationInsights(
            unique_pages=len(pages),
            transitions=len(pages) - 1,
            flow_type="SPA" if len(pages) == 1 else "MPA",
        )
