"""One-time action list preparation before a run."""

from ..navigation.analyzer import NavigationAnalyzer
from ..recording.models import Action
from ..recording.parser import fix_illogical_sequences, normalize_timestamps
from .reporter import NullReporter, ProgressReporter


class RecordingPreprocessor:
    """Repairs a recorded action list and normalizes its timeline.

    Passes, in order:
    1. Move inputs recorded after their form's submit to before it
    2. Correct mislabeled navigation triggers
    3. Attach parent hover hints to menu item clicks missing their hover
    4. Make timestamps run-relative and monotonic
    """

    def __init__(
        self,
        reporter: ProgressReporter | None = None,
        analyzer: NavigationAnalyzer | None = None,
    ):
        self.reporter = reporter or NullReporter()
        self.analyzer = analyzer or NavigationAnalyzer()

    def run(self, actions: list[Action]) -> list[Action]:
        actions, warnings = fix_illogical_sequences(actions)
        for warning in warnings:
            self.reporter.on_diagnostic("warning", "sequence_reordered", detail=warning)

        actions, warnings = self.analyzer.correct_navigation_triggers(actions)
        for warning in warnings:
            self.reporter.on_diagnostic("warning", "navigation_trigger_corrected", detail=warning)

        hints = self.analyzer.detect_missing_prerequisites(actions)
        for hint in hints:
            self.reporter.on_diagnostic(
                "info",
                "prerequisite_hover_added",
                action_id=hint.action_id,
                parent=hint.parent_selector,
            )
        actions = self.analyzer.apply_prerequisites(actions, hints)

        return normalize_timestamps(actions)
