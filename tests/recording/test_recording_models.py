"""Tests for recording data models."""

import pytest

from replayer.recording.models import (
    LEGACY_CONFIDENCE,
    ActionType,
    CheckpointAction,
    ClickAction,
    InputAction,
    ModalLifecycleAction,
    NavigationAction,
    PositionValue,
    Recording,
    ScrollAction,
    SelectorCandidate,
    SelectorModel,
    SelectorStrategy,
    action_from_dict,
    get_selector,
    selector_from_dict,
)


class TestSelectorCandidate:
    """Test SelectorCandidate parsing and validation."""

    def test_from_dict_plain_value(self):
        """Test a string-valued candidate with defaults."""
        candidate = SelectorCandidate.from_dict({"strategy": "id", "value": "submit-btn", "priority": 1})

        assert candidate.strategy == SelectorStrategy.ID
        assert candidate.value == "submit-btn"
        assert candidate.priority == 1
        assert candidate.confidence == LEGACY_CONFIDENCE

    def test_from_dict_structured_position(self):
        """Test the position strategy carries a structured value."""
        candidate = SelectorCandidate.from_dict({
            "strategy": "position",
            "value": {"parent": "ul.results", "index": 2},
            "confidence": 40,
        })

        assert candidate.value == PositionValue(parent="ul.results", index=2)
        assert candidate.text_value == "ul.results > :nth-child(3)"

    def test_position_value_only_for_position_strategy(self):
        """Test structured values are rejected for other strategies."""
        with pytest.raises(ValueError):
            SelectorCandidate(strategy=SelectorStrategy.CSS, value=PositionValue("ul", 0))

    def test_confidence_out_of_range(self):
        """Test confidence must stay within 0-100."""
        with pytest.raises(ValueError):
            SelectorCandidate(strategy=SelectorStrategy.ID, value="x", confidence=120)

    def test_unknown_strategy(self):
        """Test unknown strategy names are rejected."""
        with pytest.raises(ValueError):
            SelectorCandidate.from_dict({"strategy": "magic", "value": "x"})


class TestSelectorModel:
    """Test SelectorModel construction."""

    def test_from_candidates_collects_hints(self):
        """Test text and position hints are lifted from candidates."""
        model = SelectorModel.from_candidates([
            {"strategy": "css", "value": "li.item", "priority": 1, "confidence": 60},
            {"strategy": "text-content", "value": "Blue", "priority": 2, "textContains": "Blue shirt"},
            {"strategy": "position", "value": {"parent": "ul.items", "index": 4}, "priority": 3},
        ])

        assert len(model.candidates) == 3
        assert model.text_contains == "Blue shirt"
        assert model.position == PositionValue("ul.items", 4)
        assert model.legacy is False

    def test_from_legacy_follows_priority_list(self):
        """Test legacy fields become candidates in the recorded priority order."""
        model = SelectorModel.from_legacy({
            "css": "button.buy",
            "id": "buy",
            "text": "Buy now",
            "priority": ["css", "id"],
        })

        strategies = [c.strategy for c in model.candidates]
        assert strategies == [SelectorStrategy.CSS, SelectorStrategy.ID, SelectorStrategy.TEXT_CONTENT]
        assert [c.priority for c in model.candidates] == [0, 1, 2]
        assert all(c.confidence == LEGACY_CONFIDENCE for c in model.candidates)
        assert model.legacy is True
        assert model.text_contains == "Buy now"

    def test_from_legacy_test_id_becomes_css(self):
        """Test data-testid maps to an attribute selector."""
        model = SelectorModel.from_legacy({"dataTestId": "cart"})

        assert model.candidates[0].strategy == SelectorStrategy.CSS
        assert model.candidates[0].value == '[data-testid="cart"]'

    def test_from_legacy_validated_unique(self):
        """Test the validation block marks candidates unique."""
        model = SelectorModel.from_legacy({
            "css": "ul.menu li",
            "validation": {"cssMatches": 1, "isUnique": True},
        })

        assert model.validated_unique is True
        assert model.candidates[0].validated_unique is True

    def test_signature_is_structural(self):
        """Test equal selectors have equal signatures."""
        first = SelectorModel.from_candidates([{"strategy": "id", "value": "a", "priority": 1}])
        second = SelectorModel.from_candidates([{"strategy": "id", "value": "a", "priority": 1}])
        other = SelectorModel.from_candidates([{"strategy": "id", "value": "b", "priority": 1}])

        assert first.signature() == second.signature()
        assert first.signature() != other.signature()

    def test_describe(self):
        """Test description uses the best-priority candidate."""
        model = SelectorModel.from_candidates([
            {"strategy": "css", "value": ".b", "priority": 2},
            {"strategy": "id", "value": "a", "priority": 1},
        ])

        assert model.describe() == "id=a"
        assert SelectorModel().describe() == "<no selector>"


class TestSelectorFromDict:
    """Test choosing between the multi-candidate and legacy forms."""

    def test_selectors_array_wins(self):
        """Test the candidates array is authoritative when both are present."""
        model = selector_from_dict({
            "selectors": [{"strategy": "id", "value": "new", "priority": 1, "confidence": 90}],
            "selector": {"css": "#old"},
        })

        assert model.legacy is False
        assert model.candidates[0].value == "new"

    def test_plain_string_selector(self):
        """Test a bare CSS string is treated as a legacy selector."""
        model = selector_from_dict({"selector": "a.next"})

        assert model.legacy is True
        assert model.css == "a.next"

    def test_missing_selector(self):
        """Test actions without selectors get an empty model."""
        assert selector_from_dict({}).candidates == ()


class TestActionFromDict:
    """Test conversion of raw actions to typed variants."""

    def test_click(self):
        """Test click fields are parsed."""
        action = action_from_dict({
            "id": "act_001",
            "type": "click",
            "timestamp": 100,
            "url": "https://shop.test/",
            "selectors": [{"strategy": "id", "value": "buy", "priority": 1, "confidence": 95}],
            "button": "right",
            "clickCount": 2,
            "modifiers": ["ctrl"],
        })

        assert isinstance(action, ClickAction)
        assert action.type == ActionType.CLICK
        assert action.button == "right"
        assert action.click_count == 2
        assert action.modifiers == ("ctrl",)

    def test_input(self):
        """Test input fields are parsed."""
        action = action_from_dict({
            "id": "act_002",
            "type": "input",
            "timestamp": 200,
            "selector": {"css": "input[name=q]"},
            "value": "shoes",
            "simulationType": "type",
            "typingDelay": 80,
        })

        assert isinstance(action, InputAction)
        assert action.value == "shoes"
        assert action.simulation_type == "type"
        assert action.typing_delay == 80

    def test_scroll_window_and_element(self):
        """Test scroll targets either the window or an element."""
        window = action_from_dict({"id": "1", "type": "scroll", "timestamp": 0, "scrollY": 400})
        element = action_from_dict({
            "id": "2",
            "type": "scroll",
            "timestamp": 0,
            "element": {"css": "div.feed"},
            "scrollY": 50,
        })

        assert isinstance(window, ScrollAction)
        assert window.is_window
        assert get_selector(window) is None
        assert not element.is_window
        assert get_selector(element).css == "div.feed"

    def test_navigation(self):
        """Test navigation fields are parsed."""
        action = action_from_dict({
            "id": "3",
            "type": "navigation",
            "timestamp": 0,
            "to": "https://shop.test/cart",
            "from": "https://shop.test/",
            "navigationTrigger": "reload",
        })

        assert isinstance(action, NavigationAction)
        assert action.to == "https://shop.test/cart"
        assert action.from_url == "https://shop.test/"
        assert action.navigation_trigger == "reload"

    def test_checkpoint_and_modal(self):
        """Test the informational action kinds."""
        checkpoint = action_from_dict({
            "id": "4",
            "type": "checkpoint",
            "timestamp": 0,
            "checkType": "urlMatch",
            "expectedUrl": "https://shop.test/done",
            "passed": True,
        })
        modal = action_from_dict({
            "id": "5",
            "type": "modal-lifecycle",
            "timestamp": 0,
            "event": "opened",
            "modalElement": {"id": "cookie-banner"},
        })

        assert isinstance(checkpoint, CheckpointAction)
        assert checkpoint.passed is True
        assert isinstance(modal, ModalLifecycleAction)
        assert modal.modal_id == "cookie-banner"

    def test_unknown_type(self):
        """Test unknown action kinds are rejected."""
        with pytest.raises(ValueError):
            action_from_dict({"id": "1", "type": "teleport", "timestamp": 0})


class TestRecording:
    """Test Recording parsing."""

    def test_from_dict_and_hostnames(self):
        """Test the recording envelope and visited hosts."""
        recording = Recording.from_dict({
            "id": "rec-1",
            "testName": "Checkout",
            "url": "https://shop.test/",
            "viewport": {"width": 390, "height": 844},
            "actions": [
                {"id": "1", "type": "click", "timestamp": 0, "url": "https://shop.test/"},
                {"id": "2", "type": "navigation", "timestamp": 10, "to": "https://pay.test/checkout"},
            ],
        })

        assert recording.test_name == "Checkout"
        assert recording.viewport.width == 390
        assert len(recording.actions) == 2
        assert recording.hostnames() == {"shop.test", "pay.test"}
