"""Tests for ancestor probe parsing and trigger scoring."""

from replayer.resolution.probes import (
    AncestorDescriptor,
    TriggerTier,
    parse_ancestor_chain,
    rank_ancestors,
)


class TestAncestorScore:
    """Test trigger scoring."""

    def test_dropdown_parent_scores_high(self):
        descriptor = AncestorDescriptor(level=1, tag="div", classes="dropdown-menu", visible=True)

        assert descriptor.score == 5  # menu + visible + proximity
        assert descriptor.tier == TriggerTier.HIGH

    def test_click_affordance(self):
        descriptor = AncestorDescriptor(level=2, tag="span", classes="toggle", visible=True, click_handler=True)

        assert descriptor.score == 3
        assert descriptor.tier == TriggerTier.MEDIUM

    def test_plain_ancestor_is_low(self):
        descriptor = AncestorDescriptor(level=3, tag="section", visible=True)

        assert descriptor.score == 1
        assert descriptor.tier == TriggerTier.LOW

    def test_role_counts_as_menu_pattern(self):
        descriptor = AncestorDescriptor(level=4, tag="div", role="tablist", visible=False)

        assert descriptor.score == 3


class TestParseAndRank:
    def test_parse_skips_malformed_entries(self):
        chain = parse_ancestor_chain([
            {"level": 1, "tag": "li", "classes": "item", "visible": True},
            "garbage",
            {"level": 2, "tag": "ul", "classes": "nav-menu", "visible": True, "clickHandler": True},
        ])

        assert [d.level for d in chain] == [1, 2]
        assert chain[1].click_handler is True

    def test_parse_non_list(self):
        assert parse_ancestor_chain(None) == []

    def test_rank_visible_best_first(self):
        ranked = rank_ancestors([
            AncestorDescriptor(level=1, tag="li", visible=True),
            AncestorDescriptor(level=2, tag="ul", classes="nav-menu", visible=True, click_handler=True),
            AncestorDescriptor(level=3, tag="nav", classes="menu", visible=False),
        ])

        assert [d.level for d in ranked] == [2, 1]

    def test_rank_ties_prefer_nearest(self):
        ranked = rank_ancestors([
            AncestorDescriptor(level=3, tag="div", classes="tab", visible=True),
            AncestorDescriptor(level=2, tag="div", classes="tab", visible=True),
        ])

        assert [d.level for d in ranked] == [2, 3]
