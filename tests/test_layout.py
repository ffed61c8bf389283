"""Tests for the layered auto-layout."""

import pytest

from kijo_core.identifiers import DiagramKind
from kijo_core.layout import (
    Position,
    SizedNode,
    estimate_node_width,
    layout,
    layout_structure,
    needs_relayout,
    size_nodes,
)
from kijo_core.settings import LayoutSettings


def sized(*ids, width=120, height=50):
    return [SizedNode(id=node_id, width=width, height=height) for node_id in ids]


def edges(*pairs):
    return [{"id": f"e{i}", "from": a, "to": b} for i, (a, b) in enumerate(pairs)]


class TestWidthEstimate:

    def test_minimum_width(self):
        assert estimate_node_width({"id": "a", "type": "process", "title": "短い"}) == 120

    def test_title_length(self):
        node = {"id": "a", "type": "process", "title": "あ" * 10}
        assert estimate_node_width(node) == 10 * 14 + 40

    def test_information_symbol_affix(self):
        node = {"id": "a", "type": "information", "title": "あ" * 10, "symbol": "W"}
        assert estimate_node_width(node) == (10 + 1 + 3) * 14 + 40

    def test_symbol_ignored_for_other_types(self):
        node = {"id": "a", "type": "process", "title": "あ" * 10, "symbol": "W"}
        assert estimate_node_width(node) == 10 * 14 + 40

    def test_flow_decision_minimum(self):
        node = {"id": "d", "type": "decision", "title": "可否"}
        assert estimate_node_width(node, DiagramKind.FLOW) == 180
        assert estimate_node_width(node, DiagramKind.MECHANISM) == 120

    def test_custom_settings(self):
        settings = LayoutSettings(min_node_width=10, char_width=10, padding=0)
        assert estimate_node_width({"id": "a", "type": "terminal", "title": "abc"}, settings=settings) == 30

    def test_size_nodes(self, mechanism_nodes):
        sizes = size_nodes(mechanism_nodes)
        assert [s.id for s in sizes] == [n["id"] for n in mechanism_nodes]
        assert all(s.height == 50 for s in sizes)


class TestLayout:

    def test_deterministic(self, mechanism_nodes, mechanism_edges):
        first = layout_structure(mechanism_nodes, mechanism_edges)
        second = layout_structure(mechanism_nodes, mechanism_edges)
        assert first == second

    def test_left_to_right_ranks(self):
        positions = layout(sized("a", "b", "c"), edges(("a", "b"), ("b", "c")), "LR")

        xs = [positions[n].x for n in "abc"]
        assert xs == sorted(xs) and len(set(xs)) == 3
        assert len({positions[n].y for n in "abc"}) == 1
        assert positions["a"] == Position(x=50, y=50, width=120, height=50)
        assert positions["b"].x == 50 + 120 + 120

    def test_top_to_bottom_ranks(self):
        positions = layout(sized("a", "b", "c"), edges(("a", "b"), ("b", "c")), "TB")

        ys = [positions[n].y for n in "abc"]
        assert ys == [50, 50 + 50 + 80, 50 + 2 * (50 + 80)]
        assert len({positions[n].x for n in "abc"}) == 1

    def test_longest_path_ranking(self):
        # a -> b -> c and a shortcut a -> c: c still sits in the third rank
        positions = layout(sized("a", "b", "c"), edges(("a", "b"), ("b", "c"), ("a", "c")), "TB")
        assert positions["c"].y > positions["b"].y > positions["a"].y

    def test_siblings_do_not_overlap(self):
        positions = layout(sized("root", "x", "y", "z"), edges(("root", "x"), ("root", "y"), ("root", "z")), "LR")

        ys = sorted(positions[n].y for n in ("x", "y", "z"))
        assert ys[1] - ys[0] >= 50 + 80
        assert ys[2] - ys[1] >= 50 + 80
        assert len({positions[n].x for n in ("x", "y", "z")}) == 1

    def test_mixed_widths_share_a_rank(self):
        nodes = [SizedNode("a", 300, 50), SizedNode("b", 100, 50), SizedNode("c", 120, 50)]
        positions = layout(nodes, edges(("a", "c"), ("b", "c")), "LR")
        # the next rank starts after the widest node of the previous one
        assert positions["c"].x == 50 + 300 + 120

    def test_crossing_reduction(self):
        # a1 -> b2 and a2 -> b1 cross in input order
        positions = layout(sized("a1", "a2", "b1", "b2"), edges(("a1", "b2"), ("a2", "b1")), "TB")

        a_order = sorted(["a1", "a2"], key=lambda n: positions[n].x)
        b_order = sorted(["b1", "b2"], key=lambda n: positions[n].x)
        targets = {"a1": "b2", "a2": "b1"}
        assert [targets[a] for a in a_order] == b_order

    def test_cycles_are_laid_out(self):
        positions = layout(sized("a", "b", "c"), edges(("a", "b"), ("b", "c"), ("c", "a")), "TB")
        assert set(positions) == {"a", "b", "c"}
        assert len({positions[n].y for n in "abc"}) == 3

    def test_long_edges_and_isolated_nodes(self):
        positions = layout(
            sized("a", "b", "c", "d", "lonely"),
            edges(("a", "b"), ("b", "c"), ("c", "d"), ("a", "d")),
            "LR",
        )
        assert list(positions) == ["a", "b", "c", "d", "lonely"]
        assert positions["lonely"].x == positions["a"].x
        assert positions["d"].x > positions["c"].x

    def test_ignores_unknown_and_self_edges(self):
        positions = layout(sized("a", "b"), edges(("a", "a"), ("a", "ghost"), ("a", "b")), "LR")
        assert positions["b"].x > positions["a"].x

    def test_dict_input(self):
        positions = layout([{"id": "a", "width": 200, "height": 60}], [], "LR")
        assert positions["a"] == Position(50, 50, 200, 60)

    def test_dict_input_dimensions(self):
        positions = layout(
            [{"id": "zero", "width": 0, "height": 0}, {"id": "bad", "width": "wide", "height": True}],
            [],
            "TB",
        )
        assert positions["zero"].width == 0
        assert positions["zero"].height == 0
        assert positions["bad"].width == 120
        assert positions["bad"].height == 50

    def test_empty(self):
        assert layout([], [], "LR") == {}

    def test_unknown_direction(self):
        with pytest.raises(ValueError):
            layout(sized("a"), [], "RL")

    def test_flow_structure_runs_top_to_bottom(self, flow_diagram):
        positions = layout_structure(flow_diagram["nodes"], flow_diagram["edges"], DiagramKind.FLOW)
        assert positions["d-special"].y > positions["start"].y
        assert positions["pass"].y == positions["fail"].y
        assert positions["d-special"].width == 180

    def test_position_dict(self):
        assert Position(1, 2, 3, 4).to_dict() == {"x": 1, "y": 2, "width": 3, "height": 4}


class TestRelayoutPolicy:

    def test_same_width_title_change(self):
        before = {"id": "a", "type": "process", "title": "用途"}
        after = {"id": "a", "type": "process", "title": "規模"}
        assert needs_relayout(before, after) is False

    def test_description_change(self):
        before = {"id": "a", "type": "process", "title": "用途"}
        after = {"id": "a", "type": "process", "title": "用途", "description": "説明"}
        assert needs_relayout(before, after) is False

    def test_longer_title(self):
        before = {"id": "a", "type": "process", "title": "用途"}
        after = {"id": "a", "type": "process", "title": "建築物の用途を判定する処理"}
        assert needs_relayout(before, after) is True
