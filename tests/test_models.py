"""Tests for the diagram graph model."""

import logging

import pytest

from kijo_core.identifiers import DiagramKind
from kijo_core.models import (
    DecisionNode,
    DiagramDocument,
    Edge,
    FlowDiagram,
    InformationNode,
    MechanismDiagram,
    ProcessNode,
    TerminalNode,
    is_decision_node,
    is_information_node,
    is_process_node,
    is_terminal_node,
    node_to_json_dict,
    parse_edge,
    parse_edges,
    parse_node,
    parse_nodes,
)


class TestNodeParsing:

    def test_dispatch_on_type(self):
        nodes = parse_nodes([
            {"id": "a", "type": "information", "title": "A"},
            {"id": "b", "type": "process", "title": "B"},
            {"id": "c", "type": "decision", "title": "C"},
            {"id": "d", "type": "terminal", "title": "D"},
        ])
        assert [type(n) for n in nodes] == [InformationNode, ProcessNode, DecisionNode, TerminalNode]

    def test_defaults(self):
        info = parse_node({"id": "a", "type": "information"})
        assert info.title == ""
        assert info.property_type == "proposition"
        assert info.plurality == "single"
        assert info.related_articles == []

        process = parse_node({"id": "p", "type": "process", "title": "P"})
        assert process.process_type == "mechanical"
        assert process.iteration == "single"

        decision = parse_node({"id": "d", "type": "decision"})
        assert decision.decision_type == "binary"
        assert decision.condition is None

        terminal = parse_node({"id": "t", "type": "terminal"})
        assert terminal.result == "end"

    def test_generated_id(self):
        node = parse_node({"type": "terminal"})
        assert node.id.startswith("n")

    def test_explicit_nulls_take_defaults(self):
        node = parse_node({"id": "a", "type": "information", "title": None, "plurality": None})
        assert node.title == ""
        assert node.plurality == "single"

    def test_legacy_camel_case(self):
        node = parse_node({
            "id": "a",
            "type": "information",
            "propertyType": "numeric",
            "relatedArticles": ["法::A43:P1"],
        })
        assert node.property_type == "numeric"
        assert node.related_articles == ["法::A43:P1"]

    def test_unknown_enum_values_are_kept(self):
        node = parse_node({"id": "a", "type": "information", "property_type": "custom"})
        assert node.property_type == "custom"

    def test_extra_fields_round_trip(self):
        node = parse_node({"id": "a", "type": "information", "title": "A", "position": {"x": 1}})
        assert node_to_json_dict(node)["position"] == {"x": 1}

    def test_decision_condition_and_options(self):
        node = parse_node({
            "id": "d",
            "type": "decision",
            "decision_type": "multi",
            "condition": {"operator": ">=", "left": {"symbol": "W"}, "right": {"value": 4}},
            "options": ["住宅", {"label": "店舗", "description": "物品販売"}],
        })
        assert node.condition.operator == ">="
        assert node.condition.left.symbol == "W"
        assert node.condition.right.value == 4
        assert [o.label for o in node.options] == ["住宅", "店舗"]

    def test_unknown_type_is_skipped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="kijo_core.models"):
            nodes = parse_nodes([{"id": "x", "type": "group"}, {"id": "a", "type": "terminal"}])
        assert [n.id for n in nodes] == ["a"]
        assert "unknown type" in caplog.text

    def test_non_objects(self):
        assert parse_node("node") is None
        assert parse_nodes("nodes") == []
        assert parse_nodes(None) == []

    def test_models_pass_through(self):
        node = TerminalNode(id="t")
        assert parse_node(node) is node


class TestPredicates:

    def test_predicates(self):
        info, process, decision, terminal = parse_nodes([
            {"type": "information"}, {"type": "process"}, {"type": "decision"}, {"type": "terminal"},
        ])
        assert is_information_node(info) and not is_information_node(process)
        assert is_process_node(process) and not is_process_node(decision)
        assert is_decision_node(decision) and not is_decision_node(terminal)
        assert is_terminal_node(terminal) and not is_terminal_node(info)

    def test_none_matches_nothing(self):
        assert not is_information_node(None)
        assert not is_process_node(None)


class TestEdge:

    def test_from_to_aliases(self):
        edge = parse_edge({"id": "e1", "from": "a", "to": "b", "role": "input"})
        assert edge.source == "a"
        assert edge.target == "b"
        assert edge.to_json_dict() == {"id": "e1", "from": "a", "to": "b", "role": "input"}

    def test_python_names_accepted(self):
        edge = Edge(source="a", target="b")
        assert edge.to_json_dict()["from"] == "a"
        assert edge.id.startswith("e")

    def test_optional_fields_omitted(self):
        edge = parse_edge({"id": "e1", "from": "a", "to": "b", "role": None, "label": ""})
        assert edge.role is None
        assert edge.to_json_dict() == {"id": "e1", "from": "a", "to": "b"}

    def test_non_objects_skipped(self):
        assert len(parse_edges([{"from": "a", "to": "b"}, 3, None])) == 1


class TestDiagramDocument:

    def test_parse(self, document):
        doc = DiagramDocument.from_json_dict(document)
        assert doc.key == "325AC0000000201/A43_P1"
        assert len(doc.kijo_diagram.nodes) == 5
        assert doc.flow_diagram.title == "確認の手順"
        assert doc.structure(DiagramKind.FLOW) is doc.flow_diagram
        assert doc.structure() is doc.kijo_diagram

    def test_json_round_trip(self, document):
        data = DiagramDocument.from_json_dict(document).to_json_dict()
        assert data["legal_ref"]["law_abbrev"] == "法"
        assert data["kijo_diagram"]["edges"][0] == {"id": "e1", "from": "i-use", "to": "p-classify", "role": "input"}
        assert data["flow_diagram"]["nodes"][0]["result"] == "start"
        assert DiagramDocument.from_json_dict(data).to_json_dict() == data

    def test_numeric_legal_ref_fields(self):
        doc = DiagramDocument.from_json_dict({"legal_ref": {"law_id": "X", "article": 43, "paragraph": 1}})
        assert doc.legal_ref.article == "43"
        assert doc.legal_ref.paragraph == "1"

    def test_malformed_sections_fall_back(self):
        doc = DiagramDocument.from_json_dict({
            "id": "A1",
            "page_title": "title",
            "kijo_diagram": [],
            "labels": "x",
            "related_laws": [{"law_id": "Y"}, "bad"],
        })
        assert doc.page_title.title == ""
        assert doc.kijo_diagram is None
        assert doc.labels == []
        assert [law.law_id for law in doc.related_laws] == ["Y"]

    def test_non_object_document(self):
        assert DiagramDocument.from_json_dict(None).id == ""
        assert DiagramDocument.from_json_dict([1, 2]).kijo_diagram is None

    def test_lenient_structures(self):
        structure = MechanismDiagram(nodes=[{"id": "a", "type": "bogus"}, {"id": "b", "type": "process"}], edges="x")
        assert [n.id for n in structure.nodes] == ["b"]
        assert structure.edges == []

        flow = FlowDiagram(title="F", description="D")
        assert flow.to_json_dict() == {"title": "F", "nodes": [], "edges": [], "description": "D"}


class TestWrongFieldShapes:

    def test_numeric_scalars_keep_the_document(self, document):
        document["version"] = 3
        document["id"] = 43
        document["page_title"]["title"] = 2024

        doc = DiagramDocument.from_json_dict(document)
        assert doc.version == "3"
        assert doc.id == "43"
        assert doc.page_title.title == "2024"
        assert len(doc.kijo_diagram.nodes) == 5
        assert len(doc.flow_diagram.edges) == 3

    def test_unusable_scalar_takes_its_default(self, document):
        document["version"] = ["3.0.0"]
        doc = DiagramDocument.from_json_dict(document)

        assert doc.version == "3.0.0"
        assert doc.legal_ref.law_id == "325AC0000000201"
        assert len(doc.kijo_diagram.edges) == 4

    def test_nested_field_is_dropped_alone(self, document):
        document["legal_ref"]["law_name"] = {"ja": "建築基準法"}
        doc = DiagramDocument.from_json_dict(document)

        assert doc.legal_ref.law_name == ""
        assert doc.legal_ref.law_id == "325AC0000000201"

    def test_numeric_node_fields(self):
        node = parse_node({"id": 7, "type": "process", "title": 12})
        assert node.id == "7"
        assert node.title == "12"

    def test_wrongly_shaped_optional_field_is_dropped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="kijo_core.models"):
            node = parse_node({
                "id": "a",
                "type": "information",
                "title": "用途",
                "related_articles": "法::A43:P1",
            })
        assert node.id == "a"
        assert node.title == "用途"
        assert node.related_articles == []
        assert "related_articles" in caplog.text

    def test_legacy_field_of_the_wrong_shape(self):
        node = parse_node({"id": "p", "type": "process", "softwareFunctions": "none"})
        assert node.software_functions == []

    @pytest.mark.parametrize("node_id", [{"x": 1}, ["a"]])
    def test_unusable_id_skips_the_node(self, node_id):
        assert parse_node({"id": node_id, "type": "terminal"}) is None

    def test_unhashable_type_skips_the_node(self):
        assert parse_node({"id": "a", "type": ["information"]}) is None

    def test_edge_fields(self):
        edge = parse_edge({"id": 5, "from": "a", "to": "b", "role": ["input"], "label": 1})
        assert edge.id == "5"
        assert edge.role is None
        assert edge.label == "1"

    def test_unusable_endpoint_skips_the_edge(self):
        assert parse_edge({"id": "e", "from": {"id": "a"}, "to": "b"}) is None
