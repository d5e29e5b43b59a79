"""
Tests for the topic tree model and parsing helpers.
"""

import math

import pytest

from topic_tree.core.tree import (
    TreeParseError,
    count_nodes,
    disambiguate_ids,
    find_duplicate_ids,
    find_node,
    iter_nodes,
    parse_topic_tree,
    strip_code_fences,
    tree_depth,
)
from topic_tree.core.types import LayoutEdge, LayoutGraph, PositionedNode, TopicNode, format_accuracy


class TestTopicNode:
    """Test the TopicNode model."""

    def test_minimal_node(self):
        node = TopicNode(id="cats", topic="Cats", accuracy=0.9)
        assert node.subtopics == []
        assert node.has_children is False

    def test_null_subtopics_become_empty(self):
        node = TopicNode.model_validate({"id": "cats", "topic": "Cats", "accuracy": 0.9, "subtopics": None})
        assert node.subtopics == []

    def test_non_object_children_dropped(self):
        node = TopicNode.model_validate(
            {"id": "cats", "topic": "Cats", "accuracy": 0.9, "subtopics": ["oops", 3, {"id": "kittens", "topic": "Kittens"}]}
        )
        assert [child.id for child in node.subtopics] == ["kittens"]

    def test_missing_label_and_accuracy(self):
        node = TopicNode.model_validate({"id": "mars"})
        assert node.topic == "mars"
        assert node.accuracy == 0.0

    def test_accuracy_coercion(self):
        assert TopicNode.model_validate({"id": "a", "accuracy": "0.75"}).accuracy == 0.75
        assert TopicNode.model_validate({"id": "a", "accuracy": "high"}).accuracy == 0.0
        assert math.isnan(TopicNode.model_validate({"id": "a", "accuracy": float("nan")}).accuracy)

    def test_numeric_id_coerced(self):
        assert TopicNode.model_validate({"id": 7, "topic": "Seven"}).id == "7"

    def test_numeric_topic_coerced(self):
        tree = parse_topic_tree({"id": "r", "topic": 42, "subtopics": [{"id": "zero", "topic": 0}]})
        assert tree.topic == "42"
        assert tree.subtopics[0].topic == "0"

    def test_node_is_frozen(self):
        node = TopicNode(id="cats", topic="Cats", accuracy=0.9)
        with pytest.raises(Exception):
            node.topic = "Dogs"


class TestFormatting:
    def test_format_accuracy(self):
        assert format_accuracy(0.853) == "85%"
        assert format_accuracy(0.853, 1) == "85.3%"
        assert format_accuracy(float("inf")) == "n/a"


class TestParsing:
    """Test parse_topic_tree."""

    def test_parse_dict(self):
        tree = parse_topic_tree({"id": "r", "topic": "Root", "accuracy": 1.0, "subtopics": [{"id": "c", "topic": "C", "accuracy": 0.5}]})
        assert tree.id == "r"
        assert tree.subtopics[0].id == "c"

    def test_parse_fenced_json(self):
        text = '```json\n{"id": "r", "topic": "Root", "accuracy": 1.0, "subtopics": []}\n```'
        assert parse_topic_tree(text).topic == "Root"

    def test_strip_code_fences_passthrough(self):
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_missing_ids_get_path_ids(self):
        tree = parse_topic_tree({"topic": "Root", "subtopics": [{"topic": "A"}, {"id": "b", "topic": "B", "subtopics": [{"topic": "B1"}]}]})
        assert tree.id == "node_0"
        assert tree.subtopics[0].id == "node_0_0"
        assert tree.subtopics[1].subtopics[0].id == "node_0_1_0"

    def test_parse_node_passthrough(self):
        node = TopicNode(id="x", topic="X", accuracy=1.0)
        assert parse_topic_tree(node) is node

    @pytest.mark.parametrize("payload", ["not json", "", "[1, 2]", "42"])
    def test_invalid_payloads(self, payload):
        with pytest.raises(TreeParseError):
            parse_topic_tree(payload)


class TestTraversal:
    """Test traversal helpers."""

    def setup_method(self):
        self.tree = parse_topic_tree(
            {
                "id": "r",
                "topic": "R",
                "subtopics": [
                    {"id": "a", "topic": "A", "subtopics": [{"id": "a1", "topic": "A1"}]},
                    {"id": "b", "topic": "B"},
                ],
            }
        )

    def test_iter_nodes_pre_order(self):
        assert [node.id for node in iter_nodes(self.tree)] == ["r", "a", "a1", "b"]

    def test_find_node(self):
        assert find_node(self.tree, "a1").topic == "A1"
        assert find_node(self.tree, "zzz") is None

    def test_counts(self):
        assert count_nodes(self.tree) == 4
        assert tree_depth(self.tree) == 3
        assert tree_depth(TopicNode(id="solo", topic="Solo")) == 1


class TestDuplicateIds:
    """Test duplicate id detection and disambiguation."""

    def setup_method(self):
        self.tree = parse_topic_tree(
            {
                "id": "r",
                "topic": "R",
                "subtopics": [
                    {"id": "name", "topic": "Name", "subtopics": [{"id": "michael", "topic": "Michael"}]},
                    {"id": "name", "topic": "Name again"},
                    {"id": "name~2", "topic": "Literal suffix"},
                ],
            }
        )

    def test_find_duplicates(self):
        assert find_duplicate_ids(self.tree) == ["name"]
        assert find_duplicate_ids(TopicNode(id="x", topic="X")) == []

    def test_disambiguate(self):
        fixed = disambiguate_ids(self.tree)
        ids = [node.id for node in iter_nodes(fixed)]

        assert len(ids) == len(set(ids))
        assert ids[:3] == ["r", "name", "michael"]
        assert fixed.subtopics[1].id == "name~2"
        assert fixed.subtopics[2].id == "name~2~2"
        assert fixed.subtopics[1].topic == "Name again"

    def test_disambiguate_leaves_original_untouched(self):
        disambiguate_ids(self.tree)
        assert self.tree.subtopics[1].id == "name"


class TestLayoutGraphExport:
    """Test the flow-diagram export."""

    def test_to_flow_dict(self):
        graph = LayoutGraph(
            nodes=[
                PositionedNode(id="r", label="Root", accuracy=1.0, has_children=True, is_expanded=True, x=0.0, y=0.0),
                PositionedNode(id="a", label="A", accuracy=float("nan"), x=-90.0, y=150.0),
            ],
            edges=[LayoutEdge(id="r-a", source_id="r", target_id="a")],
        )
        flow = graph.to_flow_dict()

        assert flow["nodes"][0]["position"] == {"x": 0.0, "y": 0.0}
        assert flow["nodes"][0]["data"]["hasChildren"] is True
        assert flow["nodes"][0]["type"] == "topicNode"
        assert flow["nodes"][1]["data"]["accuracy"] is None
        assert flow["edges"] == [{"id": "r-a", "source": "r", "target": "a", "type": "smoothstep"}]

    def test_get_node_last_wins_on_duplicates(self):
        graph = LayoutGraph(
            nodes=[
                PositionedNode(id="d", label="first", accuracy=1.0, x=0.0, y=0.0),
                PositionedNode(id="d", label="second", accuracy=1.0, x=1.0, y=0.0),
            ]
        )
        assert graph.get_node("d").label == "second"
        assert graph.get_node("missing") is None
