"""
Unit Tests for the Legacy Adapter

Tests for rebuilding graphs from legacy policy JSON and for legacy
round-trip stability.
"""

import json

import pytest

from policy_editor.canvas import GraphEditor
from policy_editor.config import IssueKind, PolicyType
from policy_editor.exceptions import PolicyBodyError
from policy_editor.models import Edge, Node


def _roundtrip(compiler, adapter, graph, name="Main", policy_type=PolicyType.CALL):
    original = compiler.compile(graph, name, policy_type)
    rebuilt = adapter.reconstruct(original.legacy_json())
    again = compiler.compile(rebuilt, name, policy_type)
    return original, rebuilt, again


# =============================================================================
# Round Trip Tests
# =============================================================================


class TestRoundTrip:
    """Tests for reconstruct(compile(g).legacy) stability."""

    def test_queue_flow(self, queue_flow, compiler, adapter):
        graph, _, _ = queue_flow

        original, rebuilt, again = _roundtrip(compiler, adapter, graph)

        assert again.legacy_json() == original.legacy_json()
        assert rebuilt.reconstruction_warnings == []

    def test_branching_flow(self, editor, entry_id, compiler, adapter):
        rule = editor.add_node("rule")
        speak = editor.add_node("speak")
        queue = editor.add_node("callQueue")
        mail = editor.add_node("voicemail")
        editor.connect(entry_id, rule.id)
        editor.connect(rule.id, speak.id, label="open", source_handle="h-open")
        editor.connect(rule.id, mail.id, label="closed")
        editor.connect(speak.id, queue.id)
        editor.update_node_data(speak.id, {"sayPhrase": "Welcome", "name": "Greeting"})
        editor.update_node_data(queue.id, {"enabled": False})

        original, _, again = _roundtrip(compiler, adapter, editor.graph, "Hours", PolicyType.IVR)

        assert again.legacy_json() == original.legacy_json()

    def test_unknown_kind_flow(self, graph, entry_id, compiler, adapter):
        graph.insert_node(
            Node(id="future", type="futureNode", position={"x": 0, "y": 0}, data={"k": [1, 2]})
        )
        graph.insert_node(
            Node(id="end", type="output", position={"x": 0, "y": 0}, data={"name": "Finish"})
        )
        graph.insert_edge(Edge(id="e1", source=entry_id, target="future"))
        graph.insert_edge(Edge(id="e2", source="future", target="end", label="next"))

        original, rebuilt, again = _roundtrip(compiler, adapter, graph)

        assert again.legacy_json() == original.legacy_json()
        assert any("futureNode" in w for w in rebuilt.reconstruction_warnings)

    def test_rebuilt_graph_is_valid(self, queue_flow, compiler, adapter, validator):
        graph, _, _ = queue_flow

        _, rebuilt, _ = _roundtrip(compiler, adapter, graph)

        assert validator.validate(rebuilt).is_clean


# =============================================================================
# Reconstruction Tests
# =============================================================================


class TestReconstruct:
    """Tests for best-effort reconstruction of older policies."""

    def test_item_fields_become_node_data(self, adapter):
        legacy = {
            "name": "Old",
            "enabled": True,
            "type": "CALL",
            "items": [
                {"id": "s", "type": "init", "name": "Start", "entry": True, "next": "q"},
                {
                    "id": "q",
                    "type": "callQueue",
                    "name": "Sales Queue",
                    "enabled": False,
                    "variables": {"queueAlgorithm": "RING_ALL"},
                },
            ],
        }

        graph = adapter.reconstruct(legacy)

        assert list(graph.nodes) == ["s", "q"]
        assert graph.nodes["q"].data == {
            "queueAlgorithm": "RING_ALL",
            "name": "Sales Queue",
            "enabled": False,
        }
        assert [(e.source, e.target) for e in graph.edges.values()] == [("s", "q")]

    def test_connected_to_and_finish_sentinel(self, adapter):
        legacy = {
            "items": [
                {"id": "s", "type": "init", "connectedTo": "a"},
                {"id": "a", "type": "speak", "connectedTo": "finish"},
            ]
        }

        graph = adapter.reconstruct(json.dumps(legacy))

        assert [(e.source, e.target) for e in graph.edges.values()] == [("s", "a")]

    def test_kind_from_template_id(self, adapter):
        legacy = {
            "items": [
                {"id": "s", "templateId": 2, "next": "n"},
                {"id": "n", "templateId": 3, "next": "x"},
                {"id": "x", "templateId": 23},
            ]
        }

        graph = adapter.reconstruct(legacy)

        assert [n.type for n in graph.nodes.values()] == ["init", "input", "output"]
        assert graph.reconstruction_warnings == []

    def test_unrecognizable_item_is_passed_through(self, adapter, validator):
        legacy = {
            "items": [
                {"id": "s", "type": "init", "next": "a"},
                {"id": "a", "templateId": 4, "variables": {"app": "speak"}},
            ]
        }

        graph = adapter.reconstruct(legacy)

        assert graph.nodes["a"].type == "legacyItem"
        assert graph.nodes["a"].data["app"] == "speak"
        assert len(graph.reconstruction_warnings) == 1
        assert validator.validate(graph).of_kind(IssueKind.UNKNOWN_NODE_KIND)

    def test_synthetic_entry_when_first_item_is_not_start(self, adapter, registry):
        legacy = {
            "items": [
                {"id": "n", "type": "input", "next": "q"},
                {"id": "q", "type": "callQueue"},
            ]
        }

        graph = adapter.reconstruct(legacy)

        entries = [n for n in graph.nodes.values() if registry.is_entry(n.type)]
        assert len(entries) == 1
        assert graph.outgoing(entries[0].id)[0].target == "n"
        assert any("start node" in w for w in graph.reconstruction_warnings)

    def test_explicit_entry_marker(self, adapter, registry):
        legacy = {
            "items": [
                {"id": "x", "type": "output"},
                {"id": "s", "type": "init", "entry": True, "next": "x"},
            ]
        }

        graph = adapter.reconstruct(legacy)

        entries = [n.id for n in graph.nodes.values() if registry.is_entry(n.type)]
        assert entries == ["s"]
        assert graph.reconstruction_warnings == []

    def test_missing_and_duplicate_ids(self, adapter, id_factory):
        legacy = {
            "items": [
                {"type": "init", "next": "a"},
                {"id": "a", "type": "speak"},
                {"id": "a", "type": "output"},
            ]
        }

        graph = adapter.reconstruct(legacy, id_factory=id_factory)

        assert len(graph.nodes) == 3
        assert len(set(graph.nodes)) == 3
        assert graph.nodes["a"].type == "speak"
        assert len(graph.reconstruction_warnings) == 2

    def test_missing_branch_target_keeps_dangling_edge(self, adapter, validator):
        legacy = {
            "items": [
                {"id": "s", "type": "init", "next": "r"},
                {
                    "id": "r",
                    "type": "rule",
                    "branches": [
                        {"label": "open", "target": "ghost"},
                        {"label": "closed"},
                    ],
                },
            ]
        }

        graph = adapter.reconstruct(legacy)

        assert [e.target for e in graph.outgoing("r")] == ["ghost"]
        assert len(graph.reconstruction_warnings) == 2
        assert validator.validate(graph).of_kind(IssueKind.NODE_NOT_FOUND)

    def test_numeric_ids(self, adapter):
        legacy = {"items": [{"id": 1, "type": "init", "next": 2}, {"id": 2, "type": "output"}]}

        graph = adapter.reconstruct(legacy)

        assert list(graph.nodes) == ["1", "2"]
        assert graph.outgoing("1")[0].target == "2"

    def test_empty_policy_gets_fresh_entry(self, adapter, registry):
        graph = adapter.reconstruct({"name": "Empty", "items": []})

        assert len(graph.nodes) == 1
        assert registry.is_entry(next(iter(graph.nodes.values())).type)
        assert graph.reconstruction_warnings

    def test_reconstructed_graph_is_editable(self, adapter):
        graph = adapter.reconstruct({"items": [{"id": "s", "type": "init"}]})
        editor = GraphEditor(graph)

        node = editor.add_node("speak")
        editor.connect("s", node.id)

        assert node.id != "s"
        assert len(graph.edges) == 1

    def test_malformed_legacy(self, adapter):
        with pytest.raises(PolicyBodyError):
            adapter.reconstruct("{not json")

        with pytest.raises(PolicyBodyError):
            adapter.reconstruct({"items": "nope"})
