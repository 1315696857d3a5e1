"""
Legacy policy projection.

Flattens a graph into the ordered item list the telephony runtime executes.
Items follow a depth-first pre-order walk from the entry node; each node's
outgoing edges are followed in insertion order. Branch labels become named
branch targets on the item instead of graph edges.
"""

import copy
from typing import Any, Dict, List, Optional, Set

from ..config import PolicyType
from ..exceptions import CompilationError
from ..models import Edge, Graph, Node, NodeDefinition
from ..nodes import NodeRegistry, get_node_registry
from ..canvas.validator import PASS_THROUGH_FIELDS, is_missing, matches_type

RESERVED_DATA_KEYS = ("name", "enabled")


class LegacyBuilder:
    """Builds legacy policy JSON from a graph."""

    def __init__(self, registry: NodeRegistry):
        self.registry = registry

    def build(self, graph: Graph, name: str, policy_type: PolicyType) -> Dict[str, Any]:
        entry = self._find_entry(graph)
        return {
            "name": name,
            "enabled": True,
            "type": PolicyType(policy_type).value.upper(),
            "items": self._walk(graph, entry),
        }

    def _find_entry(self, graph: Graph) -> Node:
        entries = [n for n in graph.nodes.values() if self.registry.is_entry(n.type)]
        if len(entries) != 1:
            raise CompilationError(
                f"Graph must have exactly one entry node, found {len(entries)}",
                {"entry_nodes": [n.id for n in entries]},
            )
        return entries[0]

    def _walk(self, graph: Graph, entry: Node) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        visited: Set[str] = set()
        stack = [entry.id]

        while stack:
            node_id = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)

            node = graph.nodes[node_id]
            edges = graph.outgoing(node_id)
            for edge in edges:
                if edge.target not in graph.nodes:
                    raise CompilationError(
                        f"Edge {edge.id} points at missing node {edge.target}",
                        {"edge_id": edge.id, "target": edge.target},
                    )

            items.append(self._item(node, edges, is_entry=node_id == entry.id))

            for edge in reversed(edges):
                if edge.target not in visited:
                    stack.append(edge.target)

        return items

    def _item(self, node: Node, edges: List[Edge], is_entry: bool) -> Dict[str, Any]:
        node_def = self.registry.get(node.type)
        data = node.data

        if node_def is not None:
            for field_name in node_def.required_fields:
                if is_missing(data.get(field_name)):
                    raise CompilationError(
                        f"Node {node.id} is missing required field '{field_name}'",
                        {"node_id": node.id, "field": field_name},
                    )

        for field_name, data_type in PASS_THROUGH_FIELDS.items():
            if not matches_type(data.get(field_name), data_type):
                raise CompilationError(
                    f"Node {node.id} field '{field_name}' must be {data_type.value}",
                    {"node_id": node.id, "field": field_name},
                )

        name = data.get("name")
        enabled = data.get("enabled")
        item: Dict[str, Any] = {
            "id": node.id,
            "name": node.type if name is None else name,
            "type": node.type,
            "enabled": True if enabled is None else enabled,
            "variables": {
                k: copy.deepcopy(v) for k, v in data.items() if k not in RESERVED_DATA_KEYS
            },
        }
        if is_entry:
            item["entry"] = True

        if node_def is None:
            item["inert"] = True
            item["branches"] = [self._branch(edge) for edge in edges]
            return item

        item["templateId"] = node_def.template_id
        if node_def.is_branching:
            for edge in edges:
                if is_missing(edge.label):
                    raise CompilationError(
                        f"Branch edge {edge.id} out of node {node.id} has no label",
                        {"node_id": node.id, "edge_id": edge.id},
                    )
            item["branches"] = [self._branch(edge) for edge in edges]
        else:
            item["next"] = self._next(node, node_def, edges)
        return item

    @staticmethod
    def _next(node: Node, node_def: NodeDefinition, edges: List[Edge]) -> Optional[str]:
        if len(edges) > node_def.max_outgoing_edges:
            raise CompilationError(
                f"Node {node.id} has {len(edges)} outgoing edges, "
                f"at most {node_def.max_outgoing_edges} allowed",
                {"node_id": node.id},
            )
        return edges[0].target if edges else None

    @staticmethod
    def _branch(edge: Edge) -> Dict[str, Any]:
        branch: Dict[str, Any] = {"label": edge.label, "target": edge.target}
        if edge.source_handle is not None:
            branch["handle"] = edge.source_handle
        return branch


def to_legacy(
    graph: Graph,
    name: str,
    policy_type: PolicyType,
    registry: Optional[NodeRegistry] = None,
) -> Dict[str, Any]:
    """Project a graph to legacy policy JSON."""
    return LegacyBuilder(registry or get_node_registry()).build(graph, name, policy_type)
