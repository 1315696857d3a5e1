"""
Graph Validator.

Checks a routing policy graph and reports issues in a fixed order so that
results are deterministic. Never mutates the graph.
"""

from collections import deque
from typing import Any, Dict, List, Optional, Set

import structlog

from ..config import DataType, IssueKind, Severity
from ..models import Graph, Node, ValidationIssue, ValidationResult
from ..nodes import NodeRegistry, get_node_registry

logger = structlog.get_logger(__name__)

# Fields every node carries into the legacy item, checked on unknown kinds too
PASS_THROUGH_FIELDS: Dict[str, DataType] = {
    "name": DataType.STRING,
    "enabled": DataType.BOOLEAN,
}


def is_missing(value) -> bool:
    """A required field is missing when absent, None or a blank string."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def matches_type(value: Any, data_type: DataType) -> bool:
    """Check a field value against its declared type. None always matches."""
    if value is None or data_type == DataType.ANY:
        return True
    if data_type in (DataType.STRING, DataType.SELECT):
        return isinstance(value, str)
    if data_type == DataType.BOOLEAN:
        return isinstance(value, bool)
    if data_type == DataType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if data_type == DataType.OBJECT:
        return isinstance(value, dict)
    if data_type == DataType.ARRAY:
        return isinstance(value, list)
    return True


class GraphValidator:
    """
    Validates graph structure and node configuration.

    Checks, in order:
    1. Exactly one entry node
    2. Required fields per node
    3. Field value types
    4. Reachability from the entry node (warning)
    5. Outgoing edge limits
    6. Edges pointing at missing nodes
    7. Unlabeled branches out of branching nodes
    8. Unknown node kinds (warning)
    """

    def __init__(self, registry: Optional[NodeRegistry] = None):
        self.registry = registry or get_node_registry()

    def validate(self, graph: Graph) -> ValidationResult:
        """
        Validate a complete graph.

        Args:
            graph: Graph to validate

        Returns:
            ValidationResult with issues found
        """
        issues: List[ValidationIssue] = []

        entry = self._check_entry(graph, issues)
        self._check_required_fields(graph, issues)
        self._check_field_types(graph, issues)
        self._check_reachability(graph, entry, issues)
        self._check_outgoing_limits(graph, issues)
        self._check_dangling_edges(graph, issues)
        self._check_branch_labels(graph, issues)
        self._check_unknown_kinds(graph, issues)

        result = ValidationResult(issues=issues)
        logger.debug(
            "graph_validated",
            valid=result.valid,
            fatal=len(result.fatal_issues),
            warnings=len(result.warnings),
        )
        return result

    def _check_entry(self, graph: Graph, issues: List[ValidationIssue]) -> Optional[Node]:
        entries = [n for n in graph.nodes.values() if self.registry.is_entry(n.type)]

        if not entries:
            issues.append(
                ValidationIssue(
                    kind=IssueKind.MISSING_ENTRY_NODE,
                    severity=Severity.FATAL,
                    message="Graph has no entry node",
                )
            )
            return None

        if len(entries) > 1:
            for node in entries[1:]:
                issues.append(
                    ValidationIssue(
                        kind=IssueKind.MULTIPLE_ENTRY_NODES,
                        severity=Severity.FATAL,
                        message=f"Extra entry node; graph already starts at {entries[0].id}",
                        node_id=node.id,
                    )
                )

        return entries[0]

    def _check_required_fields(self, graph: Graph, issues: List[ValidationIssue]) -> None:
        for node in graph.nodes.values():
            node_def = self.registry.get(node.type)
            if node_def is None:
                continue

            for field_name in node_def.required_fields:
                if is_missing(node.data.get(field_name)):
                    issues.append(
                        ValidationIssue(
                            kind=IssueKind.MISSING_REQUIRED_FIELD,
                            severity=Severity.FATAL,
                            message=f"Required field '{field_name}' is not set",
                            node_id=node.id,
                            field_name=field_name,
                        )
                    )

    def _check_field_types(self, graph: Graph, issues: List[ValidationIssue]) -> None:
        for node in graph.nodes.values():
            node_def = self.registry.get(node.type)
            if node_def is not None:
                declared = {p.name: p.data_type for p in node_def.properties}
            else:
                declared = PASS_THROUGH_FIELDS

            for field_name, data_type in declared.items():
                value = node.data.get(field_name)
                if not matches_type(value, data_type):
                    issues.append(
                        ValidationIssue(
                            kind=IssueKind.INVALID_FIELD_TYPE,
                            severity=Severity.FATAL,
                            message=(
                                f"Field '{field_name}' must be {data_type.value}, "
                                f"got {type(value).__name__}"
                            ),
                            node_id=node.id,
                            field_name=field_name,
                        )
                    )

    def _check_reachability(
        self,
        graph: Graph,
        entry: Optional[Node],
        issues: List[ValidationIssue],
    ) -> None:
        if entry is None:
            return

        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in graph.nodes}
        for edge in graph.edges.values():
            if edge.source in adjacency:
                adjacency[edge.source].append(edge.target)

        reachable: Set[str] = {entry.id}
        queue = deque([entry.id])
        while queue:
            current = queue.popleft()
            for target in adjacency.get(current, []):
                if target not in reachable:
                    reachable.add(target)
                    queue.append(target)

        for node in graph.nodes.values():
            if node.id not in reachable:
                issues.append(
                    ValidationIssue(
                        kind=IssueKind.UNREACHABLE_NODE,
                        severity=Severity.WARNING,
                        message="Node is not reachable from the entry node",
                        node_id=node.id,
                    )
                )

    def _check_outgoing_limits(self, graph: Graph, issues: List[ValidationIssue]) -> None:
        counts: Dict[str, int] = {}
        for edge in graph.edges.values():
            counts[edge.source] = counts.get(edge.source, 0) + 1

        for node in graph.nodes.values():
            limit = self.registry.max_outgoing(node.type)
            count = counts.get(node.id, 0)
            if limit is not None and count > limit:
                issues.append(
                    ValidationIssue(
                        kind=IssueKind.TOO_MANY_OUTGOING_EDGES,
                        severity=Severity.FATAL,
                        message=f"Node has {count} outgoing edges, at most {limit} allowed",
                        node_id=node.id,
                    )
                )

    def _check_dangling_edges(self, graph: Graph, issues: List[ValidationIssue]) -> None:
        for edge in graph.edges.values():
            for endpoint in (edge.source, edge.target):
                if endpoint not in graph.nodes:
                    issues.append(
                        ValidationIssue(
                            kind=IssueKind.NODE_NOT_FOUND,
                            severity=Severity.FATAL,
                            message=f"Edge references missing node {endpoint}",
                            node_id=endpoint,
                            edge_id=edge.id,
                        )
                    )

    def _check_branch_labels(self, graph: Graph, issues: List[ValidationIssue]) -> None:
        for edge in graph.edges.values():
            source = graph.nodes.get(edge.source)
            if source is None:
                continue

            node_def = self.registry.get(source.type)
            if node_def is not None and node_def.is_branching and is_missing(edge.label):
                issues.append(
                    ValidationIssue(
                        kind=IssueKind.UNLABELED_BRANCH,
                        severity=Severity.FATAL,
                        message="Branch edge has no label",
                        node_id=source.id,
                        edge_id=edge.id,
                    )
                )

    def _check_unknown_kinds(self, graph: Graph, issues: List[ValidationIssue]) -> None:
        for node in graph.nodes.values():
            if not self.registry.is_known(node.type):
                issues.append(
                    ValidationIssue(
                        kind=IssueKind.UNKNOWN_NODE_KIND,
                        severity=Severity.WARNING,
                        message=f"Unknown node kind '{node.type}' is passed through as-is",
                        node_id=node.id,
                    )
                )
