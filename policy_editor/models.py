"""
Data Models for the Routing Policy Editor.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set
import copy
import uuid

from .config import (
    DataType,
    IssueKind,
    NodeCategory,
    NodeKind,
    PolicySource,
    PolicyStatus,
    PolicyType,
    Severity,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid_id() -> str:
    return str(uuid.uuid4())


def default_viewport() -> Dict[str, float]:
    return {"x": 0, "y": 0, "zoom": 1}


# =============================================================================
# Node Type Models
# =============================================================================


@dataclass
class NodeField:
    """Definition of a configurable field in a node's data."""

    name: str
    data_type: DataType
    required: bool = False
    default_value: Any = None
    description: str = ""
    options: Optional[List[str]] = None  # For select fields


@dataclass
class NodeDefinition:
    """Definition of a node kind."""

    kind: NodeKind
    category: NodeCategory
    name: str
    description: str

    # Fields
    properties: List[NodeField] = field(default_factory=list)

    # Connection rules, None = unbounded (branching)
    max_outgoing_edges: Optional[int] = 1
    requires_entry: bool = False

    # Legacy runtime template
    template_id: Optional[int] = None

    @property
    def is_branching(self) -> bool:
        return self.max_outgoing_edges is None

    @property
    def is_terminal(self) -> bool:
        return self.max_outgoing_edges == 0

    @property
    def required_fields(self) -> List[str]:
        return [p.name for p in self.properties if p.required]

    def default_data(self) -> Dict[str, Any]:
        """Build a fresh data payload from field defaults."""
        return {p.name: copy.deepcopy(p.default_value) for p in self.properties}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "category": self.category.value,
            "name": self.name,
            "description": self.description,
            "max_outgoing_edges": self.max_outgoing_edges,
            "requires_entry": self.requires_entry,
            "template_id": self.template_id,
            "properties": [
                {
                    "name": p.name,
                    "data_type": p.data_type.value,
                    "required": p.required,
                    "default_value": p.default_value,
                    "description": p.description,
                    "options": p.options,
                }
                for p in self.properties
            ],
        }


# =============================================================================
# Graph Models
# =============================================================================


@dataclass
class Node:
    """Node instance in a routing policy graph."""

    id: str
    type: str  # Kind tag, may be unknown to the registry
    position: Dict[str, float]  # {x, y}
    data: Dict[str, Any] = field(default_factory=dict)
    extras: Dict[str, Any] = field(default_factory=dict)  # Canvas keys outside the schema

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = dict(self.extras)
        result.update(
            {
                "id": self.id,
                "type": self.type,
                "position": {"x": self.position.get("x", 0), "y": self.position.get("y", 0)},
                "data": self.data,
            }
        )
        return result


@dataclass
class Edge:
    """Directed connection between two nodes."""

    id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    label: Optional[str] = None  # Branch name for branching nodes
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = dict(self.extras)
        result.update({"id": self.id, "source": self.source, "target": self.target})
        if self.source_handle is not None:
            result["sourceHandle"] = self.source_handle
        if self.target_handle is not None:
            result["targetHandle"] = self.target_handle
        if self.label is not None:
            result["label"] = self.label
        return result


@dataclass
class Graph:
    """
    Arena of nodes and edges keyed by id.

    Nodes and edges keep insertion order. Ids handed out by ``new_id`` are
    never reused, even after the node or edge that held them is deleted.
    The insert methods do no invariant checking; use ``GraphEditor`` for
    user edits.
    """

    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: Dict[str, Edge] = field(default_factory=dict)
    viewport: Dict[str, float] = field(default_factory=default_viewport)
    reconstruction_warnings: List[str] = field(default_factory=list)

    id_factory: Callable[[], str] = field(default=_uuid_id, repr=False, compare=False)
    _issued_ids: Set[str] = field(default_factory=set, repr=False, compare=False)

    def new_id(self) -> str:
        """Issue an id not used before in this graph."""
        candidate = self.id_factory()
        while candidate in self._issued_ids:
            candidate = self.id_factory()
        self._issued_ids.add(candidate)
        return candidate

    def is_issued(self, id_: str) -> bool:
        return id_ in self._issued_ids

    def insert_node(self, node: Node) -> None:
        self._issued_ids.add(node.id)
        self.nodes[node.id] = node

    def insert_edge(self, edge: Edge) -> None:
        self._issued_ids.add(edge.id)
        self.edges[edge.id] = edge

    def outgoing(self, node_id: str) -> List[Edge]:
        """Outgoing edges of a node in insertion order."""
        return [e for e in self.edges.values() if e.source == node_id]

    def incident(self, node_id: str) -> List[Edge]:
        return [
            e for e in self.edges.values() if e.source == node_id or e.target == node_id
        ]

    def restore(self, snapshot: "Graph") -> None:
        """Roll nodes, edges and viewport back to a snapshot; issued ids stay issued."""
        self.nodes = snapshot.nodes
        self.edges = snapshot.edges
        self.viewport = snapshot.viewport

    def copy(self) -> "Graph":
        """Deep copy, including the issued id set."""
        clone = copy.deepcopy(self)
        clone.id_factory = self.id_factory
        return clone

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.edges.values()],
            "viewport": dict(self.viewport),
        }


# =============================================================================
# Validation Models
# =============================================================================


@dataclass
class ValidationIssue:
    """A validation issue found in a graph."""

    kind: IssueKind
    severity: Severity
    message: str
    node_id: Optional[str] = None
    edge_id: Optional[str] = None
    field_name: Optional[str] = None

    @property
    def is_fatal(self) -> bool:
        return self.severity == Severity.FATAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "node_id": self.node_id,
            "edge_id": self.edge_id,
            "field": self.field_name,
        }


@dataclass
class ValidationResult:
    """Result of graph validation."""

    issues: List[ValidationIssue] = field(default_factory=list)
    checked_at: datetime = field(default_factory=_utcnow)

    @property
    def valid(self) -> bool:
        """True when no fatal issue was found; warnings are allowed."""
        return not self.fatal_issues

    @property
    def is_clean(self) -> bool:
        return not self.issues

    @property
    def fatal_issues(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.FATAL]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def of_kind(self, kind: IssueKind) -> List[ValidationIssue]:
        return [i for i in self.issues if i.kind == kind]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "issues": [i.to_dict() for i in self.issues],
            "checked_at": self.checked_at.isoformat(),
        }


# =============================================================================
# Policy Models
# =============================================================================


@dataclass
class RoutingPolicy:
    """Routing policy (call flow) record."""

    id: str
    name: str
    description: str = ""
    source: PolicySource = PolicySource.INBOUND
    type: PolicyType = PolicyType.CALL
    status: PolicyStatus = PolicyStatus.DRAFT

    # Audit
    created_by: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    updated_by: str = ""
    updated_at: datetime = field(default_factory=_utcnow)

    phone_numbers: List[str] = field(default_factory=list)  # Read-only here

    # Stored documents
    body: Optional[str] = None
    policy: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "source": self.source.value,
            "type": self.type.value,
            "status": self.status.value,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat(),
            "phone_numbers": list(self.phone_numbers),
            "has_body": self.body is not None,
            "has_policy": self.policy is not None,
        }
