"""
Routing Policy Editor - Exceptions

Structural errors are raised by the graph editor and leave the graph
untouched. Validation issues are not exceptions; see ``ValidationResult``.
"""

from typing import Any, Dict, List, Optional


class PolicyEditorError(Exception):
    """
    Base exception for all policy editor errors.

    Attributes:
        message: Human-readable error message
        code: Stable error code
        details: Additional error details
    """

    code = "POLICY_EDITOR_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', code='{self.code}')"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


# =============================================================================
# Structural Errors
# =============================================================================


class StructuralError(PolicyEditorError):
    """Raised when a graph mutation would break a structural invariant."""

    code = "STRUCTURAL_ERROR"


class UnknownNodeKindError(StructuralError):
    """Raised when a node kind is not in the registry."""

    code = "UNKNOWN_NODE_KIND"

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown node kind: {kind}", {"kind": kind})
        self.kind = kind


class NodeNotFoundError(StructuralError):
    """Raised when a node id does not exist in the graph."""

    code = "NODE_NOT_FOUND"

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id}", {"node_id": node_id})
        self.node_id = node_id


class EdgeNotFoundError(StructuralError):
    """Raised when an edge id does not exist in the graph."""

    code = "EDGE_NOT_FOUND"

    def __init__(self, edge_id: str) -> None:
        super().__init__(f"Edge not found: {edge_id}", {"edge_id": edge_id})
        self.edge_id = edge_id


class SelfLoopError(StructuralError):
    """Raised when connecting a node to itself."""

    code = "SELF_LOOP"

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Cannot connect node {node_id} to itself", {"node_id": node_id})
        self.node_id = node_id


class CannotRemoveEntryNodeError(StructuralError):
    """Raised when removing the only entry node of a graph."""

    code = "CANNOT_REMOVE_ENTRY_NODE"

    def __init__(self, node_id: str) -> None:
        super().__init__(
            f"Cannot remove the only entry node: {node_id}", {"node_id": node_id}
        )
        self.node_id = node_id


class EntryNodeExistsError(StructuralError):
    """Raised when adding a second entry node."""

    code = "ENTRY_NODE_EXISTS"

    def __init__(self, existing_id: str) -> None:
        super().__init__(
            f"Graph already has an entry node: {existing_id}",
            {"existing_id": existing_id},
        )
        self.existing_id = existing_id


class OutgoingEdgeLimitError(StructuralError):
    """Raised when connecting from a node kind that allows no outgoing edges."""

    code = "OUTGOING_EDGE_LIMIT"

    def __init__(self, node_id: str, kind: str) -> None:
        super().__init__(
            f"Node {node_id} of kind {kind} cannot have outgoing edges",
            {"node_id": node_id, "kind": kind},
        )
        self.node_id = node_id


class InvalidEdgeAttributeError(StructuralError):
    """Raised when an edge label or handle is not a string."""

    code = "INVALID_EDGE_ATTRIBUTE"

    def __init__(self, attribute: str, value: Any) -> None:
        super().__init__(
            f"Edge {attribute} must be a string, got {type(value).__name__}",
            {"attribute": attribute},
        )
        self.attribute = attribute


class GraphLimitExceededError(StructuralError):
    """Raised when a graph would exceed the configured node limit."""

    code = "GRAPH_LIMIT_EXCEEDED"

    def __init__(self, limit: int) -> None:
        super().__init__(f"Graph cannot have more than {limit} nodes", {"limit": limit})
        self.limit = limit


# =============================================================================
# Compilation & Serialization Errors
# =============================================================================


class CompilationError(PolicyEditorError):
    """Raised when the compiler meets a graph it cannot compile."""

    code = "COMPILATION_ERROR"


class PolicyBodyError(PolicyEditorError):
    """Raised when a policy body or legacy document is malformed."""

    code = "POLICY_BODY_ERROR"


# =============================================================================
# Policy Lifecycle Errors
# =============================================================================


class PolicyNotFoundError(PolicyEditorError):
    """Raised when a policy does not exist in the repository."""

    code = "POLICY_NOT_FOUND"

    def __init__(self, policy_id: str) -> None:
        super().__init__(f"Policy not found: {policy_id}", {"policy_id": policy_id})
        self.policy_id = policy_id


class SessionNotFoundError(PolicyEditorError):
    """Raised when no editor session is open for a policy."""

    code = "SESSION_NOT_FOUND"

    def __init__(self, policy_id: str) -> None:
        super().__init__(
            f"No editor session open for policy: {policy_id}", {"policy_id": policy_id}
        )
        self.policy_id = policy_id


class StatusTransitionError(PolicyEditorError):
    """
    Raised when a policy status change is not allowed.

    Attributes:
        issues: Fatal validation issues that blocked the transition, if any
    """

    code = "STATUS_TRANSITION_ERROR"

    def __init__(
        self,
        message: str,
        issues: Optional[List[Any]] = None,
    ) -> None:
        self.issues = issues or []
        super().__init__(message, {"issues": [i.to_dict() for i in self.issues]})


class PolicyValidationError(PolicyEditorError):
    """Raised when saving a graph that has fatal validation issues."""

    code = "POLICY_VALIDATION_ERROR"

    def __init__(self, message: str, issues: List[Any]) -> None:
        self.issues = issues
        super().__init__(message, {"issues": [i.to_dict() for i in issues]})


class RepositoryError(PolicyEditorError):
    """Raised when the policy repository fails or times out."""

    code = "REPOSITORY_ERROR"


__all__ = [
    "PolicyEditorError",
    "StructuralError",
    "UnknownNodeKindError",
    "NodeNotFoundError",
    "EdgeNotFoundError",
    "SelfLoopError",
    "CannotRemoveEntryNodeError",
    "EntryNodeExistsError",
    "OutgoingEdgeLimitError",
    "GraphLimitExceededError",
    "InvalidEdgeAttributeError",
    "CompilationError",
    "PolicyBodyError",
    "PolicyNotFoundError",
    "SessionNotFoundError",
    "StatusTransitionError",
    "PolicyValidationError",
    "RepositoryError",
]
