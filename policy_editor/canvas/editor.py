"""
Graph Editor.

Mutation service for an open routing policy graph. Every operation either
succeeds and leaves the graph structurally consistent, or raises a
``StructuralError`` before touching anything.
"""

import copy
from typing import Any, Callable, Dict, List, Optional

import structlog

from ..config import EditorConfig, NodeKind, get_settings
from ..exceptions import (
    CannotRemoveEntryNodeError,
    EdgeNotFoundError,
    EntryNodeExistsError,
    GraphLimitExceededError,
    InvalidEdgeAttributeError,
    NodeNotFoundError,
    OutgoingEdgeLimitError,
    SelfLoopError,
)
from ..models import Edge, Graph, Node
from ..nodes import NodeRegistry, get_node_registry

logger = structlog.get_logger(__name__)


def _position(position: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    position = position or {}
    return {"x": position.get("x", 0), "y": position.get("y", 0)}


class GraphEditor:
    """
    Applies user edits to a graph.

    The editor owns no state besides the graph it wraps; one editor per
    open policy.
    """

    def __init__(
        self,
        graph: Graph,
        registry: Optional[NodeRegistry] = None,
        config: Optional[EditorConfig] = None,
    ):
        self.graph = graph
        self.registry = registry or get_node_registry()
        self.config = config or get_settings().editor

    # =========================================================================
    # Graph Creation
    # =========================================================================

    @classmethod
    def create_graph(
        cls,
        registry: Optional[NodeRegistry] = None,
        config: Optional[EditorConfig] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> Graph:
        """Create a graph containing only the entry node."""
        config = config or get_settings().editor
        graph = Graph(viewport={"x": 0, "y": 0, "zoom": config.default_zoom})
        if id_factory is not None:
            graph.id_factory = id_factory

        editor = cls(graph, registry=registry, config=config)
        editor.add_node(
            NodeKind.INIT,
            {"x": config.entry_position_x, "y": config.entry_position_y},
        )
        return graph

    # =========================================================================
    # Queries
    # =========================================================================

    def entry_nodes(self) -> List[Node]:
        return [n for n in self.graph.nodes.values() if self.registry.is_entry(n.type)]

    def get_node(self, node_id: str) -> Node:
        node = self.graph.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def get_edge(self, edge_id: str) -> Edge:
        edge = self.graph.edges.get(edge_id)
        if edge is None:
            raise EdgeNotFoundError(edge_id)
        return edge

    # =========================================================================
    # Node Operations
    # =========================================================================

    def add_node(self, kind: str, position: Optional[Dict[str, Any]] = None) -> Node:
        """
        Add a node of a registered kind with its default data.

        Raises:
            UnknownNodeKindError: kind is not registered
            EntryNodeExistsError: the graph already has an entry node
            GraphLimitExceededError: the graph is at its node limit
        """
        node_def = self.registry.require(kind)

        if node_def.requires_entry:
            existing = self.entry_nodes()
            if existing:
                raise EntryNodeExistsError(existing[0].id)

        if len(self.graph.nodes) >= self.config.max_nodes_per_graph:
            raise GraphLimitExceededError(self.config.max_nodes_per_graph)

        node = Node(
            id=self.graph.new_id(),
            type=node_def.kind.value,
            position=_position(position),
            data=node_def.default_data(),
        )
        self.graph.insert_node(node)

        logger.info("node_added", node_id=node.id, kind=node.type)
        return node

    def update_node_data(self, node_id: str, partial: Dict[str, Any]) -> None:
        """Merge ``partial`` into the node's data, keeping all other keys."""
        node = self.get_node(node_id)
        node.data.update(copy.deepcopy(partial))

        logger.debug("node_updated", node_id=node_id, fields=sorted(partial))

    def move_node(self, node_id: str, position: Dict[str, Any]) -> None:
        node = self.get_node(node_id)
        node.position = _position(position)

    def remove_node(self, node_id: str) -> None:
        """
        Remove a node and every edge touching it.

        Raises:
            NodeNotFoundError: node does not exist
            CannotRemoveEntryNodeError: node is the graph's only entry node
        """
        node = self.get_node(node_id)

        if self.registry.is_entry(node.type) and len(self.entry_nodes()) == 1:
            raise CannotRemoveEntryNodeError(node_id)

        removed_edges = [e.id for e in self.graph.incident(node_id)]
        for edge_id in removed_edges:
            del self.graph.edges[edge_id]
        del self.graph.nodes[node_id]

        logger.info("node_removed", node_id=node_id, edges_removed=len(removed_edges))

    # =========================================================================
    # Edge Operations
    # =========================================================================

    def connect(
        self,
        source_id: str,
        target_id: str,
        source_handle: Optional[str] = None,
        label: Optional[str] = None,
        target_handle: Optional[str] = None,
    ) -> Edge:
        """
        Connect two nodes.

        A source whose kind allows a single outgoing edge is rewired: its
        existing outgoing edge is replaced by the new one.

        Raises:
            NodeNotFoundError: source or target does not exist
            SelfLoopError: source and target are the same node
            OutgoingEdgeLimitError: source kind allows no outgoing edges
            InvalidEdgeAttributeError: label or a handle is not a string
        """
        source = self.get_node(source_id)
        self.get_node(target_id)

        if source_id == target_id:
            raise SelfLoopError(source_id)

        for attribute, value in (
            ("label", label),
            ("source_handle", source_handle),
            ("target_handle", target_handle),
        ):
            if value is not None and not isinstance(value, str):
                raise InvalidEdgeAttributeError(attribute, value)

        max_outgoing = self.registry.max_outgoing(source.type)
        if max_outgoing == 0:
            raise OutgoingEdgeLimitError(source_id, source.type)

        replaced: List[str] = []
        if max_outgoing == 1:
            replaced = [e.id for e in self.graph.outgoing(source_id)]
            for edge_id in replaced:
                del self.graph.edges[edge_id]

        edge = Edge(
            id=self.graph.new_id(),
            source=source_id,
            target=target_id,
            source_handle=source_handle,
            target_handle=target_handle,
            label=label,
        )
        self.graph.insert_edge(edge)

        if replaced:
            logger.info(
                "edge_rewired",
                edge_id=edge.id,
                source=source_id,
                target=target_id,
                replaced=replaced,
            )
        else:
            logger.info("edge_added", edge_id=edge.id, source=source_id, target=target_id)
        return edge

    def disconnect(self, edge_id: str) -> None:
        self.get_edge(edge_id)
        del self.graph.edges[edge_id]

        logger.info("edge_removed", edge_id=edge_id)

    def set_viewport(self, viewport: Dict[str, Any]) -> None:
        """Store the canvas viewport as given."""
        self.graph.viewport = dict(viewport)
