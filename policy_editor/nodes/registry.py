"""
Node Registry.

Single lookup point for node kinds. Kinds the registry does not know are
opaque pass-through nodes to every caller: unbounded outgoing edges, no
required fields and no entry role.
"""

import copy
from enum import Enum
from collections import defaultdict
from functools import lru_cache
from typing import Any, Dict, List, Optional

import structlog

from ..config import NodeCategory
from ..exceptions import UnknownNodeKindError
from ..models import NodeDefinition
from .definitions import ALL_NODES

logger = structlog.get_logger(__name__)


def _kind_value(kind: str) -> str:
    return kind.value if isinstance(kind, Enum) else kind


class NodeRegistry:
    """
    Registry for node kind definitions.

    Built once from the seed catalog and read-only afterwards.
    """

    def __init__(self, definitions: Optional[List[NodeDefinition]] = None):
        self._nodes: Dict[str, NodeDefinition] = {}
        self._by_category: Dict[NodeCategory, List[NodeDefinition]] = defaultdict(list)
        self._by_template: Dict[int, List[NodeDefinition]] = defaultdict(list)

        for node_def in definitions if definitions is not None else ALL_NODES:
            self._register(node_def)

        logger.info("node_registry_loaded", node_kinds=len(self._nodes))

    def _register(self, node_def: NodeDefinition) -> None:
        if node_def.kind.value in self._nodes:
            raise ValueError(f"Duplicate node kind: {node_def.kind.value}")

        self._nodes[node_def.kind.value] = node_def
        self._by_category[node_def.category].append(node_def)
        if node_def.template_id is not None:
            self._by_template[node_def.template_id].append(node_def)

    def get(self, kind: str) -> Optional[NodeDefinition]:
        """Get a node definition by kind, or None if the kind is unknown."""
        return self._nodes.get(_kind_value(kind))

    def require(self, kind: str) -> NodeDefinition:
        """Get a node definition by kind, raising if the kind is unknown."""
        node_def = self.get(kind)
        if node_def is None:
            raise UnknownNodeKindError(_kind_value(kind))
        return node_def

    def is_known(self, kind: str) -> bool:
        return _kind_value(kind) in self._nodes

    def get_by_template_id(self, template_id: int) -> Optional[NodeDefinition]:
        """
        Resolve a legacy template id to a node definition.

        Template ids shared by several kinds (generic action apps) are
        ambiguous and resolve to None.
        """
        candidates = self._by_template.get(template_id, [])
        if len(candidates) == 1:
            return candidates[0]
        return None

    def default_data(self, kind: str) -> Dict[str, Any]:
        """Fresh data payload for a new node of ``kind``."""
        return self.require(kind).default_data()

    def is_entry(self, kind: str) -> bool:
        node_def = self.get(kind)
        return node_def is not None and node_def.requires_entry

    def max_outgoing(self, kind: str) -> Optional[int]:
        """Outgoing edge limit for ``kind``; None means unbounded."""
        node_def = self.get(kind)
        return node_def.max_outgoing_edges if node_def is not None else None

    def list_all(self) -> List[NodeDefinition]:
        return list(self._nodes.values())

    def list_by_category(self, category: NodeCategory) -> List[NodeDefinition]:
        return list(self._by_category.get(category, []))

    def get_categories(self) -> List[NodeCategory]:
        return [c for c in NodeCategory if self._by_category.get(c)]

    def search(self, query: str) -> List[NodeDefinition]:
        """Search node kinds by kind tag, name or description."""
        query = query.lower()
        return [
            node_def
            for node_def in self._nodes.values()
            if query in node_def.kind.value.lower()
            or query in node_def.name.lower()
            or query in node_def.description.lower()
        ]

    def to_catalog(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Export the registry as a catalog organized by category.

        Returns:
            Dict mapping category names to lists of node definitions
        """
        return {
            category.value: [copy.deepcopy(n.to_dict()) for n in self.list_by_category(category)]
            for category in self.get_categories()
        }


@lru_cache
def get_node_registry() -> NodeRegistry:
    """Get the process-wide node registry."""
    return NodeRegistry()
