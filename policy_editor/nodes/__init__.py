"""
Node Kinds and Registry.
"""

from .registry import NodeRegistry, get_node_registry
from .definitions import ALL_NODES

__all__ = [
    "NodeRegistry",
    "get_node_registry",
    "ALL_NODES",
]
