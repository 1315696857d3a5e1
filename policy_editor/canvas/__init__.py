"""
Canvas editing and validation for routing policy graphs.
"""

from .editor import GraphEditor
from .validator import GraphValidator

__all__ = ["GraphEditor", "GraphValidator"]
