"""
Policy compilation and legacy import.
"""

from .adapter import LegacyAdapter
from .body import from_body, to_body
from .compiler import CompiledPolicy, PolicyCompiler, canonical_json
from .legacy import LegacyBuilder, to_legacy

__all__ = [
    "LegacyAdapter",
    "LegacyBuilder",
    "CompiledPolicy",
    "PolicyCompiler",
    "canonical_json",
    "from_body",
    "to_body",
    "to_legacy",
]
