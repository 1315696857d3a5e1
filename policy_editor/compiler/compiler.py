"""
Policy Compiler.

Turns a valid graph into the two stored documents: the policy body used to
reload the graph for editing, and the legacy policy the runtime executes.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from ..config import NodeKind, PolicyType
from ..models import Graph
from ..nodes import NodeRegistry, get_node_registry
from .body import to_body
from .legacy import LegacyBuilder

logger = structlog.get_logger(__name__)


def canonical_json(document: Any) -> str:
    """Encode JSON byte-for-byte reproducibly."""
    return json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass
class CompiledPolicy:
    """Compiled policy documents."""

    body: Dict[str, Any]
    legacy: Dict[str, Any]
    phone_numbers: List[str] = field(default_factory=list)

    def body_json(self) -> str:
        return canonical_json(self.body)

    def legacy_json(self) -> str:
        return canonical_json(self.legacy)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "body": self.body_json(),
            "policy": self.legacy_json(),
            "phone_numbers": list(self.phone_numbers),
        }


class PolicyCompiler:
    """
    Compiles graphs to policy body and legacy JSON.

    The graph must already pass validation without fatal issues. The
    compiler does not re-validate, but raises ``CompilationError`` on any
    inconsistency it runs into rather than emitting a guessed document.
    """

    def __init__(self, registry: Optional[NodeRegistry] = None):
        self.registry = registry or get_node_registry()
        self._legacy = LegacyBuilder(self.registry)

    def compile(
        self,
        graph: Graph,
        name: str = "",
        policy_type: PolicyType = PolicyType.CALL,
    ) -> CompiledPolicy:
        """
        Compile a graph.

        Args:
            graph: Valid graph to compile
            name: Policy name written to the legacy document
            policy_type: Policy type written to the legacy document

        Returns:
            CompiledPolicy with both documents

        Raises:
            CompilationError: graph is not compilable
        """
        legacy = self._legacy.build(graph, name, policy_type)
        compiled = CompiledPolicy(
            body=json.loads(canonical_json(to_body(graph))),
            legacy=json.loads(canonical_json(legacy)),
            phone_numbers=self._phone_numbers(graph),
        )

        logger.info(
            "policy_compiled",
            name=name,
            nodes=len(graph.nodes),
            items=len(legacy["items"]),
        )
        return compiled

    @staticmethod
    def _phone_numbers(graph: Graph) -> List[str]:
        numbers: List[str] = []
        for node in graph.nodes.values():
            if node.type != NodeKind.INPUT.value:
                continue
            for number in node.data.get("phoneNumbers") or []:
                if isinstance(number, str) and number not in numbers:
                    numbers.append(number)
        return numbers
