"""
Legacy Adapter.

Rebuilds an editable graph from legacy policy JSON for policies that were
stored before the graph editor existed. The result is best-effort; every
ambiguity is recorded in ``Graph.reconstruction_warnings`` and logged.
"""

import copy
import json
from typing import Any, Callable, Dict, List, Optional, Union

import structlog
from pydantic import ValidationError

from ..config import CompilerConfig, EditorConfig, NodeKind, get_settings
from ..exceptions import PolicyBodyError
from ..models import Edge, Graph, Node
from ..nodes import NodeRegistry, get_node_registry
from ..schemas import LegacyItemModel, LegacyPolicyModel

logger = structlog.get_logger(__name__)


class LegacyAdapter:
    """Reconstructs graphs from legacy policy JSON."""

    def __init__(
        self,
        registry: Optional[NodeRegistry] = None,
        editor_config: Optional[EditorConfig] = None,
        compiler_config: Optional[CompilerConfig] = None,
    ):
        settings = get_settings()
        self.registry = registry or get_node_registry()
        self.editor_config = editor_config or settings.editor
        self.compiler_config = compiler_config or settings.compiler

    def parse(self, legacy: Union[str, bytes, Dict[str, Any]]) -> LegacyPolicyModel:
        try:
            if isinstance(legacy, (str, bytes)):
                return LegacyPolicyModel.model_validate_json(legacy)
            return LegacyPolicyModel.model_validate(legacy)
        except ValidationError as exc:
            raise PolicyBodyError(
                "Malformed legacy policy",
                {"errors": json.loads(exc.json(include_url=False))},
            ) from exc

    def reconstruct(
        self,
        legacy: Union[str, bytes, Dict[str, Any]],
        id_factory: Optional[Callable[[], str]] = None,
    ) -> Graph:
        """
        Build a graph from legacy policy JSON.

        Args:
            legacy: Legacy policy as JSON text or a dict
            id_factory: Id generator for ids the adapter has to invent

        Returns:
            Graph with one node per legacy item and edges from each item's
            ``next``/``connectedTo`` target and branches

        Raises:
            PolicyBodyError: legacy JSON is malformed
        """
        policy = self.parse(legacy)

        graph = Graph(viewport={"x": 0, "y": 0, "zoom": self.editor_config.default_zoom})
        if id_factory is not None:
            graph.id_factory = id_factory

        node_ids = self._add_nodes(graph, policy.items)
        self._ensure_entry(graph, policy.items, node_ids)
        self._add_edges(graph, policy.items, node_ids)

        for message in graph.reconstruction_warnings:
            logger.warning("legacy_reconstruction_warning", detail=message)
        logger.info(
            "legacy_reconstructed",
            items=len(policy.items),
            nodes=len(graph.nodes),
            edges=len(graph.edges),
            warnings=len(graph.reconstruction_warnings),
        )
        return graph

    # =========================================================================
    # Nodes
    # =========================================================================

    def _add_nodes(self, graph: Graph, items: List[LegacyItemModel]) -> List[str]:
        warnings = graph.reconstruction_warnings
        node_ids: List[str] = []

        for index, item in enumerate(items):
            raw_id = str(item.id) if item.id is not None else ""
            if not raw_id:
                node_id = graph.new_id()
                warnings.append(f"Item {index} has no id; assigned {node_id}")
            elif graph.is_issued(raw_id):
                node_id = graph.new_id()
                warnings.append(
                    f"Item {index} reuses id {raw_id}; assigned {node_id}, "
                    f"targets named {raw_id} resolve to the first item"
                )
            else:
                node_id = raw_id

            kind = self._resolve_kind(item, index, warnings)
            data = copy.deepcopy(item.variables)
            node_def = self.registry.get(kind)
            if item.name is not None:
                data["name"] = item.name
            elif node_def is not None:
                data["name"] = node_def.name
            data["enabled"] = item.enabled

            graph.insert_node(
                Node(id=node_id, type=kind, position=self._layout(index + 1), data=data)
            )
            node_ids.append(node_id)

        return node_ids

    def _resolve_kind(self, item: LegacyItemModel, index: int, warnings: List[str]) -> str:
        if item.type:
            if not self.registry.is_known(item.type):
                warnings.append(f"Item {index} has unknown type '{item.type}'; kept as-is")
            return item.type

        if item.template_id is not None:
            node_def = self.registry.get_by_template_id(item.template_id)
            if node_def is not None:
                return node_def.kind.value

        warnings.append(
            f"Item {index} has no recognizable type (templateId={item.template_id}); "
            f"kept as '{self.compiler_config.legacy_kind}'"
        )
        return self.compiler_config.legacy_kind

    def _layout(self, column: int) -> Dict[str, float]:
        return {
            "x": self.editor_config.entry_position_x + column * self.editor_config.layout_spacing_x,
            "y": self.editor_config.entry_position_y,
        }

    # =========================================================================
    # Entry
    # =========================================================================

    def _ensure_entry(
        self,
        graph: Graph,
        items: List[LegacyItemModel],
        node_ids: List[str],
    ) -> None:
        warnings = graph.reconstruction_warnings

        if not items:
            warnings.append("Legacy policy has no items; created an empty flow")
            self._add_synthetic_entry(graph, target_id=None)
            return

        marked = [index for index, item in enumerate(items) if item.entry]
        if len(marked) > 1:
            warnings.append(
                f"{len(marked)} items are marked as entry; using item {marked[0]}"
            )

        if marked:
            entry_index = marked[0]
        else:
            entry_index = next(
                (
                    index
                    for index, node_id in enumerate(node_ids)
                    if self.registry.is_entry(graph.nodes[node_id].type)
                ),
                0,
            )

        entry_id = node_ids[entry_index]
        if not self.registry.is_entry(graph.nodes[entry_id].type):
            warnings.append(
                f"Entry item {entry_id} is not a start node; added a start node before it"
            )
            self._add_synthetic_entry(graph, target_id=entry_id)

    def _add_synthetic_entry(self, graph: Graph, target_id: Optional[str]) -> None:
        node = Node(
            id=graph.new_id(),
            type=NodeKind.INIT.value,
            position=self._layout(0),
            data=self.registry.default_data(NodeKind.INIT),
        )
        graph.insert_node(node)
        if target_id is not None:
            graph.insert_edge(Edge(id=graph.new_id(), source=node.id, target=target_id))

    # =========================================================================
    # Edges
    # =========================================================================

    def _add_edges(
        self,
        graph: Graph,
        items: List[LegacyItemModel],
        node_ids: List[str],
    ) -> None:
        warnings = graph.reconstruction_warnings
        sentinel = self.compiler_config.finish_sentinel

        for item, node_id in zip(items, node_ids):
            next_target = item.next if item.next is not None else item.connected_to
            if next_target is not None and str(next_target) not in ("", sentinel):
                self._add_edge(graph, node_id, str(next_target), warnings)

            for branch in item.branches:
                if branch.target is None or str(branch.target) == "":
                    warnings.append(
                        f"Branch '{branch.label}' of item {node_id} has no target; skipped"
                    )
                    continue
                self._add_edge(
                    graph,
                    node_id,
                    str(branch.target),
                    warnings,
                    label=branch.label,
                    source_handle=branch.handle,
                )

    @staticmethod
    def _add_edge(
        graph: Graph,
        source: str,
        target: str,
        warnings: List[str],
        label: Optional[str] = None,
        source_handle: Optional[str] = None,
    ) -> None:
        if target not in graph.nodes:
            warnings.append(f"Item {source} points at missing item {target}")
        graph.insert_edge(
            Edge(
                id=graph.new_id(),
                source=source,
                target=target,
                source_handle=source_handle,
                label=label,
            )
        )
