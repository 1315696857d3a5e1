"""
Policy body serialization.

The body is a direct projection of the graph, used to reload it for
further editing. Node and edge keys the schema does not know are kept as
extras and written back unchanged; unknown position keys are dropped.
"""

import json
from typing import Any, Callable, Dict, Optional, Union

import structlog
from pydantic import ValidationError

from ..exceptions import PolicyBodyError
from ..models import Edge, Graph, Node, default_viewport
from ..schemas import PolicyBodyModel

logger = structlog.get_logger(__name__)


def to_body(graph: Graph) -> Dict[str, Any]:
    """Project a graph to policy body JSON (nodes and edges in insertion order)."""
    return graph.to_dict()


def _parse(payload: Union[str, bytes, Dict[str, Any], PolicyBodyModel]) -> PolicyBodyModel:
    if isinstance(payload, PolicyBodyModel):
        return payload
    try:
        if isinstance(payload, (str, bytes)):
            return PolicyBodyModel.model_validate_json(payload)
        return PolicyBodyModel.model_validate(payload)
    except ValidationError as exc:
        raise PolicyBodyError(
            "Malformed policy body",
            {"errors": json.loads(exc.json(include_url=False))},
        ) from exc


def from_body(
    payload: Union[str, bytes, Dict[str, Any], PolicyBodyModel],
    id_factory: Optional[Callable[[], str]] = None,
) -> Graph:
    """
    Load a graph from a stored policy body.

    Args:
        payload: Body as JSON text, a dict or a parsed model
        id_factory: Id generator for ids issued after loading

    Raises:
        PolicyBodyError: body is malformed or reuses an id
    """
    body = _parse(payload)

    graph = Graph()
    if id_factory is not None:
        graph.id_factory = id_factory
    if body.viewport is not None:
        graph.viewport = body.viewport.model_dump()
    else:
        graph.viewport = default_viewport()

    for node in body.nodes:
        if graph.is_issued(node.id):
            raise PolicyBodyError(f"Duplicate id in policy body: {node.id}", {"id": node.id})
        graph.insert_node(
            Node(
                id=node.id,
                type=node.type,
                position={"x": node.position.x, "y": node.position.y},
                data=node.data,
                extras=dict(node.model_extra or {}),
            )
        )

    for edge in body.edges:
        if graph.is_issued(edge.id):
            raise PolicyBodyError(f"Duplicate id in policy body: {edge.id}", {"id": edge.id})
        graph.insert_edge(
            Edge(
                id=edge.id,
                source=edge.source,
                target=edge.target,
                source_handle=edge.source_handle,
                target_handle=edge.target_handle,
                label=edge.label,
                extras=dict(edge.model_extra or {}),
            )
        )

    logger.debug("policy_body_loaded", nodes=len(graph.nodes), edges=len(graph.edges))
    return graph
