"""
Policy Editor Service.

Orchestrates editor sessions: loads a policy's graph from storage, applies
canvas actions through the graph editor, validates, compiles and saves. It
is the only layer that awaits the repository.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

import structlog

from ..canvas import GraphEditor, GraphValidator
from ..compiler import CompiledPolicy, LegacyAdapter, PolicyCompiler, from_body
from ..config import (
    CanvasActionType,
    PolicySource,
    PolicyStatus,
    PolicyType,
    Settings,
    get_settings,
)
from ..exceptions import (
    PolicyBodyError,
    PolicyNotFoundError,
    PolicyValidationError,
    RepositoryError,
    SessionNotFoundError,
)
from ..models import Graph, RoutingPolicy, ValidationResult
from ..nodes import NodeRegistry, get_node_registry
from ..schemas import CanvasAction
from .repository import PolicyRepository, StoredPolicy
from .status import PolicyStatusMachine

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class EditorSession:
    """A policy opened for editing."""

    policy: RoutingPolicy
    editor: GraphEditor
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    dirty: bool = False

    @property
    def graph(self) -> Graph:
        return self.editor.graph

    def to_dict(self, validation: ValidationResult) -> Dict[str, Any]:
        return {
            "policy_id": self.policy.id,
            "graph": self.graph.to_dict(),
            "validation": validation.to_dict(),
            "reconstruction_warnings": list(self.graph.reconstruction_warnings),
            "dirty": self.dirty,
        }


class PolicyEditorService:
    """
    Manages editor sessions for routing policies.

    Holds at most one open session per policy. Concurrent saves of the
    same policy are last write wins.
    """

    def __init__(
        self,
        repository: PolicyRepository,
        registry: Optional[NodeRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.registry = registry or get_node_registry()

        self.validator = GraphValidator(self.registry)
        self.compiler = PolicyCompiler(self.registry)
        self.adapter = LegacyAdapter(
            self.registry,
            editor_config=self.settings.editor,
            compiler_config=self.settings.compiler,
        )
        self.status_machine = PolicyStatusMachine(self.validator)

        self._sessions: Dict[str, EditorSession] = {}
        self._handlers: Dict[CanvasActionType, Callable[[GraphEditor, Dict[str, Any]], Any]] = {
            CanvasActionType.ADD_NODE: self._add_node,
            CanvasActionType.UPDATE_NODE: self._update_node,
            CanvasActionType.MOVE_NODE: self._move_node,
            CanvasActionType.REMOVE_NODE: self._remove_node,
            CanvasActionType.CONNECT: self._connect,
            CanvasActionType.DISCONNECT: self._disconnect,
            CanvasActionType.SET_VIEWPORT: self._set_viewport,
        }

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a repository call with the configured timeout."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.storage.timeout_s)
        except asyncio.TimeoutError as exc:
            logger.error("repository_timeout", operation=operation)
            raise RepositoryError(f"Repository {operation} timed out") from exc

    # =========================================================================
    # Policies
    # =========================================================================

    async def create_policy(
        self,
        name: str,
        description: str = "",
        policy_type: PolicyType = PolicyType.CALL,
        source: PolicySource = PolicySource.INBOUND,
        created_by: str = "",
    ) -> RoutingPolicy:
        """Create a Draft policy whose graph holds only the entry node."""
        policy = RoutingPolicy(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            source=source,
            type=policy_type,
            status=PolicyStatus.DRAFT,
            created_by=created_by,
            updated_by=created_by,
        )

        graph = GraphEditor.create_graph(self.registry, self.settings.editor)
        compiled = self.compiler.compile(graph, policy.name, policy.type)
        policy.body = compiled.body_json()
        policy.policy = compiled.legacy_json()

        created = await self._call("create", self.repository.create(policy))
        logger.info("policy_created", policy_id=created.id, name=name, type=policy_type.value)
        return created

    async def get_policy(self, policy_id: str) -> RoutingPolicy:
        policy = await self._call("get", self.repository.get(policy_id))
        if policy is None:
            raise PolicyNotFoundError(policy_id)
        return policy

    async def list_policies(self) -> List[RoutingPolicy]:
        return await self._call("list", self.repository.list_policies())

    async def _load(self, policy_id: str) -> StoredPolicy:
        stored = await self._call("load", self.repository.load(policy_id))
        if stored is None:
            raise PolicyNotFoundError(policy_id)
        return stored

    def _graph_from_stored(self, stored: StoredPolicy) -> Graph:
        """Stored body first, then legacy reconstruction, then a fresh graph."""
        if stored.body:
            return from_body(stored.body)
        if stored.legacy:
            return self.adapter.reconstruct(stored.legacy)
        return GraphEditor.create_graph(self.registry, self.settings.editor)

    # =========================================================================
    # Sessions
    # =========================================================================

    async def open_policy(self, policy_id: str) -> EditorSession:
        """Open a policy for editing, replacing any session already open for it."""
        stored = await self._load(policy_id)
        graph = self._graph_from_stored(stored)

        session = EditorSession(
            policy=stored.policy,
            editor=GraphEditor(graph, self.registry, self.settings.editor),
        )
        self._sessions[policy_id] = session

        logger.info(
            "editor_session_opened",
            policy_id=policy_id,
            nodes=len(graph.nodes),
            edges=len(graph.edges),
            reconstructed=not stored.body and bool(stored.legacy),
        )
        return session

    def get_session(self, policy_id: str) -> EditorSession:
        session = self._sessions.get(policy_id)
        if session is None:
            raise SessionNotFoundError(policy_id)
        return session

    def close_session(self, policy_id: str) -> None:
        """Discard an open session and its unsaved edits."""
        session = self._sessions.pop(policy_id, None)
        if session is None:
            raise SessionNotFoundError(policy_id)
        logger.info("editor_session_closed", policy_id=policy_id, discarded=session.dirty)

    def validate_session(self, policy_id: str) -> ValidationResult:
        return self.validator.validate(self.get_session(policy_id).graph)

    # =========================================================================
    # Canvas Actions
    # =========================================================================

    def apply_actions(self, policy_id: str, actions: List[CanvasAction]) -> List[Dict[str, Any]]:
        """
        Apply a batch of canvas actions to an open session.

        The batch is all-or-nothing: if any action fails, the graph is
        rolled back to its state before the batch and the error re-raised.
        Malformed payloads raise ``PolicyBodyError``.
        """
        session = self.get_session(policy_id)
        snapshot = session.graph.copy()

        results: List[Dict[str, Any]] = []
        try:
            for action in actions:
                handler = self._handlers[action.action]
                results.append(
                    {"action": action.action.value, "result": handler(session.editor, action.payload)}
                )
        except Exception:
            session.graph.restore(snapshot)
            logger.warning(
                "canvas_actions_rolled_back",
                policy_id=policy_id,
                applied=len(results),
                total=len(actions),
            )
            raise

        session.dirty = True
        return results

    @staticmethod
    def _require(
        payload: Dict[str, Any],
        key: str,
        action: str,
        expected: type = str,
    ) -> Any:
        if key not in payload:
            raise PolicyBodyError(f"'{action}' payload is missing '{key}'", {"key": key})
        value = payload[key]
        if not isinstance(value, expected):
            raise PolicyBodyError(
                f"'{action}' payload '{key}' has the wrong type",
                {"key": key, "type": type(value).__name__},
            )
        return value

    @staticmethod
    def _coordinates(value: Any, keys: Tuple[str, ...], action: str) -> Dict[str, Any]:
        """Check a position or viewport mapping; its coordinates must be numbers."""
        if not isinstance(value, dict):
            raise PolicyBodyError(f"'{action}' expects an object of {', '.join(keys)}")
        for key in keys:
            coordinate = value.get(key, 0)
            if isinstance(coordinate, bool) or not isinstance(coordinate, (int, float)):
                raise PolicyBodyError(
                    f"'{action}' coordinate '{key}' must be a number", {"key": key}
                )
        return value

    def _add_node(self, editor: GraphEditor, payload: Dict[str, Any]) -> Dict[str, Any]:
        kind = self._require(payload, "kind", "add_node")
        position = payload.get("position")
        if position is not None:
            position = self._coordinates(position, ("x", "y"), "add_node")
        data = payload.get("data")
        if data is not None and not isinstance(data, dict):
            raise PolicyBodyError("'add_node' payload 'data' must be an object", {"key": "data"})

        node = editor.add_node(kind, position)
        if data:
            editor.update_node_data(node.id, data)
        return node.to_dict()

    def _update_node(self, editor: GraphEditor, payload: Dict[str, Any]) -> None:
        editor.update_node_data(
            self._require(payload, "node_id", "update_node"),
            self._require(payload, "data", "update_node", dict),
        )

    def _move_node(self, editor: GraphEditor, payload: Dict[str, Any]) -> None:
        editor.move_node(
            self._require(payload, "node_id", "move_node"),
            self._coordinates(
                self._require(payload, "position", "move_node", object), ("x", "y"), "move_node"
            ),
        )

    def _remove_node(self, editor: GraphEditor, payload: Dict[str, Any]) -> None:
        editor.remove_node(self._require(payload, "node_id", "remove_node"))

    def _connect(self, editor: GraphEditor, payload: Dict[str, Any]) -> Dict[str, Any]:
        edge = editor.connect(
            self._require(payload, "source", "connect"),
            self._require(payload, "target", "connect"),
            source_handle=payload.get("source_handle", payload.get("sourceHandle")),
            label=payload.get("label"),
            target_handle=payload.get("target_handle", payload.get("targetHandle")),
        )
        return edge.to_dict()

    def _disconnect(self, editor: GraphEditor, payload: Dict[str, Any]) -> None:
        editor.disconnect(self._require(payload, "edge_id", "disconnect"))

    def _set_viewport(self, editor: GraphEditor, payload: Dict[str, Any]) -> None:
        viewport = payload.get("viewport", payload)
        editor.set_viewport(self._coordinates(viewport, ("x", "y", "zoom"), "set_viewport"))

    # =========================================================================
    # Save & Status
    # =========================================================================

    async def save_policy(self, policy_id: str, user_id: str = "") -> CompiledPolicy:
        """
        Validate, compile and store an open session's graph.

        Raises:
            PolicyValidationError: graph has fatal issues
            PolicyNotFoundError: policy no longer exists
        """
        session = self.get_session(policy_id)
        validation = self.validator.validate(session.graph)
        if not validation.valid:
            raise PolicyValidationError(
                f"Policy {policy_id} has {len(validation.fatal_issues)} fatal issue(s)",
                validation.fatal_issues,
            )

        compiled = self.compiler.compile(session.graph, session.policy.name, session.policy.type)
        body = compiled.body_json()
        legacy = compiled.legacy_json()

        saved = await self._call(
            "save", self.repository.save(policy_id, body, legacy, user_id=user_id)
        )
        if not saved:
            raise PolicyNotFoundError(policy_id)

        session.policy.body = body
        session.policy.policy = legacy
        session.dirty = False

        logger.info("policy_saved", policy_id=policy_id, warnings=len(validation.warnings))
        return compiled

    async def change_status(
        self,
        policy_id: str,
        status: PolicyStatus,
        user_id: str = "",
    ) -> RoutingPolicy:
        """
        Change a policy's status.

        Enabling validates the stored graph, the one the runtime executes.
        Unsaved edits in an open session neither unlock nor block it.

        Raises:
            StatusTransitionError: transition not allowed
            PolicyNotFoundError: policy does not exist
        """
        stored = await self._load(policy_id)
        policy = stored.policy
        graph = self._graph_from_stored(stored) if status in self.status_machine.GATED else None

        previous = policy.status
        self.status_machine.transition(policy, status, graph=graph)
        if policy.status == previous:
            return policy

        updated = await self._call(
            "set_status", self.repository.set_status(policy_id, status, user_id=user_id)
        )
        if not updated:
            raise PolicyNotFoundError(policy_id)

        session = self._sessions.get(policy_id)
        if session is not None:
            session.policy.status = policy.status
        return policy
