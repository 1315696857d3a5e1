"""
Unit Tests for the Policy Editor Service

Tests for editor sessions, canvas action batches, save and status changes.
"""

import asyncio
import json

import pytest

from policy_editor.config import (
    CanvasActionType,
    IssueKind,
    PolicyStatus,
    PolicyType,
    Settings,
    StorageConfig,
)
from policy_editor.exceptions import (
    EdgeNotFoundError,
    InvalidEdgeAttributeError,
    NodeNotFoundError,
    PolicyBodyError,
    PolicyNotFoundError,
    PolicyValidationError,
    RepositoryError,
    SessionNotFoundError,
    StatusTransitionError,
)
from policy_editor.models import RoutingPolicy
from policy_editor.policies import InMemoryPolicyRepository, PolicyEditorService
from policy_editor.schemas import CanvasAction


def _action(action: CanvasActionType, **payload) -> CanvasAction:
    return CanvasAction(action=action, payload=payload)


async def _open_new(service: PolicyEditorService, name: str = "Main"):
    policy = await service.create_policy(name)
    session = await service.open_policy(policy.id)
    entry_id = next(iter(session.graph.nodes))
    return policy, session, entry_id


# =============================================================================
# Policy & Session Tests
# =============================================================================


class TestPolicies:
    """Tests for creating and loading policies."""

    @pytest.mark.asyncio
    async def test_create_policy(self, service, repository):
        policy = await service.create_policy("Main Line", policy_type=PolicyType.QUEUE)

        stored = await repository.load(policy.id)
        assert stored.policy.status == PolicyStatus.DRAFT
        assert len(json.loads(stored.body)["nodes"]) == 1
        assert json.loads(stored.legacy)["type"] == "QUEUE"

    @pytest.mark.asyncio
    async def test_get_missing_policy(self, service):
        with pytest.raises(PolicyNotFoundError):
            await service.get_policy("missing")

    @pytest.mark.asyncio
    async def test_list_policies(self, service):
        await service.create_policy("A")
        await service.create_policy("B")

        assert sorted(p.name for p in await service.list_policies()) == ["A", "B"]


class TestSessions:
    """Tests for opening and closing editor sessions."""

    @pytest.mark.asyncio
    async def test_open_from_body(self, service):
        policy, session, _ = await _open_new(service)

        assert session.policy.id == policy.id
        assert len(session.graph.nodes) == 1
        assert service.get_session(policy.id) is session

    @pytest.mark.asyncio
    async def test_open_from_legacy(self, service, repository):
        legacy = {
            "name": "Old",
            "items": [
                {"id": "s", "type": "init", "next": "q"},
                {"id": "q", "type": "callQueue"},
            ],
        }
        await repository.create(RoutingPolicy(id="old-1", name="Old", policy=json.dumps(legacy)))

        session = await service.open_policy("old-1")

        assert list(session.graph.nodes) == ["s", "q"]

    @pytest.mark.asyncio
    async def test_open_without_documents(self, service, repository):
        await repository.create(RoutingPolicy(id="bare", name="Bare"))

        session = await service.open_policy("bare")

        assert len(session.graph.nodes) == 1

    @pytest.mark.asyncio
    async def test_open_missing(self, service):
        with pytest.raises(PolicyNotFoundError):
            await service.open_policy("missing")

    @pytest.mark.asyncio
    async def test_close_discards_session(self, service):
        policy, _, _ = await _open_new(service)

        service.close_session(policy.id)

        with pytest.raises(SessionNotFoundError):
            service.get_session(policy.id)
        with pytest.raises(SessionNotFoundError):
            service.close_session(policy.id)


# =============================================================================
# Canvas Action Tests
# =============================================================================


class TestCanvasActions:
    """Tests for applying action batches."""

    @pytest.mark.asyncio
    async def test_apply_batch(self, service):
        policy, session, entry_id = await _open_new(service)

        results = service.apply_actions(
            policy.id,
            [
                _action(CanvasActionType.ADD_NODE, kind="speak", position={"x": 1, "y": 2},
                        data={"sayPhrase": "Hi"}),
                _action(CanvasActionType.SET_VIEWPORT, viewport={"x": 5, "y": 5, "zoom": 2}),
            ],
        )

        node = results[0]["result"]
        assert node["data"]["sayPhrase"] == "Hi"

        service.apply_actions(
            policy.id,
            [
                _action(CanvasActionType.CONNECT, source=entry_id, target=node["id"]),
                _action(CanvasActionType.MOVE_NODE, node_id=node["id"], position={"x": 9, "y": 9}),
                _action(CanvasActionType.UPDATE_NODE, node_id=node["id"], data={"name": "Hello"}),
            ],
        )

        graph = session.graph
        assert graph.viewport == {"x": 5, "y": 5, "zoom": 2}
        assert graph.nodes[node["id"]].position == {"x": 9, "y": 9}
        assert graph.nodes[node["id"]].data["name"] == "Hello"
        assert len(graph.edges) == 1
        assert session.dirty is True

    @pytest.mark.asyncio
    async def test_failed_batch_rolls_back(self, service):
        policy, session, entry_id = await _open_new(service)
        before = session.graph.to_dict()

        with pytest.raises(NodeNotFoundError):
            service.apply_actions(
                policy.id,
                [
                    _action(CanvasActionType.ADD_NODE, kind="speak"),
                    _action(CanvasActionType.REMOVE_NODE, node_id="missing"),
                ],
            )

        assert session.graph.to_dict() == before

    @pytest.mark.asyncio
    async def test_rolled_back_ids_stay_issued(self, service):
        policy, session, _ = await _open_new(service)
        issued = []
        factory = session.graph.id_factory
        session.graph.id_factory = lambda: issued.append(factory()) or issued[-1]

        with pytest.raises(EdgeNotFoundError):
            service.apply_actions(
                policy.id,
                [
                    _action(CanvasActionType.ADD_NODE, kind="speak"),
                    _action(CanvasActionType.DISCONNECT, edge_id="missing"),
                ],
            )

        assert issued[0] not in session.graph.nodes
        assert session.graph.is_issued(issued[0])

        added = service.apply_actions(policy.id, [_action(CanvasActionType.ADD_NODE, kind="speak")])
        assert added[0]["result"]["id"] != issued[0]

    @pytest.mark.asyncio
    async def test_malformed_payload_rolls_back(self, service):
        policy, session, entry_id = await _open_new(service)
        before = session.graph.to_dict()

        with pytest.raises(PolicyBodyError):
            service.apply_actions(
                policy.id,
                [
                    _action(CanvasActionType.ADD_NODE, kind="input"),
                    _action(CanvasActionType.MOVE_NODE, node_id=entry_id, position="oops"),
                ],
            )

        assert session.graph.to_dict() == before

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action,payload",
        [
            (CanvasActionType.ADD_NODE, {"kind": "speak", "position": {"x": "left"}}),
            (CanvasActionType.ADD_NODE, {"kind": "speak", "data": ["voice"]}),
            (CanvasActionType.ADD_NODE, {"kind": ["speak"]}),
            (CanvasActionType.UPDATE_NODE, {"node_id": "n", "data": "voice"}),
            (CanvasActionType.REMOVE_NODE, {"node_id": 7}),
            (CanvasActionType.SET_VIEWPORT, {"viewport": {"x": 0, "y": 0, "zoom": "max"}}),
            (CanvasActionType.SET_VIEWPORT, {"viewport": [0, 0, 1]}),
        ],
    )
    async def test_payload_shapes_checked(self, service, action, payload):
        policy, session, _ = await _open_new(service)
        before = session.graph.to_dict()

        with pytest.raises(PolicyBodyError):
            service.apply_actions(policy.id, [CanvasAction(action=action, payload=payload)])

        assert session.graph.to_dict() == before

    @pytest.mark.asyncio
    async def test_non_string_label_rejected(self, service):
        policy, session, entry_id = await _open_new(service)
        rule_id = service.apply_actions(
            policy.id, [_action(CanvasActionType.ADD_NODE, kind="rule")]
        )[0]["result"]["id"]
        before = session.graph.to_dict()

        with pytest.raises(InvalidEdgeAttributeError):
            service.apply_actions(
                policy.id,
                [
                    _action(CanvasActionType.ADD_NODE, kind="speak"),
                    _action(CanvasActionType.CONNECT, source=entry_id, target=rule_id, label=1),
                ],
            )

        assert session.graph.to_dict() == before

    @pytest.mark.asyncio
    async def test_missing_payload_key(self, service):
        policy, _, _ = await _open_new(service)

        with pytest.raises(PolicyBodyError):
            service.apply_actions(policy.id, [_action(CanvasActionType.REMOVE_NODE)])

    @pytest.mark.asyncio
    async def test_actions_need_open_session(self, service):
        with pytest.raises(SessionNotFoundError):
            service.apply_actions("missing", [_action(CanvasActionType.ADD_NODE, kind="speak")])


# =============================================================================
# Save & Status Tests
# =============================================================================


class TestSave:
    """Tests for saving sessions."""

    @pytest.mark.asyncio
    async def test_save_stores_both_documents(self, service, repository):
        policy, session, entry_id = await _open_new(service)
        results = service.apply_actions(
            policy.id,
            [
                _action(CanvasActionType.ADD_NODE, kind="input"),
                _action(CanvasActionType.ADD_NODE, kind="callQueue"),
            ],
        )
        input_id, queue_id = (r["result"]["id"] for r in results)
        service.apply_actions(
            policy.id,
            [
                _action(CanvasActionType.CONNECT, source=entry_id, target=input_id),
                _action(CanvasActionType.CONNECT, source=input_id, target=queue_id),
            ],
        )

        compiled = await service.save_policy(policy.id, user_id="usr-1")

        stored = await repository.load(policy.id)
        assert stored.body == compiled.body_json()
        assert stored.legacy == compiled.legacy_json()
        assert stored.policy.updated_by == "usr-1"
        assert [i["id"] for i in json.loads(stored.legacy)["items"]] == [entry_id, input_id, queue_id]
        assert session.dirty is False

    @pytest.mark.asyncio
    async def test_save_refuses_fatal_issues(self, service, repository):
        policy, session, entry_id = await _open_new(service)
        stored_before = (await repository.load(policy.id)).body
        rule_id = service.apply_actions(
            policy.id, [_action(CanvasActionType.ADD_NODE, kind="rule")]
        )[0]["result"]["id"]
        service.apply_actions(
            policy.id, [_action(CanvasActionType.CONNECT, source=entry_id, target=rule_id)]
        )
        service.apply_actions(
            policy.id, [_action(CanvasActionType.UPDATE_NODE, node_id=rule_id, data={"name": ""})]
        )

        with pytest.raises(PolicyValidationError) as exc_info:
            await service.save_policy(policy.id)

        assert exc_info.value.issues[0].node_id == rule_id
        assert (await repository.load(policy.id)).body == stored_before

    @pytest.mark.asyncio
    async def test_saved_graph_reopens_identically(self, service):
        policy, session, entry_id = await _open_new(service)
        node_id = service.apply_actions(
            policy.id, [_action(CanvasActionType.ADD_NODE, kind="speak")]
        )[0]["result"]["id"]
        await service.save_policy(policy.id)
        saved = session.graph.to_dict()

        reopened = await service.open_policy(policy.id)

        assert reopened.graph.to_dict() == saved
        assert node_id in reopened.graph.nodes

    @pytest.mark.asyncio
    async def test_branches_survive_save_close_open(self, service):
        policy, session, entry_id = await _open_new(service)
        rule_id, queue_id, mail_id = (
            r["result"]["id"]
            for r in service.apply_actions(
                policy.id,
                [
                    _action(CanvasActionType.ADD_NODE, kind="rule"),
                    _action(CanvasActionType.ADD_NODE, kind="callQueue"),
                    _action(CanvasActionType.ADD_NODE, kind="voicemail"),
                ],
            )
        )
        service.apply_actions(
            policy.id,
            [
                _action(CanvasActionType.CONNECT, source=entry_id, target=rule_id),
                _action(CanvasActionType.CONNECT, source=rule_id, target=queue_id,
                        label="open", sourceHandle="h-open", targetHandle="in"),
                _action(CanvasActionType.CONNECT, source=rule_id, target=mail_id, label="closed"),
            ],
        )
        await service.save_policy(policy.id)
        saved = session.graph.to_dict()
        service.close_session(policy.id)

        reopened = await service.open_policy(policy.id)

        assert reopened.graph.to_dict() == saved

    @pytest.mark.asyncio
    async def test_save_refuses_wrongly_typed_name(self, service, repository):
        policy, _, entry_id = await _open_new(service)
        stored_before = (await repository.load(policy.id)).body
        service.apply_actions(
            policy.id, [_action(CanvasActionType.UPDATE_NODE, node_id=entry_id, data={"name": 5})]
        )

        with pytest.raises(PolicyValidationError) as exc_info:
            await service.save_policy(policy.id)

        assert [i.kind for i in exc_info.value.issues] == [IssueKind.INVALID_FIELD_TYPE]
        assert (await repository.load(policy.id)).body == stored_before

    @pytest.mark.asyncio
    async def test_repository_timeout(self, repository):
        class SlowRepository(InMemoryPolicyRepository):
            async def save(self, policy_id, body, legacy, user_id=""):
                await asyncio.sleep(1)
                return True

        settings = Settings(storage=StorageConfig(timeout_s=0.01))
        service = PolicyEditorService(SlowRepository(), settings=settings)
        policy, _, _ = await _open_new(service)

        with pytest.raises(RepositoryError):
            await service.save_policy(policy.id)


class TestChangeStatus:
    """Tests for status changes through the service."""

    @pytest.mark.asyncio
    async def test_enable_fresh_policy(self, service, repository):
        policy = await service.create_policy("Main")

        updated = await service.change_status(policy.id, PolicyStatus.ENABLED, user_id="usr-1")

        assert updated.status == PolicyStatus.ENABLED
        assert (await repository.get(policy.id)).status == PolicyStatus.ENABLED

    @pytest.mark.asyncio
    async def test_enable_checks_stored_graph(self, service, repository):
        legacy = {"items": [{"id": "a", "type": "init", "entry": True, "next": "missing"}]}
        await repository.create(RoutingPolicy(id="p-1", name="Old", policy=json.dumps(legacy)))
        session = await service.open_policy("p-1")
        edge_id = next(iter(session.graph.edges))
        service.apply_actions("p-1", [_action(CanvasActionType.DISCONNECT, edge_id=edge_id)])

        # The fix only exists in the session until it is saved
        with pytest.raises(StatusTransitionError):
            await service.change_status("p-1", PolicyStatus.ENABLED)
        assert (await repository.get("p-1")).status == PolicyStatus.DRAFT

        await service.save_policy("p-1")
        updated = await service.change_status("p-1", PolicyStatus.ENABLED)

        assert updated.status == PolicyStatus.ENABLED
        assert (await repository.get("p-1")).status == PolicyStatus.ENABLED
        assert session.policy.status == PolicyStatus.ENABLED

    @pytest.mark.asyncio
    async def test_unsaved_edits_do_not_block_enable(self, service):
        policy, _, entry_id = await _open_new(service)
        service.apply_actions(
            policy.id, [_action(CanvasActionType.UPDATE_NODE, node_id=entry_id, data={"name": ""})]
        )

        updated = await service.change_status(policy.id, PolicyStatus.ENABLED)

        assert updated.status == PolicyStatus.ENABLED

    @pytest.mark.asyncio
    async def test_disable_then_reenable(self, service):
        policy = await service.create_policy("Main")
        await service.change_status(policy.id, PolicyStatus.ENABLED)

        disabled = await service.change_status(policy.id, PolicyStatus.DISABLED)
        enabled = await service.change_status(policy.id, PolicyStatus.ENABLED)

        assert disabled.status == PolicyStatus.DISABLED
        assert enabled.status == PolicyStatus.ENABLED

    @pytest.mark.asyncio
    async def test_change_status_missing_policy(self, service):
        with pytest.raises(PolicyNotFoundError):
            await service.change_status("missing", PolicyStatus.DISABLED)
