"""
Unit Tests for the Policy Status Machine

Tests for allowed transitions and the validation gate on Enabled.
"""

import pytest

from policy_editor.config import PolicyStatus
from policy_editor.exceptions import StatusTransitionError
from policy_editor.models import RoutingPolicy
from policy_editor.policies import PolicyStatusMachine


@pytest.fixture
def machine(validator) -> PolicyStatusMachine:
    return PolicyStatusMachine(validator)


def _policy(status: PolicyStatus) -> RoutingPolicy:
    return RoutingPolicy(id="pol-1", name="Main", status=status)


class TestTransitions:
    """Tests for the transition table."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (PolicyStatus.DRAFT, PolicyStatus.DISABLED),
            (PolicyStatus.DRAFT, PolicyStatus.ENABLED),
            (PolicyStatus.DISABLED, PolicyStatus.ENABLED),
            (PolicyStatus.ENABLED, PolicyStatus.DISABLED),
        ],
    )
    def test_allowed(self, machine, graph, current, target):
        policy = _policy(current)

        assert machine.transition(policy, target, graph=graph) == target
        assert policy.status == target

    @pytest.mark.parametrize(
        "current,target",
        [
            (PolicyStatus.DISABLED, PolicyStatus.DRAFT),
            (PolicyStatus.ENABLED, PolicyStatus.DRAFT),
        ],
    )
    def test_forbidden(self, machine, graph, current, target):
        policy = _policy(current)

        with pytest.raises(StatusTransitionError):
            machine.transition(policy, target, graph=graph)

        assert policy.status == current

    def test_same_status_is_noop(self, machine):
        policy = _policy(PolicyStatus.ENABLED)
        assert machine.transition(policy, PolicyStatus.ENABLED) == PolicyStatus.ENABLED

    def test_disable_needs_no_graph(self, machine):
        """Test the kill switch works without validating anything."""
        policy = _policy(PolicyStatus.ENABLED)
        machine.transition(policy, PolicyStatus.DISABLED)
        assert policy.status == PolicyStatus.DISABLED


class TestEnableGate:
    """Tests for the validation gate."""

    def test_draft_to_enabled_rejected_on_missing_field(self, machine, editor, entry_id):
        speak = editor.add_node("speak")
        editor.connect(entry_id, speak.id)
        editor.update_node_data(speak.id, {"voice": ""})
        policy = _policy(PolicyStatus.DRAFT)

        with pytest.raises(StatusTransitionError) as exc_info:
            machine.transition(policy, PolicyStatus.ENABLED, graph=editor.graph)

        assert policy.status == PolicyStatus.DRAFT
        assert exc_info.value.issues[0].field_name == "voice"

    def test_warnings_do_not_block(self, machine, editor):
        editor.add_node("speak")
        policy = _policy(PolicyStatus.DISABLED)

        machine.transition(policy, PolicyStatus.ENABLED, graph=editor.graph)

        assert policy.status == PolicyStatus.ENABLED

    def test_enable_requires_graph(self, machine):
        policy = _policy(PolicyStatus.DRAFT)

        with pytest.raises(StatusTransitionError):
            machine.transition(policy, PolicyStatus.ENABLED)

        assert policy.status == PolicyStatus.DRAFT

    def test_precomputed_validation(self, machine, graph, validator):
        policy = _policy(PolicyStatus.DRAFT)
        machine.transition(policy, PolicyStatus.ENABLED, validation=validator.validate(graph))
        assert policy.status == PolicyStatus.ENABLED
