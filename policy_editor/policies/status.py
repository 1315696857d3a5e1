"""
Policy status state machine.

Status is separate from graph validity except for one gate: a policy can
only become Enabled while its graph has no fatal validation issues.
"""

from typing import Dict, Optional, Set

import structlog

from ..canvas import GraphValidator
from ..config import PolicyStatus
from ..exceptions import StatusTransitionError
from ..models import Graph, RoutingPolicy, ValidationResult

logger = structlog.get_logger(__name__)


class PolicyStatusMachine:
    """Guards routing policy status changes."""

    VALID_TRANSITIONS: Dict[PolicyStatus, Set[PolicyStatus]] = {
        PolicyStatus.DRAFT: {
            PolicyStatus.DISABLED,
            PolicyStatus.ENABLED,
        },
        PolicyStatus.DISABLED: {
            PolicyStatus.ENABLED,
        },
        PolicyStatus.ENABLED: {
            PolicyStatus.DISABLED,
        },
    }

    # Targets that require a graph without fatal issues
    GATED: Set[PolicyStatus] = {PolicyStatus.ENABLED}

    def __init__(self, validator: Optional[GraphValidator] = None):
        self.validator = validator or GraphValidator()

    def can_transition(self, current: PolicyStatus, target: PolicyStatus) -> bool:
        return current == target or target in self.VALID_TRANSITIONS.get(current, set())

    def transition(
        self,
        policy: RoutingPolicy,
        target: PolicyStatus,
        graph: Optional[Graph] = None,
        validation: Optional[ValidationResult] = None,
    ) -> PolicyStatus:
        """
        Move a policy to a new status.

        Args:
            policy: Policy to update in place
            target: Requested status
            graph: Policy graph, validated when the target is gated
            validation: Precomputed validation result for ``graph``

        Returns:
            The policy's status after the call

        Raises:
            StatusTransitionError: transition not allowed; status is unchanged
        """
        current = policy.status
        if target == current:
            return current

        if not self.can_transition(current, target):
            raise StatusTransitionError(
                f"Cannot change status from {current.value} to {target.value}"
            )

        if target in self.GATED:
            if validation is None:
                if graph is None:
                    raise StatusTransitionError(
                        f"Changing status to {target.value} requires the policy graph"
                    )
                validation = self.validator.validate(graph)

            if not validation.valid:
                raise StatusTransitionError(
                    f"Cannot change status to {target.value}: graph has "
                    f"{len(validation.fatal_issues)} fatal issue(s)",
                    issues=validation.fatal_issues,
                )

        policy.status = target
        logger.info(
            "policy_status_changed",
            policy_id=policy.id,
            previous=current.value,
            status=target.value,
        )
        return target
