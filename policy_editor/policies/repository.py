"""
Policy repository.

The editor never talks to storage directly; the orchestration service
awaits a ``PolicyRepository``. Retry policy belongs to implementations.
"""

import asyncio
import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..config import PolicyStatus
from ..models import RoutingPolicy


@dataclass
class StoredPolicy:
    """A policy record with its stored documents."""

    policy: RoutingPolicy
    body: Optional[str] = None
    legacy: Optional[str] = None


class PolicyRepository(ABC):
    """Abstract base class for policy storage backends."""

    @abstractmethod
    async def create(self, policy: RoutingPolicy) -> RoutingPolicy:
        """Persist a new policy."""
        pass

    @abstractmethod
    async def get(self, policy_id: str) -> Optional[RoutingPolicy]:
        """Get a policy record."""
        pass

    @abstractmethod
    async def load(self, policy_id: str) -> Optional[StoredPolicy]:
        """Load a policy with its body and legacy documents."""
        pass

    @abstractmethod
    async def save(
        self,
        policy_id: str,
        body: str,
        legacy: str,
        user_id: str = "",
    ) -> bool:
        """Store compiled documents. Returns False if the policy is gone."""
        pass

    @abstractmethod
    async def set_status(
        self,
        policy_id: str,
        status: PolicyStatus,
        user_id: str = "",
    ) -> bool:
        """Store a new status. Returns False if the policy is gone."""
        pass

    @abstractmethod
    async def list_policies(self) -> List[RoutingPolicy]:
        """List all policies."""
        pass


class InMemoryPolicyRepository(PolicyRepository):
    """In-memory policy storage for development and testing."""

    def __init__(self):
        self._policies: Dict[str, RoutingPolicy] = {}
        self._lock = asyncio.Lock()

    async def create(self, policy: RoutingPolicy) -> RoutingPolicy:
        async with self._lock:
            self._policies[policy.id] = copy.deepcopy(policy)
        return copy.deepcopy(policy)

    async def get(self, policy_id: str) -> Optional[RoutingPolicy]:
        policy = self._policies.get(policy_id)
        return copy.deepcopy(policy) if policy else None

    async def load(self, policy_id: str) -> Optional[StoredPolicy]:
        policy = self._policies.get(policy_id)
        if policy is None:
            return None
        return StoredPolicy(policy=copy.deepcopy(policy), body=policy.body, legacy=policy.policy)

    async def save(
        self,
        policy_id: str,
        body: str,
        legacy: str,
        user_id: str = "",
    ) -> bool:
        async with self._lock:
            policy = self._policies.get(policy_id)
            if policy is None:
                return False
            policy.body = body
            policy.policy = legacy
            policy.updated_by = user_id
            policy.updated_at = datetime.now(timezone.utc)
        return True

    async def set_status(
        self,
        policy_id: str,
        status: PolicyStatus,
        user_id: str = "",
    ) -> bool:
        async with self._lock:
            policy = self._policies.get(policy_id)
            if policy is None:
                return False
            policy.status = status
            policy.updated_by = user_id
            policy.updated_at = datetime.now(timezone.utc)
        return True

    async def list_policies(self) -> List[RoutingPolicy]:
        return [copy.deepcopy(p) for p in self._policies.values()]
