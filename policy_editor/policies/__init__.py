"""
Routing policy lifecycle: status, storage and editor sessions.
"""

from .repository import InMemoryPolicyRepository, PolicyRepository, StoredPolicy
from .service import EditorSession, PolicyEditorService
from .status import PolicyStatusMachine

__all__ = [
    "InMemoryPolicyRepository",
    "PolicyRepository",
    "StoredPolicy",
    "EditorSession",
    "PolicyEditorService",
    "PolicyStatusMachine",
]
