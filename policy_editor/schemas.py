"""
Wire schemas.

Pydantic models for the policy body JSON, the legacy policy JSON and the
HTTP API request/response payloads.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import CanvasActionType, PolicySource, PolicyStatus, PolicyType

Number = Union[int, float]


# =============================================================================
# Policy Body
# =============================================================================


class PositionModel(BaseModel):
    """Canvas position of a node."""

    model_config = ConfigDict(extra="ignore")

    x: Number = 0
    y: Number = 0


class ViewportModel(BaseModel):
    """Canvas viewport."""

    model_config = ConfigDict(extra="allow")

    x: Number = 0
    y: Number = 0
    zoom: Number = 1


class BodyNodeModel(BaseModel):
    """Node entry of a policy body."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    position: PositionModel = Field(default_factory=PositionModel)
    data: Dict[str, Any] = Field(default_factory=dict)


class BodyEdgeModel(BaseModel):
    """Edge entry of a policy body."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., min_length=1)
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    label: Optional[str] = None


class PolicyBodyModel(BaseModel):
    """Structural (graph) policy body."""

    nodes: List[BodyNodeModel] = Field(default_factory=list)
    edges: List[BodyEdgeModel] = Field(default_factory=list)
    viewport: Optional[ViewportModel] = None


# =============================================================================
# Legacy Policy
# =============================================================================

LegacyId = Union[str, int]


class LegacyBranchModel(BaseModel):
    """Named branch of a legacy item."""

    model_config = ConfigDict(extra="allow")

    label: Optional[str] = None
    target: Optional[LegacyId] = None
    handle: Optional[str] = None


class LegacyItemModel(BaseModel):
    """Item of a legacy policy; only the keys the adapter reads are typed."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[LegacyId] = None
    name: Optional[str] = None
    type: Optional[str] = None
    template_id: Optional[int] = Field(default=None, alias="templateId")
    enabled: bool = True
    entry: bool = False
    inert: bool = False
    variables: Dict[str, Any] = Field(default_factory=dict)
    next: Optional[LegacyId] = None
    connected_to: Optional[LegacyId] = Field(default=None, alias="connectedTo")
    branches: List[LegacyBranchModel] = Field(default_factory=list)


class LegacyPolicyModel(BaseModel):
    """Flattened legacy policy executed by the runtime."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    enabled: bool = True
    type: Optional[str] = None
    items: List[LegacyItemModel] = Field(default_factory=list)


# =============================================================================
# API Request/Response Models
# =============================================================================


class CreatePolicyRequest(BaseModel):
    """Request to create a new routing policy."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    type: PolicyType = PolicyType.CALL
    source: PolicySource = PolicySource.INBOUND
    created_by: str = ""


class PolicyResponse(BaseModel):
    """Routing policy record."""

    id: str
    name: str
    description: str
    source: str
    type: str
    status: str
    created_by: str
    created_at: str
    updated_by: str
    updated_at: str
    phone_numbers: List[str]
    has_body: bool
    has_policy: bool


class CanvasAction(BaseModel):
    """Editor action on an open graph."""

    action: CanvasActionType
    payload: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None


class ApplyActionsRequest(BaseModel):
    """Batch of editor actions, applied all-or-nothing."""

    actions: List[CanvasAction] = Field(..., min_length=1)


class SavePolicyRequest(BaseModel):
    """Request to save an open graph."""

    user_id: str = ""


class StatusChangeRequest(BaseModel):
    """Request to change a policy's status."""

    status: PolicyStatus
    user_id: str = ""


class CompileRequest(BaseModel):
    """Stateless compile request."""

    body: PolicyBodyModel
    name: str = ""
    type: PolicyType = PolicyType.CALL


class ReconstructRequest(BaseModel):
    """Legacy JSON to rebuild a graph from, as a string or object."""

    legacy: Union[str, Dict[str, Any]]


class SessionResponse(BaseModel):
    """Open editor session state."""

    policy_id: str
    graph: Dict[str, Any]
    validation: Dict[str, Any]
    reconstruction_warnings: List[str] = Field(default_factory=list)
    dirty: bool = False


class ValidateResponse(BaseModel):
    """Validation result."""

    valid: bool
    issues: List[Dict[str, Any]]
    checked_at: str


class CompileResponse(BaseModel):
    """Compiled policy documents."""

    body: str
    policy: str
    phone_numbers: List[str] = Field(default_factory=list)
