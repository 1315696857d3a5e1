"""
Routing Policy Editor Service.

HTTP backend for the routing policy (call flow) editor.

API Endpoints:
- Nodes: node kind catalog
- Graphs: stateless validate / compile / legacy reconstruct
- Policies: create, open for editing, apply canvas actions, save, status
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .canvas import GraphValidator
from .compiler import LegacyAdapter, PolicyCompiler, from_body
from .config import NodeCategory, get_settings
from .exceptions import (
    CompilationError,
    EdgeNotFoundError,
    NodeNotFoundError,
    PolicyBodyError,
    PolicyEditorError,
    PolicyNotFoundError,
    PolicyValidationError,
    RepositoryError,
    SessionNotFoundError,
)
from .logging import configure_logging
from .nodes import get_node_registry
from .policies import InMemoryPolicyRepository, PolicyEditorService
from .schemas import (
    ApplyActionsRequest,
    CompileRequest,
    CompileResponse,
    CreatePolicyRequest,
    PolicyBodyModel,
    PolicyResponse,
    ReconstructRequest,
    SavePolicyRequest,
    SessionResponse,
    StatusChangeRequest,
    ValidateResponse,
)

logger = structlog.get_logger(__name__)
settings = get_settings()

# Service metadata
SERVICE_NAME = settings.service_name
SERVICE_VERSION = __version__
START_TIME = time.time()

# Global instances
editor_service: Optional[PolicyEditorService] = None


def get_editor_service() -> PolicyEditorService:
    """Get the editor service, creating it on first use."""
    global editor_service
    if editor_service is None:
        editor_service = PolicyEditorService(InMemoryPolicyRepository(), settings=settings)
    return editor_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging()
    logger.info("service_starting", service=SERVICE_NAME, version=SERVICE_VERSION)

    get_editor_service()
    logger.info("service_initialized", node_kinds=len(get_node_registry().list_all()))

    yield

    logger.info("service_stopping", service=SERVICE_NAME)


# Create FastAPI app
app = FastAPI(
    title="Routing Policy Editor Service",
    description="Graph editor and compiler backend for routing policies",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-API-Key"],
)


# =============================================================================
# Error Handling
# =============================================================================


def _status_for(exc: PolicyEditorError) -> int:
    if isinstance(
        exc, (NodeNotFoundError, EdgeNotFoundError, PolicyNotFoundError, SessionNotFoundError)
    ):
        return 404
    if isinstance(exc, (PolicyBodyError, PolicyValidationError, CompilationError)):
        return 422
    if isinstance(exc, RepositoryError):
        return 503
    return 409


@app.exception_handler(PolicyEditorError)
async def policy_editor_exception_handler(request: Request, exc: PolicyEditorError):
    """Map editor errors to HTTP responses."""
    status_code = _status_for(exc)
    logger.warning(
        "request_rejected",
        code=exc.code,
        error=exc.message,
        path=request.url.path,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


# =============================================================================
# Health & Info
# =============================================================================


@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "uptime_seconds": time.time() - START_TIME,
    }


@app.get("/info")
async def get_info() -> Dict[str, Any]:
    """Get service information."""
    registry = get_node_registry()
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "node_kinds": len(registry.list_all()),
        "categories": [c.value for c in registry.get_categories()],
    }


# =============================================================================
# Nodes API
# =============================================================================


@app.get("/nodes")
async def list_nodes(
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    """List available node kinds."""
    registry = get_node_registry()

    if category:
        try:
            nodes = registry.list_by_category(NodeCategory(category))
        except ValueError:
            nodes = []
    elif search:
        nodes = registry.search(search)
    else:
        nodes = registry.list_all()

    return {
        "nodes": [n.to_dict() for n in nodes],
        "categories": [c.value for c in registry.get_categories()],
    }


@app.get("/nodes/catalog")
async def get_node_catalog() -> Dict[str, Any]:
    """Get the node catalog organized by category."""
    return get_node_registry().to_catalog()


@app.get("/nodes/{kind}")
async def get_node_kind(kind: str) -> Dict[str, Any]:
    """Get details for a node kind."""
    node_def = get_node_registry().get(kind)
    if not node_def:
        raise HTTPException(status_code=404, detail="Node kind not found")
    return node_def.to_dict()


# =============================================================================
# Graphs API
# =============================================================================


@app.post("/graphs/validate", response_model=ValidateResponse)
async def validate_graph(body: PolicyBodyModel) -> Dict[str, Any]:
    """Validate a policy body without storing it."""
    return GraphValidator().validate(from_body(body)).to_dict()


@app.post("/graphs/compile", response_model=CompileResponse)
async def compile_graph(request: CompileRequest) -> Dict[str, Any]:
    """Validate and compile a policy body without storing it."""
    graph = from_body(request.body)
    validation = GraphValidator().validate(graph)
    if not validation.valid:
        raise PolicyValidationError("Graph has fatal issues", validation.fatal_issues)

    return PolicyCompiler().compile(graph, request.name, request.type).to_dict()


@app.post("/legacy/reconstruct")
async def reconstruct_legacy(request: ReconstructRequest) -> Dict[str, Any]:
    """Rebuild a graph from legacy policy JSON."""
    graph = LegacyAdapter().reconstruct(request.legacy)
    return {
        "graph": graph.to_dict(),
        "warnings": list(graph.reconstruction_warnings),
        "validation": GraphValidator().validate(graph).to_dict(),
    }


# =============================================================================
# Policies API
# =============================================================================


@app.post("/policies", response_model=PolicyResponse, status_code=201)
async def create_policy(
    request: CreatePolicyRequest,
    service: PolicyEditorService = Depends(get_editor_service),
) -> Dict[str, Any]:
    """Create a new Draft policy."""
    policy = await service.create_policy(
        name=request.name,
        description=request.description,
        policy_type=request.type,
        source=request.source,
        created_by=request.created_by,
    )
    return policy.to_dict()


@app.get("/policies")
async def list_policies(
    service: PolicyEditorService = Depends(get_editor_service),
) -> Dict[str, List[Dict[str, Any]]]:
    """List policies."""
    return {"policies": [p.to_dict() for p in await service.list_policies()]}


@app.get("/policies/{policy_id}", response_model=PolicyResponse)
async def get_policy(
    policy_id: str,
    service: PolicyEditorService = Depends(get_editor_service),
) -> Dict[str, Any]:
    """Get a policy by ID."""
    return (await service.get_policy(policy_id)).to_dict()


@app.post("/policies/{policy_id}/open", response_model=SessionResponse)
async def open_policy(
    policy_id: str,
    service: PolicyEditorService = Depends(get_editor_service),
) -> Dict[str, Any]:
    """Open a policy for editing."""
    session = await service.open_policy(policy_id)
    return session.to_dict(service.validate_session(policy_id))


@app.get("/policies/{policy_id}/session", response_model=SessionResponse)
async def get_session(
    policy_id: str,
    service: PolicyEditorService = Depends(get_editor_service),
) -> Dict[str, Any]:
    """Get the open editor session of a policy."""
    session = service.get_session(policy_id)
    return session.to_dict(service.validate_session(policy_id))


@app.post("/policies/{policy_id}/actions")
async def apply_actions(
    policy_id: str,
    request: ApplyActionsRequest,
    service: PolicyEditorService = Depends(get_editor_service),
) -> Dict[str, Any]:
    """Apply a batch of canvas actions to the open session."""
    results = service.apply_actions(policy_id, request.actions)
    session = service.get_session(policy_id)
    return {
        "results": results,
        "session": session.to_dict(service.validate_session(policy_id)),
    }


@app.post("/policies/{policy_id}/save", response_model=CompileResponse)
async def save_policy(
    policy_id: str,
    request: Optional[SavePolicyRequest] = None,
    service: PolicyEditorService = Depends(get_editor_service),
) -> Dict[str, Any]:
    """Validate, compile and store the open session's graph."""
    user_id = request.user_id if request else ""
    compiled = await service.save_policy(policy_id, user_id=user_id)
    return compiled.to_dict()


@app.post("/policies/{policy_id}/close")
async def close_policy(
    policy_id: str,
    service: PolicyEditorService = Depends(get_editor_service),
) -> Dict[str, Any]:
    """Close the editor session, discarding unsaved edits."""
    service.close_session(policy_id)
    return {"closed": True, "policy_id": policy_id}


@app.put("/policies/{policy_id}/status", response_model=PolicyResponse)
async def change_status(
    policy_id: str,
    request: StatusChangeRequest,
    service: PolicyEditorService = Depends(get_editor_service),
) -> Dict[str, Any]:
    """Change a policy's status."""
    policy = await service.change_status(policy_id, request.status, user_id=request.user_id)
    return policy.to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "policy_editor.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
    )
