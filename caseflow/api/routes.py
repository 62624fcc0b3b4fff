"""
FastAPI Routes for the Workflow Engine.

Provides REST API endpoints for:
- Listing and searching workflow definitions
- Starting executions and answering their checkpoints
- Cancelling and inspecting executions
- Streaming execution events over WebSocket
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from .models import (
    ErrorResponse,
    ExecutionInfo,
    ListExecutionsResponse,
    ListToolsResponse,
    ListWorkflowsResponse,
    RespondRequest,
    StartWorkflowRequest,
)
from ..config import config
from ..core.definitions import WorkflowDefinition
from ..core.engine import WorkflowEngine
from ..core.state import HITLDecision, WorkflowExecutionState, WorkflowResponse
from ..core.storage import InMemoryExecutionStore
from ..core.tools import RegistryToolExecutor, get_global_registry
from ..workflows.catalog import create_workflow_registry


# Create router
router = APIRouter(prefix="/workflows", tags=["Workflows"])

# Global engine instance (created lazily)
_engine: Optional[WorkflowEngine] = None


def get_engine() -> WorkflowEngine:
    """Get the workflow engine instance."""
    global _engine
    if _engine is None:
        _engine = WorkflowEngine(
            registry=create_workflow_registry(),
            executor=RegistryToolExecutor(get_global_registry()),
            store=InMemoryExecutionStore(ttl_seconds=config.execution_ttl_seconds),
            tool_timeout=config.tool_timeout_seconds,
        )
    return _engine


# ============================================================================
# Workflow Definition Endpoints
# ============================================================================


@router.get(
    "/list",
    response_model=ListWorkflowsResponse,
    summary="List all workflows",
    description="Get every registered workflow definition.",
)
async def list_workflows() -> ListWorkflowsResponse:
    return ListWorkflowsResponse(workflows=get_engine().list_workflows())


@router.get(
    "/search",
    response_model=ListWorkflowsResponse,
    summary="Find workflows by keyword",
    description="Return workflows whose trigger keywords appear in the text.",
)
async def search_workflows(q: str = Query(..., min_length=1)) -> ListWorkflowsResponse:
    return ListWorkflowsResponse(workflows=get_engine().find_by_keyword(q))


# ============================================================================
# Execution Endpoints
# ============================================================================


@router.post(
    "/start",
    response_model=WorkflowResponse,
    summary="Start a workflow",
    description=(
        "Start a new execution. The response reports whether the execution "
        "completed, failed or is waiting on a checkpoint."
    ),
)
async def start_workflow(request: StartWorkflowRequest) -> WorkflowResponse:
    return await get_engine().start(
        request.workflow_id, inputs=request.inputs, context=request.context
    )


@router.post(
    "/respond/{execution_id}",
    response_model=WorkflowResponse,
    summary="Answer a pending checkpoint",
    description="Approve, decline or supply inputs to a waiting execution.",
)
async def respond(execution_id: str, request: RespondRequest) -> WorkflowResponse:
    decision = HITLDecision(approved=request.approved, inputs=request.inputs)
    return await get_engine().respond(execution_id, decision, context=request.context)


@router.post(
    "/cancel/{execution_id}",
    response_model=Dict[str, str],
    responses={404: {"model": ErrorResponse}},
    summary="Cancel an execution",
)
async def cancel_execution(execution_id: str) -> Dict[str, str]:
    if not get_engine().cancel(execution_id):
        raise HTTPException(
            status_code=404, detail=f"Execution not found: {execution_id}"
        )
    return {"execution_id": execution_id, "status": "cancelled"}


@router.get(
    "/executions",
    response_model=ListExecutionsResponse,
    summary="List executions",
)
async def list_executions() -> ListExecutionsResponse:
    states = get_engine().list_executions()
    return ListExecutionsResponse(
        executions=[ExecutionInfo.from_state(state) for state in states]
    )


@router.get(
    "/executions/{execution_id}",
    response_model=WorkflowExecutionState,
    responses={404: {"model": ErrorResponse}},
    summary="Get execution state",
    description="Get the full state of an ongoing or finished execution.",
)
async def get_execution(execution_id: str) -> WorkflowExecutionState:
    state = get_engine().get_execution(execution_id)
    if state is None:
        raise HTTPException(
            status_code=404, detail=f"Execution not found: {execution_id}"
        )
    return state


# ============================================================================
# WebSocket Endpoint for Execution Events
# ============================================================================


class ConnectionManager:
    """Manages WebSocket connections for execution event streaming."""

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, execution_id: str):
        await websocket.accept()
        self.active_connections.setdefault(execution_id, []).append(websocket)

    def disconnect(self, websocket: WebSocket, execution_id: str):
        connections = self.active_connections.get(execution_id)
        if connections and websocket in connections:
            connections.remove(websocket)
            if not connections:
                del self.active_connections[execution_id]

    async def broadcast(self, execution_id: str, message: dict):
        for connection in list(self.active_connections.get(execution_id, [])):
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                self.disconnect(connection, execution_id)


manager = ConnectionManager()


@router.websocket("/ws/{execution_id}")
async def websocket_events(websocket: WebSocket, execution_id: str):
    """
    WebSocket endpoint for streaming execution events.

    Connect to receive updates for a specific execution.
    """
    await manager.connect(websocket, execution_id)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        manager.disconnect(websocket, execution_id)


def get_websocket_manager() -> ConnectionManager:
    """Get the WebSocket connection manager."""
    return manager


# Registered last so the fixed paths above take precedence.
@router.get(
    "/{workflow_id}",
    response_model=WorkflowDefinition,
    responses={404: {"model": ErrorResponse}},
    summary="Get workflow details",
)
async def get_workflow(workflow_id: str) -> WorkflowDefinition:
    workflow = get_engine().get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail=f"Workflow not found: {workflow_id}")
    return workflow


# ============================================================================
# Tool Endpoints
# ============================================================================

tool_router = APIRouter(prefix="/tools", tags=["Tools"])


@tool_router.get(
    "/list",
    response_model=ListToolsResponse,
    summary="List all tools",
    description="Get a list of all registered tools.",
)
async def list_tools() -> ListToolsResponse:
    """List all registered tools."""
    return ListToolsResponse(tools=get_global_registry().list_tools())
