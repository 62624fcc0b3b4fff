"""
Pydantic models for API requests and responses.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.definitions import WorkflowDefinition
from ..core.state import ExecutionStatus, WorkflowExecutionState


# ============================================================================
# Workflow Execution Models
# ============================================================================


class StartWorkflowRequest(BaseModel):
    """Request body for starting a workflow."""

    workflow_id: str = Field(..., description="ID of the workflow to start")
    inputs: Dict[str, Any] = Field(
        default_factory=dict, description="Inputs collected for the workflow"
    )
    context: Dict[str, Any] = Field(
        default_factory=dict, description="Ambient context, e.g. the current user"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "workflow_id": "signal_create",
                    "inputs": {
                        "description": "Suspicious activity at Main Street",
                        "types": ["fraud"],
                        "placeOfObservation": "Main Street",
                    },
                    "context": {"userId": "user-1"},
                }
            ]
        }
    }


class RespondRequest(BaseModel):
    """Request body for answering a pending checkpoint."""

    approved: Optional[bool] = Field(
        default=None, description="False declines and cancels the execution"
    )
    inputs: Dict[str, Any] = Field(
        default_factory=dict, description="Additional inputs to merge"
    )
    context: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Workflow Listing Models
# ============================================================================


class ListWorkflowsResponse(BaseModel):
    """Response listing workflow definitions."""

    workflows: List[WorkflowDefinition]


class ExecutionInfo(BaseModel):
    """Brief information about an execution."""

    execution_id: str
    workflow_id: str
    status: ExecutionStatus
    current_step_id: Optional[str] = None

    @classmethod
    def from_state(cls, state: WorkflowExecutionState) -> "ExecutionInfo":
        return cls(
            execution_id=state.execution_id,
            workflow_id=state.workflow_id,
            status=state.status,
            current_step_id=state.current_step_id,
        )


class ListExecutionsResponse(BaseModel):
    executions: List[ExecutionInfo]


# ============================================================================
# Tool Models
# ============================================================================


class ToolInfo(BaseModel):
    name: str
    description: str


class ListToolsResponse(BaseModel):
    tools: List[ToolInfo]


# ============================================================================
# Error Models
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(
        default=None, description="Detailed error information"
    )
