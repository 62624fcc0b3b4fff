"""
Workflow Execution State.

Provides the mutable record of a single execution as it moves through
its checkpoints, and the response returned to callers after every
``start``/``respond`` call.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .definitions import CheckpointType, HITLCheckpoint, WorkflowDefinition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionStatus(str, Enum):
    """Lifecycle of an execution."""

    PENDING_INPUT = "pending_input"
    PENDING_APPROVAL = "pending_approval"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


AWAITING_STATUSES = (ExecutionStatus.PENDING_INPUT, ExecutionStatus.PENDING_APPROVAL)
TERMINAL_STATUSES = (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepResult(BaseModel):
    """Outcome of one step of an execution."""

    step_id: str
    status: StepStatus = StepStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    attempts: int = 0
    checkpoint_cleared: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class PendingHITL(BaseModel):
    """A checkpoint the execution is waiting on."""

    step_id: str
    checkpoint: HITLCheckpoint
    requested_at: datetime = Field(default_factory=utcnow)


class WorkflowExecutionState(BaseModel):
    """
    The runtime record of one workflow execution.

    Owned by the engine and its store. Inputs accumulate over the
    execution's lifetime; outputs are keyed by step id.
    """

    workflow_id: str
    execution_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING

    current_step_index: int = 0
    current_step_id: Optional[str] = None

    inputs: Dict[str, Any] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    step_results: List[StepResult] = Field(default_factory=list)

    pending_hitl: Optional[PendingHITL] = None
    completion_approved: bool = False

    history: List[Dict[str, Any]] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def create(
        cls, workflow: WorkflowDefinition, execution_id: str, inputs: Dict[str, Any]
    ) -> "WorkflowExecutionState":
        """Create a fresh state with one pending result per defined step."""
        return cls(
            workflow_id=workflow.id,
            execution_id=execution_id,
            inputs=dict(inputs),
            step_results=[StepResult(step_id=step.id) for step in workflow.steps],
        )

    @property
    def is_awaiting_response(self) -> bool:
        return self.status in AWAITING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def completed_steps(self) -> List[str]:
        return [r.step_id for r in self.step_results if r.status == StepStatus.COMPLETED]

    def steps_with_status(self, status: StepStatus) -> List[str]:
        return [r.step_id for r in self.step_results if r.status == status]

    def result_for(self, step_id: str) -> Optional[StepResult]:
        for result in self.step_results:
            if result.step_id == step_id:
                return result
        return None

    def touch(self) -> None:
        self.updated_at = utcnow()

    def advance(self) -> None:
        self.current_step_index += 1
        self.touch()

    def suspend(self, step_id: str, checkpoint: HITLCheckpoint) -> None:
        """Wait on ``checkpoint`` before ``step_id`` can proceed."""
        self.pending_hitl = PendingHITL(step_id=step_id, checkpoint=checkpoint)
        self.status = (
            ExecutionStatus.PENDING_INPUT
            if checkpoint.type == CheckpointType.INPUT
            else ExecutionStatus.PENDING_APPROVAL
        )
        self.touch()

    def resume(self) -> None:
        self.pending_hitl = None
        self.status = ExecutionStatus.RUNNING
        self.touch()

    def fail(self, error: str) -> None:
        self.status = ExecutionStatus.FAILED
        self.error = error
        self.pending_hitl = None
        self.completed_at = utcnow()
        self.touch()

    def complete(self) -> None:
        self.status = ExecutionStatus.COMPLETED
        self.current_step_id = None
        self.completed_at = utcnow()
        self.touch()

    def record_event(
        self, event: str, step_id: Optional[str] = None, message: Optional[str] = None
    ) -> Dict[str, Any]:
        """Append an entry to the execution history and return it."""
        entry = {
            "timestamp": utcnow().isoformat(),
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "step_id": step_id,
            "event": event,
            "status": self.status.value,
            "message": message,
        }
        self.history.append(entry)
        return entry


class HITLDecision(BaseModel):
    """A human's answer to a pending checkpoint."""

    approved: Optional[bool] = None
    inputs: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("inputs", mode="before")
    @classmethod
    def _none_means_no_inputs(cls, value: Any) -> Any:
        return {} if value is None else value


class HITLRequest(BaseModel):
    """What the caller must do before the execution can continue."""

    type: CheckpointType
    message: str
    fields: Optional[List[str]] = None
    step_id: str


class WorkflowResponse(BaseModel):
    """The uniform result of every engine call."""

    execution_id: str
    status: ExecutionStatus
    completed_steps: List[str] = Field(default_factory=list)
    current_step: Optional[str] = None
    hitl_request: Optional[HITLRequest] = None
    outputs: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    summary: str
