"""
Workflow Engine.

Executes workflow definitions step by step, supporting:
- Human-in-the-loop checkpoints that suspend an execution until ``respond``
- References between steps ($create_signal.signalId, $inputs.x, ...)
- Conditional steps
- Retry-once and optional steps for partial failures

Every call returns a ``WorkflowResponse``; errors never propagate to the
caller as exceptions.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from .conditions import evaluate
from .definitions import (
    INPUT_COLLECTION,
    WORKFLOW_COMPLETE,
    WORKFLOW_START,
    CheckpointType,
    HITLCheckpoint,
    WorkflowDefinition,
    WorkflowStep,
    is_blank,
)
from .references import Scope
from .registry import WorkflowRegistry
from .state import (
    ExecutionStatus,
    HITLDecision,
    HITLRequest,
    StepResult,
    StepStatus,
    WorkflowExecutionState,
    WorkflowResponse,
    utcnow,
)
from .storage import ExecutionStore, InMemoryExecutionStore, generate_execution_id
from .tools import ToolExecutor, ToolResult

logger = logging.getLogger(__name__)

CANCELLED_BY_USER = "Cancelled by user"

# Output fields mentioned in completion summaries, with their labels.
_NOTABLE_FIELDS = (
    ("signalNumber", "Signal"),
    ("folderName", "Folder"),
    ("folderId", "ID"),
    ("applicationId", "Application"),
)


class WorkflowEngine:
    """
    The workflow execution engine.

    Executions advance through ``start`` and ``respond``:
    1. ``start`` validates inputs and creates the execution
    2. Steps run in order until a required checkpoint is reached
    3. The execution is suspended and the checkpoint returned to the caller
    4. ``respond`` clears the checkpoint and runs that same step
    5. The execution completes once every step has run or been skipped
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        executor: ToolExecutor,
        store: Optional[ExecutionStore] = None,
        tool_timeout: Optional[float] = 10.0,
    ):
        self.registry = registry
        self.executor = executor
        self.store = store or InMemoryExecutionStore()
        self.tool_timeout = tool_timeout
        self._execution_locks: Dict[str, asyncio.Lock] = {}
        self._event_callbacks: List[Callable] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Registry access
    # ------------------------------------------------------------------

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self.registry.get(workflow_id)

    def list_workflows(self) -> List[WorkflowDefinition]:
        return self.registry.list()

    def find_by_keyword(self, text: str) -> List[WorkflowDefinition]:
        return self.registry.find_by_keyword(text)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_event(self, callback: Callable) -> None:
        """Register a callback for execution events."""
        self._event_callbacks.append(callback)

    def off_event(self, callback: Callable) -> None:
        if callback in self._event_callbacks:
            self._event_callbacks.remove(callback)

    async def _emit(
        self,
        state: WorkflowExecutionState,
        event: str,
        step_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        entry = state.record_event(event, step_id=step_id, message=message)
        for callback in self._event_callbacks:
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(entry)
                else:
                    callback(entry)
            except Exception:
                logger.exception("Event callback failed for %s", state.execution_id)

    # ------------------------------------------------------------------
    # Per-execution locking
    # ------------------------------------------------------------------

    def _execution_lock(self, execution_id: str) -> asyncio.Lock:
        with self._lock:
            lock = self._execution_locks.get(execution_id)
            if lock is None:
                lock = self._execution_locks[execution_id] = asyncio.Lock()
            return lock

    def _discard_lock(self, execution_id: str) -> None:
        state = self.store.get(execution_id)
        if state is not None and not state.is_terminal:
            return
        with self._lock:
            lock = self._execution_locks.get(execution_id)
            if lock is not None and not lock.locked():
                del self._execution_locks[execution_id]

    # ------------------------------------------------------------------
    # Caller operations
    # ------------------------------------------------------------------

    async def start(
        self,
        workflow_id: str,
        inputs: Optional[Mapping[str, Any]] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowResponse:
        """
        Start a new execution of ``workflow_id``.

        Returns ``pending_input`` without creating an execution when
        required inputs are missing or invalid.
        """
        inputs = dict(inputs or {})
        context = dict(context or {})

        workflow = self.registry.get(workflow_id)
        if workflow is None:
            logger.warning("Workflow not found: %s", workflow_id)
            return WorkflowResponse(
                execution_id="",
                status=ExecutionStatus.FAILED,
                error=f"Workflow '{workflow_id}' not found",
                summary="Failed to start workflow: not found",
            )

        missing = workflow.missing_inputs(inputs)
        invalid = workflow.invalid_inputs(inputs)
        if missing or invalid:
            return self._input_request(missing, invalid)

        state = WorkflowExecutionState.create(
            workflow, generate_execution_id(), workflow.with_defaults(inputs)
        )
        logger.info(
            "Starting workflow %s (execution %s)", workflow.id, state.execution_id
        )

        if workflow.requires_approval_to_start:
            checkpoint = HITLCheckpoint(
                type=CheckpointType.APPROVAL,
                message=(
                    f'Start workflow "{workflow.name}"? '
                    f"This will execute {len(workflow.steps)} step(s)."
                ),
                required=True,
            )
            state.suspend(WORKFLOW_START, checkpoint)
            self.store.save(state)
            await self._emit(state, "awaiting_approval", WORKFLOW_START, checkpoint.message)
            return WorkflowResponse(
                execution_id=state.execution_id,
                status=state.status,
                hitl_request=HITLRequest(
                    type=checkpoint.type,
                    message=checkpoint.message,
                    step_id=WORKFLOW_START,
                ),
                summary=f'Workflow "{workflow.name}" ready to start. Waiting for approval.',
            )

        self.store.save(state)
        await self._emit(state, "started", message=f"Workflow started: {workflow.name}")
        async with self._execution_lock(state.execution_id):
            response = await self._run_steps(workflow, state, context)
        self._discard_lock(state.execution_id)
        return response

    async def respond(
        self,
        execution_id: str,
        decision: Union[HITLDecision, Mapping[str, Any], None] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowResponse:
        """
        Answer the checkpoint an execution is waiting on.

        ``approved=False`` cancels the execution. Anything else merges the
        supplied inputs and resumes at the step that was waiting.
        """
        if not isinstance(decision, HITLDecision):
            try:
                decision = HITLDecision.model_validate(decision or {})
            except ValidationError as exc:
                problems = "; ".join(
                    f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
                    for error in exc.errors()
                )
                logger.warning("Invalid decision for %s: %s", execution_id, problems)
                return WorkflowResponse(
                    execution_id=execution_id,
                    status=ExecutionStatus.FAILED,
                    error=f"Invalid decision: {problems}",
                    summary="The response could not be understood; nothing was changed.",
                )

        async with self._execution_lock(execution_id):
            response = await self._resume(execution_id, decision, dict(context or {}))
        self._discard_lock(execution_id)
        return response

    def cancel(self, execution_id: str) -> bool:
        """
        Mark an execution as cancelled.

        A tool call already in flight is not interrupted; the step loop
        stops once it returns.
        """
        state = self.store.get(execution_id)
        if state is None:
            return False
        state.fail(CANCELLED_BY_USER)
        state.record_event("cancelled", step_id=state.current_step_id)
        self.store.save(state)
        self._discard_lock(execution_id)
        logger.info("Cancelled execution %s", execution_id)
        return True

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecutionState]:
        return self.store.get(execution_id)

    def list_executions(self) -> List[WorkflowExecutionState]:
        return self.store.list_executions()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _resume(
        self, execution_id: str, decision: HITLDecision, context: Dict[str, Any]
    ) -> WorkflowResponse:
        state = self.store.get(execution_id)
        if state is None:
            return WorkflowResponse(
                execution_id=execution_id,
                status=ExecutionStatus.FAILED,
                error="Execution not found",
                summary="Workflow execution not found",
            )

        if not state.is_awaiting_response:
            return WorkflowResponse(
                execution_id=execution_id,
                status=state.status,
                completed_steps=state.completed_steps(),
                outputs=state.outputs,
                error=f"Execution is not awaiting a response (status: {state.status.value})",
                summary="Nothing to respond to for this execution.",
            )

        workflow = self.registry.get(state.workflow_id)
        if workflow is None:
            return WorkflowResponse(
                execution_id=execution_id,
                status=ExecutionStatus.FAILED,
                error="Workflow definition not found",
                summary="Workflow definition not found",
            )

        if decision.approved is False:
            state.fail(CANCELLED_BY_USER)
            self.store.save(state)
            await self._emit(state, "cancelled", state.current_step_id, "Declined by user")
            logger.info("Execution %s declined by user", execution_id)
            return WorkflowResponse(
                execution_id=execution_id,
                status=ExecutionStatus.FAILED,
                completed_steps=state.completed_steps(),
                outputs=state.outputs,
                error=CANCELLED_BY_USER,
                summary="Workflow was cancelled.",
            )

        if decision.inputs:
            state.inputs.update(decision.inputs)

        pending = state.pending_hitl
        if pending is not None:
            checkpoint = pending.checkpoint
            if checkpoint.type == CheckpointType.INPUT and checkpoint.fields:
                still_missing = [f for f in checkpoint.fields if is_blank(state.inputs.get(f))]
                if still_missing:
                    state.touch()
                    self.store.save(state)
                    index = workflow.step_index(pending.step_id)
                    step = workflow.steps[index] if index is not None else None
                    return self._checkpoint_response(
                        workflow, state, pending.step_id, step, checkpoint, context,
                        fields=still_missing,
                    )
            self._clear_checkpoint(state, pending.step_id)

        state.resume()
        self.store.save(state)
        await self._emit(state, "resumed", pending.step_id if pending else None)
        return await self._run_steps(workflow, state, context)

    def _clear_checkpoint(self, state: WorkflowExecutionState, step_id: str) -> None:
        if step_id == WORKFLOW_COMPLETE:
            state.completion_approved = True
            return
        result = state.result_for(step_id)
        if result is not None:
            result.checkpoint_cleared = True

    async def _run_steps(
        self,
        workflow: WorkflowDefinition,
        state: WorkflowExecutionState,
        context: Dict[str, Any],
    ) -> WorkflowResponse:
        """Run steps from the current index until a checkpoint or the end."""
        logger.info(
            "Continuing workflow %s (execution %s) at step %d/%d",
            workflow.id,
            state.execution_id,
            state.current_step_index,
            len(workflow.steps),
        )

        while state.current_step_index < len(workflow.steps):
            index = state.current_step_index
            step = workflow.steps[index]
            result = state.step_results[index]

            # cancel() may land while an event callback is awaited
            if state.is_terminal:
                return self._cancelled_response(state, step.name)

            state.current_step_id = step.id

            if step.condition is not None and not evaluate(
                step.condition, state.inputs, state.outputs, context
            ):
                logger.debug("Skipping step (condition not met): %s", step.id)
                result.status = StepStatus.SKIPPED
                await self._emit(state, "skipped", step.id, "Condition not met")
                state.advance()
                self.store.save(state)
                continue

            if step.hitl is not None and step.hitl.required and not result.checkpoint_cleared:
                state.suspend(step.id, step.hitl)
                self.store.save(state)
                await self._emit(state, f"awaiting_{step.hitl.type.value}", step.id)
                if state.is_terminal:
                    return self._cancelled_response(state, step.name)
                return self._checkpoint_response(
                    workflow, state, step.id, step, step.hitl, context
                )

            succeeded = await self._execute_step(step, result, state, context)

            if state.is_terminal:
                # Cancelled while the tool call was in flight.
                self.store.save(state)
                return self._cancelled_response(state, step.name)

            if not succeeded:
                if not step.optional:
                    state.fail(f"Step '{step.id}' failed: {result.error}")
                    self.store.save(state)
                    await self._emit(state, "failed", step.id, state.error)
                    logger.warning(
                        "Workflow %s failed at step %s: %s",
                        workflow.id,
                        step.id,
                        result.error,
                    )
                    return WorkflowResponse(
                        execution_id=state.execution_id,
                        status=ExecutionStatus.FAILED,
                        completed_steps=state.completed_steps(),
                        current_step=step.name,
                        outputs=state.outputs,
                        error=state.error,
                        summary=f'Workflow failed at step "{step.name}": {result.error}',
                    )
                logger.warning("Optional step failed, continuing: %s", step.id)

            state.advance()
            self.store.save(state)

        if workflow.requires_approval_to_complete and not state.completion_approved:
            checkpoint = HITLCheckpoint(
                type=CheckpointType.APPROVAL,
                message=f'All steps of "{workflow.name}" have run. Complete the workflow?',
                required=True,
            )
            state.current_step_id = None
            state.suspend(WORKFLOW_COMPLETE, checkpoint)
            self.store.save(state)
            await self._emit(state, "awaiting_approval", WORKFLOW_COMPLETE)
            if state.is_terminal:
                return self._cancelled_response(state, None)
            return self._checkpoint_response(
                workflow, state, WORKFLOW_COMPLETE, None, checkpoint, context
            )

        state.complete()
        self.store.save(state)
        await self._emit(state, "completed", message=f"Workflow completed: {workflow.name}")
        if state.status != ExecutionStatus.COMPLETED:
            return self._cancelled_response(state, None)
        logger.info(
            "Workflow completed: %s (execution %s)", workflow.id, state.execution_id
        )
        return WorkflowResponse(
            execution_id=state.execution_id,
            status=ExecutionStatus.COMPLETED,
            completed_steps=state.completed_steps(),
            outputs=state.outputs,
            summary=self._completion_summary(workflow, state),
        )

    async def _execute_step(
        self,
        step: WorkflowStep,
        result: StepResult,
        state: WorkflowExecutionState,
        context: Dict[str, Any],
    ) -> bool:
        """Invoke the step's tool, retrying once if configured."""
        params = step.resolve_inputs(Scope(state.inputs, state.outputs, context))
        max_attempts = 2 if step.retry_on_failure else 1

        result.status = StepStatus.RUNNING
        result.started_at = utcnow()
        await self._emit(state, "executing", step.id, f"Executing step: {step.id}")
        logger.info("Executing step %s (tool %s)", step.id, step.tool)

        while result.attempts < max_attempts:
            if state.is_terminal:
                # Cancelled before this attempt could start.
                result.status = StepStatus.FAILED if result.attempts else StepStatus.PENDING
                return False
            result.attempts += 1
            outcome = await self._call_tool(step.tool, params)
            if outcome.success:
                state.outputs[step.id] = outcome.result
                result.status = StepStatus.COMPLETED
                result.result = outcome.result
                result.error = None
                result.completed_at = utcnow()
                await self._emit(state, "step_completed", step.id)
                return True

            result.error = outcome.error or "Tool execution failed"
            if result.attempts < max_attempts:
                logger.warning("Step failed, retrying: %s (%s)", step.id, result.error)
                await self._emit(state, "retrying", step.id, result.error)

        result.status = StepStatus.FAILED
        result.completed_at = utcnow()
        await self._emit(state, "step_failed", step.id, result.error)
        return False

    async def _call_tool(self, tool_name: str, params: Dict[str, Any]) -> ToolResult:
        try:
            call = self.executor.execute(tool_name, params)
            if self.tool_timeout:
                outcome = await asyncio.wait_for(call, timeout=self.tool_timeout)
            else:
                outcome = await call
            if not isinstance(outcome, ToolResult):
                outcome = ToolResult.model_validate(outcome)
        except asyncio.TimeoutError:
            return ToolResult(
                success=False,
                error=f"Tool '{tool_name}' timed out after {self.tool_timeout:g}s",
            )
        except Exception as exc:
            return ToolResult(success=False, error=str(exc) or exc.__class__.__name__)
        return outcome

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _cancelled_response(
        self, state: WorkflowExecutionState, step_name: Optional[str]
    ) -> WorkflowResponse:
        return WorkflowResponse(
            execution_id=state.execution_id,
            status=state.status,
            completed_steps=state.completed_steps(),
            current_step=step_name,
            outputs=state.outputs,
            error=state.error,
            summary="Workflow was cancelled.",
        )

    def _input_request(self, missing: List[str], invalid: Dict[str, str]) -> WorkflowResponse:
        fields = missing + [name for name in invalid if name not in missing]
        parts = []
        if missing:
            parts.append(f"Please provide the following information: {', '.join(missing)}")
        if invalid:
            problems = "; ".join(f"{name} {reason}" for name, reason in invalid.items())
            parts.append(f"Please correct: {problems}")
        summary = (
            f"Waiting for required information: {', '.join(missing)}"
            if missing
            else f"Waiting for valid values: {', '.join(invalid)}"
        )
        return WorkflowResponse(
            execution_id="",
            status=ExecutionStatus.PENDING_INPUT,
            hitl_request=HITLRequest(
                type=CheckpointType.INPUT,
                message=". ".join(parts),
                fields=fields,
                step_id=INPUT_COLLECTION,
            ),
            summary=summary,
        )

    def _checkpoint_response(
        self,
        workflow: WorkflowDefinition,
        state: WorkflowExecutionState,
        step_id: str,
        step: Optional[WorkflowStep],
        checkpoint: HITLCheckpoint,
        context: Dict[str, Any],
        fields: Optional[List[str]] = None,
    ) -> WorkflowResponse:
        message = checkpoint.render(Scope(state.inputs, state.outputs, context))
        step_name = step.name if step is not None else None
        return WorkflowResponse(
            execution_id=state.execution_id,
            status=state.status,
            completed_steps=state.completed_steps(),
            current_step=step_name,
            hitl_request=HITLRequest(
                type=checkpoint.type,
                message=message,
                fields=fields if fields is not None else checkpoint.fields,
                step_id=step_id,
            ),
            outputs=state.outputs,
            summary=f"Waiting for {checkpoint.type.value}: {step_name or workflow.name}",
        )

    def _completion_summary(
        self, workflow: WorkflowDefinition, state: WorkflowExecutionState
    ) -> str:
        lines = [f'Completed "{workflow.name}" workflow:']
        for step, result in zip(workflow.steps, state.step_results):
            if result.status != StepStatus.COMPLETED:
                continue
            line = f"- {step.name}: Done"
            output = state.outputs.get(step.id)
            if isinstance(output, Mapping):
                details = [
                    f"{label}: {output[key]}"
                    for key, label in _NOTABLE_FIELDS
                    if output.get(key)
                ]
                if details:
                    line += f" ({', '.join(details)})"
            lines.append(line)

        skipped = state.steps_with_status(StepStatus.SKIPPED)
        if skipped:
            lines.append(f"Skipped: {', '.join(skipped)}")
        failed = state.steps_with_status(StepStatus.FAILED)
        if failed:
            lines.append(f"Failed (optional): {', '.join(failed)}")
        return "\n".join(lines)
