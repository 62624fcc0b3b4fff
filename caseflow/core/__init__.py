"""Core workflow engine components."""

from .definitions import WorkflowDefinition, WorkflowStep
from .engine import WorkflowEngine
from .registry import WorkflowRegistry
from .state import WorkflowExecutionState, WorkflowResponse
from .storage import ExecutionStore, InMemoryExecutionStore
from .tools import RegistryToolExecutor, ToolRegistry, ToolResult, tool

__all__ = [
    "WorkflowDefinition",
    "WorkflowStep",
    "WorkflowEngine",
    "WorkflowRegistry",
    "WorkflowExecutionState",
    "WorkflowResponse",
    "ExecutionStore",
    "InMemoryExecutionStore",
    "RegistryToolExecutor",
    "ToolRegistry",
    "ToolResult",
    "tool",
]
