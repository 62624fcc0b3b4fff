import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pytest

# Ensure caseflow package is importable when tests run from repo root
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from caseflow.core.definitions import WorkflowDefinition  # noqa: E402
from caseflow.core.engine import WorkflowEngine  # noqa: E402
from caseflow.core.registry import WorkflowRegistry  # noqa: E402
from caseflow.core.tools import ToolResult  # noqa: E402
from caseflow.workflows.case_tools import records  # noqa: E402
from caseflow.workflows.catalog import create_workflow_registry  # noqa: E402


class StubExecutor:
    """Records tool calls and returns canned results.

    ``results`` maps a tool name to its result payload. ``failures`` maps a
    tool name to how many calls should fail before it starts succeeding.
    """

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.results: Dict[str, Any] = {
            "signal_create": {"signalId": "sig-1", "signalNumber": "GCMP-1"},
            "folder_create": {"folderId": "fld-1", "folderName": "Main Street"},
            "folder_submit_application": {"applicationId": "app-1", "status": "submitted"},
        }
        self.failures: Dict[str, int] = {}
        self.delay = 0.0

    async def execute(self, tool_name: str, params: Dict[str, Any]) -> ToolResult:
        self.calls.append((tool_name, params))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures.get(tool_name, 0) > 0:
            self.failures[tool_name] -= 1
            return ToolResult(success=False, error=f"{tool_name} unavailable")
        return ToolResult(success=True, result=self.results.get(tool_name, {"ok": True}))

    def tools_called(self) -> List[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def executor() -> StubExecutor:
    return StubExecutor()


@pytest.fixture
def engine(executor) -> WorkflowEngine:
    return WorkflowEngine(registry=create_workflow_registry(), executor=executor)


@pytest.fixture
def make_engine(executor):
    """Build an engine over ad-hoc workflow definitions."""

    def build(*workflows: Dict[str, Any], **kwargs) -> WorkflowEngine:
        registry = WorkflowRegistry(
            WorkflowDefinition.model_validate(wf) for wf in workflows
        )
        return WorkflowEngine(registry=registry, executor=executor, **kwargs)

    return build


@pytest.fixture(autouse=True)
def reset_case_records():
    records.reset()
    yield
