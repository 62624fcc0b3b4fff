import asyncio

from caseflow.core.state import ExecutionStatus, StepStatus
from caseflow.core.tools import ToolResult


def two_steps(first=None, second=None):
    return {
        "id": "pair",
        "name": "Pair",
        "description": "two independent steps",
        "steps": [
            {"id": "a", "name": "Step A", "tool": "tool_a", **(first or {})},
            {"id": "b", "name": "Step B", "tool": "tool_b", **(second or {})},
        ],
    }


def test_optional_step_failure_continues(make_engine, executor):
    engine = make_engine(two_steps(first={"optional": True}))
    executor.failures["tool_a"] = 1

    response = asyncio.run(engine.start("pair", {}))

    assert response.status == ExecutionStatus.COMPLETED
    assert response.completed_steps == ["b"]
    assert "a" not in response.outputs
    assert response.summary.splitlines()[-1] == "Failed (optional): a"

    state = engine.get_execution(response.execution_id)
    assert state.step_results[0].status == StepStatus.FAILED
    assert state.step_results[0].error == "tool_a unavailable"


def test_required_step_failure_keeps_earlier_outputs(make_engine, executor):
    engine = make_engine(two_steps())
    executor.failures["tool_b"] = 1

    response = asyncio.run(engine.start("pair", {}))

    assert response.status == ExecutionStatus.FAILED
    assert response.error == "Step 'b' failed: tool_b unavailable"
    assert response.summary == 'Workflow failed at step "Step B": tool_b unavailable'
    assert response.completed_steps == ["a"]
    assert response.outputs == {"a": {"ok": True}}

    state = engine.get_execution(response.execution_id)
    assert state.status == ExecutionStatus.FAILED
    assert state.completed_at is not None


def test_retry_once_then_succeed(make_engine, executor):
    engine = make_engine(two_steps(first={"retry_on_failure": True}))
    executor.failures["tool_a"] = 1

    response = asyncio.run(engine.start("pair", {}))

    assert response.status == ExecutionStatus.COMPLETED
    assert executor.tools_called() == ["tool_a", "tool_a", "tool_b"]
    state = engine.get_execution(response.execution_id)
    assert state.step_results[0].attempts == 2
    assert state.step_results[0].error is None
    assert "retrying" in [entry["event"] for entry in state.history]


def test_retry_happens_at_most_once(make_engine, executor):
    engine = make_engine(two_steps(first={"retry_on_failure": True}))
    executor.failures["tool_a"] = 5

    response = asyncio.run(engine.start("pair", {}))

    assert response.status == ExecutionStatus.FAILED
    assert executor.tools_called() == ["tool_a", "tool_a"]


def test_no_retry_without_flag(make_engine, executor):
    engine = make_engine(two_steps())
    executor.failures["tool_a"] = 1

    response = asyncio.run(engine.start("pair", {}))

    assert response.status == ExecutionStatus.FAILED
    assert executor.tools_called() == ["tool_a"]


class RaisingExecutor:
    async def execute(self, tool_name, params):
        raise ConnectionError("backend unreachable")


class DictExecutor:
    async def execute(self, tool_name, params):
        return {"success": True, "result": {"tool": tool_name}}


def test_tool_exception_becomes_step_failure(make_engine):
    engine = make_engine(two_steps())
    engine.executor = RaisingExecutor()

    response = asyncio.run(engine.start("pair", {}))

    assert response.status == ExecutionStatus.FAILED
    assert response.error == "Step 'a' failed: backend unreachable"


def test_plain_dict_results_are_accepted(make_engine):
    engine = make_engine(two_steps())
    engine.executor = DictExecutor()

    response = asyncio.run(engine.start("pair", {}))

    assert response.status == ExecutionStatus.COMPLETED
    assert response.outputs["b"] == {"tool": "tool_b"}


def test_tool_timeout(make_engine, executor):
    engine = make_engine(two_steps(), tool_timeout=0.05)
    executor.delay = 0.5

    response = asyncio.run(engine.start("pair", {}))

    assert response.status == ExecutionStatus.FAILED
    assert response.error == "Step 'a' failed: Tool 'tool_a' timed out after 0.05s"


def test_failure_without_message_gets_default(make_engine, executor):
    engine = make_engine(two_steps())

    async def silent_failure(tool_name, params):
        return ToolResult(success=False)

    executor.execute = silent_failure

    response = asyncio.run(engine.start("pair", {}))

    assert response.error == "Step 'a' failed: Tool execution failed"


def test_timed_out_call_counts_as_an_attempt(make_engine, executor):
    engine = make_engine(two_steps(first={"retry_on_failure": True}), tool_timeout=0.05)
    executor.delay = 0.5

    response = asyncio.run(engine.start("pair", {}))

    assert response.status == ExecutionStatus.FAILED
    assert executor.tools_called() == ["tool_a", "tool_a"]
    state = engine.get_execution(response.execution_id)
    assert state.step_results[0].attempts == 2
