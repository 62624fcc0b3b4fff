import asyncio

from caseflow.core.tools import RegistryToolExecutor, ToolRegistry, ToolResult
from caseflow.workflows.case_tools import CASE_TOOLS, register_case_tools


def make_registry():
    registry = ToolRegistry()

    @registry.register(name="echo", description="Echo the params back")
    def echo(params):
        return dict(params)

    @registry.register()
    async def shout(params):
        """Upper-case a word."""
        return params["word"].upper()

    @registry.register(name="broken")
    def broken(params):
        raise ValueError("bad params")

    @registry.register(name="explicit")
    def explicit(params):
        return ToolResult(success=False, error="declined by backend")

    return registry


def test_registry_lookup():
    registry = make_registry()

    assert registry.has("echo")
    assert not registry.has("missing")
    assert registry.get("missing") is None
    assert {"name": "shout", "description": "Upper-case a word."} in registry.list_tools()


def test_executor_runs_sync_and_async_tools():
    executor = RegistryToolExecutor(make_registry())

    sync_result = asyncio.run(executor.execute("echo", {"a": 1}))
    async_result = asyncio.run(executor.execute("shout", {"word": "fraud"}))

    assert sync_result == ToolResult(success=True, result={"a": 1})
    assert async_result.result == "FRAUD"


def test_executor_reports_failures():
    executor = RegistryToolExecutor(make_registry())

    missing = asyncio.run(executor.execute("missing", {}))
    raised = asyncio.run(executor.execute("broken", {}))
    declined = asyncio.run(executor.execute("explicit", {}))

    assert missing == ToolResult(success=False, error="Tool not found: missing")
    assert raised == ToolResult(success=False, error="bad params")
    assert declined.error == "declined by backend"


def test_case_tools_copy_into_another_registry():
    registry = register_case_tools(ToolRegistry())

    assert all(registry.has(name) for name in CASE_TOOLS)
    result = asyncio.run(
        RegistryToolExecutor(registry).execute(
            "signal_create",
            {"description": "x", "types": ["fraud"], "placeOfObservation": "y"},
        )
    )
    assert result.success
    assert result.result["signalNumber"] == "GCMP-1"
