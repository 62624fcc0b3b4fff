"""
Tool Execution.

Workflow steps name a tool; the engine hands the resolved parameters to a
``ToolExecutor`` and only looks at whether the call succeeded. The
``ToolRegistry`` and ``RegistryToolExecutor`` provide an in-process
executor backed by plain Python functions.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ToolResult(BaseModel):
    """Outcome of a single tool call."""

    success: bool
    result: Any = None
    error: Optional[str] = None


class ToolExecutor(Protocol):
    async def execute(self, tool_name: str, params: Dict[str, Any]) -> ToolResult:
        ...


class ToolRegistry:
    """
    A registry for workflow tools.

    A tool is a function taking a single parameter dict. It may be sync or
    async, and either returns its result payload or raises on failure.
    """

    def __init__(self):
        self._tools: Dict[str, Dict[str, Any]] = {}

    def register(
        self, name: Optional[str] = None, description: Optional[str] = None
    ) -> Callable:
        """
        Decorator to register a function as a tool.

        Example:
            @registry.register(name="signal_create")
            def create_signal(params):
                return {"signalId": "..."}
        """

        def decorator(func: Callable) -> Callable:
            tool_name = name or func.__name__
            tool_desc = description or func.__doc__ or ""
            self._tools[tool_name] = {
                "function": func,
                "description": tool_desc.strip(),
            }
            return func

        return decorator

    def add(
        self,
        func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """Programmatically register a function as a tool."""
        self.register(name=name, description=description)(func)

    def get(self, name: str) -> Optional[Callable]:
        """Get a tool function by name."""
        tool = self._tools.get(name)
        return tool["function"] if tool else None

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[Dict[str, Any]]:
        """List all registered tools with their descriptions."""
        return [
            {"name": name, "description": info["description"]}
            for name, info in self._tools.items()
        ]


class RegistryToolExecutor:
    """
    Executes tools registered in a :class:`ToolRegistry`.

    Sync tools run in a worker thread. When the engine's tool timeout
    expires only the await is abandoned; the thread runs to completion, so
    a step with ``retry_on_failure`` can invoke a slow tool twice. Tools
    used by retrying steps must tolerate a repeated call.
    """

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def execute(self, tool_name: str, params: Dict[str, Any]) -> ToolResult:
        if not self.registry.has(tool_name):
            return ToolResult(success=False, error=f"Tool not found: {tool_name}")
        func = self.registry.get(tool_name)

        try:
            if asyncio.iscoroutinefunction(func):
                result = await func(params)
            else:
                result = await asyncio.to_thread(func, params)
        except Exception as exc:
            logger.warning("Tool %s raised: %s", tool_name, exc)
            return ToolResult(success=False, error=str(exc))

        if isinstance(result, ToolResult):
            return result
        return ToolResult(success=True, result=result)


# Global tool registry instance
_global_registry = ToolRegistry()


def tool(name: Optional[str] = None, description: Optional[str] = None) -> Callable:
    """
    Decorator to register a function as a tool in the global registry.

    Example:
        @tool(name="folder_create")
        def create_folder(params: dict) -> dict:
            return {"folderId": "fld-1"}
    """
    return _global_registry.register(name=name, description=description)


def get_global_registry() -> ToolRegistry:
    """Get the global tool registry instance."""
    return _global_registry
