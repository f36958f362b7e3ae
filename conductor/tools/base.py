"""
Tool set interface, tool registry and composite tool sets.
"""

import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from ..clients.base import ToolCall, ToolDefinition, ToolResult


class ToolSet(ABC):
    @abstractmethod
    def definitions(self) -> list[ToolDefinition]:
        pass

    @abstractmethod
    async def execute(self, call: ToolCall) -> ToolResult:
        pass

    @abstractmethod
    def has_tool(self, name: str) -> bool:
        pass


class Tool(ABC):
    name: str
    description: str
    parameters: dict[str, Any] = {"type": "object", "properties": {}}

    def get_definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=self.parameters)

    @abstractmethod
    async def run(self, arguments: dict[str, Any]) -> Any:
        """Return the tool output. Raise to signal failure."""


class FunctionTool(Tool):
    """Adapts a plain or async callable taking keyword arguments."""

    def __init__(
        self,
        func: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[dict[str, Any]] = None,
    ):
        self.func = func
        self.name = name or func.__name__
        self.description = description or (inspect.getdoc(func) or "").split("\n")[0]
        self.parameters = parameters or {"type": "object", "properties": {}}

    async def run(self, arguments: dict[str, Any]) -> Any:
        result = self.func(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


class ToolRegistry(ToolSet):
    def __init__(self, tools: Optional[list[Tool]] = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        return [tool.get_definition() for tool in self._tools.values()]

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    async def execute(self, call: ToolCall) -> ToolResult:
        tool = self._tools.get(call.name)
        if tool is None:
            return ToolResult(
                tool_call_id=call.id,
                name=call.name,
                error=f"Tool not found: {call.name}",
                success=False,
            )
        output = await tool.run(call.arguments)
        return ToolResult(tool_call_id=call.id, name=call.name, output=output, success=True)


class CompositeToolSet(ToolSet):
    """Presents several tool sets as one; later sets win definition collisions."""

    def __init__(self, tool_sets: Optional[list[ToolSet]] = None):
        self.tool_sets: list[ToolSet] = list(tool_sets or [])

    def add_tool_set(self, tool_set: ToolSet) -> None:
        self.tool_sets.append(tool_set)

    def definitions(self) -> list[ToolDefinition]:
        by_name: dict[str, ToolDefinition] = {}
        for tool_set in self.tool_sets:
            for definition in tool_set.definitions():
                # dict keeps the first-seen position while the value is replaced
                by_name[definition.name] = definition
        return list(by_name.values())

    def has_tool(self, name: str) -> bool:
        return any(tool_set.has_tool(name) for tool_set in self.tool_sets)

    async def execute(self, call: ToolCall) -> ToolResult:
        for tool_set in self.tool_sets:
            if tool_set.has_tool(call.name):
                return await tool_set.execute(call)

        return ToolResult(
            tool_call_id=call.id,
            name=call.name,
            error=f"Tool not found: {call.name}",
            success=False,
        )
