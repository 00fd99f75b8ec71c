"""
Tool registry for managing available tools.
"""

import time
from pathlib import Path
from typing import Any, Union

import structlog

from ..errors import ToolError
from ..llm.base import ToolDefinition
from .base import BaseTool, Tool

logger = structlog.get_logger()

AnyTool = Union[BaseTool, Tool]


class ToolRegistry:
    """Registry for managing tools.

    Safe to share between sessions: registration happens at startup and
    execution holds no per-call state.
    """

    def __init__(self):
        self._tools: dict[str, AnyTool] = {}

    def register(self, tool: AnyTool) -> None:
        """Register a tool."""
        if not isinstance(tool, (BaseTool, Tool)):
            raise TypeError(f"Expected BaseTool or Tool, got {type(tool).__name__}")
        self._tools[tool.name] = tool
        logger.debug("Tool registered", tool_name=tool.name)

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name in self._tools:
            del self._tools[name]
            logger.info("Tool unregistered", tool_name=name)

    def get(self, name: str) -> AnyTool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_definitions(self) -> list[ToolDefinition]:
        """Get all tool definitions for LLM."""
        return [tool.to_definition() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool by name and return its output.

        Raises:
            ToolError: if the tool is unknown or its code fails. Exceptions
                raised by tool code are wrapped so callers only ever see
                ToolError from here.
        """
        tool = self.get(name)
        if tool is None:
            raise ToolError(f"Unknown tool: {name}")

        start = time.monotonic()
        try:
            result = await tool.execute(**arguments)
        except ToolError:
            raise
        except Exception as e:
            logger.error("Tool execution error", tool_name=name, error=str(e))
            raise ToolError(f"Tool execution failed: {e}") from e

        logger.debug(
            "Tool executed",
            tool_name=name,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        return result


def create_default_registry(workspace_dir: Path | str) -> ToolRegistry:
    """Create a registry holding the builtin tools."""
    registry = ToolRegistry()
    register_default_tools(registry, workspace_dir)
    return registry


def register_default_tools(registry: ToolRegistry, workspace_dir: Path | str) -> None:
    """Register the builtin file, web and think tools."""
    from .file_tool import create_file_tools
    from .think import ThinkTool
    from .web_fetch import WebFetchTool

    for tool in create_file_tools(workspace_dir):
        registry.register(tool)

    registry.register(WebFetchTool())
    registry.register(ThinkTool())
