"""
Tools module for agent capabilities.
"""

from ..errors import ToolError
from .base import BaseTool, Tool, ToolParameter
from .registry import ToolRegistry, create_default_registry, register_default_tools
from .file_tool import FileManager, create_file_tools
from .think import ThinkTool
from .web_fetch import WebFetchTool

__all__ = [
    "BaseTool",
    "Tool",
    "ToolError",
    "ToolParameter",
    "ToolRegistry",
    "create_default_registry",
    "register_default_tools",
    "FileManager",
    "create_file_tools",
    "ThinkTool",
    "WebFetchTool",
]
