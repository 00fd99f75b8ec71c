"""
File Operations Tools - Read, write, edit and list files in the workspace.

Every path is resolved against the workspace directory and rejected if it
escapes it.
"""

from pathlib import Path

import structlog

from ..errors import ToolError
from .base import Tool, ToolParameter

logger = structlog.get_logger()

MAX_READ_CHARS = 50_000
MAX_LISTED_ENTRIES = 200


class FileManager:
    """Manages file operations within a workspace."""

    def __init__(self, workspace_dir: Path | str):
        self.workspace_dir = Path(workspace_dir).expanduser().resolve()
        self.workspace_dir.mkdir(parents=True, exist_ok=True)

    def resolve(self, path: str) -> Path:
        """Resolve a path relative to the workspace, refusing anything outside it."""
        p = Path(path).expanduser()
        if not p.is_absolute():
            p = self.workspace_dir / p

        resolved = p.resolve()
        if resolved != self.workspace_dir and self.workspace_dir not in resolved.parents:
            logger.warning("Path outside workspace", path=path)
            raise ToolError(f"Path {path} is outside the workspace")
        return resolved

    def read_file(self, path: str, offset: int = 0, limit: int | None = None) -> str:
        file_path = self.resolve(path)

        if not file_path.exists():
            raise ToolError(f"File not found: {path}")
        if not file_path.is_file():
            raise ToolError(f"Path is a directory: {path}")

        try:
            content = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            raise ToolError(f"File is not valid UTF-8 text: {path}")

        lines = content.splitlines()
        if offset or limit:
            end = offset + limit if limit else None
            lines = lines[offset:end]
            content = "\n".join(lines)

        if len(content) > MAX_READ_CHARS:
            content = content[:MAX_READ_CHARS] + f"\n... [truncated, file has {len(content)} chars]"

        return content

    def write_file(self, path: str, content: str, append: bool = False) -> str:
        file_path = self.resolve(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        mode = "a" if append else "w"
        with open(file_path, mode, encoding="utf-8") as f:
            f.write(content)

        action = "Appended" if append else "Wrote"
        return f"{action} {len(content)} characters to {file_path.relative_to(self.workspace_dir)}"

    def edit_file(self, path: str, old_text: str, new_text: str) -> str:
        """Replace exactly one occurrence of old_text."""
        file_path = self.resolve(path)
        if not file_path.is_file():
            raise ToolError(f"File not found: {path}")

        content = file_path.read_text(encoding="utf-8")
        count = content.count(old_text)
        if count == 0:
            raise ToolError(f"Text to replace not found in {path}")
        if count > 1:
            raise ToolError(
                f"Text to replace appears {count} times in {path}; include more context"
            )

        file_path.write_text(content.replace(old_text, new_text, 1), encoding="utf-8")
        return f"Edited {file_path.relative_to(self.workspace_dir)}"

    def list_dir(self, path: str = ".") -> list[str]:
        dir_path = self.resolve(path)

        if not dir_path.exists():
            raise ToolError(f"Directory not found: {path}")
        if not dir_path.is_dir():
            raise ToolError(f"Path is not a directory: {path}")

        entries = []
        for entry in sorted(dir_path.iterdir()):
            entries.append(f"{entry.name}/" if entry.is_dir() else entry.name)
        return entries


def create_file_tools(workspace_dir: Path | str) -> list[Tool]:
    """Create file operation tools bound to one workspace."""
    manager = FileManager(workspace_dir)

    def read_file_handler(path: str, offset: int = 0, limit: int | None = None) -> str:
        return manager.read_file(path, offset, limit)

    def write_file_handler(path: str, content: str, append: bool = False) -> str:
        return manager.write_file(path, content, append)

    def edit_file_handler(path: str, old_text: str, new_text: str) -> str:
        return manager.edit_file(path, old_text, new_text)

    def list_dir_handler(path: str = ".") -> str:
        entries = manager.list_dir(path)
        if not entries:
            return f"{path} is empty."

        output = "\n".join(entries[:MAX_LISTED_ENTRIES])
        if len(entries) > MAX_LISTED_ENTRIES:
            output += f"\n... and {len(entries) - MAX_LISTED_ENTRIES} more entries"
        return output

    read_file = Tool(
        name="read_file",
        description="Read the contents of a text file in the workspace.",
        parameters=[
            ToolParameter(
                name="path",
                param_type="string",
                description="Path to the file (relative to workspace or absolute)",
            ),
            ToolParameter(
                name="offset",
                param_type="integer",
                description="Line to start reading from (default: 0)",
                required=False,
            ),
            ToolParameter(
                name="limit",
                param_type="integer",
                description="Maximum number of lines to read",
                required=False,
            ),
        ],
        handler=read_file_handler,
    )

    write_file = Tool(
        name="write_file",
        description="Write content to a file in the workspace, creating parent directories.",
        parameters=[
            ToolParameter(
                name="path",
                param_type="string",
                description="Path to the file",
            ),
            ToolParameter(
                name="content",
                param_type="string",
                description="Content to write",
            ),
            ToolParameter(
                name="append",
                param_type="boolean",
                description="Append to file instead of overwriting (default: false)",
                required=False,
            ),
        ],
        handler=write_file_handler,
    )

    edit_file = Tool(
        name="edit_file",
        description="Replace one exact occurrence of a piece of text in a workspace file.",
        parameters=[
            ToolParameter(
                name="path",
                param_type="string",
                description="Path to the file",
            ),
            ToolParameter(
                name="old_text",
                param_type="string",
                description="Exact text to find; must occur exactly once",
            ),
            ToolParameter(
                name="new_text",
                param_type="string",
                description="Replacement text",
            ),
        ],
        handler=edit_file_handler,
    )

    list_dir = Tool(
        name="list_dir",
        description="List the entries of a directory in the workspace.",
        parameters=[
            ToolParameter(
                name="path",
                param_type="string",
                description="Directory path (default: workspace root)",
                required=False,
            ),
        ],
        handler=list_dir_handler,
    )

    return [read_file, write_file, edit_file, list_dir]
