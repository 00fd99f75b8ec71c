"""
Context building for LLM requests.

The system prompt is assembled from the workspace: IDENTITY.md replaces the
default identity and MEMORY.md is added as background knowledge.
"""

from datetime import datetime
from pathlib import Path

import structlog

from ..llm.base import LLMMessage, MediaBlock, TextBlock

logger = structlog.get_logger()

DEFAULT_IDENTITY = (
    "You are Pocket-Agent, an AI assistant with access to tools for reading "
    "and editing files in your workspace and fetching pages from the web."
)

TOOL_GUIDELINES = """## Tool Usage Guidelines

You have access to tools for interacting with files and fetching web pages.

- Use tools when they would help accomplish the user's request
- Be concise and direct in your responses
- If a task requires multiple steps, plan them out first
- Report errors clearly and suggest fixes when possible
- Use the think tool to work through complicated problems before acting"""


class ContextBuilder:
    """Builds the message list sent to the model for one request."""

    def __init__(self, workspace_dir: str | Path | None = None, system_prompt: str | None = None):
        self.workspace_dir = Path(workspace_dir).expanduser() if workspace_dir else None
        self.system_prompt = system_prompt or self._build_base_prompt()

    def _build_base_prompt(self) -> str:
        parts = [self._load_workspace_file("IDENTITY.md") or DEFAULT_IDENTITY, TOOL_GUIDELINES]

        memory = self._load_workspace_file("MEMORY.md")
        if memory:
            parts.append(f"## Background Knowledge\n\n{memory}")

        return "\n\n".join(parts)

    def _load_workspace_file(self, filename: str) -> str | None:
        if self.workspace_dir is None:
            return None

        path = self.workspace_dir / filename
        if not path.is_file():
            return None

        try:
            content = path.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.debug("Failed to load workspace file", filename=filename, error=str(e))
            return None

        return content or None

    def build_system_message(self) -> LLMMessage:
        parts = [self.system_prompt]
        if self.workspace_dir is not None:
            parts.append(f"Working directory: {self.workspace_dir}")
        parts.append(f"Current time: {datetime.now().astimezone().strftime('%Y-%m-%d %H:%M:%S %Z')}")
        return LLMMessage(role="system", content="\n\n".join(parts))

    def build_messages(self, history: list[LLMMessage], current: LLMMessage) -> list[LLMMessage]:
        """System message, media-free history, then the current message as is.

        Only the current message carries attachments; earlier ones are
        replaced by a short placeholder.
        """
        return [
            self.build_system_message(),
            *(strip_media(m) for m in history),
            current,
        ]


def strip_media(message: LLMMessage) -> LLMMessage:
    """Return the message with media blocks flattened into placeholder text."""
    if isinstance(message.content, str):
        return message

    parts = []
    for block in message.content:
        if isinstance(block, TextBlock):
            parts.append(block.text)
        elif isinstance(block, MediaBlock):
            parts.append(f"[Previous image: {block.filename or 'attachment'}]")

    return LLMMessage(
        role=message.role,
        content="\n".join(parts),
        tool_calls=message.tool_calls,
        tool_call_id=message.tool_call_id,
        name=message.name,
    )
