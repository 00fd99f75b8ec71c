"""
Agent module - the brain of the system.

Includes:
- Agent: Tool-calling iteration loop
- Session / SessionStore: Persistent conversation sessions
- Compactor: History summarization when context grows too large
- ContextBuilder: System prompt and provider-facing message list
- ToolDispatcher: Runs one tool call and reports it
"""

from .compaction import CompactionPolicy, Compactor
from .context import ContextBuilder
from .core import MAX_ITERATIONS_MESSAGE, Agent
from .dispatch import TOOL_ERROR_PREFIX, ToolDispatcher
from .session import Session, SessionStore

__all__ = [
    "Agent",
    "MAX_ITERATIONS_MESSAGE",
    "CompactionPolicy",
    "Compactor",
    "ContextBuilder",
    "Session",
    "SessionStore",
    "TOOL_ERROR_PREFIX",
    "ToolDispatcher",
]
