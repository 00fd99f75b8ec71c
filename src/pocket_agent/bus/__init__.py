"""
Message bus: the seam between channels and the agent loop.
"""

from .events import (
    AgentState,
    EventSink,
    InboundMessage,
    Media,
    OutboundMessage,
    StateChange,
    ToolExecution,
)
from .message_bus import MessageBus

__all__ = [
    "AgentState",
    "EventSink",
    "InboundMessage",
    "Media",
    "MessageBus",
    "OutboundMessage",
    "StateChange",
    "ToolExecution",
]
