"""
Message and event types that flow between channels and the agent.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol


class AgentState(str, Enum):
    """Processing state of one session."""
    IDLE = "idle"
    PROCESSING = "processing"


@dataclass(frozen=True)
class Media:
    """A media attachment on an inbound or outbound message."""

    media_type: str  # image, file, audio, video
    path: str
    mime_type: str
    filename: str | None = None


@dataclass
class InboundMessage:
    """Message from a channel to the agent."""

    channel: str
    sender_id: str
    chat_id: str
    content: str
    media: list[Media] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def session_key(self) -> str:
        """Stable key scoping one conversation history."""
        return f"{self.channel}:{self.chat_id}"

    @property
    def has_media(self) -> bool:
        return bool(self.media)


@dataclass
class OutboundMessage:
    """Message from the agent back to a channel."""

    channel: str
    chat_id: str
    content: str
    media: list[Media] = field(default_factory=list)
    reply_to: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolExecution:
    """One dispatched tool call and its outcome."""

    tool_call_id: str
    name: str
    arguments: dict[str, Any]
    result: str | None = None
    error: str | None = None
    duration_ms: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class StateChange:
    """A session moving between processing states."""

    session_key: str
    from_state: AgentState
    to_state: AgentState
    reason: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventSink(Protocol):
    """Receiver of agent observability events. Delivery is best-effort."""

    def publish_tool_event(self, event: ToolExecution) -> None: ...

    def publish_state_event(self, event: StateChange) -> None: ...
