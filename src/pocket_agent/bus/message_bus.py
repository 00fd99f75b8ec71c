"""
In-process async message bus connecting channels and the agent.

Inbound and outbound messages are queued for consumers. Tool and state
events are queued as well and fanned out to subscribers; a failing
subscriber is logged and never affects the publisher or other subscribers.
"""

import asyncio
from collections import Counter
from typing import Any, Callable, Literal

import structlog

from .events import InboundMessage, OutboundMessage, StateChange, ToolExecution

logger = structlog.get_logger()

EventKind = Literal["inbound", "outbound", "tool", "state"]
Subscriber = Callable[[Any], None]


class MessageBus:
    """Async queues plus synchronous subscriber fan-out."""

    def __init__(self, max_events: int = 1000):
        self._inbound: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self._outbound: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        self._tool_events: asyncio.Queue[ToolExecution] = asyncio.Queue(maxsize=max_events)
        self._state_events: asyncio.Queue[StateChange] = asyncio.Queue(maxsize=max_events)
        self._subscribers: dict[str, list[Subscriber]] = {
            "inbound": [],
            "outbound": [],
            "tool": [],
            "state": [],
        }
        self.stats: Counter[str] = Counter()

    async def publish_inbound(self, message: InboundMessage) -> None:
        """Publish an inbound message from a channel."""
        self.stats["inbound"] += 1
        await self._inbound.put(message)
        self._notify("inbound", message)

    async def consume_inbound(self) -> InboundMessage:
        """Wait for the next inbound message."""
        return await self._inbound.get()

    async def publish_outbound(self, message: OutboundMessage) -> None:
        """Publish an outbound message to a channel."""
        self.stats["outbound"] += 1
        await self._outbound.put(message)
        self._notify("outbound", message)

    async def consume_outbound(self) -> OutboundMessage:
        """Wait for the next outbound message."""
        return await self._outbound.get()

    def publish_tool_event(self, event: ToolExecution) -> None:
        """Record a tool execution. Dropped if nobody drains the queue."""
        self.stats["tool_executions"] += 1
        self._offer(self._tool_events, event)
        self._notify("tool", event)

    def publish_state_event(self, event: StateChange) -> None:
        """Record a session state change. Dropped if nobody drains the queue."""
        self.stats["state_changes"] += 1
        self._offer(self._state_events, event)
        self._notify("state", event)

    async def consume_tool_event(self) -> ToolExecution:
        return await self._tool_events.get()

    async def consume_state_event(self) -> StateChange:
        return await self._state_events.get()

    def subscribe(self, kind: EventKind, handler: Subscriber) -> None:
        """Register a handler called synchronously for every event of a kind."""
        if kind not in self._subscribers:
            raise ValueError(f"Unknown event kind: {kind}")
        self._subscribers[kind].append(handler)

    def unsubscribe(self, kind: EventKind, handler: Subscriber) -> None:
        if handler in self._subscribers.get(kind, []):
            self._subscribers[kind].remove(handler)

    @property
    def pending_inbound(self) -> int:
        return self._inbound.qsize()

    @property
    def pending_outbound(self) -> int:
        return self._outbound.qsize()

    def _offer(self, queue: asyncio.Queue, event: Any) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            self.stats["dropped_events"] += 1
            logger.warning("Event queue full, dropping event", event_type=type(event).__name__)

    def _notify(self, kind: str, event: Any) -> None:
        for handler in list(self._subscribers[kind]):
            try:
                handler(event)
            except Exception as e:
                logger.error("Subscriber error", kind=kind, error=str(e))
