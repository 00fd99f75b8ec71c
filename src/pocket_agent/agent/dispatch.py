"""
Tool execution dispatch: run one tool call and turn the outcome into a message.
"""

import time
from typing import Any, Protocol

import structlog

from ..bus.events import EventSink, ToolExecution
from ..errors import ToolError
from ..llm.base import LLMMessage, ToolCall

logger = structlog.get_logger()

TOOL_ERROR_PREFIX = "Tool error: "


def _tool_message(call: ToolCall, content: str) -> LLMMessage:
    return LLMMessage(role="tool", content=content, tool_call_id=call.id, name=call.name)


class ToolExecutor(Protocol):
    async def execute(self, name: str, arguments: dict[str, Any]) -> str: ...


class ToolDispatcher:
    """Executes tool calls against a registry and publishes one event per call.

    A ToolError becomes a tool message the model can read. Any other
    exception is a defect in the executor and propagates.
    """

    def __init__(self, executor: ToolExecutor, events: EventSink | None = None):
        self.executor = executor
        self.events = events

    async def dispatch(self, call: ToolCall) -> LLMMessage:
        logger.info("Executing tool", tool=call.name, tool_call_id=call.id)
        start = time.monotonic()

        try:
            result = await self.executor.execute(call.name, call.arguments)
        except ToolError as e:
            duration_ms = self._elapsed_ms(start)
            logger.warning("Tool failed", tool=call.name, error=e.message, duration_ms=duration_ms)
            self._publish(call, None, e.message, duration_ms)
            return _tool_message(call, f"{TOOL_ERROR_PREFIX}{e.message}")

        duration_ms = self._elapsed_ms(start)
        logger.info("Tool finished", tool=call.name, duration_ms=duration_ms)
        self._publish(call, result, None, duration_ms)
        return _tool_message(call, result)

    def _publish(
        self, call: ToolCall, result: str | None, error: str | None, duration_ms: int
    ) -> None:
        if self.events is None:
            return
        self.events.publish_tool_event(ToolExecution(
            tool_call_id=call.id,
            name=call.name,
            arguments=dict(call.arguments),
            result=result,
            error=error,
            duration_ms=duration_ms,
        ))

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
