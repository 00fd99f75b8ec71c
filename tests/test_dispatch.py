"""
Tests for tool call dispatch.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from pocket_agent.agent.dispatch import TOOL_ERROR_PREFIX, ToolDispatcher
from pocket_agent.errors import ToolError
from pocket_agent.llm.base import ToolCall


def make_executor(**kwargs) -> MagicMock:
    executor = MagicMock()
    executor.execute = AsyncMock(**kwargs)
    return executor


@pytest.mark.asyncio
async def test_dispatch_success():
    """Test a successful tool call."""
    executor = make_executor(return_value="42")
    events = MagicMock()
    dispatcher = ToolDispatcher(executor, events)
    call = ToolCall(id="call_1", name="calculate", arguments={"expr": "6*7"})

    message = await dispatcher.dispatch(call)

    executor.execute.assert_awaited_once_with("calculate", {"expr": "6*7"})
    assert message.role == "tool"
    assert message.content == "42"
    assert message.tool_call_id == "call_1"
    assert message.name == "calculate"

    events.publish_tool_event.assert_called_once()
    event = events.publish_tool_event.call_args.args[0]
    assert event.tool_call_id == "call_1"
    assert event.arguments == {"expr": "6*7"}
    assert event.result == "42"
    assert event.error is None
    assert event.duration_ms >= 0


@pytest.mark.asyncio
async def test_dispatch_tool_error():
    """Test a ToolError becomes a tool error message."""
    executor = make_executor(side_effect=ToolError("File not found: a.txt"))
    events = MagicMock()
    dispatcher = ToolDispatcher(executor, events)

    message = await dispatcher.dispatch(ToolCall(id="call_1", name="read_file"))

    assert message.content == f"{TOOL_ERROR_PREFIX}File not found: a.txt"
    assert message.tool_call_id == "call_1"

    event = events.publish_tool_event.call_args.args[0]
    assert event.result is None
    assert event.error == "File not found: a.txt"
    assert not event.success


@pytest.mark.asyncio
async def test_dispatch_other_errors_propagate():
    """Test unexpected errors propagate."""
    executor = make_executor(side_effect=RuntimeError("bug"))
    dispatcher = ToolDispatcher(executor, MagicMock())

    with pytest.raises(RuntimeError):
        await dispatcher.dispatch(ToolCall(id="call_1", name="think"))


@pytest.mark.asyncio
async def test_dispatch_without_event_sink():
    """Test dispatch without an event sink."""
    dispatcher = ToolDispatcher(make_executor(return_value="ok"))

    message = await dispatcher.dispatch(ToolCall(id="call_1", name="think"))

    assert message.content == "ok"
