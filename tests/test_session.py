"""
Tests for sessions and the session store.
"""

import pytest

from pocket_agent.agent.session import (
    MAX_ARG_LENGTH,
    MAX_TOOL_RESULT_LENGTH,
    Session,
    SessionStore,
)
from pocket_agent.bus import Media
from pocket_agent.llm.base import MediaBlock, TextBlock, ToolCall


def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'data' / 'sessions.db'}"


def test_session_add_messages():
    """Test adding messages to a session."""
    session = Session(key="test:1")
    session.add_user_message("Hello!")
    session.add_assistant_message("Hi there!")

    assert session.message_count == 2
    assert session.messages[0].role == "user"
    assert session.last_message.content == "Hi there!"


def test_session_user_message_with_media():
    """Test a user message with media."""
    session = Session(key="test:1")
    message = session.add_user_message(
        "What is this?",
        media=[Media(media_type="image", path="/tmp/cat.png", mime_type="image/png", filename="cat.png")],
    )

    assert message.content == [
        TextBlock("What is this?"),
        MediaBlock(media_type="image", path="/tmp/cat.png", mime_type="image/png", filename="cat.png"),
    ]
    assert message.has_media


def test_session_truncates_tool_results():
    """Test long tool results are truncated."""
    session = Session(key="test:1")
    message = session.add_tool_result("call_1", "read_file", "a" * (MAX_TOOL_RESULT_LENGTH + 500))

    assert message.content == "a" * MAX_TOOL_RESULT_LENGTH + "... [truncated 500 chars]"
    assert message.tool_call_id == "call_1"
    assert message.name == "read_file"


def test_session_truncates_long_tool_arguments():
    """Test long tool arguments are truncated."""
    session = Session(key="test:1")
    call = ToolCall(id="call_1", name="write_file", arguments={"path": "a.txt", "content": "b" * 600, "append": True})

    message = session.add_assistant_message("", [call])

    arguments = message.tool_calls[0].arguments
    assert arguments["path"] == "a.txt"
    assert arguments["content"] == "b" * MAX_ARG_LENGTH + "... [truncated 100 chars]"
    assert arguments["append"] is True
    assert call.arguments["content"] == "b" * 600


def test_session_get_history_window():
    """Test the history window."""
    session = Session(key="test:1")
    for i in range(10):
        session.add_user_message(f"Message {i}")

    history = session.get_history(3)

    assert [m.content for m in history] == ["Message 7", "Message 8", "Message 9"]
    assert len(session.get_history()) == 10


def test_session_get_history_skips_leading_tool_results():
    """Test history never starts with a tool result."""
    session = Session(key="test:1")
    session.add_user_message("read it")
    session.add_assistant_message("", [ToolCall(id="call_1", name="read_file", arguments={"path": "a"})])
    session.add_tool_result("call_1", "read_file", "contents")
    session.add_assistant_message("Here it is")

    history = session.get_history(2)

    assert [m.role for m in history] == ["assistant"]


def test_session_clear():
    """Test clearing a session."""
    session = Session(key="test:1")
    session.add_user_message("Hello!")
    session.clear()

    assert session.message_count == 0
    assert session.last_message is None


@pytest.mark.asyncio
async def test_store_creates_session(tmp_path):
    """Test the store creates new sessions."""
    store = await SessionStore.open(database_url(tmp_path))
    try:
        session = await store.get_or_create("test:1")
        again = await store.get_or_create("test:1")

        assert session is again
        assert session.message_count == 0
        assert await store.get("test:2") is None
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_store_persists_sessions(tmp_path):
    """Test sessions survive a reopened store."""
    store = await SessionStore.open(database_url(tmp_path))
    try:
        session = await store.get_or_create("test:1")
        session.metadata["user_name"] = "Sam"
        session.compaction_count = 2
        session.add_user_message(
            "look",
            media=[Media(media_type="image", path="/tmp/cat.png", mime_type="image/png", filename="cat.png")],
        )
        session.add_assistant_message("", [ToolCall(id="call_1", name="think", arguments={"thought": "cat"})])
        session.add_tool_result("call_1", "think", "Thought recorded: cat")
        session.add_assistant_message("A cat.")
        await store.save(session)
    finally:
        await store.close()

    reopened = await SessionStore.open(database_url(tmp_path))
    try:
        loaded = await reopened.get("test:1")
    finally:
        await reopened.close()

    assert loaded is not None
    assert loaded.metadata == {"user_name": "Sam"}
    assert loaded.compaction_count == 2
    assert loaded.messages == session.messages


@pytest.mark.asyncio
async def test_store_save_replaces_history(tmp_path):
    """Test saving replaces the stored history."""
    store = await SessionStore.open(database_url(tmp_path))
    try:
        session = await store.get_or_create("test:1")
        for i in range(5):
            session.add_user_message(f"Message {i}")
        await store.save(session)

        session.messages = session.messages[-2:]
        await store.save(session)

        store.evict("test:1")
        loaded = await store.get("test:1")
    finally:
        await store.close()

    assert [m.content for m in loaded.messages] == ["Message 3", "Message 4"]


@pytest.mark.asyncio
async def test_store_delete_and_list(tmp_path):
    """Test deleting and listing sessions."""
    store = await SessionStore.open(database_url(tmp_path))
    try:
        for key in ("test:1", "test:2"):
            await store.save(await store.get_or_create(key))

        assert await store.list_keys() == ["test:1", "test:2"]

        await store.delete("test:1")

        assert await store.list_keys() == ["test:2"]
        assert await store.get("test:1") is None
    finally:
        await store.close()
