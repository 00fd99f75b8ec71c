"""
Session management for conversations.

A Session holds one chat's history in memory. The SessionStore loads and
persists sessions through SQLAlchemy; `save` rewrites a session's whole
message list inside one transaction so a reload never sees half a turn.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from ..bus.events import Media
from ..errors import SessionError
from ..llm.base import LLMMessage, MediaBlock, MessageContent, TextBlock, ToolCall
from ..models import MessageRecord, SessionRecord, create_database_engine

logger = structlog.get_logger()

# Large tool output and arguments are truncated before entering history
MAX_TOOL_RESULT_LENGTH = 2000
MAX_ARG_LENGTH = 500


def _truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return f"{value[:limit]}... [truncated {len(value) - limit} chars]"


@dataclass
class Session:
    """A conversation session with its history."""

    key: str
    messages: list[LLMMessage] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    compaction_count: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def add_message(self, message: LLMMessage) -> None:
        self.messages.append(message)

    def add_user_message(self, content: str, media: list[Media] | None = None) -> LLMMessage:
        """Add a user message; media is stored by reference, never inline."""
        if media:
            blocks: list[TextBlock | MediaBlock] = []
            if content:
                blocks.append(TextBlock(content))
            for m in media:
                blocks.append(MediaBlock(
                    media_type=m.media_type,
                    path=m.path,
                    mime_type=m.mime_type,
                    filename=m.filename,
                ))
            message = LLMMessage(role="user", content=blocks)
        else:
            message = LLMMessage(role="user", content=content)

        self.add_message(message)
        return message

    def add_assistant_message(
        self, content: str, tool_calls: list[ToolCall] | None = None
    ) -> LLMMessage:
        message = build_assistant_message(content, tool_calls)
        self.add_message(message)
        return message

    def add_tool_result(self, tool_call_id: str, name: str, content: str) -> LLMMessage:
        message = build_tool_result(tool_call_id, name, content)
        self.add_message(message)
        return message

    def get_history(self, max_messages: int | None = None) -> list[LLMMessage]:
        """Return a copy of the history, optionally only the newest messages.

        A window never starts with a tool result, whose tool call would have
        been cut off.
        """
        if max_messages is None:
            return list(self.messages)

        window = self.messages[-max_messages:] if max_messages > 0 else []
        start = 0
        while start < len(window) and window[start].role == "tool":
            start += 1
        return window[start:]

    @property
    def last_message(self) -> LLMMessage | None:
        return self.messages[-1] if self.messages else None

    @property
    def message_count(self) -> int:
        return len(self.messages)

    def clear(self) -> None:
        self.messages = []


def build_assistant_message(
    content: str | None, tool_calls: list[ToolCall] | None = None
) -> LLMMessage:
    """Assistant message with oversized string arguments truncated."""
    sanitized = None
    if tool_calls:
        sanitized = [
            ToolCall(
                id=tc.id,
                name=tc.name,
                arguments={
                    k: _truncate(v, MAX_ARG_LENGTH) if isinstance(v, str) else v
                    for k, v in tc.arguments.items()
                },
            )
            for tc in tool_calls
        ]
    return LLMMessage(role="assistant", content=content or "", tool_calls=sanitized)


def build_tool_result(tool_call_id: str, name: str, content: str) -> LLMMessage:
    return LLMMessage(
        role="tool",
        content=_truncate(content, MAX_TOOL_RESULT_LENGTH),
        tool_call_id=tool_call_id,
        name=name,
    )


def serialize_content(content: MessageContent) -> Any:
    if isinstance(content, str):
        return content

    blocks = []
    for block in content:
        if isinstance(block, TextBlock):
            blocks.append({"type": "text", "text": block.text})
        else:
            blocks.append({
                "type": "media",
                "media_type": block.media_type,
                "path": block.path,
                "mime_type": block.mime_type,
                "filename": block.filename,
            })
    return blocks


def deserialize_content(raw: Any) -> MessageContent:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw

    blocks: list[TextBlock | MediaBlock] = []
    for item in raw:
        if item.get("type") == "text":
            blocks.append(TextBlock(item.get("text", "")))
        elif item.get("type") == "media":
            blocks.append(MediaBlock(
                media_type=item.get("media_type", "file"),
                path=item.get("path", ""),
                mime_type=item.get("mime_type", "application/octet-stream"),
                filename=item.get("filename"),
            ))
    return blocks


def message_to_record(session_key: str, position: int, message: LLMMessage) -> MessageRecord:
    return MessageRecord(
        session_key=session_key,
        position=position,
        role=message.role,
        content=serialize_content(message.content),
        tool_calls=[
            {"id": tc.id, "name": tc.name, "arguments": tc.arguments}
            for tc in message.tool_calls
        ] if message.tool_calls else None,
        tool_call_id=message.tool_call_id,
        name=message.name,
    )


def record_to_message(record: MessageRecord) -> LLMMessage:
    tool_calls = None
    if record.tool_calls:
        tool_calls = [
            ToolCall(id=tc["id"], name=tc["name"], arguments=tc.get("arguments") or {})
            for tc in record.tool_calls
        ]
    return LLMMessage(
        role=record.role,  # type: ignore
        content=deserialize_content(record.content),
        tool_calls=tool_calls,
        tool_call_id=record.tool_call_id,
        name=record.name,
    )


class SessionStore:
    """Loads, caches and persists sessions.

    Safe for concurrent use across sessions; callers serialize work within a
    single session.
    """

    def __init__(self, session_maker: async_sessionmaker, engine: AsyncEngine | None = None):
        self._session_maker = session_maker
        self._engine = engine
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    @classmethod
    async def open(cls, database_url: str) -> "SessionStore":
        """Create a store backed by the given database URL."""
        engine = await create_database_engine(database_url)
        return cls(async_sessionmaker(engine, expire_on_commit=False), engine)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def get_or_create(self, key: str) -> Session:
        """Get a cached or persisted session, creating an empty one if needed."""
        async with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = await self._load(key)
                if session is None:
                    session = Session(key=key)
                    logger.info("Created new session", session_key=key)
                self._sessions[key] = session
            return session

    async def get(self, key: str) -> Session | None:
        async with self._lock:
            if key in self._sessions:
                return self._sessions[key]
            session = await self._load(key)
            if session is not None:
                self._sessions[key] = session
            return session

    async def save(self, session: Session) -> None:
        """Persist the full session in one transaction."""
        snapshot = list(session.messages)
        try:
            async with self._session_maker() as db:
                async with db.begin():
                    record = await db.get(SessionRecord, session.key)
                    if record is None:
                        record = SessionRecord(
                            key=session.key,
                            created_at=session.created_at.replace(tzinfo=None),
                        )
                        db.add(record)
                    record.extra_data = dict(session.metadata)
                    record.compaction_count = session.compaction_count
                    record.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)

                    await db.execute(
                        delete(MessageRecord).where(MessageRecord.session_key == session.key)
                    )
                    db.add_all(
                        message_to_record(session.key, position, message)
                        for position, message in enumerate(snapshot)
                    )
        except SQLAlchemyError as e:
            logger.error("Failed to save session", session_key=session.key, error=str(e))
            raise SessionError(f"Failed to save session {session.key}: {e}") from e

        self._sessions[session.key] = session
        logger.debug("Session saved", session_key=session.key, messages=len(snapshot))

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._sessions.pop(key, None)
            async with self._session_maker() as db:
                async with db.begin():
                    await db.execute(delete(MessageRecord).where(MessageRecord.session_key == key))
                    await db.execute(delete(SessionRecord).where(SessionRecord.key == key))
        logger.info("Session deleted", session_key=key)

    async def list_keys(self) -> list[str]:
        async with self._session_maker() as db:
            result = await db.execute(select(SessionRecord.key))
            persisted = list(result.scalars().all())
        return sorted(set(persisted) | set(self._sessions))

    def evict(self, key: str) -> None:
        """Drop a session from the in-memory cache."""
        self._sessions.pop(key, None)

    async def _load(self, key: str) -> Session | None:
        try:
            async with self._session_maker() as db:
                record = await db.get(SessionRecord, key)
                if record is None:
                    return None

                result = await db.execute(
                    select(MessageRecord)
                    .where(MessageRecord.session_key == key)
                    .order_by(MessageRecord.position)
                )
                messages = [record_to_message(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Failed to load session", session_key=key, error=str(e))
            raise SessionError(f"Failed to load session {key}: {e}") from e

        created_at = record.created_at or datetime.now(timezone.utc)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        logger.debug("Session loaded", session_key=key, messages=len(messages))
        return Session(
            key=key,
            messages=messages,
            metadata=dict(record.extra_data or {}),
            compaction_count=record.compaction_count or 0,
            created_at=created_at,
        )
