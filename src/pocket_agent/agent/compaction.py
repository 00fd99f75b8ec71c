"""
Conversation Compaction - summarize older turns when history grows too large.

When a session's history passes a message-count or estimated-token
threshold, everything except the most recent messages is summarized by the
LLM into a single synthetic user message. The split point is moved earlier
when needed so that every tool result kept verbatim still has the assistant
message that issued its tool call.

Only single-hop pairing is enforced: the split moves back to the earliest
assistant message whose tool calls are answered in the kept tail, and chains
of earlier dependencies are not followed.
"""

from dataclasses import dataclass

import structlog

from ..llm.base import BaseLLM, LLMMessage, content_length, extract_text

logger = structlog.get_logger()

DEFAULT_MESSAGE_THRESHOLD = 40  # Compact when exceeding this many messages
DEFAULT_TOKEN_THRESHOLD = 50_000  # Compact when exceeding this many estimated tokens
DEFAULT_KEEP_RECENT = 15  # Messages always kept verbatim
CHARS_PER_TOKEN = 4

TRANSCRIPT_MESSAGE_CHARS = 500
SUMMARY_MAX_TOKENS = 1000

COMPACTION_PROMPT = """Summarize this conversation history concisely. Include:
- Key decisions made
- Important information learned
- Current task/goal if any
- Any pending items or context needed for continuation

Keep the summary under 500 words. Focus on information the assistant needs to continue effectively."""

SUMMARY_HEADER = "[Previous conversation summary]"
SUMMARY_FOOTER = "[End of summary - continuing conversation]"


@dataclass(frozen=True)
class CompactionPolicy:
    """When to compact and how much to keep."""

    message_threshold: int = DEFAULT_MESSAGE_THRESHOLD
    token_threshold: int = DEFAULT_TOKEN_THRESHOLD
    keep_recent: int = DEFAULT_KEEP_RECENT
    chars_per_token: int = CHARS_PER_TOKEN


def estimate_tokens(messages: list[LLMMessage], chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate token count for a list of messages."""
    total_chars = sum(content_length(m.content) for m in messages)
    return total_chars // chars_per_token


def needs_compaction(messages: list[LLMMessage], policy: CompactionPolicy) -> bool:
    """Whether the history is over either threshold and has something to summarize."""
    if len(messages) <= policy.keep_recent:
        return False

    return (
        len(messages) > policy.message_threshold
        or estimate_tokens(messages, policy.chars_per_token) > policy.token_threshold
    )


def adjust_split_for_tool_pairs(messages: list[LLMMessage], split_point: int) -> int:
    """Move the split earlier so kept tool results keep their tool calls.

    Returns the index of the first assistant message before `split_point`
    whose tool calls are answered by a tool message at or after it, or
    `split_point` unchanged if there is none.
    """
    if split_point == 0:
        return split_point

    kept_ids = {
        m.tool_call_id
        for m in messages[split_point:]
        if m.role == "tool" and m.tool_call_id
    }
    if not kept_ids:
        return split_point

    for index, message in enumerate(messages[:split_point]):
        if message.role != "assistant" or not message.tool_calls:
            continue
        if any(tc.id in kept_ids for tc in message.tool_calls):
            logger.debug(
                "Adjusted compaction split to keep tool pairs together",
                original=split_point,
                adjusted=index,
            )
            return index

    return split_point


def split_history(
    messages: list[LLMMessage], keep_recent: int
) -> tuple[list[LLMMessage], list[LLMMessage]]:
    """Split history into (prefix to summarize, tail to keep)."""
    split_point = max(len(messages) - keep_recent, 0)
    if split_point == 0:
        return [], list(messages)

    split_point = adjust_split_for_tool_pairs(messages, split_point)
    return messages[:split_point], messages[split_point:]


def format_for_summary(messages: list[LLMMessage]) -> str:
    """Render messages as a plain transcript for the summarizer."""
    lines = []
    for msg in messages:
        text = extract_text(msg.content)
        ellipsis = "..." if len(text) > TRANSCRIPT_MESSAGE_CHARS else ""
        lines.append(f"{msg.role.capitalize()}: {text[:TRANSCRIPT_MESSAGE_CHARS]}{ellipsis}")
    return "\n\n".join(lines)


def basic_summary(messages: list[LLMMessage]) -> str:
    """Create a summary without the LLM (fallback for when summarization fails)."""
    user_messages = [m for m in messages if m.role == "user"]
    assistant_count = sum(1 for m in messages if m.role == "assistant")
    tool_count = sum(1 for m in messages if m.role == "tool")

    parts = [
        f"Previous conversation: {len(user_messages)} user messages, "
        f"{assistant_count} assistant responses"
    ]
    if tool_count:
        parts.append(f"{tool_count} tool calls")

    recent_queries = [f"- {extract_text(m.content)[:100]}" for m in user_messages[-3:]]
    if recent_queries:
        parts.append("Recent topics:\n" + "\n".join(recent_queries))

    return "\n\n".join(parts)


def build_summary_message(summary: str) -> LLMMessage:
    return LLMMessage(role="user", content=f"{SUMMARY_HEADER}\n{summary}\n{SUMMARY_FOOTER}")


class Compactor:
    """Summarizes old history through an LLM, falling back to a local summary."""

    def __init__(self, llm: BaseLLM, policy: CompactionPolicy | None = None):
        self.llm = llm
        self.policy = policy or CompactionPolicy()

    def estimate_tokens(self, messages: list[LLMMessage]) -> int:
        return estimate_tokens(messages, self.policy.chars_per_token)

    def needs_compaction(self, messages: list[LLMMessage]) -> bool:
        return needs_compaction(messages, self.policy)

    async def compact(self, messages: list[LLMMessage]) -> list[LLMMessage]:
        """Return a new history with the older prefix replaced by a summary.

        The input list is never modified. The returned tail is the original
        tail, in order, possibly extended backwards to keep tool pairs intact.
        """
        if not self.needs_compaction(messages):
            return messages

        to_summarize, to_keep = split_history(messages, self.policy.keep_recent)
        if not to_summarize:
            return messages

        logger.info(
            "Compacting conversation",
            summarized=len(to_summarize),
            kept=len(to_keep),
        )

        summary = await self.generate_summary(to_summarize)
        return [build_summary_message(summary)] + to_keep

    async def compact_session(self, session) -> bool:
        """Compact a session's history in place. Returns whether it changed."""
        original_count = session.message_count
        if not self.needs_compaction(session.messages):
            return False

        conversation = [m for m in session.messages if m.role != "system"]
        if len(conversation) <= self.policy.keep_recent:
            return False

        compacted = await self.compact(conversation)
        if compacted is conversation:
            return False

        session.messages = compacted
        session.compaction_count += 1

        logger.info(
            "Session compacted",
            session_key=session.key,
            before=original_count,
            after=len(compacted),
        )
        return True

    async def generate_summary(self, messages: list[LLMMessage]) -> str:
        """Summarize messages with the LLM. Never raises."""
        request = [
            LLMMessage(
                role="user",
                content=f"Conversation history to summarize:\n\n{format_for_summary(messages)}",
            )
        ]

        try:
            response = await self.llm.generate(
                messages=request,
                system_prompt=COMPACTION_PROMPT,
                max_tokens=SUMMARY_MAX_TOKENS,
            )
        except Exception as e:
            logger.error("Compaction summary failed, using fallback", error=str(e))
            return basic_summary(messages)

        return (response.content or "").strip() or "Previous conversation summary unavailable."
