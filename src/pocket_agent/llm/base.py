"""
Base classes for LLM providers and the message vocabulary shared by the agent.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal, Union

# Weight (in characters) assigned to a non-text content block when sizing a message
NON_TEXT_BLOCK_WEIGHT = 50


@dataclass
class ToolDefinition:
    """Definition of a tool that the LLM can use."""

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass(frozen=True)
class ToolCall:
    """A tool call made by the LLM."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TextBlock:
    """Plain text inside structured message content."""

    text: str


@dataclass(frozen=True)
class MediaBlock:
    """Reference to an attached file (image, audio, document).

    Only the reference is kept; providers read the file when they need to
    inline it.
    """

    media_type: str
    path: str
    mime_type: str
    filename: str | None = None


ContentBlock = Union[TextBlock, MediaBlock]
MessageContent = Union[str, list[ContentBlock]]


@dataclass
class LLMMessage:
    """A message in the conversation."""

    role: Literal["user", "assistant", "system", "tool"]
    content: MessageContent
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    @property
    def text(self) -> str:
        """Text content with non-text blocks dropped."""
        return extract_text(self.content)

    @property
    def has_media(self) -> bool:
        return isinstance(self.content, list) and any(
            isinstance(block, MediaBlock) for block in self.content
        )


@dataclass
class LLMResponse:
    """Response from an LLM."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    stop_reason: str | None = None
    raw_response: Any = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


def extract_text(content: MessageContent | None) -> str:
    """Flatten message content to its text, joining text blocks with newlines."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "\n".join(block.text for block in content if isinstance(block, TextBlock))


def content_length(content: MessageContent | None) -> int:
    """Size of message content in characters, counting each non-text block as a fixed weight."""
    if content is None:
        return 0
    if isinstance(content, str):
        return len(content)

    total = 0
    for block in content:
        if isinstance(block, TextBlock):
            total += len(block.text)
        else:
            total += NON_TEXT_BLOCK_WEIGHT
    return total


class BaseLLM(ABC):
    """Base class for LLM providers."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature

    @abstractmethod
    async def generate(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a response from the LLM.

        Raises:
            ProviderError: if the backend call fails for any reason.
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        pass
