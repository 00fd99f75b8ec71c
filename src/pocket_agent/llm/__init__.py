"""
LLM module for multi-provider AI model support.

Providers:
- Anthropic Claude (native SDK)
- OpenAI GPT (native SDK)
- OpenRouter (via OpenAI-compatible endpoint)
"""

from .base import (
    BaseLLM,
    ContentBlock,
    LLMMessage,
    LLMResponse,
    MediaBlock,
    MessageContent,
    TextBlock,
    ToolCall,
    ToolDefinition,
    content_length,
    extract_text,
)
from .anthropic import AnthropicLLM
from .openai import OpenAILLM
from .factory import create_llm

__all__ = [
    "BaseLLM",
    "ContentBlock",
    "LLMMessage",
    "LLMResponse",
    "MediaBlock",
    "MessageContent",
    "TextBlock",
    "ToolCall",
    "ToolDefinition",
    "content_length",
    "extract_text",
    "AnthropicLLM",
    "OpenAILLM",
    "create_llm",
]
