"""
Tests for LLM providers and message conversion.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import anthropic
import httpx
import openai
import pytest

from pocket_agent.config import LLMConfig
from pocket_agent.errors import ConfigurationError, ProviderError
from pocket_agent.llm import AnthropicLLM, OpenAILLM, create_llm
from pocket_agent.llm.base import LLMMessage, MediaBlock, TextBlock, ToolCall, ToolDefinition


def tool_turn() -> list[LLMMessage]:
    return [
        LLMMessage(role="system", content="Be brief."),
        LLMMessage(role="user", content="Read both files"),
        LLMMessage(
            role="assistant",
            content="Reading.",
            tool_calls=[
                ToolCall(id="a", name="read_file", arguments={"path": "a.txt"}),
                ToolCall(id="b", name="read_file", arguments={"path": "b.txt"}),
            ],
        ),
        LLMMessage(role="tool", content="A", tool_call_id="a", name="read_file"),
        LLMMessage(role="tool", content="B", tool_call_id="b", name="read_file"),
    ]


def test_anthropic_merges_tool_results():
    """Test consecutive tool results merge into one user turn."""
    llm = AnthropicLLM(api_key="test")

    converted = llm._convert_messages(tool_turn())

    assert [m["role"] for m in converted] == ["user", "assistant", "user"]
    assert converted[1]["content"][0] == {"type": "text", "text": "Reading."}
    assert converted[1]["content"][1]["type"] == "tool_use"
    assert converted[2]["content"] == [
        {"type": "tool_result", "tool_use_id": "a", "content": "A"},
        {"type": "tool_result", "tool_use_id": "b", "content": "B"},
    ]


def test_anthropic_inlines_images(tmp_path):
    """Test images are inlined as base64 blocks."""
    image = tmp_path / "cat.png"
    image.write_bytes(b"\x89PNG")
    llm = AnthropicLLM(api_key="test")

    content = llm._convert_content([
        TextBlock("What is this?"),
        MediaBlock(media_type="image", path=str(image), mime_type="image/png", filename="cat.png"),
        MediaBlock(media_type="file", path=str(tmp_path / "gone.pdf"), mime_type="application/pdf"),
    ])

    assert content[1]["type"] == "image"
    assert content[1]["source"]["media_type"] == "image/png"
    assert content[2] == {"type": "text", "text": "[Attached file: gone.pdf]"}


@pytest.mark.asyncio
async def test_anthropic_generate_parses_tool_calls():
    """Test Anthropic tool_use blocks become tool calls."""
    llm = AnthropicLLM(api_key="test")
    llm.client.messages.create = AsyncMock(return_value=SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="Let me check."),
            SimpleNamespace(type="tool_use", id="toolu_1", name="read_file", input={"path": "a.txt"}),
        ],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        model="claude-test",
        stop_reason="tool_use",
    ))

    response = await llm.generate(
        tool_turn()[:2],
        tools=[ToolDefinition(name="read_file", description="Read", parameters={"type": "object"})],
    )

    assert response.content == "Let me check."
    assert response.tool_calls == [ToolCall(id="toolu_1", name="read_file", arguments={"path": "a.txt"})]
    kwargs = llm.client.messages.create.call_args.kwargs
    assert kwargs["system"] == "Be brief."
    assert kwargs["tools"][0]["input_schema"] == {"type": "object"}


@pytest.mark.asyncio
async def test_anthropic_wraps_api_errors():
    """Test Anthropic API errors become ProviderError."""
    llm = AnthropicLLM(api_key="test")
    llm.client.messages.create = AsyncMock(
        side_effect=anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com"))
    )

    with pytest.raises(ProviderError):
        await llm.generate([LLMMessage(role="user", content="hi")])


def test_openai_converts_tool_turn():
    """Test converting a tool turn to OpenAI messages."""
    llm = OpenAILLM(api_key="test")

    converted = llm._convert_messages(tool_turn())

    assert [m["role"] for m in converted] == ["system", "user", "assistant", "tool", "tool"]
    assert converted[2]["tool_calls"][0]["function"] == {"name": "read_file", "arguments": '{"path": "a.txt"}'}
    assert converted[3] == {"role": "tool", "tool_call_id": "a", "content": "A"}


@pytest.mark.asyncio
async def test_openai_generate_parses_tool_calls():
    """Test OpenAI tool calls are parsed."""
    llm = OpenAILLM(api_key="test")
    llm.client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
        choices=[SimpleNamespace(
            message=SimpleNamespace(
                content=None,
                tool_calls=[SimpleNamespace(
                    id="call_1",
                    function=SimpleNamespace(name="read_file", arguments='{"path": "a.txt"}'),
                )],
            ),
            finish_reason="tool_calls",
        )],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
        model="gpt-test",
    ))

    response = await llm.generate([LLMMessage(role="user", content="hi")], system_prompt="Be brief.")

    assert response.content == ""
    assert response.tool_calls == [ToolCall(id="call_1", name="read_file", arguments={"path": "a.txt"})]
    sent = llm.client.chat.completions.create.call_args.kwargs["messages"]
    assert sent[0] == {"role": "system", "content": "Be brief."}


@pytest.mark.asyncio
async def test_openai_wraps_api_errors():
    """Test OpenAI API errors become ProviderError."""
    llm = OpenAILLM(api_key="test")
    llm.client.chat.completions.create = AsyncMock(
        side_effect=openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
    )

    with pytest.raises(ProviderError):
        await llm.generate([LLMMessage(role="user", content="hi")])


def test_create_llm_routes_providers():
    """Test providers map to their LLM classes."""
    assert isinstance(create_llm(LLMConfig(provider="anthropic", api_key="k")), AnthropicLLM)

    router = create_llm(LLMConfig(provider="openrouter", model="anthropic/claude-sonnet-4", api_key="k"))
    assert isinstance(router, OpenAILLM)
    assert router.base_url == "https://openrouter.ai/api/v1"


def test_create_llm_unknown_provider():
    """Test an unknown provider is rejected."""
    config = LLMConfig.model_construct(provider="mystery", model="m", api_key="k", base_url=None, max_tokens=1, temperature=0.0)

    with pytest.raises(ConfigurationError):
        create_llm(config)


def test_create_llm_requires_api_key():
    """Test a missing API key is rejected."""
    with pytest.raises(ConfigurationError, match="No API key"):
        create_llm(LLMConfig(provider="openai", api_key=""))
