"""
LLM factory: turn an LLMConfig into a provider instance.
"""

from ..config import LLMConfig, Settings
from ..errors import ConfigurationError
from .anthropic import AnthropicLLM
from .base import BaseLLM
from .openai import OpenAILLM

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# provider -> (class, base URL used when the config has none)
PROVIDERS: dict[str, tuple[type[BaseLLM], str | None]] = {
    "anthropic": (AnthropicLLM, None),
    "openai": (OpenAILLM, None),
    "openrouter": (OpenAILLM, OPENROUTER_BASE_URL),
}


def create_llm(config: LLMConfig | None = None, settings: Settings | None = None) -> BaseLLM:
    """Create an LLM instance for the configured provider.

    OpenRouter speaks the OpenAI API, so it is served by OpenAILLM with a
    different endpoint.

    Raises:
        ConfigurationError: for an unknown provider or a missing API key.
    """
    if config is None:
        if settings is None:
            from ..config import get_settings
            settings = get_settings()
        config = settings.get_llm_config()

    if config.provider not in PROVIDERS:
        raise ConfigurationError(f"Unknown LLM provider: {config.provider}")
    if not config.api_key:
        raise ConfigurationError(f"No API key configured for provider {config.provider}")

    llm_class, default_base_url = PROVIDERS[config.provider]
    return llm_class(
        api_key=config.api_key,
        model=config.model,
        base_url=config.base_url or default_base_url,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
    )
