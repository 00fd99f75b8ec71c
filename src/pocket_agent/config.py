"""
Configuration management for Pocket-Agent

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from .agent.compaction import CompactionPolicy

Provider = Literal["anthropic", "openai", "openrouter"]


class LLMConfig(BaseSettings):
    """Configuration for a single LLM provider."""

    model_config = SettingsConfigDict(extra="ignore")

    provider: Provider = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    base_url: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "Pocket-Agent"
    log_level: str = "INFO"

    # LLM Providers (API Keys)
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")

    # Default model settings
    default_provider: Provider = "anthropic"
    default_model: str = Field(default="", description="Override the provider's default model")
    max_tokens: int = 4096
    temperature: float = 0.7

    # Agent loop
    max_iterations: int = Field(default=50, description="Max model round trips per inbound message")
    history_window: int = Field(default=50, description="History messages sent to the model per request")
    system_prompt: str | None = Field(default=None, description="Replace the built-in identity prompt")

    # Compaction
    enable_compaction: bool = True
    compaction_message_threshold: int = Field(default=40, description="Compact above this many messages")
    compaction_token_threshold: int = Field(default=50_000, description="Compact above this many estimated tokens")
    compaction_keep_recent: int = Field(default=15, description="Messages always kept verbatim")
    chars_per_token: int = Field(default=4, description="Characters per token for size estimates")

    # Storage
    workspace_dir: Path = Field(
        default=Path.home() / ".pocket-agent" / "workspace",
        description="Directory the file tools are confined to",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/sessions.db",
        description="Session database connection URL"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper() if v else "INFO"

    @field_validator("max_iterations", "compaction_keep_recent", "chars_per_token")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    def get_llm_config(self, provider: str | None = None) -> LLMConfig:
        """Get LLM configuration for a provider."""
        provider = provider or self.default_provider

        api_key_map = {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "openrouter": self.openrouter_api_key,
        }

        model_map = {
            "anthropic": "claude-sonnet-4-20250514",
            "openai": "gpt-4o",
            "openrouter": "anthropic/claude-sonnet-4",
        }

        base_url_map = {
            "anthropic": None,
            "openai": None,
            "openrouter": "https://openrouter.ai/api/v1",
        }

        model = model_map.get(provider, "")
        if self.default_model and provider == self.default_provider:
            model = self.default_model

        return LLMConfig(
            provider=provider,  # type: ignore
            model=model,
            api_key=api_key_map.get(provider, ""),
            base_url=base_url_map.get(provider),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

    def get_compaction_policy(self) -> "CompactionPolicy":
        """Build the compaction policy from the compaction_* settings."""
        from .agent.compaction import CompactionPolicy

        return CompactionPolicy(
            message_threshold=self.compaction_message_threshold,
            token_threshold=self.compaction_token_threshold,
            keep_recent=self.compaction_keep_recent,
            chars_per_token=self.chars_per_token,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
