"""Agent configuration with environment variable loading.

Pydantic-based configuration for the text-generation provider.
Supports OpenAI and OpenAI-compatible APIs via custom base URL.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.agent.prompts import SYSTEM_PROMPT
from src.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()


class AgentConfig(BaseModel):
    """Configuration for the streaming chat provider.

    Immutable once built: the endpoint reads a fresh instance per request.

    Attributes:
        api_key: API key for model access.
        base_url: API base URL (None for OpenAI default).
        model_name: Model identifier to use.
        temperature: Sampling temperature (0.0 = deterministic, 2.0 = creative).
        max_tokens: Maximum tokens in generated response.
        request_timeout: Wall-clock limit in seconds for a whole request.
        system_prompt: Fixed instruction prepended ahead of the conversation.
    """

    model_config = ConfigDict(frozen=True, validate_default=True)

    api_key: str = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY", ""),
        description="API key for LLM provider",
    )
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("LLM_BASE_URL") or None,
        description="API base URL (None for OpenAI default)",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4-turbo"),
        description="Model to use",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for response generation",
    )
    max_tokens: int = Field(
        default=1000,
        ge=1,
        le=128000,
        description="Maximum tokens in generated response",
    )
    request_timeout: float = Field(
        default_factory=lambda: os.getenv("CHAT_REQUEST_TIMEOUT", "30"),
        gt=0,
        description="Maximum duration of a request in seconds, stream included",
    )
    system_prompt: str = Field(
        default=SYSTEM_PROMPT,
        min_length=1,
        description="System-level instruction sent ahead of every conversation",
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError(
                "API key required. Set LLM_API_KEY or OPENAI_API_KEY in .env"
            )
        return v.strip()


def get_agent_config() -> AgentConfig:
    """Create agent configuration from environment.

    Returns:
        Configured AgentConfig instance.

    Raises:
        ValidationError: If no API key is set.
    """
    return AgentConfig()


def load_agent_config() -> AgentConfig:
    """Load configuration for a request, failing fast on missing settings.

    Raises:
        ConfigurationError: If the provider credential is absent or any
            setting is invalid.
    """
    try:
        return get_agent_config()
    except ValidationError as e:
        fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        if "api_key" in fields:
            raise ConfigurationError("OpenAI API key is not configured.") from e
        raise ConfigurationError(f"Invalid chat configuration: {', '.join(sorted(fields))}") from e
