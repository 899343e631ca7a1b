"""
LLM Provider Configuration for the Scene Engine
Supports OpenAI, OpenRouter, Google Gemini, Anthropic Claude and xAI Grok.
"""

import os
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr, ValidationError, model_validator

from ..core.errors import ConfigurationError


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GEMINI = "gemini"
    CLAUDE = "claude"
    GROK = "grok"


# ============================================================================
# Provider Configuration Models
# ============================================================================

class ProviderConfig(BaseModel):
    """Base configuration for an LLM provider."""
    provider: LLMProvider
    api_key: SecretStr
    base_url: Optional[str] = None
    default_model: str
    enabled: bool = True


class OpenAIConfig(ProviderConfig):
    """OpenAI-specific configuration."""
    provider: LLMProvider = LLMProvider.OPENAI
    base_url: str = "https://api.openai.com/v1"
    default_model: str = "gpt-4o-mini"


class OpenRouterConfig(ProviderConfig):
    """OpenRouter-specific configuration."""
    provider: LLMProvider = LLMProvider.OPENROUTER
    base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "anthropic/claude-3.5-sonnet"


class GeminiConfig(ProviderConfig):
    """Google Gemini-specific configuration."""
    provider: LLMProvider = LLMProvider.GEMINI
    default_model: str = "gemini-2.5-flash-lite"


class ClaudeConfig(ProviderConfig):
    """Anthropic Claude-specific configuration."""
    provider: LLMProvider = LLMProvider.CLAUDE
    default_model: str = "claude-3-5-sonnet-20241022"


class GrokConfig(ProviderConfig):
    """xAI Grok configuration (OpenAI-compatible API)."""
    provider: LLMProvider = LLMProvider.GROK
    base_url: str = "https://api.x.ai/v1"
    default_model: str = "grok-4-fast-reasoning"


# ============================================================================
# Generation and Storage Settings
# ============================================================================

class GenerationSettings(BaseModel):
    """Knobs for a single scene generation call."""
    temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=256, le=16384)
    timeout_seconds: float = Field(default=120, gt=0, le=600)
    recent_scene_limit: int = Field(default=2, ge=0, le=10)
    snapshot_char_budget: int = Field(default=1200, ge=100)
    # Must stay longer than the opening tag so it can never straddle a flush
    stream_lookback: int = Field(default=200, ge=16)
    finish_on_disconnect: bool = True


class StorageSettings(BaseModel):
    """Where scenes are cached and how long a generation may hold its key."""
    redis_url: Optional[str] = None
    key_prefix: str = "scene-engine"
    lock_timeout_seconds: float = Field(default=300, gt=0)
    lock_wait_seconds: float = Field(default=330, gt=0)


# ============================================================================
# Master Configuration
# ============================================================================

class SceneEngineConfiguration(BaseModel):
    """Master configuration: providers, the active provider and pipeline settings."""

    openai: Optional[OpenAIConfig] = None
    openrouter: Optional[OpenRouterConfig] = None
    gemini: Optional[GeminiConfig] = None
    claude: Optional[ClaudeConfig] = None
    grok: Optional[GrokConfig] = None

    active_provider: LLMProvider = LLMProvider.OPENAI
    model: Optional[str] = None

    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @model_validator(mode="after")
    def check_lock_outlives_generation(self) -> "SceneEngineConfiguration":
        # A lock that expires mid-generation lets a second writer call the model
        if self.storage.lock_timeout_seconds <= self.generation.timeout_seconds:
            raise ValueError(
                f"lock_timeout_seconds ({self.storage.lock_timeout_seconds}) must exceed "
                f"timeout_seconds ({self.generation.timeout_seconds})"
            )
        return self

    def get_provider_config(self, provider: LLMProvider) -> Optional[ProviderConfig]:
        """Get configuration for a specific provider."""
        provider_map = {
            LLMProvider.OPENAI: self.openai,
            LLMProvider.OPENROUTER: self.openrouter,
            LLMProvider.GEMINI: self.gemini,
            LLMProvider.CLAUDE: self.claude,
            LLMProvider.GROK: self.grok,
        }
        return provider_map.get(provider)

    def resolve_model(self) -> str:
        """Model name for the active provider, falling back to the provider default."""
        if self.model:
            return self.model
        provider_config = self.get_provider_config(self.active_provider)
        if provider_config is None:
            return ""
        return provider_config.default_model

    def validate_active_provider(self) -> List[str]:
        """Validate that the active provider is configured and enabled."""
        errors = []
        provider_config = self.get_provider_config(self.active_provider)
        if not provider_config:
            errors.append(f"Provider {self.active_provider.value} is not configured")
        elif not provider_config.enabled:
            errors.append(f"Provider {self.active_provider.value} is disabled")
        return errors


def _env_model(name: str) -> Dict[str, str]:
    value = os.getenv(name)
    return {"default_model": value} if value else {}


def create_default_config_from_env() -> SceneEngineConfiguration:
    """Create configuration from environment variables."""
    config = SceneEngineConfiguration()

    provider_name = os.getenv("AI_PROVIDER", LLMProvider.OPENAI.value).lower()
    # "anthropic" and "google" are the names the web tier uses
    aliases = {"anthropic": LLMProvider.CLAUDE.value, "google": LLMProvider.GEMINI.value}
    try:
        config.active_provider = LLMProvider(aliases.get(provider_name, provider_name))
    except ValueError as e:
        raise ConfigurationError(f"Unknown AI_PROVIDER: {provider_name}") from e

    if os.getenv("OPENAI_API_KEY"):
        config.openai = OpenAIConfig(
            api_key=SecretStr(os.getenv("OPENAI_API_KEY")),
            **_env_model("OPENAI_MODEL"),
        )

    if os.getenv("OPENROUTER_API_KEY"):
        config.openrouter = OpenRouterConfig(
            api_key=SecretStr(os.getenv("OPENROUTER_API_KEY")),
            **_env_model("OPENROUTER_MODEL"),
        )

    gemini_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_GENERATIVE_AI_API_KEY")
    if gemini_key:
        config.gemini = GeminiConfig(
            api_key=SecretStr(gemini_key),
            **_env_model("GEMINI_MODEL"),
        )

    if os.getenv("ANTHROPIC_API_KEY"):
        config.claude = ClaudeConfig(
            api_key=SecretStr(os.getenv("ANTHROPIC_API_KEY")),
            **_env_model("ANTHROPIC_MODEL"),
        )

    if os.getenv("GROK_API_KEY"):
        config.grok = GrokConfig(
            api_key=SecretStr(os.getenv("GROK_API_KEY")),
            **_env_model("GROK_MODEL"),
        )

    generation_overrides: Dict[str, Any] = {}
    if os.getenv("SCENE_TEMPERATURE"):
        generation_overrides["temperature"] = float(os.getenv("SCENE_TEMPERATURE"))
    if os.getenv("SCENE_MAX_TOKENS"):
        generation_overrides["max_tokens"] = int(os.getenv("SCENE_MAX_TOKENS"))
    if os.getenv("SCENE_TIMEOUT_SECONDS"):
        generation_overrides["timeout_seconds"] = float(os.getenv("SCENE_TIMEOUT_SECONDS"))
    if os.getenv("SCENE_FINISH_ON_DISCONNECT"):
        generation_overrides["finish_on_disconnect"] = (
            os.getenv("SCENE_FINISH_ON_DISCONNECT", "true").lower() in ("1", "true", "yes")
        )
    config.generation = GenerationSettings(**generation_overrides)

    storage_overrides: Dict[str, Any] = {"redis_url": os.getenv("REDIS_URL")}
    if os.getenv("SCENE_LOCK_TIMEOUT_SECONDS"):
        storage_overrides["lock_timeout_seconds"] = float(os.getenv("SCENE_LOCK_TIMEOUT_SECONDS"))
    config.storage = StorageSettings(**storage_overrides)

    # Field assignment above skips model validators; rebuild to run them
    try:
        return SceneEngineConfiguration.model_validate(dict(config))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid scene engine configuration: {e}") from e
