"""
Scene Engine Configuration Module
LLM provider configuration and pipeline settings.
"""

from .llm_providers import (
    ClaudeConfig,
    GeminiConfig,
    GenerationSettings,
    GrokConfig,
    # Enums
    LLMProvider,
    OpenAIConfig,
    OpenRouterConfig,
    # Configuration Models
    ProviderConfig,
    SceneEngineConfiguration,
    StorageSettings,
    create_default_config_from_env,
)

__all__ = [
    "LLMProvider",
    "ProviderConfig",
    "OpenAIConfig",
    "OpenRouterConfig",
    "GeminiConfig",
    "ClaudeConfig",
    "GrokConfig",
    "GenerationSettings",
    "StorageSettings",
    "SceneEngineConfiguration",
    "create_default_config_from_env",
]
