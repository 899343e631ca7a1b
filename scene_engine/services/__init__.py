"""
Scene Engine Services Module
Model clients, scene storage, keyed locks and the cache orchestrator.
"""

from .model_client import (
    ClaudeClient,
    GeminiClient,
    OpenAIClient,
    SceneModelClient,
    create_model_client,
)
from .scene_locks import InProcessSceneLocks, RedisSceneLocks, SceneLockManager
from .scene_orchestrator import GenerationPlan, SceneOrchestrator
from .scene_store import InMemorySceneStore, RedisSceneStore, SceneStore
from .story_repository import InMemoryStoryRepository, StoryRepository

__all__ = [
    "SceneModelClient",
    "OpenAIClient",
    "ClaudeClient",
    "GeminiClient",
    "create_model_client",
    "SceneStore",
    "InMemorySceneStore",
    "RedisSceneStore",
    "SceneLockManager",
    "InProcessSceneLocks",
    "RedisSceneLocks",
    "StoryRepository",
    "InMemoryStoryRepository",
    "SceneOrchestrator",
    "GenerationPlan",
]
