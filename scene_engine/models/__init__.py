"""
Scene Engine Data Models Module
Pydantic schemas for scene generation, caching and streaming.
"""

from .schemas import (
    CachedScene,
    DecisionPoint,
    MetadataProgressionEntry,
    # Enums
    Pacing,
    # Scene Models
    ParsedScene,
    PovGender,
    PriorChoice,
    SceneLengthPreset,
    SceneMetadata,
    # Input Models
    SceneRequestContext,
    SceneResult,
    StoryPreferences,
    StoryStats,
    # Event Models
    StreamEvent,
    StreamEventType,
)

__all__ = [
    "Pacing",
    "SceneLengthPreset",
    "PovGender",
    "StreamEventType",
    "StoryPreferences",
    "PriorChoice",
    "DecisionPoint",
    "SceneRequestContext",
    "SceneMetadata",
    "ParsedScene",
    "CachedScene",
    "SceneResult",
    "MetadataProgressionEntry",
    "StoryStats",
    "StreamEvent",
]
