"""
Pydantic data models for the Scene Engine.
Preferences, per-request context, scene metadata, cached scenes and stream events.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enums
# ============================================================================

class Pacing(str, Enum):
    """How quickly romantic tension escalates across scenes."""
    GRADUAL = "gradual"
    BRISK = "brisk"


class SceneLengthPreset(str, Enum):
    """Named scene-length presets; an explicit word count is also accepted."""
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class PovGender(str, Enum):
    """Gender identity of the point-of-view character."""
    MALE = "male"
    FEMALE = "female"
    NON_BINARY = "non-binary"
    GENDERQUEER = "genderqueer"
    TRANS_MAN = "trans-man"
    TRANS_WOMAN = "trans-woman"
    AGENDER = "agender"
    GENDERFLUID = "genderfluid"


class StreamEventType(str, Enum):
    """Event kinds emitted by the streaming scene endpoint."""
    METADATA = "metadata"
    CONTENT = "content"
    DONE = "done"
    ERROR = "error"


# ============================================================================
# Input Models
# ============================================================================

def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        cleaned = value.strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


class StoryPreferences(BaseModel):
    """
    Reader preferences for one story. Immutable input to every prompt builder.

    Genres and tropes behave as sets but keep their first-seen order so that
    prompts built from the same preferences are byte-identical.
    """
    model_config = ConfigDict(frozen=True)

    genres: List[str] = Field(default_factory=list, description="Genre blend, e.g. contemporary, fantasy")
    tropes: List[str] = Field(default_factory=list, description="Romance tropes to weave in")
    heat_level: int = Field(default=2, ge=1, le=5, description="Content intensity 1 (sweet) to 5 (explicit)")
    pacing: Pacing = Field(default=Pacing.GRADUAL, description="Escalation speed")
    scene_length: Optional[Union[SceneLengthPreset, int]] = Field(
        default=None,
        description="Preset length or explicit target word count; absent means medium",
    )
    pov_character_gender: Optional[PovGender] = None
    protagonist_traits: List[str] = Field(default_factory=list)
    setting_preferences: List[str] = Field(default_factory=list)

    @field_validator("genres", "tropes", "protagonist_traits", "setting_preferences")
    @classmethod
    def _unique_in_order(cls, value: List[str]) -> List[str]:
        return _dedupe(value)

    @field_validator("pacing", mode="before")
    @classmethod
    def _legacy_pacing(cls, value: Any) -> Any:
        legacy = {"slow-burn": Pacing.GRADUAL.value, "fast-paced": Pacing.BRISK.value}
        if isinstance(value, str):
            return legacy.get(value, value)
        return value

    @field_validator("scene_length")
    @classmethod
    def _positive_word_count(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool) and value <= 0:
            raise ValueError("scene_length word count must be positive")
        return value


class PriorChoice(BaseModel):
    """The option a reader picked at the most recent decision point."""
    text: str
    tone: str = ""


class DecisionPoint(BaseModel):
    """A scene position where the reader is offered branches."""
    scene_number: int = Field(..., ge=1)
    prompt_text: str
    options: List[PriorChoice] = Field(default_factory=list)


class SceneRequestContext(BaseModel):
    """Everything needed to produce one scene. Built per request, never persisted."""
    story_id: str = Field(..., min_length=1)
    template_id: str = ""
    template_title: str = Field(..., min_length=1)
    story_title: Optional[str] = None
    scene_number: int = Field(..., ge=1, description="1-based scene position")
    estimated_scenes: int = Field(..., ge=1, description="Expected total scenes in the story")
    preferences: StoryPreferences
    prior_choice: Optional[PriorChoice] = Field(
        default=None,
        description="Overrides the last-choice lookup when provided",
    )
    decision_point: Optional[DecisionPoint] = Field(
        default=None,
        description="Overrides the decision-point lookup when provided",
    )


# ============================================================================
# Scene Models
# ============================================================================

class SceneMetadata(BaseModel):
    """
    Continuity record the model emits in its <SCENE_META> footer.
    Every field is optional; unmatched fields are simply absent.
    """
    emotional_beat: Optional[str] = None
    tension_threads: Optional[str] = Field(default=None, description="Comma-joined unresolved tensions")
    relationship_progress: Optional[int] = Field(default=None, ge=-5, le=5)
    key_moment: Optional[str] = None
    key_characters: Optional[str] = Field(default=None, description="Comma-joined character names")
    pov_character: Optional[str] = None
    setting_location: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def character_names(self) -> List[str]:
        if not self.key_characters:
            return []
        return [name.strip() for name in self.key_characters.split(",") if name.strip()]


class ParsedScene(BaseModel):
    """Model output split into narrative body, metadata and a short summary."""
    body: str
    metadata: Optional[SceneMetadata] = None
    summary: str = ""


class CachedScene(BaseModel):
    """A generated scene as stored. Written at most once per (story, scene)."""
    model_config = ConfigDict(frozen=True)

    story_id: str
    scene_number: int = Field(..., ge=1)
    body: str
    metadata: Optional[SceneMetadata] = None
    summary: Optional[str] = None
    word_count: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SceneResult(BaseModel):
    """Returned by the batch path."""
    body: str
    cached: bool


class StoryStats(BaseModel):
    """Aggregate numbers for a story's cached scenes."""
    story_id: str
    scene_count: int = 0
    total_words: int = 0


class MetadataProgressionEntry(BaseModel):
    """One scene's continuity record in story order."""
    scene_number: int
    metadata: SceneMetadata


# ============================================================================
# Stream Event Models
# ============================================================================

class StreamEvent(BaseModel):
    """One frame of the scene stream."""
    type: StreamEventType
    content: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def metadata(cls, data: Dict[str, Any]) -> "StreamEvent":
        return cls(type=StreamEventType.METADATA, data=data)

    @classmethod
    def text(cls, content: str) -> "StreamEvent":
        return cls(type=StreamEventType.CONTENT, content=content)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(type=StreamEventType.DONE)

    @classmethod
    def failure(cls, message: str) -> "StreamEvent":
        return cls(type=StreamEventType.ERROR, error=message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type.value}
        if self.type == StreamEventType.METADATA and self.data is not None:
            payload.update(self.data)
        if self.content is not None:
            payload["content"] = self.content
        if self.error is not None:
            payload["error"] = self.error
        return payload

    def to_sse(self) -> str:
        """Server-Sent Events frame."""
        return f"data: {json.dumps(self.to_payload())}\n\n"
