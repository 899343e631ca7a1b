"""
Scene Engine Core Module
Pure scene pipeline logic: phases, length budgets, metadata, validation, streaming.
"""

from .errors import (
    ConfigurationError,
    ProviderError,
    SceneEngineError,
    SceneValidationError,
)
from .evals import (
    EvalCriterion,
    EvalReport,
    EvalResult,
    StoryEvalReport,
    evaluate_scene,
    evaluate_story,
)
from .length_budget import LengthBudget, budget, length_guidance, preset_envelope
from .metadata import extract_scene, heuristic_summary, strip_metadata_blocks, summarize
from .phases import NarrativePhase, PhaseInfo, classify_phase
from .streaming import FilterState, MetadataStreamFilter, SceneStreamTranscoder
from .validation import ValidationReport, count_words, validate_scene

__all__ = [
    "SceneEngineError",
    "ConfigurationError",
    "ProviderError",
    "SceneValidationError",
    "NarrativePhase",
    "PhaseInfo",
    "classify_phase",
    "LengthBudget",
    "budget",
    "length_guidance",
    "preset_envelope",
    "extract_scene",
    "heuristic_summary",
    "strip_metadata_blocks",
    "summarize",
    "ValidationReport",
    "count_words",
    "validate_scene",
    "FilterState",
    "MetadataStreamFilter",
    "SceneStreamTranscoder",
    "EvalCriterion",
    "EvalResult",
    "EvalReport",
    "StoryEvalReport",
    "evaluate_scene",
    "evaluate_story",
]
