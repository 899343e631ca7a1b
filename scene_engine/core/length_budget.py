"""
Word-count budgeting for scenes.

Explicit word counts get a fixed +/-15% band. Presets scale a phase-specific
base window. Both bounds are floor-rounded.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from ..models import SceneLengthPreset
from .phases import NarrativePhase

LengthPreference = Optional[Union[SceneLengthPreset, str, int]]

# Percentages keep the floor() exact; 0.85 and 1.15 are not representable floats
EXPLICIT_TOLERANCE_PCT = 15

PRESET_MULTIPLIERS_PCT: Dict[SceneLengthPreset, int] = {
    SceneLengthPreset.SHORT: 65,
    SceneLengthPreset.MEDIUM: 100,
    SceneLengthPreset.LONG: 140,
}

DEFAULT_BASE_WINDOW: Tuple[int, int] = (800, 1050)

PHASE_BASE_WINDOWS: Dict[NarrativePhase, Tuple[int, int]] = {
    NarrativePhase.OPENING: (800, 900),
    NarrativePhase.PRE_CLIMAX: (900, 1100),
    NarrativePhase.RESOLUTION: (700, 950),
}

PRESET_DESCRIPTIONS: Dict[SceneLengthPreset, str] = {
    SceneLengthPreset.SHORT: "concise, punchy",
    SceneLengthPreset.MEDIUM: "balanced, immersive",
    SceneLengthPreset.LONG: "detailed, expansive",
}


@dataclass(frozen=True)
class LengthBudget:
    """Preferred word window for one scene."""
    min_words: int
    max_words: int
    target_phrase: str

    def contains(self, word_count: int) -> bool:
        return self.min_words <= word_count <= self.max_words


def _is_explicit(preference: LengthPreference) -> bool:
    return isinstance(preference, int) and not isinstance(preference, bool)


def _preset(preference: LengthPreference) -> SceneLengthPreset:
    if preference is None:
        return SceneLengthPreset.MEDIUM
    return SceneLengthPreset(preference)


def _phrase(min_words: int, max_words: int) -> str:
    return f"Aim {min_words}–{max_words} words"


def budget(
    length_preference: LengthPreference,
    phase: Union[NarrativePhase, str],
    scene_number: int,
) -> LengthBudget:
    """Compute the preferred word window for a scene."""
    if _is_explicit(length_preference):
        low = length_preference * (100 - EXPLICIT_TOLERANCE_PCT) // 100
        high = length_preference * (100 + EXPLICIT_TOLERANCE_PCT) // 100
        return LengthBudget(low, high, _phrase(low, high))

    base_low, base_high = PHASE_BASE_WINDOWS.get(NarrativePhase(phase), DEFAULT_BASE_WINDOW)
    multiplier = PRESET_MULTIPLIERS_PCT[_preset(length_preference)]
    low = base_low * multiplier // 100
    high = base_high * multiplier // 100
    return LengthBudget(low, high, _phrase(low, high))


def preset_envelope(length_preference: LengthPreference) -> LengthBudget:
    """Widest window any phase can ask for under this preference."""
    if _is_explicit(length_preference):
        return budget(length_preference, NarrativePhase.RISING_TENSION, 0)
    windows = [budget(length_preference, phase, 0) for phase in NarrativePhase]
    low = min(window.min_words for window in windows)
    high = max(window.max_words for window in windows)
    return LengthBudget(low, high, _phrase(low, high))


def length_guidance(length_preference: LengthPreference) -> str:
    """Sentence for the system prompt; scene prompts carry the phase-exact target."""
    window = preset_envelope(length_preference)
    if _is_explicit(length_preference):
        return (
            f"Each scene must be {window.min_words}-{window.max_words} words. "
            "Count carefully and stop when you reach this limit."
        )

    return (
        f"Each scene must be {window.min_words}-{window.max_words} words "
        f"({PRESET_DESCRIPTIONS[_preset(length_preference)]} pacing). "
        "Count carefully and stop when you reach this limit. "
        "The scene instructions narrow this window for the current story phase."
    )
