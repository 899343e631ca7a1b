"""
Narrative phase classification.

A scene's position in the story maps to one of five coarse arc phases. The
phase picks the objectives rendered into the scene prompt and the base
word-count window used by the length budget.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class NarrativePhase(str, Enum):
    """Coarse position in the romance arc."""
    OPENING = "Opening"
    EARLY_DEVELOPMENT = "Early Development"
    RISING_TENSION = "Rising Tension"
    PRE_CLIMAX = "Pre-Climax"
    RESOLUTION = "Resolution"


PHASE_OBJECTIVES: Dict[NarrativePhase, Tuple[str, str, str]] = {
    NarrativePhase.OPENING: (
        "Introduce protagonist organically (no dossier)",
        "Seed initial unmet desire or vulnerability",
        "Plant first faint spark OR obstacle toward romance",
    ),
    NarrativePhase.EARLY_DEVELOPMENT: (
        "Escalate chemistry or friction from prior beat",
        "Reveal subtle personal flaw / conflicting motivation",
        "Introduce minor obstacle foreshadowing deeper conflict",
    ),
    NarrativePhase.RISING_TENSION: (
        "Sharpen emotional stakes and mutual awareness",
        "Layer complexity: misreads, partial vulnerability",
        "Advance unresolved thread without resolving it",
    ),
    NarrativePhase.PRE_CLIMAX: (
        "Tighten pressure on core emotional dilemma",
        "Force protagonist to confront avoided truth",
        "Amplify urgency while holding final payoff",
    ),
    NarrativePhase.RESOLUTION: (
        "Deliver earned emotional payoff",
        "Resolve primary tension authentically",
        "Leave resonant final beat (HEA / HFN tone)",
    ),
}


@dataclass(frozen=True)
class PhaseInfo:
    """Phase plus its ordered objectives."""
    phase: NarrativePhase
    objectives: Tuple[str, ...]


def classify_phase(scene_number: int, estimated_total: int) -> PhaseInfo:
    """
    Map a scene position to its narrative phase.

    Rules, evaluated in order: scene 1 opens; otherwise the ratio
    scene/total decides early development (<= 0.3) and rising tension
    (<= 0.7); any later scene before the last is pre-climax and the last
    (or any overflow) resolves.
    """
    if scene_number < 1:
        raise ValueError(f"scene_number must be >= 1, got {scene_number}")
    if estimated_total < 1:
        raise ValueError(f"estimated_total must be >= 1, got {estimated_total}")

    if scene_number == 1:
        phase = NarrativePhase.OPENING
    else:
        ratio = scene_number / estimated_total
        if ratio <= 0.3:
            phase = NarrativePhase.EARLY_DEVELOPMENT
        elif ratio <= 0.7:
            phase = NarrativePhase.RISING_TENSION
        elif scene_number < estimated_total:
            phase = NarrativePhase.PRE_CLIMAX
        else:
            phase = NarrativePhase.RESOLUTION

    return PhaseInfo(phase=phase, objectives=PHASE_OBJECTIVES[phase])
