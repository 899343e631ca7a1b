"""
Scene Prompt - per-scene user message
Phase objectives, continuity, prior choice, decision setup and the metadata footer.
"""

import re
from typing import List, Optional, Sequence

from ..core.length_budget import budget
from ..core.phases import classify_phase
from ..models import CachedScene, DecisionPoint, PriorChoice, SceneRequestContext

DEFAULT_SNAPSHOT_CHAR_BUDGET = 1200
DEFAULT_RECENT_SCENE_LIMIT = 2

SCENE_META_INSTRUCTIONS = """After the narrative, include a metadata section:
<SCENE_META>
emotional_beat: [brief description, e.g., tentative trust building]
tension_threads: [unresolved tensions, comma-separated, e.g., secret identity, past trauma]
relationship_progress: [numeric -5 to +5, where negative is regression, positive is advancement]
key_moment: [single defining moment of this scene in 5-8 words]
key_characters: [comma-separated list of characters who appear in this scene]
pov_character: [name of the POV character for this scene]
setting_location: [where this scene takes place, e.g., coffee shop, protagonist's apartment]
</SCENE_META>"""

SCENE_PROMPT_TEMPLATE = """STORY: "{title}"
SCENE: {scene_number} / ~{estimated_scenes}
PHASE: {phase}

OBJECTIVES:
{objectives}

{continuity}{snapshots}{prior_choice}{decision_setup}LENGTH TARGET: {target_phrase}. Count words as you write and stop when you reach the upper limit.

Write the scene narrative now (no meta, no lists, no outlines).

{meta_instructions}"""


def snapshot(body: str, char_budget: int = DEFAULT_SNAPSHOT_CHAR_BUDGET) -> str:
    """Collapse whitespace and cut to the character budget."""
    collapsed = re.sub(r"\s+", " ", body).strip()
    if len(collapsed) <= char_budget:
        return collapsed
    return collapsed[:char_budget].rstrip() + "…"


def _continuity_block(recent_scenes: Sequence[CachedScene]) -> str:
    characters: List[str] = []
    pov_characters: List[str] = []
    locations: List[str] = []

    for scene in recent_scenes:
        meta = scene.metadata
        if meta is None:
            continue
        for name in meta.character_names():
            if name not in characters:
                characters.append(name)
        if meta.pov_character:
            pov_characters.append(meta.pov_character)
        if meta.setting_location:
            locations.append(meta.setting_location)

    block = ""
    if characters:
        block += f"ESTABLISHED CHARACTERS: {', '.join(characters)}\n"
        block += (
            "These characters have already been introduced. Maintain their established traits, "
            "appearance, and mannerisms. Do NOT reintroduce them with full descriptions.\n\n"
        )
    if pov_characters:
        block += f"RECENT POV: {pov_characters[-1]}\n"
        block += (
            "Maintain consistent POV unless there's a deliberate perspective shift. "
            "Stay in one character's head per scene.\n\n"
        )
    if locations:
        block += f"RECENT SETTING: {locations[-1]}\n"
        block += (
            "If the scene continues in the same location, build on established details. "
            "If location changes, make the transition clear and logical.\n\n"
        )
    return block


def _snapshot_block(recent_scenes: Sequence[CachedScene], char_budget: int) -> str:
    if not recent_scenes:
        return ""

    block = "PREVIOUS SCENE CONTENT (for continuity):\n"
    block += (
        "Use these scenes to maintain consistency in character behavior, setting details, "
        "tone, and ongoing plot threads.\n\n"
    )
    for scene in recent_scenes:
        block += f"=== Scene {scene.scene_number} ===\n{snapshot(scene.body, char_budget)}\n\n"
    return block


def _prior_choice_block(choice: Optional[PriorChoice]) -> str:
    if choice is None:
        return ""
    tone = f" (tone: {choice.tone})" if choice.tone else ""
    return (
        f'PRIOR PLAYER CHOICE: "{choice.text}"{tone}.\n'
        "Integrate consequences implicitly via behavior, mood shift, or situational configuration. "
        "Do NOT restate the choice verbatim inside narration.\n\n"
    )


def _decision_block(decision_point: Optional[DecisionPoint], scene_number: int) -> str:
    if decision_point is None or decision_point.scene_number != scene_number:
        return ""
    return (
        f'UPCOMING DECISION SETUP: End BEFORE resolving: "{decision_point.prompt_text}".\n'
        "Build escalation toward this decision; end on poised tension (gesture, silence, sensory cue). "
        "Avoid a forced question if unnatural.\n\n"
    )


def build_scene_prompt(
    context: SceneRequestContext,
    recent_scenes: Sequence[CachedScene] = (),
    prior_choice: Optional[PriorChoice] = None,
    decision_point: Optional[DecisionPoint] = None,
    snapshot_char_budget: int = DEFAULT_SNAPSHOT_CHAR_BUDGET,
    recent_limit: int = DEFAULT_RECENT_SCENE_LIMIT,
) -> str:
    """
    Render the user message for one scene.

    ``prior_choice`` and ``decision_point`` fall back to the values carried on
    the context. Only the last ``recent_limit`` scenes are shown.
    """
    prior_choice = prior_choice or context.prior_choice
    decision_point = decision_point or context.decision_point

    phase_info = classify_phase(context.scene_number, context.estimated_scenes)
    window = budget(context.preferences.scene_length, phase_info.phase, context.scene_number)

    trailing = list(recent_scenes)[-recent_limit:] if recent_limit > 0 else []

    return SCENE_PROMPT_TEMPLATE.format(
        title=context.template_title,
        scene_number=context.scene_number,
        estimated_scenes=context.estimated_scenes,
        phase=phase_info.phase.value,
        objectives="\n".join(f"- {objective}" for objective in phase_info.objectives),
        continuity=_continuity_block(trailing),
        snapshots=_snapshot_block(trailing, snapshot_char_budget),
        prior_choice=_prior_choice_block(prior_choice),
        decision_setup=_decision_block(decision_point, context.scene_number),
        target_phrase=window.target_phrase,
        meta_instructions=SCENE_META_INSTRUCTIONS,
    )
