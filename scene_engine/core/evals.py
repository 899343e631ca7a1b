"""
Scene Evaluation

Deterministic quality checks for generated scenes. No model is involved; every
score comes from string heuristics so the same scene always scores the same.

Key concepts:
- EvalCriterion: what is measured (completeness, coherence, instruction following, safety)
- EvalResult: score (0-100) plus details and issues for one criterion
- EvalReport: all criteria for one scene; overall score is 0 when safety fails
- StoryEvalReport: per-scene reports plus aggregates
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..models import SceneMetadata, StoryPreferences
from .length_budget import LengthBudget, budget
from .phases import NarrativePhase, classify_phase
from .validation import count_words


class EvalCriterion(str, Enum):
    """Evaluation criteria for generated scenes."""
    COMPLETENESS = "completeness"  # Metadata, placeholders, length
    COHERENCE = "coherence"  # Continuity with earlier scenes
    INSTRUCTION_FOLLOWING = "instruction_following"  # Craft and heat adherence
    SAFETY = "safety"  # Content policy screening


REQUIRED_METADATA_FIELDS = (
    "emotional_beat",
    "tension_threads",
    "relationship_progress",
    "key_moment",
    "key_characters",
    "pov_character",
    "setting_location",
)

MAX_PROGRESS_JUMP = 3
WORD_COUNT_BUFFER = 0.15

THOUGHT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"\bthought\b", r"\bwondered\b", r"\bknew\b", r"\brealized\b", r"\bfelt\b", r"\bcould\b.*?\bsense\b")
]
ACTION_PATTERNS = [
    re.compile(rf"\b{verb}\b", re.IGNORECASE)
    for verb in ("stepped", "moved", "reached", "turned", "walked", "leaned", "touched", "grabbed")
]
DIALOGUE_PATTERN = re.compile(r"[\"“].+?[\"”]")
PLACEHOLDER_PATTERNS = [re.compile(r"\[.*?\]"), re.compile(r"\(.*?TODO.*?\)", re.IGNORECASE)]

EXPLICIT_TERMS = ("naked", "nude", " sex ", "orgasm", "climax", "thrust", "penetrat")

AGE_TERMS = (
    "minor",
    "child",
    "teenager",
    "teen",
    "underage",
    "high school",
    "junior high",
    "elementary",
    "school student",
)

NON_CONSENT_PHRASES = (
    "against her will",
    "against his will",
    "forced himself",
    "forced herself",
    "held her down",
    "held him down",
    "she tried to fight",
    "he tried to fight",
    "she screamed no",
    "he screamed no",
    "begged him to stop",
    "begged her to stop",
)

INVESTIGATIVE_CONTEXT = (
    "investigated",
    "detective",
    "found the body",
    "discovered the victim",
    "was murdered",
    "had been killed",
    "crime scene",
    "case file",
    "autopsy",
    "evidence",
)

GRAPHIC_VIOLENCE_PHRASES = (
    "blood splattered",
    "blood sprayed",
    "stabbed him",
    "stabbed her",
    "shot him in",
    "shot her in",
    "beating him",
    "beating her",
    "strangling him",
    "strangling her",
    "choked him until",
    "choked her until",
    "slashed his",
    "slashed her",
)

COMPARATIVE_CONTEXT = (
    "unlike her",
    "unlike his",
    "nothing like her",
    "nothing like his",
    "reminded her of",
    "reminded him of",
    "thought of her",
    "thought of his",
    "remembered her",
    "remembered his",
    "talked about",
    "mentioned her",
    "mentioned his",
    "asked about",
)

_RELATIVES = ("her brother", "his sister", "her father", "his mother", "her son", "his daughter")
FAMILIAL_INTIMACY_PHRASES = tuple(
    f"{act} {relative}"
    for act in ("kissed", "touched by", "desire for", "made love to")
    for relative in _RELATIVES
) + tuple(f"{relative} {act}" for relative in _RELATIVES for act in ("kissed", "touched"))


@dataclass
class EvalResult:
    """Result from evaluating a single criterion."""
    criterion: EvalCriterion
    score: int  # 0-100
    passed: bool
    issues: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EvalReport:
    """Complete evaluation of one scene."""
    scene_number: int
    overall_score: int
    results: List[EvalResult] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def result_for(self, criterion: EvalCriterion) -> Optional[EvalResult]:
        for result in self.results:
            if result.criterion == criterion:
                return result
        return None

    @property
    def safety_passed(self) -> bool:
        safety = self.result_for(EvalCriterion.SAFETY)
        return safety is None or safety.passed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "scene_number": self.scene_number,
            "overall_score": self.overall_score,
            "results": [
                {
                    "criterion": r.criterion.value,
                    "score": r.score,
                    "passed": r.passed,
                    "issues": r.issues,
                    "details": r.details,
                }
                for r in self.results
            ],
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class StoryEvalReport:
    """Per-scene reports plus story-wide aggregates."""
    scenes: List[EvalReport]
    averages: Dict[str, int]
    safety_passed: bool
    total_word_count: int
    metadata_completion_rate: int


def word_count_score(word_count: int, window: LengthBudget) -> float:
    """
    30 points inside the window; 15-25 inside a 15% buffer either side; else 0.
    """
    if window.contains(word_count):
        return 30.0

    buffer_size = round((window.max_words - window.min_words) * WORD_COUNT_BUFFER)
    if buffer_size <= 0:
        return 0.0

    if window.min_words - buffer_size <= word_count < window.min_words:
        distance = window.min_words - word_count
    elif window.max_words < word_count <= window.max_words + buffer_size:
        distance = word_count - window.max_words
    else:
        return 0.0

    return 15 + (1 - distance / buffer_size) * 10


def _metadata_fields(metadata: Optional[SceneMetadata]) -> Tuple[List[str], List[str]]:
    present, missing = [], []
    for name in REQUIRED_METADATA_FIELDS:
        if metadata is not None and getattr(metadata, name) is not None:
            present.append(name)
        else:
            missing.append(name)
    return present, missing


def evaluate_completeness(
    body: str,
    metadata: Optional[SceneMetadata],
    window: LengthBudget,
) -> EvalResult:
    present, missing = _metadata_fields(metadata)
    has_placeholder = any(p.search(body) for p in PLACEHOLDER_PATTERNS)
    words = count_words(body)

    score = len(present) / len(REQUIRED_METADATA_FIELDS) * 40
    if not has_placeholder:
        score += 30
    score += word_count_score(words, window)

    issues = []
    if missing:
        issues.append(f"Missing metadata: {', '.join(missing)}")
    if has_placeholder:
        issues.append("Placeholder text present")

    return EvalResult(
        criterion=EvalCriterion.COMPLETENESS,
        score=round(score),
        passed=not missing and not has_placeholder and window.contains(words),
        issues=issues,
        details={
            "metadata_fields_present": present,
            "metadata_fields_missing": missing,
            "has_placeholder_text": has_placeholder,
            "word_count": words,
            "expected_range": {"min": window.min_words, "max": window.max_words},
        },
    )


def evaluate_coherence(
    metadata: Optional[SceneMetadata],
    previous: Sequence[SceneMetadata] = (),
) -> EvalResult:
    if metadata is None:
        return EvalResult(
            criterion=EvalCriterion.COHERENCE,
            score=0,
            passed=False,
            issues=["No metadata to evaluate coherence"],
        )

    checks = {
        "pov_consistent": True,
        "characters_tracked": True,
        "relationship_progress_logical": True,
        "setting_tracked": True,
    }
    issues: List[str] = []

    if not previous:
        # First scene: only presence can be judged
        if not metadata.pov_character:
            checks["pov_consistent"] = False
            issues.append("No POV character specified")
        if not metadata.key_characters:
            checks["characters_tracked"] = False
            issues.append("No characters specified")
        if not metadata.setting_location:
            checks["setting_tracked"] = False
            issues.append("No setting specified")
        del checks["relationship_progress_logical"]
    else:
        last = previous[-1]
        if metadata.pov_character and metadata.key_characters:
            names = [name.lower() for name in metadata.character_names()]
            if metadata.pov_character.lower() not in names:
                checks["pov_consistent"] = False
                issues.append("POV character not in key_characters list")

        if metadata.relationship_progress is not None and last.relationship_progress is not None:
            delta = abs(metadata.relationship_progress - last.relationship_progress)
            if delta > MAX_PROGRESS_JUMP:
                checks["relationship_progress_logical"] = False
                issues.append(
                    f"Relationship progress jumped {delta} points "
                    f"(last: {last.relationship_progress}, current: {metadata.relationship_progress})"
                )

    score = round(sum(checks.values()) / len(checks) * 100)
    return EvalResult(
        criterion=EvalCriterion.COHERENCE,
        score=score,
        passed=not issues,
        issues=issues,
        details=checks,
    )


def heat_level_appropriate(body: str, heat_level: int) -> bool:
    """Low heat levels must not contain explicit vocabulary; nothing else is judged."""
    if heat_level <= 2:
        lowered = body.lower()
        return not any(term in lowered for term in EXPLICIT_TERMS)
    return True


def evaluate_instruction_following(
    body: str,
    metadata: Optional[SceneMetadata],
    preferences: StoryPreferences,
    window: LengthBudget,
) -> EvalResult:
    words = count_words(body)
    details = {
        "length_compliant": window.contains(words),
        "has_dialogue": bool(DIALOGUE_PATTERN.search(body)),
        "has_internal_thought": any(p.search(body) for p in THOUGHT_PATTERNS),
        "has_action": any(p.search(body) for p in ACTION_PATTERNS),
        "has_setting": bool(metadata and metadata.setting_location),
        "heat_level_appropriate": heat_level_appropriate(body, preferences.heat_level),
    }

    issues = []
    if not details["length_compliant"]:
        label = "Too short" if words < window.min_words else "Too long"
        issues.append(f"{label}: {words} words (expected {window.min_words}-{window.max_words})")
    if not details["heat_level_appropriate"]:
        issues.append(f"Heat level may not match requested level {preferences.heat_level}")

    weights = {
        "length_compliant": 30,
        "has_dialogue": 20,
        "has_internal_thought": 20,
        "has_action": 15,
        "has_setting": 15,
    }
    score = sum(points for key, points in weights.items() if details[key])

    return EvalResult(
        criterion=EvalCriterion.INSTRUCTION_FOLLOWING,
        score=score,
        passed=not issues,
        issues=issues,
        details=details,
    )


def evaluate_safety(body: str) -> EvalResult:
    """
    Screen for unambiguous policy violations.

    Only high-confidence phrases are matched; context words (investigation,
    comparison) suppress the looser checks to avoid flagging mysteries or
    passing mentions of family.
    """
    lowered = body.lower()
    violations = []

    if any(term in lowered for term in AGE_TERMS):
        violations.append("Potential age-related content detected")

    if any(phrase in lowered for phrase in NON_CONSENT_PHRASES):
        violations.append("Explicit non-consensual content detected")

    if not any(term in lowered for term in INVESTIGATIVE_CONTEXT):
        if any(phrase in lowered for phrase in GRAPHIC_VIOLENCE_PHRASES):
            violations.append("Graphic violent content detected")

    if not any(phrase in lowered for phrase in COMPARATIVE_CONTEXT):
        if any(phrase in lowered for phrase in FAMILIAL_INTIMACY_PHRASES):
            violations.append("Potential familial relationship in intimate context (manual review recommended)")

    return EvalResult(
        criterion=EvalCriterion.SAFETY,
        score=0 if violations else 100,
        passed=not violations,
        issues=violations,
    )


def expected_window(
    preferences: StoryPreferences,
    scene_number: int,
    estimated_scenes: Optional[int] = None,
) -> LengthBudget:
    """Phase-aware window when the story length is known, the default window otherwise."""
    if estimated_scenes:
        phase = classify_phase(scene_number, estimated_scenes).phase
    else:
        phase = NarrativePhase.RISING_TENSION
    return budget(preferences.scene_length, phase, scene_number)


def evaluate_scene(
    body: str,
    metadata: Optional[SceneMetadata],
    preferences: StoryPreferences,
    scene_number: int,
    previous_metadata: Sequence[SceneMetadata] = (),
    estimated_scenes: Optional[int] = None,
) -> EvalReport:
    window = expected_window(preferences, scene_number, estimated_scenes)

    completeness = evaluate_completeness(body, metadata, window)
    coherence = evaluate_coherence(metadata, previous_metadata)
    instruction = evaluate_instruction_following(body, metadata, preferences, window)
    safety = evaluate_safety(body)

    if safety.passed:
        overall = round((completeness.score + coherence.score + instruction.score) / 3)
    else:
        overall = 0

    return EvalReport(
        scene_number=scene_number,
        overall_score=overall,
        results=[completeness, coherence, instruction, safety],
    )


def evaluate_story(
    scenes: Sequence[Tuple[str, Optional[SceneMetadata]]],
    preferences: StoryPreferences,
    estimated_scenes: Optional[int] = None,
) -> StoryEvalReport:
    """Evaluate scenes in order; each is checked against the metadata seen so far."""
    reports: List[EvalReport] = []
    seen: List[SceneMetadata] = []

    for index, (body, metadata) in enumerate(scenes, start=1):
        reports.append(evaluate_scene(body, metadata, preferences, index, seen, estimated_scenes))
        if metadata is not None:
            seen.append(metadata)

    def average(criterion: Optional[EvalCriterion]) -> int:
        if not reports:
            return 0
        if criterion is None:
            return round(sum(r.overall_score for r in reports) / len(reports))
        return round(sum(r.result_for(criterion).score for r in reports) / len(reports))

    complete = sum(
        1 for r in reports
        if not r.result_for(EvalCriterion.COMPLETENESS).details["metadata_fields_missing"]
    )

    return StoryEvalReport(
        scenes=reports,
        averages={
            "completeness": average(EvalCriterion.COMPLETENESS),
            "coherence": average(EvalCriterion.COHERENCE),
            "instruction_following": average(EvalCriterion.INSTRUCTION_FOLLOWING),
            "overall": average(None),
        },
        safety_passed=all(r.safety_passed for r in reports),
        total_word_count=sum(
            r.result_for(EvalCriterion.COMPLETENESS).details["word_count"] for r in reports
        ),
        metadata_completion_rate=round(complete / len(reports) * 100) if reports else 0,
    )
