"""
Scene validation.

Hard bounds decide whether a scene may be cached at all; the length budget
only produces warnings.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .length_budget import LengthBudget

MIN_SCENE_WORDS = 400
MAX_SCENE_WORDS = 2000


def count_words(text: str) -> int:
    """Whitespace-delimited word count."""
    return len(text.split())


@dataclass
class ValidationReport:
    valid: bool
    word_count: int
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_scene(body: str, budget: Optional[LengthBudget] = None) -> ValidationReport:
    """Check a scene body against the hard bounds and, softly, the budget window."""
    word_count = count_words(body)
    errors: List[str] = []
    warnings: List[str] = []

    if word_count < MIN_SCENE_WORDS:
        errors.append(f"Scene too short: {word_count} words (min {MIN_SCENE_WORDS})")
    if word_count > MAX_SCENE_WORDS:
        errors.append(f"Scene too long: {word_count} words (max {MAX_SCENE_WORDS})")
    if "[" in body or "]" in body:
        errors.append("Scene contains placeholder text")

    if not errors and budget is not None and not budget.contains(word_count):
        warnings.append(
            f"Scene length {word_count} words is outside the target "
            f"{budget.min_words}-{budget.max_words}"
        )

    return ValidationReport(
        valid=not errors,
        word_count=word_count,
        errors=errors,
        warnings=warnings,
    )
