"""
Story lookups consumed by the orchestrator: template decision points and the
reader's most recent choice.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..models import DecisionPoint, PriorChoice


class StoryRepository(ABC):
    """Read-only view of story structure and reader choices."""

    @abstractmethod
    async def choice_point_for(self, template_id: str, scene_number: int) -> Optional[DecisionPoint]:
        pass

    @abstractmethod
    async def last_choice(self, story_id: str) -> Optional[PriorChoice]:
        pass


@dataclass
class _RecordedChoice:
    template_id: str
    scene_number: int
    selected_option: int


class InMemoryStoryRepository(StoryRepository):
    """
    Decision points per template plus the choices recorded per story.

    A recorded choice is stored as an option index and resolved against the
    decision point's options on read, as a relational join would.
    """

    def __init__(self):
        self._choice_points: Dict[Tuple[str, int], DecisionPoint] = {}
        self._choices: Dict[str, List[_RecordedChoice]] = {}

    def add_choice_point(self, template_id: str, decision_point: DecisionPoint) -> None:
        self._choice_points[(template_id, decision_point.scene_number)] = decision_point

    def record_choice(self, story_id: str, template_id: str, scene_number: int, selected_option: int) -> None:
        if (template_id, scene_number) not in self._choice_points:
            raise KeyError(f"No choice point for template {template_id} at scene {scene_number}")
        self._choices.setdefault(story_id, []).append(
            _RecordedChoice(template_id, scene_number, selected_option)
        )

    async def choice_point_for(self, template_id: str, scene_number: int) -> Optional[DecisionPoint]:
        return self._choice_points.get((template_id, scene_number))

    async def last_choice(self, story_id: str) -> Optional[PriorChoice]:
        choices = self._choices.get(story_id)
        if not choices:
            return None

        latest = choices[-1]
        point = self._choice_points.get((latest.template_id, latest.scene_number))
        if point is None or not 0 <= latest.selected_option < len(point.options):
            return None
        return point.options[latest.selected_option]
