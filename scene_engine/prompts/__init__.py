"""
Scene Engine Prompts Module
System and per-scene prompt builders.
"""

from .scene import SCENE_META_INSTRUCTIONS, build_scene_prompt, snapshot
from .system import CONTENT_SAFETY_BLOCK, HEAT_LEVEL_DESCRIPTIONS, build_system_prompt

__all__ = [
    "build_system_prompt",
    "build_scene_prompt",
    "snapshot",
    "CONTENT_SAFETY_BLOCK",
    "HEAT_LEVEL_DESCRIPTIONS",
    "SCENE_META_INSTRUCTIONS",
]
