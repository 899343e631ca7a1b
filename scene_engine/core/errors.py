"""
Error taxonomy for the scene pipeline.

Malformed model metadata is deliberately absent: the extractor degrades to
``metadata=None`` instead of raising. A cache race is not an error either; the
orchestrator re-reads the stored scene.
"""

from typing import List, Optional


class SceneEngineError(Exception):
    """Base class for all scene pipeline errors."""
    pass


class ConfigurationError(SceneEngineError):
    """Provider credentials or settings are missing. Fatal, never retried."""
    pass


class ProviderError(SceneEngineError):
    """The model provider failed (network, timeout, quota, empty response)."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class SceneValidationError(SceneEngineError):
    """Generated scene broke a hard bound; it was not cached."""

    def __init__(self, scene_number: int, errors: List[str]):
        self.scene_number = scene_number
        self.errors = list(errors)
        super().__init__(f"Scene {scene_number} failed validation: {'; '.join(self.errors)}")
