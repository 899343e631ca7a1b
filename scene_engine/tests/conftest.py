"""
Pytest configuration and fixtures for scene engine tests.

This module provides:
- Network blocking fixture to prevent accidental API calls in CI
- A scripted fake model client (batch and streaming)
- Common fixtures for preferences, request context and storage
"""

import asyncio
import socket
from typing import List, Optional
from unittest.mock import patch

import pytest

from scene_engine.core.errors import ProviderError
from scene_engine.models import SceneRequestContext, StoryPreferences
from scene_engine.services import InMemorySceneStore, InMemoryStoryRepository
from scene_engine.services.model_client import SceneModelClient


class NetworkBlockedError(Exception):
    """Raised when a test attempts to make a network connection."""
    pass


def _block_socket_connect(*args, **kwargs):
    """Block all socket connections to prevent accidental API calls."""
    raise NetworkBlockedError(
        "Network access is blocked in unit tests. "
        "If you need to test network functionality, use mocks. "
        "This prevents accidental OpenAI/Anthropic API calls that cost money."
    )


@pytest.fixture(autouse=True)
def block_network():
    """
    Automatically block all network connections in tests.

    Applied to every test; provider SDKs and Redis must be mocked.
    """
    with patch.object(socket.socket, 'connect', _block_socket_connect):
        with patch.object(socket, 'create_connection', _block_socket_connect):
            yield


def make_prose(word_count: int, word: str = "moonlight") -> str:
    """Bracket-free narrative of exactly ``word_count`` words."""
    sentences = []
    remaining = word_count
    while remaining > 0:
        size = min(10, remaining)
        sentences.append(" ".join([word] * size) + ".")
        remaining -= size
    return " ".join(sentences)


META_FOOTER = """<SCENE_META>
emotional_beat: tentative trust building
tension_threads: secret identity, past trauma
relationship_progress: +2
key_moment: she finally says his name
key_characters: Mara, Julian
pov_character: Mara
setting_location: harbor cafe
</SCENE_META>"""


def make_model_output(word_count: int = 900, footer: str = META_FOOTER) -> str:
    return f"{make_prose(word_count)}\n\n{footer}"


class FakeModelClient(SceneModelClient):
    """
    Scripted model. Every call counts; ``delay`` yields to the loop so
    concurrent callers really interleave.
    """

    provider = "fake"

    def __init__(
        self,
        output: str,
        chunk_size: int = 37,
        delay: float = 0.01,
        fail_with: Optional[Exception] = None,
        fail_after_chunks: Optional[int] = None,
    ):
        self.output = output
        self.chunk_size = chunk_size
        self.delay = delay
        self.fail_with = fail_with
        self.fail_after_chunks = fail_after_chunks
        self.complete_calls = 0
        self.stream_calls = 0
        self.chunks_sent = 0
        self.stream_finished = False
        self.closed = False

    async def complete(self, system_prompt, user_prompt, temperature=0.8, max_tokens=None) -> str:
        self.complete_calls += 1
        self.last_prompts = (system_prompt, user_prompt)
        await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return self.output

    async def stream(self, system_prompt, user_prompt, temperature=0.8, max_tokens=None):
        self.stream_calls += 1
        self.last_prompts = (system_prompt, user_prompt)
        for start in range(0, len(self.output), self.chunk_size):
            if self.fail_with is not None and self.chunks_sent == (self.fail_after_chunks or 0):
                raise self.fail_with
            await asyncio.sleep(self.delay)
            self.chunks_sent += 1
            yield self.output[start:start + self.chunk_size]
        self.stream_finished = True

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def preferences() -> StoryPreferences:
    return StoryPreferences(
        genres=["contemporary", "mystery"],
        tropes=["enemies-to-lovers", "secret identity"],
        heat_level=2,
        pacing="gradual",
        scene_length="medium",
    )


@pytest.fixture
def context(preferences) -> SceneRequestContext:
    return SceneRequestContext(
        story_id="story-1",
        template_id="tpl-harbor",
        template_title="Harbor Lights",
        scene_number=3,
        estimated_scenes=10,
        preferences=preferences,
    )


@pytest.fixture
def store() -> InMemorySceneStore:
    return InMemorySceneStore()


@pytest.fixture
def repository() -> InMemoryStoryRepository:
    return InMemoryStoryRepository()


@pytest.fixture
def model_output() -> str:
    return make_model_output()


@pytest.fixture
def fake_model(model_output) -> FakeModelClient:
    return FakeModelClient(model_output)


@pytest.fixture
def provider_failure() -> ProviderError:
    return ProviderError("upstream timed out", provider="fake")


def chunkings(text: str) -> List[List[str]]:
    """A spread of ways to cut ``text``: fixed sizes plus cuts inside the tags."""
    result = [[text]]
    for size in (1, 2, 3, 5, 7, 11, 13, 64, 199, 200, 201):
        result.append([text[i:i + size] for i in range(0, len(text), size)])

    for tag in ("<SCENE_META>", "</SCENE_META>"):
        position = text.find(tag)
        if position < 0:
            continue
        for offset in range(1, len(tag)):
            cut = position + offset
            result.append([text[:cut], text[cut:]])
    return result
