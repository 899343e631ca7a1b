"""
Scene Store for the Scene Engine
Write-once key/value storage of generated scenes, keyed by (story id, scene number).
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import redis.asyncio as redis

from ..core.validation import count_words
from ..models import CachedScene, MetadataProgressionEntry, SceneMetadata, StoryStats

# Write and index in one step so a stored scene is never missing from its story index
PUT_SCENE_SCRIPT = """
if redis.call("SET", KEYS[1], ARGV[1], "NX") then
    redis.call("ZADD", KEYS[2], ARGV[2], ARGV[2])
    return 1
end
return 0
"""


class SceneStore(ABC):
    """
    Get/put store for generated scenes.

    ``put`` is write-once: it returns False, and changes nothing, when a scene
    already exists for the key. Callers then re-read the stored scene.
    """

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def get(self, story_id: str, scene_number: int) -> Optional[CachedScene]:
        pass

    @abstractmethod
    async def put(
        self,
        story_id: str,
        scene_number: int,
        body: str,
        metadata: Optional[SceneMetadata] = None,
        summary: Optional[str] = None,
    ) -> bool:
        pass

    @abstractmethod
    async def list_scenes(self, story_id: str) -> List[CachedScene]:
        """All cached scenes of a story, ordered by scene number."""
        pass

    async def recent(
        self,
        story_id: str,
        limit: int,
        before: Optional[int] = None,
    ) -> List[CachedScene]:
        """Last ``limit`` scenes numbered below ``before``, most recent last."""
        if limit <= 0:
            return []
        scenes = await self.list_scenes(story_id)
        if before is not None:
            scenes = [scene for scene in scenes if scene.scene_number < before]
        return scenes[-limit:]

    async def stats(self, story_id: str) -> StoryStats:
        scenes = await self.list_scenes(story_id)
        return StoryStats(
            story_id=story_id,
            scene_count=len(scenes),
            total_words=sum(scene.word_count for scene in scenes),
        )

    async def metadata_progression(self, story_id: str) -> List[MetadataProgressionEntry]:
        """Continuity records in scene order, skipping scenes without usable metadata."""
        return [
            MetadataProgressionEntry(scene_number=scene.scene_number, metadata=scene.metadata)
            for scene in await self.list_scenes(story_id)
            if scene.metadata is not None and not scene.metadata.is_empty()
        ]

    @staticmethod
    def build_scene(
        story_id: str,
        scene_number: int,
        body: str,
        metadata: Optional[SceneMetadata],
        summary: Optional[str],
    ) -> CachedScene:
        return CachedScene(
            story_id=story_id,
            scene_number=scene_number,
            body=body,
            metadata=metadata,
            summary=summary,
            word_count=count_words(body),
        )


class InMemorySceneStore(SceneStore):
    """Process-local store; put() has no await between check and insert, so it is atomic."""

    def __init__(self):
        self._scenes: Dict[Tuple[str, int], CachedScene] = {}

    async def get(self, story_id: str, scene_number: int) -> Optional[CachedScene]:
        return self._scenes.get((story_id, scene_number))

    async def put(
        self,
        story_id: str,
        scene_number: int,
        body: str,
        metadata: Optional[SceneMetadata] = None,
        summary: Optional[str] = None,
    ) -> bool:
        key = (story_id, scene_number)
        if key in self._scenes:
            return False
        self._scenes[key] = self.build_scene(story_id, scene_number, body, metadata, summary)
        return True

    async def list_scenes(self, story_id: str) -> List[CachedScene]:
        return sorted(
            (scene for (sid, _), scene in self._scenes.items() if sid == story_id),
            key=lambda scene: scene.scene_number,
        )


class RedisSceneStore(SceneStore):
    """
    Redis-backed store shared across processes.

    Each scene is a JSON string written with SET NX; a sorted set per story
    indexes scene numbers for range queries. Both writes run in one Lua script.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379", key_prefix: str = "scene-engine"):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self._client: Optional[redis.Redis] = None
        self._put_scene = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        self._client = redis.from_url(self.redis_url, decode_responses=True)
        await self._client.ping()

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.close()
            self._client = None
            self._put_scene = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    def _put_script(self):
        if self._put_scene is None:
            self._put_scene = self.client.register_script(PUT_SCENE_SCRIPT)
        return self._put_scene

    def scene_key(self, story_id: str, scene_number: int) -> str:
        return f"{self.key_prefix}:story:{story_id}:scene:{scene_number}"

    def index_key(self, story_id: str) -> str:
        return f"{self.key_prefix}:story:{story_id}:scenes"

    async def get(self, story_id: str, scene_number: int) -> Optional[CachedScene]:
        data = await self.client.get(self.scene_key(story_id, scene_number))
        if data is None:
            return None
        return CachedScene.model_validate_json(data)

    async def put(
        self,
        story_id: str,
        scene_number: int,
        body: str,
        metadata: Optional[SceneMetadata] = None,
        summary: Optional[str] = None,
    ) -> bool:
        scene = self.build_scene(story_id, scene_number, body, metadata, summary)
        created = await self._put_script()(
            keys=[self.scene_key(story_id, scene_number), self.index_key(story_id)],
            args=[scene.model_dump_json(), scene_number],
        )
        return bool(created)

    async def _load(self, story_id: str, numbers: List[str]) -> List[CachedScene]:
        if not numbers:
            return []
        keys = [self.scene_key(story_id, int(n)) for n in numbers]
        values = await self.client.mget(keys)
        return [CachedScene.model_validate_json(v) for v in values if v is not None]

    async def list_scenes(self, story_id: str) -> List[CachedScene]:
        numbers = await self.client.zrange(self.index_key(story_id), 0, -1)
        return await self._load(story_id, numbers)

    async def recent(
        self,
        story_id: str,
        limit: int,
        before: Optional[int] = None,
    ) -> List[CachedScene]:
        if limit <= 0:
            return []
        upper = f"({before}" if before is not None else "+inf"
        numbers = await self.client.zrevrangebyscore(
            self.index_key(story_id), upper, "-inf", start=0, num=limit
        )
        return await self._load(story_id, list(reversed(numbers)))

