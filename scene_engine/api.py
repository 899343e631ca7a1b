"""
Scene Engine HTTP API
Batch and streaming scene generation plus read-only story lookups.
"""

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import SceneEngineConfiguration, create_default_config_from_env
from .core.errors import (
    ConfigurationError,
    ProviderError,
    SceneEngineError,
    SceneValidationError,
)
from .models import (
    CachedScene,
    MetadataProgressionEntry,
    SceneRequestContext,
    SceneResult,
    StoryStats,
)
from .services import (
    InMemorySceneStore,
    InMemoryStoryRepository,
    InProcessSceneLocks,
    RedisSceneLocks,
    RedisSceneStore,
    SceneOrchestrator,
    create_model_client,
)

load_dotenv()

logger = logging.getLogger("scene_engine.api")

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


def _allowed_origins() -> List[str]:
    configured = os.getenv("CORS_ALLOWED_ORIGINS")
    if not configured:
        return DEFAULT_ALLOWED_ORIGINS
    return [origin.strip() for origin in configured.split(",") if origin.strip()]


# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(title="Scene Engine")

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

orchestrator: Optional[SceneOrchestrator] = None


async def build_orchestrator(config: SceneEngineConfiguration) -> SceneOrchestrator:
    """Wire store, locks and model client from configuration."""
    model_client = create_model_client(config)

    if config.storage.redis_url:
        store = RedisSceneStore(config.storage.redis_url, key_prefix=config.storage.key_prefix)
        await store.connect()
        locks = RedisSceneLocks(
            store.client,
            key_prefix=config.storage.key_prefix,
            lock_timeout=config.storage.lock_timeout_seconds,
            wait_timeout=config.storage.lock_wait_seconds,
        )
        logger.info(f"[build_orchestrator] Using Redis scene store at {config.storage.redis_url}")
    else:
        store = InMemorySceneStore()
        locks = InProcessSceneLocks()
        logger.info("[build_orchestrator] REDIS_URL not set; using in-memory scene store")

    return SceneOrchestrator(
        store=store,
        model_client=model_client,
        repository=InMemoryStoryRepository(),
        locks=locks,
        settings=config.generation,
    )


@app.on_event("startup")
async def startup():
    global orchestrator
    if orchestrator is not None:
        return
    try:
        orchestrator = await build_orchestrator(create_default_config_from_env())
    except ConfigurationError as e:
        # Health stays up; generation routes answer 503 until configured
        logger.error(f"[startup] Scene engine not configured: {e}")


@app.on_event("shutdown")
async def shutdown():
    global orchestrator
    if orchestrator:
        await orchestrator.wait_background()
        await orchestrator.store.disconnect()
        await orchestrator.model_client.close()
        orchestrator = None


def _require_orchestrator() -> SceneOrchestrator:
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Scene engine not initialized")
    return orchestrator


def _to_http_error(error: SceneEngineError) -> HTTPException:
    if isinstance(error, ConfigurationError):
        return HTTPException(status_code=503, detail=str(error))
    if isinstance(error, ProviderError):
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, SceneValidationError):
        return HTTPException(
            status_code=422,
            detail={"message": str(error), "errors": error.errors},
        )
    return HTTPException(status_code=500, detail=str(error))


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "scene-engine",
        "configured": orchestrator is not None,
    }


@app.post("/scenes", response_model=SceneResult)
@limiter.limit("10/minute")
async def generate_scene(scene_request: SceneRequestContext, request: Request):
    """Return the cached scene or generate it once."""
    engine = _require_orchestrator()
    try:
        return await engine.get_or_generate_scene(scene_request)
    except SceneEngineError as e:
        raise _to_http_error(e) from e


@app.post("/scenes/stream")
@limiter.limit("10/minute")
async def stream_scene(scene_request: SceneRequestContext, request: Request):
    """Stream a scene as Server-Sent Events; failures arrive as an error event."""
    engine = _require_orchestrator()

    async def event_generator():
        async for event in engine.stream_scene(scene_request):
            yield event.to_sse()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@app.get("/stories/{story_id}/scenes/{scene_number}", response_model=CachedScene)
@limiter.limit("60/minute")
async def get_scene(story_id: str, scene_number: int, request: Request):
    engine = _require_orchestrator()
    scene = await engine.store.get(story_id, scene_number)
    if scene is None:
        raise HTTPException(status_code=404, detail="Scene not found")
    return scene


@app.get("/stories/{story_id}/stats", response_model=StoryStats)
@limiter.limit("60/minute")
async def get_story_stats(story_id: str, request: Request):
    engine = _require_orchestrator()
    return await engine.store.stats(story_id)


@app.get("/stories/{story_id}/metadata", response_model=List[MetadataProgressionEntry])
@limiter.limit("60/minute")
async def get_metadata_progression(story_id: str, request: Request):
    """Per-scene continuity records, in scene order."""
    engine = _require_orchestrator()
    return await engine.store.metadata_progression(story_id)
