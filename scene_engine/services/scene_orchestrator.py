"""
Scene Cache Orchestrator
Decides whether a scene is served from cache or generated, and guarantees at
most one model call per (story id, scene number).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

# Configure logging for the scene engine
logger = logging.getLogger("scene_engine")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)

from ..config import GenerationSettings
from ..core.errors import SceneEngineError, SceneValidationError
from ..core.length_budget import LengthBudget, budget
from ..core.metadata import extract_scene
from ..core.phases import PhaseInfo, classify_phase
from ..core.streaming import SceneStreamTranscoder
from ..core.validation import validate_scene
from ..models import (
    CachedScene,
    DecisionPoint,
    ParsedScene,
    PriorChoice,
    SceneRequestContext,
    SceneResult,
    StreamEvent,
)
from ..prompts import build_scene_prompt, build_system_prompt
from .model_client import SceneModelClient
from .scene_locks import InProcessSceneLocks, SceneLockManager
from .scene_store import SceneStore
from .story_repository import StoryRepository


@dataclass
class GenerationPlan:
    """Everything decided before the model is called."""
    phase: PhaseInfo
    budget: LengthBudget
    system_prompt: str
    user_prompt: str
    recent_scenes: List[CachedScene]
    prior_choice: Optional[PriorChoice]
    decision_point: Optional[DecisionPoint]


class SceneOrchestrator:
    """
    Cache-first scene generation.

    Lifecycle per key: absent, generating (lock held), cached. Cached is
    terminal; a cached scene is never regenerated or overwritten.
    """

    def __init__(
        self,
        store: SceneStore,
        model_client: SceneModelClient,
        repository: Optional[StoryRepository] = None,
        locks: Optional[SceneLockManager] = None,
        settings: Optional[GenerationSettings] = None,
    ):
        self.store = store
        self.model_client = model_client
        self.repository = repository
        self.locks = locks or InProcessSceneLocks()
        self.settings = settings or GenerationSettings()
        self._background: Set[asyncio.Task] = set()

    # ========================================================================
    # Planning
    # ========================================================================

    async def _decision_point(self, context: SceneRequestContext) -> Optional[DecisionPoint]:
        if context.decision_point is not None:
            return context.decision_point
        if self.repository is None or not context.template_id:
            return None
        return await self.repository.choice_point_for(context.template_id, context.scene_number)

    async def _prior_choice(self, context: SceneRequestContext) -> Optional[PriorChoice]:
        if context.prior_choice is not None:
            return context.prior_choice
        if self.repository is None:
            return None
        return await self.repository.last_choice(context.story_id)

    async def plan(self, context: SceneRequestContext) -> GenerationPlan:
        """Gather continuity inputs and build both prompts."""
        recent = await self.store.recent(
            context.story_id,
            self.settings.recent_scene_limit,
            before=context.scene_number,
        )
        prior_choice = await self._prior_choice(context)
        decision_point = await self._decision_point(context)

        phase = classify_phase(context.scene_number, context.estimated_scenes)
        window = budget(context.preferences.scene_length, phase.phase, context.scene_number)

        system_prompt = build_system_prompt(context.preferences)
        user_prompt = build_scene_prompt(
            context,
            recent_scenes=recent,
            prior_choice=prior_choice,
            decision_point=decision_point,
            snapshot_char_budget=self.settings.snapshot_char_budget,
            recent_limit=self.settings.recent_scene_limit,
        )

        logger.info(
            f"[plan] {context.story_id}#{context.scene_number}: phase={phase.phase.value}, "
            f"window={window.min_words}-{window.max_words}, recent={len(recent)}, "
            f"system_chars={len(system_prompt)}, user_chars={len(user_prompt)}"
        )

        return GenerationPlan(
            phase=phase,
            budget=window,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            recent_scenes=recent,
            prior_choice=prior_choice,
            decision_point=decision_point,
        )

    # ========================================================================
    # Finalization
    # ========================================================================

    def _finalize(self, context: SceneRequestContext, raw_text: str, plan: GenerationPlan) -> ParsedScene:
        """Extract and validate; hard failures raise and are never cached."""
        parsed = extract_scene(raw_text)
        report = validate_scene(parsed.body, plan.budget)

        if not report.valid:
            logger.error(
                f"[_finalize] {context.story_id}#{context.scene_number} rejected: {'; '.join(report.errors)}"
            )
            raise SceneValidationError(context.scene_number, report.errors)

        for warning in report.warnings:
            logger.warning(f"[_finalize] {context.story_id}#{context.scene_number}: {warning}")

        if parsed.metadata is None:
            logger.warning(f"[_finalize] {context.story_id}#{context.scene_number}: no metadata block found")

        logger.info(f"[_finalize] {context.story_id}#{context.scene_number}: {report.word_count} words")
        return parsed

    async def _store(self, context: SceneRequestContext, parsed: ParsedScene) -> Tuple[CachedScene, bool]:
        """Write once; on a lost race return what the winner stored."""
        created = await self.store.put(
            context.story_id,
            context.scene_number,
            parsed.body,
            parsed.metadata,
            parsed.summary,
        )
        stored = await self.store.get(context.story_id, context.scene_number)
        if stored is None:
            raise SceneEngineError(
                f"Scene {context.story_id}#{context.scene_number} missing right after write"
            )
        if not created:
            logger.info(f"[_store] {context.story_id}#{context.scene_number} already cached; using stored scene")
        return stored, created

    # ========================================================================
    # Batch Path
    # ========================================================================

    async def get_or_generate_scene(self, context: SceneRequestContext) -> SceneResult:
        cached = await self.store.get(context.story_id, context.scene_number)
        if cached:
            logger.info(f"[get_or_generate_scene] Cache hit for {context.story_id}#{context.scene_number}")
            return SceneResult(body=cached.body, cached=True)

        async with self.locks.hold(context.story_id, context.scene_number):
            cached = await self.store.get(context.story_id, context.scene_number)
            if cached:
                logger.info(
                    f"[get_or_generate_scene] {context.story_id}#{context.scene_number} "
                    "was generated while waiting for the lock"
                )
                return SceneResult(body=cached.body, cached=True)

            plan = await self.plan(context)
            raw_text = await self.model_client.complete(
                plan.system_prompt,
                plan.user_prompt,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            )
            parsed = self._finalize(context, raw_text, plan)
            stored, created = await self._store(context, parsed)

        return SceneResult(body=stored.body, cached=not created)

    # ========================================================================
    # Streaming Path
    # ========================================================================

    def _framing(
        self,
        context: SceneRequestContext,
        cached: bool,
        word_count: int,
        decision_point: Optional[DecisionPoint],
        prior_choice: Optional[PriorChoice],
    ) -> Dict[str, Any]:
        return {
            "scene": {
                "number": context.scene_number,
                "word_count": word_count,
                "cached": cached,
            },
            "story": {
                "id": context.story_id,
                "title": context.story_title or context.template_title,
                "estimated_scenes": context.estimated_scenes,
            },
            "decision_point": decision_point.model_dump() if decision_point else None,
            "previous_choice": prior_choice.model_dump() if prior_choice else None,
        }

    async def _generate_streaming(self, context: SceneRequestContext, queue: asyncio.Queue) -> None:
        """Producer task: runs to completion even if nobody reads the queue any more."""
        try:
            async with self.locks.hold(context.story_id, context.scene_number):
                cached = await self.store.get(context.story_id, context.scene_number)
                if cached:
                    queue.put_nowait(StreamEvent.text(cached.body))
                    queue.put_nowait(StreamEvent.done())
                    return

                plan = await self.plan(context)
                transcoder = SceneStreamTranscoder(
                    self.model_client.stream(
                        plan.system_prompt,
                        plan.user_prompt,
                        temperature=self.settings.temperature,
                        max_tokens=self.settings.max_tokens,
                    ),
                    lookback=self.settings.stream_lookback,
                )
                async for event in transcoder.events():
                    queue.put_nowait(event)

                parsed = self._finalize(context, transcoder.full_content, plan)
                await self._store(context, parsed)
                queue.put_nowait(StreamEvent.done())
        except SceneEngineError as e:
            logger.error(f"[_generate_streaming] {context.story_id}#{context.scene_number} failed: {e}")
            queue.put_nowait(StreamEvent.failure(str(e)))
        except Exception as e:
            logger.exception(f"[_generate_streaming] Unexpected error for {context.story_id}#{context.scene_number}")
            queue.put_nowait(StreamEvent.failure(f"Unexpected error: {type(e).__name__}"))
        finally:
            queue.put_nowait(None)

    async def stream_scene(self, context: SceneRequestContext) -> AsyncIterator[StreamEvent]:
        """
        Yield one metadata event, then content events, then done or error.

        Generation runs in its own task. If the consumer stops early the task
        keeps going and caches the scene when ``finish_on_disconnect`` is set,
        and is cancelled otherwise.
        """
        decision_point = await self._decision_point(context)
        prior_choice = await self._prior_choice(context)
        cached = await self.store.get(context.story_id, context.scene_number)

        if cached:
            logger.info(f"[stream_scene] Cache hit for {context.story_id}#{context.scene_number}")
            yield StreamEvent.metadata(self._framing(context, True, cached.word_count, decision_point, prior_choice))
            yield StreamEvent.text(cached.body)
            yield StreamEvent.done()
            return

        yield StreamEvent.metadata(self._framing(context, False, 0, decision_point, prior_choice))

        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self._generate_streaming(context, queue))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            if not task.done():
                if self.settings.finish_on_disconnect:
                    logger.info(
                        f"[stream_scene] Client left {context.story_id}#{context.scene_number}; "
                        "generation continues in background"
                    )
                else:
                    logger.info(
                        f"[stream_scene] Client left {context.story_id}#{context.scene_number}; cancelling generation"
                    )
                    task.cancel()

    async def wait_background(self) -> None:
        """Wait for detached generations, e.g. on shutdown."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
