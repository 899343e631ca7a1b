"""
Tests for the HTTP API.

The orchestrator is injected before the client starts, so startup skips the
environment wiring and no provider is ever contacted.
"""

import json

import pytest
from fastapi.testclient import TestClient

from scene_engine import api
from scene_engine.services import InMemorySceneStore, SceneOrchestrator
from scene_engine.tests.conftest import FakeModelClient, make_model_output, make_prose


@pytest.fixture(autouse=True)
def no_rate_limit(monkeypatch):
    monkeypatch.setattr(api.limiter, "enabled", False)


@pytest.fixture
def payload(context):
    return context.model_dump(mode="json")


def engine_with(model) -> SceneOrchestrator:
    return SceneOrchestrator(store=InMemorySceneStore(), model_client=model)


@pytest.fixture
def client_for(monkeypatch):
    def _make(model):
        engine = engine_with(model)
        monkeypatch.setattr(api, "orchestrator", engine)
        return engine
    return _make


def parse_sse(body: str):
    frames = [frame for frame in body.split("\n\n") if frame.strip()]
    return [json.loads(frame[len("data: "):]) for frame in frames]


class TestHealth:
    """Health check does not need a configured engine."""

    def test_health_unconfigured(self, monkeypatch):
        monkeypatch.setattr(api, "orchestrator", None)
        response = TestClient(api.app).get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "scene-engine", "configured": False}

    def test_generation_requires_engine(self, monkeypatch, payload):
        monkeypatch.setattr(api, "orchestrator", None)
        response = TestClient(api.app).post("/scenes", json=payload)
        assert response.status_code == 503


class TestBatchEndpoint:
    """POST /scenes"""

    def test_generate_then_cached(self, client_for, payload):
        model = FakeModelClient(make_model_output(), delay=0)
        client_for(model)

        with TestClient(api.app) as client:
            first = client.post("/scenes", json=payload)
            second = client.post("/scenes", json=payload)

        assert first.status_code == 200
        assert first.json() == {"body": make_prose(900), "cached": False}
        assert second.json()["cached"] is True
        assert model.complete_calls == 1
        assert model.closed

    def test_invalid_request(self, client_for, payload):
        client_for(FakeModelClient(make_model_output(), delay=0))
        payload["scene_number"] = 0

        with TestClient(api.app) as client:
            response = client.post("/scenes", json=payload)

        assert response.status_code == 422

    def test_validation_failure_maps_to_422(self, client_for, payload):
        client_for(FakeModelClient(make_model_output(50), delay=0))

        with TestClient(api.app) as client:
            response = client.post("/scenes", json=payload)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["errors"][0].startswith("Scene too short")

    def test_provider_failure_maps_to_502(self, client_for, payload, provider_failure):
        client_for(FakeModelClient(make_model_output(), delay=0, fail_with=provider_failure))

        with TestClient(api.app) as client:
            response = client.post("/scenes", json=payload)

        assert response.status_code == 502
        assert response.json()["detail"] == "upstream timed out"


class TestStreamEndpoint:
    """POST /scenes/stream"""

    def test_sse_frames(self, client_for, payload):
        client_for(FakeModelClient(make_model_output(), chunk_size=400, delay=0))

        with TestClient(api.app) as client:
            response = client.post("/scenes/stream", json=payload)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        events = parse_sse(response.text)
        assert events[0]["type"] == "metadata"
        assert events[0]["scene"]["cached"] is False
        assert events[0]["story"]["id"] == "story-1"
        assert events[-1] == {"type": "done"}
        text = "".join(e["content"] for e in events if e["type"] == "content")
        assert text == make_prose(900)

    def test_stream_error_event(self, client_for, payload, provider_failure):
        client_for(FakeModelClient(make_model_output(), delay=0, fail_with=provider_failure))

        with TestClient(api.app) as client:
            response = client.post("/scenes/stream", json=payload)

        events = parse_sse(response.text)
        assert response.status_code == 200
        assert events[-1] == {"type": "error", "error": "upstream timed out"}


class TestStoryLookups:
    """Read-only story routes."""

    def test_scene_and_stats(self, client_for, payload):
        client_for(FakeModelClient(make_model_output(), delay=0))

        with TestClient(api.app) as client:
            missing = client.get("/stories/story-1/scenes/3")
            client.post("/scenes", json=payload)
            found = client.get("/stories/story-1/scenes/3")
            stats = client.get("/stories/story-1/stats")

        assert missing.status_code == 404
        assert found.status_code == 200
        assert found.json()["word_count"] == 900
        assert found.json()["metadata"]["pov_character"] == "Mara"
        assert stats.json() == {"story_id": "story-1", "scene_count": 1, "total_words": 900}

    def test_metadata_progression(self, client_for, payload):
        client_for(FakeModelClient(make_model_output(), delay=0))

        with TestClient(api.app) as client:
            empty = client.get("/stories/story-1/metadata")
            client.post("/scenes", json=payload)
            progression = client.get("/stories/story-1/metadata")

        assert empty.json() == []
        entries = progression.json()
        assert [entry["scene_number"] for entry in entries] == [3]
        assert entries[0]["metadata"]["pov_character"] == "Mara"
