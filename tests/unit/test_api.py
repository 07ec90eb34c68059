"""Unit tests for the HTTP and WebSocket API with a fake agent."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_agent
from api.routers import core, shorts
from models.tts import Voice
from shorts_agent.models import PipelineState, VideoSettings
from shorts_agent.state import PipelineRun


class FakeAgent:
    """Accepts runs without executing them, so they stay active."""

    def __init__(self):
        self.list_voices = AsyncMock(return_value=[Voice(name="Emily.wav"), Voice(name="Gianna.wav", lang="en")])
        self.started: list[VideoSettings] = []

    async def run(self, settings, run):
        self.started.append(settings)
        return run


@pytest.fixture
def agent():
    return FakeAgent()


@pytest.fixture
def client(agent):
    app = FastAPI()
    app.include_router(core.router)
    app.include_router(shorts.router)
    app.dependency_overrides[get_agent] = lambda: agent
    shorts.short_jobs.clear()
    with TestClient(app) as test_client:
        yield test_client
    shorts.short_jobs.clear()


def _add_run(state: PipelineState = PipelineState.PLANNING_SCRIPT) -> PipelineRun:
    run = PipelineRun(VideoSettings(prompt="morning coffee routine", duration=15))
    for next_state in (PipelineState.PLANNING_SCRIPT, PipelineState.SEARCHING_CLIPS):
        if run.state is state:
            break
        run.transition(next_state)
    shorts.short_jobs[run.run_id] = run
    return run


class TestCoreRoutes:
    def test_root(self, client):
        assert client.get("/").json() == {"message": "Shorts Generator API", "version": "1.0.0"}

    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "healthy"}

    def test_voices(self, client):
        assert client.get("/api/voices").json() == [
            {"name": "Emily.wav", "lang": "en"},
            {"name": "Gianna.wav", "lang": "en"},
        ]


class TestCreateShort:
    def test_accepts_and_stores_run(self, client, agent):
        response = client.post("/api/shorts", json={"prompt": "  morning coffee routine ", "duration": 15})

        assert response.status_code == 202
        job_id = response.json()["job_id"]
        assert response.json()["status"] == "idle"

        job = client.get(f"/api/shorts/{job_id}").json()
        assert job["settings"] == {
            "prompt": "morning coffee routine",
            "duration": 15,
            "resolution": "1080x1920",
            "voice": "",
        }
        assert job["total_steps"] == 7
        assert [s.prompt for s in agent.started] == ["morning coffee routine"]

    @pytest.mark.parametrize(
        "body",
        [
            {"prompt": "   "},
            {"prompt": ""},
            {"prompt": "x", "duration": 45},
            {"prompt": "x", "resolution": "1920x1080"},
            {"duration": 15},
        ],
    )
    def test_rejects_invalid_settings(self, client, body):
        assert client.post("/api/shorts", json=body).status_code == 422
        assert shorts.short_jobs == {}

    def test_only_one_active_run(self, client):
        active = _add_run()

        response = client.post("/api/shorts", json={"prompt": "city at night"})

        assert response.status_code == 409
        assert active.run_id in response.json()["detail"]

    def test_new_run_allowed_after_previous_finished(self, client):
        finished = _add_run()
        finished.fail("No videos found for the given prompt")

        assert client.post("/api/shorts", json={"prompt": "city at night"}).status_code == 202


class TestRunRoutes:
    def test_unknown_job(self, client):
        assert client.get("/api/shorts/nope").status_code == 404
        assert client.post("/api/shorts/nope/cancel").status_code == 404
        assert client.get("/api/shorts/nope/download").status_code == 404

    def test_list(self, client):
        run = _add_run()
        assert [job["job_id"] for job in client.get("/api/shorts").json()] == [run.run_id]

    def test_cancel_running(self, client):
        run = _add_run()

        response = client.post(f"/api/shorts/{run.run_id}/cancel")

        assert response.json() == {"job_id": run.run_id, "status": "cancelling"}
        assert run.cancel_requested

    def test_cancel_finished_conflicts(self, client):
        run = _add_run()
        run.fail("boom")
        assert client.post(f"/api/shorts/{run.run_id}/cancel").status_code == 409

    def test_download_requires_done(self, client):
        run = _add_run()
        response = client.get(f"/api/shorts/{run.run_id}/download")
        assert response.status_code == 404
        assert "planning_script" in response.json()["detail"]

    def test_download_done(self, client, temp_dir):
        video = temp_dir / "short.mp4"
        video.write_bytes(b"fake mp4")
        run = _add_run(PipelineState.SEARCHING_CLIPS)
        for state in (
            PipelineState.SYNTHESIZING_AUDIO,
            PipelineState.ALIGNING_CAPTIONS,
            PipelineState.LOADING_COMPOSER,
            PipelineState.COMPOSING,
        ):
            run.transition(state)
        run.complete(Path(video))

        response = client.get(f"/api/shorts/{run.run_id}/download")

        assert response.status_code == 200
        assert response.headers["content-type"] == "video/mp4"
        assert response.content == b"fake mp4"
        assert client.get(f"/api/shorts/{run.run_id}").json()["video_ready"] is True


class TestProgressWebSocket:
    def test_unknown_job(self, client):
        with client.websocket_connect("/ws/shorts/nope") as ws:
            assert ws.receive_json() == {"type": "error", "message": "Job not found"}

    def test_finished_run_sends_final_event(self, client):
        run = _add_run()
        run.fail("No videos found for the given prompt")

        with client.websocket_connect(f"/ws/shorts/{run.run_id}") as ws:
            event = ws.receive_json()

        assert event["type"] == "progress"
        assert event["job_id"] == run.run_id
        assert event["state"] == "failed"
        assert event["terminal"] is True
        assert event["error"] == "No videos found for the given prompt"

    def test_ping_and_cancel_commands(self, client):
        run = _add_run()

        with client.websocket_connect(f"/ws/shorts/{run.run_id}") as ws:
            snapshot = ws.receive_json()
            ws.send_text("cancel")
            ws.send_text("ping")
            assert ws.receive_text() == "pong"

        assert snapshot["state"] == "planning_script"
        assert snapshot["label"] == "Generating Script"
        assert run.cancel_requested
