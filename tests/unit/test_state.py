"""Unit tests for the run state machine and its progress stream."""

from pathlib import Path

import pytest

from shorts_agent.models import PipelineState, VideoSettings
from shorts_agent.state import (
    STATE_ORDER,
    TOTAL_STEPS,
    InvalidTransitionError,
    PipelineRun,
)


def _run(prompt: str = "morning coffee routine") -> PipelineRun:
    return PipelineRun(VideoSettings(prompt=prompt, duration=15))


def _advance_to(run: PipelineRun, state: PipelineState) -> None:
    for next_state in STATE_ORDER[1 : STATE_ORDER.index(state) + 1]:
        run.transition(next_state)


class TestTransitions:
    def test_starts_idle(self):
        run = _run()
        assert run.state is PipelineState.IDLE
        assert run.step == 0
        assert run.percent == 0
        assert run.label == "Ready"
        assert len(run.run_id) == 12

    def test_linear_order_and_labels(self):
        run = _run()
        labels = []
        for state in STATE_ORDER[1:-1]:
            run.transition(state)
            labels.append(run.label)

        assert labels == [
            "Generating Script",
            "Searching Videos",
            "Creating Voiceover",
            "Adding Subtitles",
            "Loading Processor",
            "Composing Video",
        ]
        assert run.step == 6
        assert run.percent == pytest.approx(6 / TOTAL_STEPS * 100)

    def test_cannot_skip_states(self):
        run = _run()
        with pytest.raises(InvalidTransitionError):
            run.transition(PipelineState.SEARCHING_CLIPS)

    def test_cannot_go_back(self):
        run = _run()
        _advance_to(run, PipelineState.SEARCHING_CLIPS)
        with pytest.raises(InvalidTransitionError):
            run.transition(PipelineState.PLANNING_SCRIPT)

    def test_cannot_leave_idle_without_prompt(self):
        run = _run(prompt="  ")
        with pytest.raises(InvalidTransitionError, match="prompt"):
            run.transition(PipelineState.PLANNING_SCRIPT)
        assert run.state is PipelineState.IDLE

    def test_failed_only_through_fail(self):
        run = _run()
        with pytest.raises(InvalidTransitionError):
            run.transition(PipelineState.FAILED)

    def test_complete(self):
        run = _run()
        _advance_to(run, PipelineState.COMPOSING)

        run.complete(Path("/tmp/short.mp4"))

        assert run.state is PipelineState.DONE
        assert run.step == TOTAL_STEPS
        assert run.percent == 100
        assert run.label == "Complete"
        assert run.output_path == Path("/tmp/short.mp4")
        assert run.finished_at is not None

    def test_fail_keeps_step(self):
        run = _run()
        _advance_to(run, PipelineState.SEARCHING_CLIPS)

        run.fail("No videos found for the given prompt")

        assert run.state is PipelineState.FAILED
        assert run.step == 2
        assert run.error == "No videos found for the given prompt"
        assert run.message == run.error
        with pytest.raises(InvalidTransitionError):
            run.transition(PipelineState.SYNTHESIZING_AUDIO)
        with pytest.raises(InvalidTransitionError):
            run.fail("again")

    def test_cancel_and_mark_cancelled(self):
        run = _run()
        _advance_to(run, PipelineState.PLANNING_SCRIPT)

        assert run.cancel() is True
        assert run.cancel_requested
        run.mark_cancelled()

        assert run.state is PipelineState.CANCELLED
        assert run.output_path is None
        assert run.cancel() is False


class TestProgress:
    def test_report_progress_maps_into_stage_band(self):
        run = _run()
        _advance_to(run, PipelineState.COMPOSING)

        run.report_progress(50, "Composing video: 50%")

        assert run.percent == pytest.approx((6 + 0.5) / 7 * 100)
        assert run.message == "Composing video: 50%"

    def test_report_progress_is_monotonic(self):
        run = _run()
        _advance_to(run, PipelineState.COMPOSING)
        run.report_progress(80)
        high = run.percent

        run.report_progress(20)

        assert run.percent == high

    def test_report_progress_ignored_when_terminal(self):
        run = _run()
        run.transition(PipelineState.PLANNING_SCRIPT)
        run.fail("boom")
        run.report_progress(90)
        assert run.percent == pytest.approx(1 / 7 * 100)

    def test_to_dict(self):
        run = _run()
        run.fallbacks.append("script: API key not configured")
        data = run.to_dict()

        assert data["job_id"] == run.run_id
        assert data["state"] == "idle"
        assert data["total_steps"] == 7
        assert data["video_ready"] is False
        assert data["fallbacks"] == ["script: API key not configured"]
        assert data["settings"]["duration"] == 15


@pytest.mark.unit
@pytest.mark.asyncio
async def test_subscribe_receives_snapshot_then_transitions_until_terminal():
    run = _run()
    stream = run.subscribe()

    run.transition(PipelineState.PLANNING_SCRIPT)
    run.transition(PipelineState.SEARCHING_CLIPS)
    run.fail("No videos found for the given prompt")
    # Published after the terminal event, never seen
    run.report_progress(50)

    events = [event async for event in stream]

    assert [e.state for e in events] == ["idle", "planning_script", "searching_clips", "failed"]
    assert events[-1].terminal
    assert events[-1].error == "No videos found for the given prompt"
    percents = [e.percent for e in events]
    assert percents == sorted(percents)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_subscribe_to_finished_run_yields_final_snapshot():
    run = _run()
    run.transition(PipelineState.PLANNING_SCRIPT)
    run.mark_cancelled()

    events = [event async for event in run.subscribe()]

    assert len(events) == 1
    assert events[0].state == "cancelled"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_cancel_requests_run_cancellation():
    run = _run()
    stream = run.subscribe()

    stream.cancel()

    assert run.cancel_requested
    await run.wait_cancelled()
