"""Run state for the shorts pipeline.

A PipelineRun is the single owner of a generation run's observable state:
current state, step index, status message, progress, error and result. The
orchestrator drives it through the linear state machine; the API and CLI only
read it or subscribe to its progress stream.
"""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from shorts_agent.models import PipelineState, VideoProject, VideoSettings
from utils.progress import ProgressEvent, ProgressStream

logger = logging.getLogger(__name__)

STATE_ORDER = (
    PipelineState.IDLE,
    PipelineState.PLANNING_SCRIPT,
    PipelineState.SEARCHING_CLIPS,
    PipelineState.SYNTHESIZING_AUDIO,
    PipelineState.ALIGNING_CAPTIONS,
    PipelineState.LOADING_COMPOSER,
    PipelineState.COMPOSING,
    PipelineState.DONE,
)

TOTAL_STEPS = len(STATE_ORDER) - 1

STEP_LABELS = {
    PipelineState.IDLE: "Ready",
    PipelineState.PLANNING_SCRIPT: "Generating Script",
    PipelineState.SEARCHING_CLIPS: "Searching Videos",
    PipelineState.SYNTHESIZING_AUDIO: "Creating Voiceover",
    PipelineState.ALIGNING_CAPTIONS: "Adding Subtitles",
    PipelineState.LOADING_COMPOSER: "Loading Processor",
    PipelineState.COMPOSING: "Composing Video",
    PipelineState.DONE: "Complete",
    PipelineState.FAILED: "Failed",
    PipelineState.CANCELLED: "Cancelled",
}

STATE_MESSAGES = {
    PipelineState.IDLE: "Waiting to start",
    PipelineState.PLANNING_SCRIPT: "Generating AI script...",
    PipelineState.SEARCHING_CLIPS: "Searching for relevant videos...",
    PipelineState.SYNTHESIZING_AUDIO: "Generating voiceover...",
    PipelineState.ALIGNING_CAPTIONS: "Creating subtitles...",
    PipelineState.LOADING_COMPOSER: "Loading video processor...",
    PipelineState.COMPOSING: "Composing final video...",
    PipelineState.DONE: "Video generated successfully!",
}


class InvalidTransitionError(Exception):
    """Raised when a state change would break the linear state machine."""

    pass


class PipelineError(Exception):
    """A run ended without a video."""

    pass


class PipelineCancelledError(PipelineError):
    """A run was cancelled before it produced a video."""

    pass


class PipelineRun:
    """Observable state of one generation run.

    Example usage:
        run = PipelineRun(VideoSettings(prompt="morning coffee routine", duration=15))
        stream = run.subscribe()
        ...
        run.transition(PipelineState.PLANNING_SCRIPT)
    """

    def __init__(self, settings: VideoSettings, run_id: Optional[str] = None):
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.settings = settings
        self.state = PipelineState.IDLE
        self.step = 0
        self.message = STATE_MESSAGES[PipelineState.IDLE]
        self.percent = 0.0
        self.error: Optional[str] = None
        self.output_path: Optional[Path] = None
        self.project = VideoProject()
        self.fallbacks: list[str] = []
        self.created_at = time.time()
        self.finished_at: Optional[float] = None

        self._cancel_event = asyncio.Event()
        self._subscribers: list[ProgressStream] = []

    @property
    def label(self) -> str:
        return STEP_LABELS[self.state]

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def is_running(self) -> bool:
        return self.state is not PipelineState.IDLE and not self.state.is_terminal

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    async def wait_cancelled(self) -> None:
        """Block until cancel() is called."""
        await self._cancel_event.wait()

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------

    def transition(self, new_state: PipelineState, message: Optional[str] = None) -> None:
        """Advance to the next state in the linear order.

        Raises:
            InvalidTransitionError: If new_state is not the immediate successor,
                the run is terminal, or the run would leave Idle without a prompt
        """
        if self.state.is_terminal:
            raise InvalidTransitionError(f"Run {self.run_id} is already {self.state.value}")
        if new_state in (PipelineState.FAILED, PipelineState.CANCELLED):
            raise InvalidTransitionError("Use fail() or mark_cancelled() for terminal failures")

        expected = STATE_ORDER[STATE_ORDER.index(self.state) + 1]
        if new_state is not expected:
            raise InvalidTransitionError(
                f"Cannot go from {self.state.value} to {new_state.value}, expected {expected.value}"
            )
        if self.state is PipelineState.IDLE and not self.settings.has_prompt:
            raise InvalidTransitionError("Cannot start a run without a prompt")

        self.state = new_state
        self.step = STATE_ORDER.index(new_state)
        self.percent = self.step / TOTAL_STEPS * 100
        self.message = message or STATE_MESSAGES[new_state]

        logger.info(f"[{self.run_id}] {self.step}/{TOTAL_STEPS} {self.label}: {self.message}")
        self._publish()

    def report_progress(self, stage_percent: float, message: Optional[str] = None) -> None:
        """Map progress within the current stage onto the overall percentage.

        The stage occupies the band between its step and the next one.
        Progress never moves backwards.
        """
        if self.state.is_terminal or self.state is PipelineState.IDLE:
            return
        stage_percent = min(100.0, max(0.0, stage_percent))
        overall = (self.step + stage_percent / 100) / TOTAL_STEPS * 100
        if overall <= self.percent and message is None:
            return
        self.percent = max(self.percent, overall)
        if message:
            self.message = message
        self._publish()

    def complete(self, output_path: Path) -> None:
        """Enter Done with the composed video."""
        self.output_path = output_path
        self.transition(PipelineState.DONE)
        self.finished_at = time.time()

    def fail(self, error: str) -> None:
        """Enter Failed from any non-terminal state."""
        if self.state.is_terminal:
            raise InvalidTransitionError(f"Run {self.run_id} is already {self.state.value}")
        self.state = PipelineState.FAILED
        self.error = error
        self.message = error
        self.finished_at = time.time()

        logger.error(f"[{self.run_id}] Failed at step {self.step}: {error}")
        self._publish()

    def cancel(self) -> bool:
        """Request cancellation. Returns False if the run already finished."""
        if self.state.is_terminal:
            return False
        if not self._cancel_event.is_set():
            logger.info(f"[{self.run_id}] Cancellation requested")
            self._cancel_event.set()
        return True

    def mark_cancelled(self) -> None:
        """Enter Cancelled. The run exposes no output afterwards."""
        if self.state.is_terminal:
            raise InvalidTransitionError(f"Run {self.run_id} is already {self.state.value}")
        self.state = PipelineState.CANCELLED
        self.message = "Generation cancelled"
        self.output_path = None
        self.finished_at = time.time()

        logger.info(f"[{self.run_id}] Cancelled at step {self.step}")
        self._publish()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def snapshot(self) -> ProgressEvent:
        return ProgressEvent(
            state=self.state.value,
            step=self.step,
            label=self.label,
            message=self.message,
            percent=round(self.percent, 2),
            terminal=self.state.is_terminal,
            error=self.error,
            output_path=str(self.output_path) if self.output_path else None,
        )

    def subscribe(self) -> ProgressStream:
        """Open a progress stream, starting with the current snapshot."""
        stream = ProgressStream(on_cancel=self.cancel)
        stream.publish(self.snapshot())
        if not stream.closed:
            self._subscribers.append(stream)
        return stream

    def _publish(self) -> None:
        event = self.snapshot()
        for stream in self._subscribers:
            stream.publish(event)
        self._subscribers = [s for s in self._subscribers if not s.closed]

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "job_id": self.run_id,
            "state": self.state.value,
            "step": self.step,
            "total_steps": TOTAL_STEPS,
            "label": self.label,
            "message": self.message,
            "percent": round(self.percent, 2),
            "error": self.error,
            "fallbacks": list(self.fallbacks),
            "video_ready": self.state is PipelineState.DONE and self.output_path is not None,
            "settings": {
                "prompt": self.settings.prompt,
                "duration": self.settings.duration,
                "resolution": self.settings.resolution,
                "voice": self.settings.voice,
            },
            "created_at": self.created_at,
            "finished_at": self.finished_at,
        }
