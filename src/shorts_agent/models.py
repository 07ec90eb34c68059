"""Data models for the shorts production pipeline.

Everything here is immutable: each pipeline stage produces a new value and
later stages only read what earlier stages produced.
"""

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Generic, Optional, TypeVar

from models.video import VideoClip

T = TypeVar("T")

ALLOWED_DURATIONS = (15, 30, 60)
ALLOWED_RESOLUTIONS = ("1080x1920", "720x1280")


class PipelineState(str, Enum):
    """States of a single generation run. Linear, no branching back."""

    IDLE = "idle"
    PLANNING_SCRIPT = "planning_script"
    SEARCHING_CLIPS = "searching_clips"
    SYNTHESIZING_AUDIO = "synthesizing_audio"
    ALIGNING_CAPTIONS = "aligning_captions"
    LOADING_COMPOSER = "loading_composer"
    COMPOSING = "composing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED, PipelineState.CANCELLED)


@dataclass(frozen=True)
class ScriptSegment:
    """One spoken beat of the script."""

    text: str
    duration: float  # planned seconds, advisory only
    keywords: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "duration": self.duration,
            "keywords": list(self.keywords),
        }


@dataclass(frozen=True)
class SubtitleSegment:
    """A caption shown from ``start_time`` until ``end_time`` (seconds)."""

    start_time: float
    end_time: float
    text: str

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "text": self.text,
        }


@dataclass(frozen=True)
class Narration:
    """Synthesized narration audio and its measured duration."""

    audio_path: Path
    duration: float
    voice: str


@dataclass(frozen=True)
class VideoSettings:
    """Run configuration supplied once at pipeline start."""

    prompt: str
    duration: int = 30
    resolution: str = "1080x1920"
    voice: str = ""

    def __post_init__(self):
        if self.duration not in ALLOWED_DURATIONS:
            raise ValueError(
                f"duration must be one of {ALLOWED_DURATIONS}, got {self.duration}"
            )
        if self.resolution not in ALLOWED_RESOLUTIONS:
            raise ValueError(
                f"resolution must be one of {ALLOWED_RESOLUTIONS}, got {self.resolution!r}"
            )

    @property
    def has_prompt(self) -> bool:
        return bool(self.prompt and self.prompt.strip())


@dataclass(frozen=True)
class VideoProject:
    """Intermediate state threaded through the pipeline.

    Each field is filled by exactly one stage via the ``with_*`` helpers,
    which return a new project rather than mutating this one.
    """

    script: tuple[ScriptSegment, ...] = ()
    clips: tuple[VideoClip, ...] = ()
    subtitles: tuple[SubtitleSegment, ...] = ()
    narration: Optional[Narration] = None

    @property
    def audio_path(self) -> Optional[Path]:
        return self.narration.audio_path if self.narration else None

    @property
    def full_text(self) -> str:
        """Script texts joined with a single space, in script order."""
        return " ".join(segment.text for segment in self.script)

    @property
    def clips_duration(self) -> float:
        return sum(clip.duration for clip in self.clips)

    def with_script(self, script) -> "VideoProject":
        if self.script:
            raise ValueError("script is already set on this project")
        return replace(self, script=tuple(script))

    def with_clips(self, clips) -> "VideoProject":
        if self.clips:
            raise ValueError("clips are already set on this project")
        return replace(self, clips=tuple(clips))

    def with_narration(self, narration: Narration) -> "VideoProject":
        if self.narration is not None:
            raise ValueError("narration is already set on this project")
        return replace(self, narration=narration)

    def with_subtitles(self, subtitles) -> "VideoProject":
        if self.subtitles:
            raise ValueError("subtitles are already set on this project")
        return replace(self, subtitles=tuple(subtitles))


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    """Return value of a stage that always succeeds.

    ``fallback`` is True when the value is a deterministic substitute rather
    than what the primary path produced; ``reason`` says why.
    """

    value: T
    fallback: bool = False
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "StageOutcome[T]":
        return cls(value=value)

    @classmethod
    def substitute(cls, value: T, reason: str) -> "StageOutcome[T]":
        return cls(value=value, fallback=True, reason=reason)

