"""Shorts Agent - prompt to vertical short video pipeline."""

from .models import (
    ALLOWED_DURATIONS,
    ALLOWED_RESOLUTIONS,
    Narration,
    PipelineState,
    ScriptSegment,
    StageOutcome,
    SubtitleSegment,
    VideoProject,
    VideoSettings,
)
from .script_generator import ScriptGenerator, create_fallback_script, extract_keywords
from .clip_selector import ClipSelectionError, NoClipsFoundError, select_clips_for_duration
from .narration import NarrationError, NarrationSynthesizer
from .subtitle_engine import SubtitleEngine
from .video_composer import VideoComposer, VideoComposerError
from .state import (
    InvalidTransitionError,
    PipelineCancelledError,
    PipelineError,
    PipelineRun,
)
from .agent import ShortsProductionAgent

__all__ = [
    "ALLOWED_DURATIONS",
    "ALLOWED_RESOLUTIONS",
    "PipelineState",
    "ScriptSegment",
    "SubtitleSegment",
    "Narration",
    "VideoSettings",
    "VideoProject",
    "StageOutcome",
    "ScriptGenerator",
    "create_fallback_script",
    "extract_keywords",
    "ClipSelectionError",
    "NoClipsFoundError",
    "select_clips_for_duration",
    "NarrationError",
    "NarrationSynthesizer",
    "SubtitleEngine",
    "VideoComposer",
    "VideoComposerError",
    "InvalidTransitionError",
    "PipelineCancelledError",
    "PipelineError",
    "PipelineRun",
    "ShortsProductionAgent",
]
