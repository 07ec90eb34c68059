"""Shorts Production Agent - prompt to finished vertical video.

prompt -> script -> clip search/selection -> narration -> captions -> composition

Stages run strictly one after another. Script planning, voice selection and
narration fall back locally and never fail a run; missing footage, FFmpeg
problems and unrecoverable narration failures end it in Failed.
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Optional, TypeVar

from models.tts import Voice
from services.ai_service import AIService
from services.clip_search_service import ClipSearchService
from services.tts_service import TTSService
from services.video_sources import PexelsVideoSource, PixabayVideoSource
from shorts_agent.clip_selector import (
    ClipSelectionError,
    collect_search_keywords,
    select_clips_for_duration,
)
from shorts_agent.models import PipelineState, StageOutcome, VideoSettings
from shorts_agent.narration import NarrationError, NarrationSynthesizer
from shorts_agent.script_generator import ScriptGenerator
from shorts_agent.state import (
    InvalidTransitionError,
    PipelineCancelledError,
    PipelineError,
    PipelineRun,
)
from shorts_agent.subtitle_engine import SubtitleEngine
from shorts_agent.video_composer import VideoComposer, VideoComposerError, parse_resolution
from utils.config import load_config
from utils.logging import clear_job_context, set_job_context

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Conditions that end a run in Failed with their message shown to the user
FATAL_ERRORS = (
    ClipSelectionError,
    NarrationError,
    VideoComposerError,
    InvalidTransitionError,
)


class ShortsProductionAgent:
    """Runs the shorts pipeline and keeps a PipelineRun up to date.

    Every collaborator can be injected; anything not given is built from the
    configuration.
    """

    def __init__(
        self,
        config: dict | None = None,
        script_generator: ScriptGenerator | None = None,
        clip_search: ClipSearchService | None = None,
        narrator: NarrationSynthesizer | None = None,
        subtitle_engine: SubtitleEngine | None = None,
        composer: VideoComposer | None = None,
    ):
        """Initialize with all services.

        Load config from environment if not provided.
        """
        if config is None:
            config = load_config()
        self.config = config

        self.output_dir = Path(config.get("local_output_folder", "output"))
        self.max_selection_passes = config.get("max_selection_passes", 50)
        ffmpeg_timeout = config.get("ffmpeg_timeout_seconds", 600.0)

        if script_generator is None:
            api_key = config.get("gemini_api_key")
            ai = None
            if api_key:
                ai = AIService(
                    api_key=api_key,
                    model_name=config.get("gemini_model", "gemini-3-flash-preview"),
                )
            script_generator = ScriptGenerator(ai, timeout=config.get("script_timeout_seconds", 30.0))
        self.script_generator = script_generator

        if clip_search is None:
            clip_search = ClipSearchService(
                self._build_video_sources(),
                timeout=config.get("search_timeout_seconds", 30.0),
            )
        self.clip_search = clip_search

        self.tts: TTSService | None = None
        if narrator is None:
            self.tts = TTSService(
                server_url=config.get("tts_server_url", ""),
                timeout=config.get("tts_timeout_seconds", 180.0),
            )
            narrator = NarrationSynthesizer(
                self.tts,
                default_voice=config.get("tts_default_voice", "default"),
                silent_fallback=config.get("silent_narration_fallback", True),
                ffmpeg_timeout=ffmpeg_timeout,
            )
        self.narrator = narrator

        self.subtitle_engine = subtitle_engine or SubtitleEngine()
        self.composer = composer or VideoComposer(
            output_dir=self.output_dir,
            subtitle_engine=self.subtitle_engine,
            ffmpeg_timeout=ffmpeg_timeout,
        )

    def _build_video_sources(self) -> list:
        """Build the clip source list ordered by configured priority."""
        per_keyword = self.config.get("clips_per_keyword", 5)
        timeout = self.config.get("search_timeout_seconds", 30.0)
        all_sources = {
            "pexels": lambda: PexelsVideoSource(max_results=per_keyword, timeout=timeout),
            "pixabay": lambda: PixabayVideoSource(max_results=per_keyword, timeout=timeout),
        }
        sources = []
        for name in self.config.get("clip_source_priority", ["pexels", "pixabay"]):
            factory = all_sources.get(name)
            if factory:
                sources.append(factory())
            else:
                logger.warning(f"Ignoring unknown clip source '{name}'")
        return sources

    async def list_voices(self) -> list[Voice]:
        """Voices the narration stage can use (may be empty)."""
        return await self.narrator.available_voices()

    async def close(self) -> None:
        """Release HTTP clients owned by this agent."""
        if self.tts is not None:
            await self.tts.close()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(self, settings: VideoSettings, run: Optional[PipelineRun] = None) -> PipelineRun:
        """Execute the pipeline. Never raises for pipeline failures.

        Args:
            settings: Run configuration
            run: Existing run object to drive (so callers can subscribe first)

        Returns:
            The run, in Done, Failed or Cancelled
        """
        if run is None:
            run = PipelineRun(settings)

        token = set_job_context(run.run_id)
        logger.info(f"=== SHORT PRODUCTION START: '{settings.prompt[:60]}' ===")
        try:
            await self._execute(run)
        except PipelineCancelledError:
            run.mark_cancelled()
        except FATAL_ERRORS as e:
            run.fail(str(e))
        except asyncio.CancelledError:
            if not run.is_terminal:
                run.mark_cancelled()
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during {run.state.value}")
            run.fail(f"Unexpected error: {e}")
        finally:
            logger.info(f"=== SHORT PRODUCTION END: {run.state.value} ===")
            clear_job_context(token)

        return run

    async def produce(self, settings: VideoSettings) -> Path:
        """Run the pipeline and return the video path.

        Raises:
            PipelineCancelledError: If the run was cancelled
            PipelineError: If the run failed
        """
        run = await self.run(settings)
        if run.state is PipelineState.DONE and run.output_path:
            return run.output_path
        if run.state is PipelineState.CANCELLED:
            raise PipelineCancelledError("Generation cancelled")
        raise PipelineError(run.error or "Generation failed")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _execute(self, run: PipelineRun) -> None:
        settings = run.settings

        # -- 1. Script --
        self._advance(run, PipelineState.PLANNING_SCRIPT)
        project_dir = self._create_project_dir(run)
        script = await self._await_stage(
            run, self.script_generator.plan(settings.prompt, settings.duration)
        )
        self._note_fallback(run, "script", script)
        run.project = run.project.with_script(script.value)
        self._save_script_json(run, project_dir)

        # -- 2. Footage --
        self._advance(run, PipelineState.SEARCHING_CLIPS)
        keywords = collect_search_keywords(run.project.script, settings.prompt)
        logger.info(f"Searching clips for keywords: {keywords}")
        candidates = await self._await_stage(run, self.clip_search.search(keywords))
        clips = select_clips_for_duration(candidates, settings.duration, self.max_selection_passes)
        run.project = run.project.with_clips(clips)

        # -- 3. Narration --
        self._advance(run, PipelineState.SYNTHESIZING_AUDIO)
        voices = await self._await_stage(run, self.narrator.available_voices())
        voice = self.narrator.resolve_voice(settings.voice, voices)
        self._note_fallback(run, "voice", voice)
        narration = await self._await_stage(
            run,
            self.narrator.synthesize(
                run.project.full_text,
                voice.value,
                project_dir / "narration.wav",
                settings.duration,
            ),
        )
        self._note_fallback(run, "narration", narration)
        run.project = run.project.with_narration(narration.value)

        # -- 4. Captions --
        self._advance(run, PipelineState.ALIGNING_CAPTIONS)
        subtitles = self.subtitle_engine.align(run.project.full_text, narration.value.duration)
        run.project = run.project.with_subtitles(subtitles)
        width, height = parse_resolution(settings.resolution)
        self.subtitle_engine.save_ass_file(
            self.subtitle_engine.generate_ass_subtitles(subtitles, width, height),
            project_dir / "captions.ass",
        )

        # -- 5. Composer toolchain --
        self._advance(run, PipelineState.LOADING_COMPOSER)
        await self._await_stage(run, asyncio.to_thread(self.composer.ensure_available))

        # -- 6. Composition --
        self._advance(run, PipelineState.COMPOSING)
        logger.info(
            f"Composing {len(run.project.clips)} clips ({run.project.clips_duration:.2f}s) "
            f"over {narration.value.duration:.2f}s of narration"
        )
        output_path = await self._await_stage(
            run,
            self.composer.compose(
                run.project.clips,
                run.project.subtitles,
                narration.value.audio_path,
                settings.resolution,
                on_progress=lambda p: run.report_progress(p, f"Composing video: {p:.0f}%"),
                output_path=project_dir / "short.mp4",
            ),
        )

        self._check_cancelled(run)
        run.complete(output_path)
        logger.info(f"=== SHORT COMPLETE: {output_path} ===")

    def _advance(self, run: PipelineRun, state: PipelineState) -> None:
        self._check_cancelled(run)
        run.transition(state)

    @staticmethod
    def _check_cancelled(run: PipelineRun) -> None:
        if run.cancel_requested:
            raise PipelineCancelledError(f"Run {run.run_id} cancelled")

    async def _await_stage(self, run: PipelineRun, awaitable: Awaitable[T]) -> T:
        """Await a stage call unless the run is cancelled first.

        On cancellation the stage task is cancelled and abandoned, not awaited.

        Raises:
            PipelineCancelledError: If cancel() was called before the stage finished
        """
        if run.cancel_requested:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise PipelineCancelledError(f"Run {run.run_id} cancelled")

        stage_task = asyncio.ensure_future(awaitable)
        cancel_waiter = asyncio.create_task(run.wait_cancelled())
        try:
            await asyncio.wait({stage_task, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            stage_task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if stage_task.done():
            return stage_task.result()

        stage_task.cancel()
        stage_task.add_done_callback(_discard_result)
        raise PipelineCancelledError(f"Run {run.run_id} cancelled during {run.state.value}")

    @staticmethod
    def _note_fallback(run: PipelineRun, stage: str, outcome: StageOutcome) -> None:
        if outcome.fallback:
            logger.warning(f"Using fallback {stage}: {outcome.reason}")
            run.fallbacks.append(f"{stage}: {outcome.reason}")

    def _create_project_dir(self, run: PipelineRun) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        project_dir = self.output_dir / f"short_{timestamp}_{run.run_id}"
        project_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Project directory: {project_dir}")
        return project_dir

    def _save_script_json(self, run: PipelineRun, project_dir: Path) -> None:
        """Save the script as JSON next to the other run artefacts."""
        data = {
            "prompt": run.settings.prompt,
            "duration": run.settings.duration,
            "segments": [segment.to_dict() for segment in run.project.script],
        }
        try:
            (project_dir / "script.json").write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to save script JSON: {e}")


def _discard_result(task: asyncio.Future) -> None:
    """Retrieve an abandoned stage's outcome so it is not reported as unhandled."""
    if not task.cancelled():
        task.exception()
