"""FFmpeg-based composer for vertical shorts.

Takes the selected clips, aligned captions and narration audio and renders a
single MP4 using FFmpeg subprocess calls:

1. Download each unique clip source once
2. Render every clip trimmed to its selected duration, scaled to cover the
   target resolution and centre-cropped, at a constant frame rate, no audio
3. Concatenate the rendered clips with the concat demuxer
4. Burn the captions in with the ``ass`` filter
5. Mux the narration as the only audio track

Clips are the timing anchor for the picture and the narration for the
captions; a residual length mismatch between the two is accepted.

All intermediate files live in a temp directory that is removed afterwards,
so a failed or cancelled composition never leaves a partial video behind.
"""

import asyncio
import json
import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Optional, Sequence
from urllib.parse import urlparse

import httpx

from models.video import VideoClip
from shorts_agent.models import SubtitleSegment
from shorts_agent.subtitle_engine import SubtitleEngine

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30
FINAL_CRF = 20
FINAL_PRESET = "medium"
CLIP_PRESET = "veryfast"

# Progress milestones (percent of composition)
DOWNLOAD_END = 30.0
RENDER_END = 80.0
CONCAT_DONE = 85.0
SUBTITLES_DONE = 92.0
MUX_DONE = 98.0

_RESOLUTION_RE = re.compile(r"^(\d+)x(\d+)$")

ProgressCallback = Callable[[float], None]


class VideoComposerError(Exception):
    """Raised when an FFmpeg operation fails during composition."""

    pass


def parse_resolution(resolution: str) -> tuple[int, int]:
    """Parse a ``WxH`` string into (width, height).

    Raises:
        VideoComposerError: If the string is malformed or a side is zero
    """
    match = _RESOLUTION_RE.match(resolution.strip()) if resolution else None
    if not match:
        raise VideoComposerError(f"Invalid resolution '{resolution}', expected WxH")
    width, height = int(match.group(1)), int(match.group(2))
    if width <= 0 or height <= 0:
        raise VideoComposerError(f"Invalid resolution '{resolution}', sides must be positive")
    return width, height


class VideoComposer:
    """Assembles the final short from clips, captions and narration."""

    def __init__(
        self,
        output_dir: Optional[Path] = None,
        subtitle_engine: Optional[SubtitleEngine] = None,
        ffmpeg_timeout: float = 600.0,
        download_timeout: float = 120.0,
    ):
        self.output_dir = output_dir or Path("output")
        self.subtitle_engine = subtitle_engine or SubtitleEngine()
        self.ffmpeg_timeout = ffmpeg_timeout
        self.download_timeout = download_timeout

    def ensure_available(self) -> None:
        """Check that ffmpeg and ffprobe are on PATH.

        Raises:
            VideoComposerError: If either tool is missing
        """
        missing = [tool for tool in ("ffmpeg", "ffprobe") if shutil.which(tool) is None]
        if missing:
            raise VideoComposerError(f"Required tools not found on PATH: {', '.join(missing)}")
        logger.info("FFmpeg toolchain available")

    async def compose(
        self,
        clips: Sequence[VideoClip],
        subtitles: Sequence[SubtitleSegment],
        audio_path: Path,
        resolution: str,
        on_progress: Optional[ProgressCallback] = None,
        output_path: Optional[Path] = None,
    ) -> Path:
        """Compose the short.

        Args:
            clips: Selected clips in play order, durations already trimmed
            subtitles: Aligned captions (may be empty)
            audio_path: Narration audio file
            resolution: Target ``WxH``
            on_progress: Called with monotonically increasing percentages
            output_path: Destination file, defaults to ``<output_dir>/short.mp4``

        Returns:
            Path to the composed MP4

        Raises:
            VideoComposerError: On bad input, download failure or FFmpeg failure
        """
        width, height = parse_resolution(resolution)
        if not clips:
            raise VideoComposerError("No clips to compose")
        if not Path(audio_path).exists():
            raise VideoComposerError(f"Narration audio not found: {audio_path}")

        report = _MonotonicProgress(on_progress)
        final_path = Path(output_path) if output_path else self.output_dir / "short.mp4"
        final_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_dir = Path(tempfile.mkdtemp(prefix="shorts_compose_"))
        logger.info(
            f"Composing {len(clips)} clips at {width}x{height}, "
            f"{len(subtitles)} captions, work dir {tmp_dir}"
        )

        try:
            report(0.0)
            sources = await self._fetch_clips(clips, tmp_dir, report)

            rendered: list[Path] = []
            for i, clip in enumerate(clips):
                clip_path = tmp_dir / f"clip_{i:03d}.mp4"
                await asyncio.to_thread(
                    self._normalize_clip, sources[clip.url], clip_path, clip, width, height
                )
                rendered.append(clip_path)
                report(DOWNLOAD_END + (RENDER_END - DOWNLOAD_END) * (i + 1) / len(clips))

            current_video = tmp_dir / "concat.mp4"
            await asyncio.to_thread(self._concatenate_scenes, rendered, current_video)
            report(CONCAT_DONE)

            if subtitles:
                ass_path = self.subtitle_engine.save_ass_file(
                    self.subtitle_engine.generate_ass_subtitles(subtitles, width, height),
                    tmp_dir / "captions.ass",
                )
                subtitled = tmp_dir / "subtitled.mp4"
                await asyncio.to_thread(self._burn_subtitles, current_video, ass_path, subtitled)
                current_video = subtitled
            report(SUBTITLES_DONE)

            with_audio = tmp_dir / "with_audio.mp4"
            await asyncio.to_thread(self._add_audio, current_video, Path(audio_path), with_audio)
            report(MUX_DONE)

            shutil.move(str(with_audio), str(final_path))
            report(100.0)

            duration = await asyncio.to_thread(self._get_video_duration, final_path)
            logger.info(f"Composition complete: {final_path} ({duration:.2f}s)")
            return final_path

        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            logger.debug(f"Cleaned up temp dir: {tmp_dir}")

    # ------------------------------------------------------------------
    # Clip sources
    # ------------------------------------------------------------------

    async def _fetch_clips(
        self,
        clips: Sequence[VideoClip],
        tmp_dir: Path,
        report: "_MonotonicProgress",
    ) -> dict[str, Path]:
        """Resolve every unique clip URL to a local file.

        Local paths are used in place; remote URLs are downloaded once each.
        """
        unique_urls = list(dict.fromkeys(clip.url for clip in clips))
        sources: dict[str, Path] = {}
        to_download: list[tuple[str, Path]] = []

        for i, url in enumerate(unique_urls):
            if urlparse(url).scheme in ("http", "https"):
                suffix = Path(urlparse(url).path).suffix or ".mp4"
                to_download.append((url, tmp_dir / f"source_{i:03d}{suffix}"))
            else:
                local = Path(url[len("file://"):] if url.startswith("file://") else url)
                if not local.exists():
                    raise VideoComposerError(f"Clip source not found: {url}")
                sources[url] = local

        if not to_download:
            report(DOWNLOAD_END)
            return sources

        done = 0
        async with httpx.AsyncClient(timeout=self.download_timeout, follow_redirects=True) as client:

            async def fetch(url: str, dest: Path) -> None:
                nonlocal done
                await self._download_file(client, url, dest)
                sources[url] = dest
                done += 1
                report(DOWNLOAD_END * done / len(to_download))

            tasks = [asyncio.create_task(fetch(url, dest)) for url, dest in to_download]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                # Stop the remaining downloads before the client and temp dir go away
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        logger.info(f"Fetched {len(to_download)} clip sources")
        return sources

    async def _download_file(self, client: httpx.AsyncClient, url: str, dest: Path) -> None:
        try:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with open(dest, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
        except httpx.HTTPError as e:
            raise VideoComposerError(f"Failed to download clip {url}: {e}") from e
        logger.debug(f"Downloaded {url} -> {dest.name}")

    # ------------------------------------------------------------------
    # FFmpeg steps
    # ------------------------------------------------------------------

    def _normalize_clip(
        self,
        input_path: Path,
        output_path: Path,
        clip: VideoClip,
        width: int,
        height: int,
    ) -> None:
        """Render one clip trimmed to its duration, covering the frame.

        Scales up until both sides cover the target, then centre-crops, so
        vertical output never gets letterbox bars.
        """
        vf = (
            f"scale={width}:{height}:force_original_aspect_ratio=increase,"
            f"crop={width}:{height},"
            f"setsar=1,fps={DEFAULT_FPS}"
        )

        cmd = ["ffmpeg", "-y"]
        if clip.start_time:
            cmd.extend(["-ss", f"{clip.start_time:.3f}"])
        cmd.extend([
            "-i", str(input_path),
            "-t", f"{clip.duration:.3f}",
            "-vf", vf,
            "-c:v", "libx264",
            "-preset", CLIP_PRESET,
            "-pix_fmt", "yuv420p",
            "-an",
            str(output_path),
        ])

        self._run_ffmpeg(cmd, f"render {output_path.name} ({clip.duration:.2f}s)")

    def _concatenate_scenes(self, scene_clips: list[Path], output_path: Path) -> None:
        """Concatenate rendered clips using the FFmpeg concat demuxer.

        All inputs share codec, resolution and frame rate, which
        _normalize_clip guarantees, so streams are copied.
        """
        if not scene_clips:
            raise VideoComposerError("No scene clips to concatenate")

        if len(scene_clips) == 1:
            shutil.copy2(str(scene_clips[0]), str(output_path))
            return

        concat_file = output_path.parent / "concat.txt"
        concat_file.write_text("\n".join(f"file '{clip}'" for clip in scene_clips))

        cmd = [
            "ffmpeg", "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(concat_file),
            "-c", "copy",
            str(output_path),
        ]

        self._run_ffmpeg(cmd, f"concatenate {len(scene_clips)} clips")

    def _burn_subtitles(self, video_path: Path, sub_path: Path, output_path: Path) -> None:
        """Burn an ASS subtitle file into the video."""
        # Escape colons and backslashes in path for FFmpeg filter
        escaped_path = str(sub_path).replace("\\", "/").replace(":", "\\:")

        cmd = [
            "ffmpeg", "-y",
            "-i", str(video_path),
            "-vf", f"ass='{escaped_path}'",
            "-c:v", "libx264",
            "-preset", FINAL_PRESET,
            "-crf", str(FINAL_CRF),
            "-pix_fmt", "yuv420p",
            "-an",
            str(output_path),
        ]

        self._run_ffmpeg(cmd, "burn subtitles")

    def _add_audio(self, video_path: Path, audio_path: Path, output_path: Path) -> None:
        """Mux narration as the only audio track.

        No -shortest: the picture keeps the clips' length even when the
        narration runs shorter or longer.
        """
        cmd = [
            "ffmpeg", "-y",
            "-i", str(video_path),
            "-i", str(audio_path),
            "-c:v", "copy",
            "-c:a", "aac",
            "-b:a", "192k",
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-movflags", "+faststart",
            str(output_path),
        ]

        self._run_ffmpeg(cmd, "add narration track")

    def _get_video_duration(self, video_path: Path) -> float:
        """Get the duration of a media file using ffprobe, 0.0 on error."""
        cmd = [
            "ffprobe",
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "json",
            str(video_path),
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
            if result.returncode == 0:
                return float(json.loads(result.stdout)["format"]["duration"])
        except (subprocess.SubprocessError, OSError, ValueError, KeyError) as e:
            logger.warning(f"ffprobe failed for {video_path}: {e}")
        return 0.0

    def _run_ffmpeg(self, cmd: list[str], description: str = "") -> None:
        """Run FFmpeg command with error handling.

        Args:
            cmd: FFmpeg command as list of arguments
            description: Human-readable description for logging

        Raises:
            VideoComposerError: If FFmpeg fails, times out or is missing
        """
        logger.info(f"FFmpeg: {description}")
        logger.debug(f"Command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.ffmpeg_timeout
            )
        except subprocess.TimeoutExpired as e:
            raise VideoComposerError(
                f"FFmpeg timed out after {self.ffmpeg_timeout}s ({description})"
            ) from e
        except FileNotFoundError as e:
            raise VideoComposerError("FFmpeg executable not found") from e

        if result.returncode != 0:
            logger.error(f"FFmpeg stderr: {result.stderr[-1000:]}")
            raise VideoComposerError(f"FFmpeg failed ({description}): {result.stderr[:500]}")


class _MonotonicProgress:
    """Forwards progress to a callback, never moving backwards."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self.callback = callback
        self.last = -1.0

    def __call__(self, percent: float) -> None:
        percent = min(100.0, max(0.0, percent))
        if percent <= self.last:
            return
        self.last = percent
        if self.callback is not None:
            self.callback(percent)
