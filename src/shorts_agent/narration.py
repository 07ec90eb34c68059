"""Narration synthesis: script text to a WAV file with a measured duration.

The measured duration is what captions are aligned against, since real
speech timing differs from the planned segment durations.
"""

import asyncio
import logging
import shutil
import subprocess
import wave
from pathlib import Path
from typing import Optional, Sequence

from models.tts import Voice
from services.tts_service import TTSService, TTSServiceError
from shorts_agent.models import Narration, StageOutcome

logger = logging.getLogger(__name__)

SAMPLE_RATE = 24000


class NarrationError(Exception):
    """Raised when narration cannot be produced and no fallback is allowed."""

    pass


class NarrationSynthesizer:
    """Turns the full script text into narration audio.

    When synthesis fails (or no TTS server is configured) and
    ``silent_fallback`` is on, a silent track of the target duration stands in
    so the run can still finish with captions over footage.
    """

    def __init__(
        self,
        tts_service: Optional[TTSService] = None,
        default_voice: str = "default",
        silent_fallback: bool = True,
        ffmpeg_timeout: float = 60.0,
    ):
        self.tts = tts_service
        self.default_voice = default_voice
        self.silent_fallback = silent_fallback
        self.ffmpeg_timeout = ffmpeg_timeout

    async def available_voices(self) -> list[Voice]:
        """Enumerate voices offered by the TTS server, empty if unavailable."""
        if self.tts is None:
            return []
        return await self.tts.list_voices()

    def resolve_voice(self, requested: str, voices: Sequence[Voice]) -> StageOutcome[str]:
        """Pick the voice to synthesize with. Never fails.

        The requested voice is used when it was enumerated. Otherwise the
        first enumerated voice, or the configured default when none were.
        """
        names = [v.name for v in voices]
        if requested and requested in names:
            return StageOutcome.ok(requested)

        if names:
            reason = f"voice '{requested}' not available" if requested else "no voice requested"
            logger.info(f"{reason}, using '{names[0]}'")
            return StageOutcome.substitute(names[0], reason)

        logger.info(f"No voices enumerated, using default voice '{self.default_voice}'")
        return StageOutcome.substitute(self.default_voice, "no voices available")

    async def synthesize(
        self,
        text: str,
        voice: str,
        output_path: Path,
        target_duration: float,
    ) -> StageOutcome[Narration]:
        """Synthesize narration for ``text`` into ``output_path`` (WAV).

        Args:
            text: Full narration text
            voice: Voice name, already resolved
            output_path: Where the WAV file is written
            target_duration: Requested video length, used for the silent
                fallback and when the measured duration is unusable

        Returns:
            StageOutcome with the Narration; ``fallback`` is set for silence

        Raises:
            NarrationError: If synthesis fails and silent fallback is disabled
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            if self.tts is None or not self.tts.is_configured:
                raise NarrationError("No TTS server configured")

            audio_bytes = await self.tts.generate(text, voice)
            raw_path = output_path.with_suffix(".raw")
            raw_path.write_bytes(audio_bytes)
            try:
                await asyncio.to_thread(self._ensure_wav, raw_path, output_path)
            finally:
                raw_path.unlink(missing_ok=True)

        except (NarrationError, TTSServiceError, OSError) as e:
            if not self.silent_fallback:
                raise NarrationError(f"Narration synthesis failed: {e}") from e
            logger.warning(f"Narration failed, writing {target_duration}s of silence: {e}")
            self._write_silence_wav(output_path, duration_seconds=target_duration)
            return StageOutcome.substitute(
                Narration(audio_path=output_path, duration=float(target_duration), voice=voice),
                str(e),
            )

        duration = self._get_wav_duration(output_path)
        if duration <= 0:
            logger.warning(f"Could not measure narration duration, assuming {target_duration}s")
            duration = float(target_duration)

        logger.info(f"Narration ready: {duration:.2f}s with voice '{voice}'")
        return StageOutcome.ok(Narration(audio_path=output_path, duration=duration, voice=voice))

    def _ensure_wav(self, input_path: Path, output_path: Path) -> None:
        """Convert any audio file to 24kHz mono WAV using ffmpeg.

        If the file is already valid WAV, copies it directly.
        """
        try:
            with wave.open(str(input_path), "rb") as wf:
                wf.getnframes()
            shutil.copy2(input_path, output_path)
            return
        except (wave.Error, EOFError):
            pass  # Not valid WAV, convert with ffmpeg

        try:
            subprocess.run(
                [
                    "ffmpeg", "-y", "-i", str(input_path),
                    "-ar", str(SAMPLE_RATE), "-ac", "1", "-sample_fmt", "s16",
                    str(output_path),
                ],
                capture_output=True,
                check=True,
                timeout=self.ffmpeg_timeout,
            )
            logger.info(f"Converted audio to WAV: {output_path.name}")
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode(errors="replace")[:200] if e.stderr else ""
            raise NarrationError(f"Audio conversion failed: {stderr}") from e
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            raise NarrationError(f"Audio conversion failed: {e}") from e

    def _get_wav_duration(self, wav_path: Path) -> float:
        """Get duration of a WAV file in seconds, 0.0 if unreadable."""
        try:
            with wave.open(str(wav_path), "rb") as wf:
                rate = wf.getframerate()
                if rate == 0:
                    return 0.0
                return wf.getnframes() / rate
        except (wave.Error, EOFError, OSError) as e:
            logger.warning(f"Could not read WAV duration for {wav_path}: {e}")
            return 0.0

    def _write_silence_wav(
        self, path: Path, duration_seconds: float, sample_rate: int = SAMPLE_RATE
    ) -> None:
        """Write a silent 16-bit mono WAV file."""
        n_frames = int(sample_rate * duration_seconds)
        with wave.open(str(path), "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(sample_rate)
            wf.writeframes(b"\x00\x00" * n_frames)
