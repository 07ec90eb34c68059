"""Caption alignment and ASS/SRT rendering for shorts.

Captions are timed against the measured narration duration, not the script's
planned segment durations. Each caption chunk gets screen time proportional
to its character count, and the chunks tile [0, duration] with no gaps.
"""

import logging
import re
from pathlib import Path
from typing import Sequence

import pysubs2

from shorts_agent.models import SubtitleSegment

logger = logging.getLogger(__name__)

# Eight words is roughly what reads comfortably in under four seconds
MAX_WORDS_PER_CAPTION = 8

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def split_captions(text: str, max_words: int = MAX_WORDS_PER_CAPTION) -> list[str]:
    """Split text into caption chunks.

    Splits on sentence boundaries first, then breaks long sentences into
    windows of at most ``max_words`` words. Joining the chunks with single
    spaces gives back the whitespace-normalized text.
    """
    normalized = " ".join(text.split())
    if not normalized:
        return []

    chunks: list[str] = []
    for sentence in _SENTENCE_BOUNDARY.split(normalized):
        words = sentence.split()
        for i in range(0, len(words), max_words):
            chunks.append(" ".join(words[i : i + max_words]))
    return chunks


class SubtitleEngine:
    """Aligns captions to narration and renders them for FFmpeg burn-in."""

    def __init__(self, max_words: int = MAX_WORDS_PER_CAPTION) -> None:
        self.max_words = max_words

    def align(self, full_text: str, audio_duration: float) -> list[SubtitleSegment]:
        """Time caption chunks across the narration duration.

        Args:
            full_text: The complete narration text.
            audio_duration: Measured narration duration in seconds.

        Returns:
            Contiguous segments starting at 0 and ending exactly at
            ``audio_duration``. Empty for empty text or a non-positive duration.
        """
        chunks = split_captions(full_text, self.max_words)
        if not chunks or audio_duration <= 0:
            return []

        total_chars = sum(len(chunk) for chunk in chunks)
        segments: list[SubtitleSegment] = []
        start = 0.0
        cumulative = 0

        for i, chunk in enumerate(chunks):
            cumulative += len(chunk)
            if i == len(chunks) - 1:
                end = float(audio_duration)
            else:
                end = audio_duration * cumulative / total_chars
            segments.append(SubtitleSegment(start_time=start, end_time=end, text=chunk))
            start = end

        logger.info("Aligned %d captions over %.2fs of narration", len(segments), audio_duration)
        return segments

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _build_subs(
        self,
        subtitles: Sequence[SubtitleSegment],
        video_width: int,
        video_height: int,
    ) -> pysubs2.SSAFile:
        subs = pysubs2.SSAFile()
        subs.info["PlayResX"] = str(video_width)
        subs.info["PlayResY"] = str(video_height)

        subs.styles["Shorts"] = pysubs2.SSAStyle(
            fontname="Arial",
            fontsize=max(24, int(video_height * 0.04)),
            bold=True,
            primarycolor=pysubs2.Color(255, 255, 255, 0),
            outlinecolor=pysubs2.Color(0, 0, 0, 0),
            backcolor=pysubs2.Color(0, 0, 0, 100),
            outline=4.0,
            shadow=2.0,
            borderstyle=1,
            alignment=pysubs2.Alignment.BOTTOM_CENTER,
            marginl=int(video_width * 0.08),
            marginr=int(video_width * 0.08),
            marginv=int(video_height * 0.25),  # lower third
        )

        for segment in subtitles:
            # Braces would be parsed as override tags
            text = segment.text.replace("{", "(").replace("}", ")")
            subs.events.append(pysubs2.SSAEvent(
                start=pysubs2.make_time(s=segment.start_time),
                end=pysubs2.make_time(s=segment.end_time),
                text=text,
                style="Shorts",
            ))
        return subs

    def generate_ass_subtitles(
        self,
        subtitles: Sequence[SubtitleSegment],
        video_width: int = 1080,
        video_height: int = 1920,
    ) -> str:
        """Generate ASS subtitle file content using pysubs2.

        Args:
            subtitles: Aligned caption segments.
            video_width: Video resolution width.
            video_height: Video resolution height.

        Returns:
            ASS file content as a string.
        """
        return self._build_subs(subtitles, video_width, video_height).to_string("ass")

    def to_srt(self, subtitles: Sequence[SubtitleSegment]) -> str:
        """Render captions as SRT, for players that take a sidecar file."""
        return self._build_subs(subtitles, 1080, 1920).to_string("srt")

    def save_ass_file(self, ass_content: str, output_path: Path) -> Path:
        """Save ASS subtitle content to a file.

        Args:
            ass_content: The ASS file content string.
            output_path: Where to write the file.

        Returns:
            The path to the written file.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(ass_content, encoding="utf-8")
        logger.info("Saved ASS subtitle file: %s", output_path)
        return output_path
