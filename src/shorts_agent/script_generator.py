"""Script generator for the shorts production pipeline.

Asks Gemini for a segmented script and falls back to a deterministic template
script whenever the AI path is unavailable or returns something unusable.
The fallback needs no network access, so planning always yields a script.
"""

import asyncio
import json
import logging
import math
from typing import Optional

from services.ai_service import AIService
from services.prompts import SHORTS_SCRIPT_SYSTEM, SHORTS_SCRIPT_V1, strip_markdown_code_blocks
from shorts_agent.models import ScriptSegment, StageOutcome

logger = logging.getLogger(__name__)

# One fallback segment per this many seconds of video
SECONDS_PER_SEGMENT = 5

MAX_KEYWORDS = 3
MIN_KEYWORD_LENGTH = 4

STOPWORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "create", "video", "about",
})

FALLBACK_TEMPLATES = (
    "Welcome to this amazing {prompt}. Let's dive right in!",
    "Here's what makes {prompt} so special and unique.",
    "You won't believe these incredible facts about {prompt}.",
    "This is the ultimate guide to {prompt} you've been waiting for.",
    "Transform your life with {prompt} starting today.",
)


def extract_keywords(prompt: str) -> tuple[str, ...]:
    """Derive footage search keywords from a free-text prompt.

    Lowercases, splits on whitespace, drops stopwords and words of three
    characters or fewer, and keeps the first three survivors.
    """
    words = prompt.lower().split()
    kept = [w for w in words if w not in STOPWORDS and len(w) >= MIN_KEYWORD_LENGTH]
    return tuple(kept[:MAX_KEYWORDS])


def create_fallback_script(prompt: str, duration: float) -> list[ScriptSegment]:
    """Build the template script: ceil(duration/5) equal segments.

    Args:
        prompt: The user's prompt, substituted into each template
        duration: Target total duration in seconds

    Returns:
        Segments whose durations sum to exactly ``duration``
    """
    segment_count = max(1, math.ceil(duration / SECONDS_PER_SEGMENT))
    segment_duration = duration / segment_count
    keywords = extract_keywords(prompt)

    segments: list[ScriptSegment] = []
    for i in range(segment_count):
        if i == segment_count - 1:
            # Last segment takes whatever float remainder is left
            seg_duration = duration - segment_duration * (segment_count - 1)
        else:
            seg_duration = segment_duration
        segments.append(ScriptSegment(
            text=FALLBACK_TEMPLATES[i % len(FALLBACK_TEMPLATES)].format(prompt=prompt),
            duration=seg_duration,
            keywords=keywords,
        ))
    return segments


class ScriptGenerator:
    """Plans a short-form script from a prompt and a target duration.

    Takes an optional AIService. Without one (no API credential configured)
    every plan comes from the template generator.
    """

    def __init__(self, ai_service: Optional[AIService] = None, timeout: float = 30.0):
        """Initialize with an optional AIService instance.

        Args:
            ai_service: Configured AIService, or None when no key is set
            timeout: Seconds to wait for the AI response before falling back
        """
        self.ai = ai_service
        self.timeout = timeout

    async def plan(self, prompt: str, duration: float) -> StageOutcome[list[ScriptSegment]]:
        """Produce the script for a run. Never raises.

        Args:
            prompt: The video topic/prompt
            duration: Target duration in seconds

        Returns:
            StageOutcome carrying the segments; ``fallback`` is set when the
            template generator produced them
        """
        if self.ai is None:
            logger.info("No AI credential configured, using template script")
            return StageOutcome.substitute(
                create_fallback_script(prompt, duration),
                "API key not configured",
            )

        logger.info(f"Generating script: prompt='{prompt[:60]}', duration={duration}s")

        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(self._request_script, prompt, duration),
                timeout=self.timeout,
            )
            segments = self._parse_segments(json.loads(strip_markdown_code_blocks(raw)), prompt)
        except (TimeoutError, asyncio.TimeoutError):
            logger.warning(f"Script generation timed out after {self.timeout}s, using template")
            return StageOutcome.substitute(
                create_fallback_script(prompt, duration), "script generation timed out"
            )
        except Exception as e:
            logger.warning(f"Script generation failed, using template: {e}")
            return StageOutcome.substitute(create_fallback_script(prompt, duration), str(e))

        total = sum(s.duration for s in segments)
        logger.info(f"Script generated: {len(segments)} segments, ~{total:.0f}s planned")
        return StageOutcome.ok(segments)

    def _request_script(self, prompt: str, duration: float) -> str:
        """Blocking call to the text-generation service."""
        return self.ai.generate_json(
            SHORTS_SCRIPT_V1.format(prompt=prompt, duration=duration),
            system_instruction=SHORTS_SCRIPT_SYSTEM,
            temperature=0.8,
        )

    def _parse_segments(self, data, prompt: str) -> list[ScriptSegment]:
        """Parse segments from a decoded JSON payload.

        Accepts a top-level array or an object with a ``segments`` array.

        Raises:
            ValueError: If no usable segment is present
        """
        if isinstance(data, dict):
            data = data.get("segments")
        if not isinstance(data, list):
            raise ValueError("Script response has no segments array")

        segments: list[ScriptSegment] = []
        for i, item in enumerate(data):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-dict segment at index {i}")
                continue
            try:
                segments.append(self._parse_segment(item, prompt))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid segment {i}: {e}")

        if not segments:
            raise ValueError("No valid segments parsed from script response")
        return segments

    def _parse_segment(self, data: dict, prompt: str) -> ScriptSegment:
        text = str(data.get("text", "")).strip()
        if not text:
            raise ValueError("segment is missing text")

        duration = float(data.get("duration", 0))
        if not math.isfinite(duration) or duration <= 0:
            raise ValueError(f"segment has invalid duration {data.get('duration')!r}")

        keywords = self._parse_keywords(data.get("keywords", []))
        if not keywords:
            keywords = extract_keywords(prompt)

        return ScriptSegment(text=text, duration=duration, keywords=keywords)

    @staticmethod
    def _parse_keywords(raw) -> tuple[str, ...]:
        """Clean a keyword list, dropping blanks and duplicates in order."""
        if not isinstance(raw, list):
            return ()
        seen: dict[str, None] = {}
        for item in raw:
            word = str(item).strip().lower() if item is not None else ""
            if word:
                seen.setdefault(word, None)
        return tuple(seen)
