"""Clip selection: fit a run of stock clips to the target video duration."""

import logging
from dataclasses import replace
from typing import Sequence

from models.video import VideoClip
from shorts_agent.models import ScriptSegment
from shorts_agent.script_generator import extract_keywords
from shorts_agent.video_composer import DEFAULT_FPS

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 50

# A remainder shorter than one rendered frame is folded into the previous clip
MIN_CLIP_DURATION = 1 / DEFAULT_FPS


class ClipSelectionError(Exception):
    """Raised when candidate clips cannot fill the target duration."""

    pass


class NoClipsFoundError(ClipSelectionError):
    """Raised when the clip lookup returned no candidates at all."""

    def __init__(self, message: str = "No videos found for the given prompt"):
        super().__init__(message)


def collect_search_keywords(script: Sequence[ScriptSegment], prompt: str) -> list[str]:
    """Deduplicate keywords across the script, never returning an empty list.

    Falls back to keywords extracted from the prompt, then to the whole
    prompt, so the clip lookup always has at least one query.
    """
    keywords: dict[str, None] = {}
    for segment in script:
        for keyword in segment.keywords:
            keyword = keyword.strip()
            if keyword:
                keywords.setdefault(keyword, None)

    if not keywords:
        keywords = dict.fromkeys(extract_keywords(prompt))
    if not keywords and prompt.strip():
        keywords = {prompt.strip(): None}
    return list(keywords)


def select_clips_for_duration(
    candidates: Sequence[VideoClip],
    target_duration: float,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> list[VideoClip]:
    """Pick clips in relevance order until their durations reach the target.

    Clips are taken whole while they fit. The clip that would overshoot is
    trimmed to exactly the remaining duration, keeping its start_time. A whole
    clip that would leave less than one frame to fill is stretched by that
    remainder instead, so no sub-frame clip is ever rendered. When the
    candidates run out first, selection starts over from the first candidate,
    so footage may repeat.

    Args:
        candidates: Candidate clips in the order the lookup ranked them
        target_duration: Seconds of footage needed
        max_passes: Upper bound on passes over the candidate list

    Returns:
        Selected clips in play order, summing to target_duration

    Raises:
        NoClipsFoundError: If candidates is empty
        ClipSelectionError: If the target cannot be reached
    """
    if not candidates:
        raise NoClipsFoundError()
    if target_duration <= 0:
        raise ClipSelectionError(f"Target duration must be positive, got {target_duration}")

    selected: list[VideoClip] = []
    total = 0.0

    for pass_number in range(1, max_passes + 1):
        added = 0
        for clip in candidates:
            if clip.duration <= 0:
                continue

            remaining = target_duration - total
            if clip.duration >= remaining:
                selected.append(clip if clip.duration == remaining else replace(clip, duration=remaining))
                logger.info(
                    f"Selected {len(selected)} clips for {target_duration}s "
                    f"in {pass_number} pass(es)"
                )
                return selected

            selected.append(clip)
            total += clip.duration
            added += 1

            remaining = target_duration - total
            if remaining < MIN_CLIP_DURATION:
                if remaining > 0:
                    selected[-1] = replace(clip, duration=clip.duration + remaining)
                return selected

        if added == 0:
            raise ClipSelectionError("No candidate clip has a usable duration")

        logger.debug(f"Pass {pass_number} reached {total:.1f}s of {target_duration}s, repeating candidates")

    raise ClipSelectionError(
        f"Could not fill {target_duration}s of footage within {max_passes} passes "
        f"(reached {total:.1f}s)"
    )
