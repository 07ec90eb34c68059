"""Clip search service: gathers candidate stock clips for a set of keywords.

Each keyword is looked up concurrently across the configured sources. The
per-keyword results are merged into one candidate list, deduplicated by URL,
in keyword order, then source order, then each source's own relevance order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from models.video import VideoClip
    from services.video_sources import VideoSource

logger = logging.getLogger(__name__)


class ClipSearchService:
    """Looks up candidate clips for keywords across multiple video sources."""

    def __init__(
        self,
        video_sources: list["VideoSource"],
        timeout: float = 30.0,
    ):
        """Initialize the clip search service.

        Args:
            video_sources: Sources in priority order; unconfigured ones are skipped
            timeout: Seconds allowed for a single keyword lookup
        """
        self.video_sources = [s for s in video_sources if s.is_configured()]
        self.timeout = timeout

        logger.info(
            f"[ClipSearchService] Initialized with {len(self.video_sources)} sources: "
            f"{[s.get_source_name() for s in self.video_sources]}"
        )

    async def search_keyword(self, keyword: str) -> list["VideoClip"]:
        """Search every source for one keyword, in source priority order.

        A failing source contributes nothing; the others still count.
        """
        if not keyword or not keyword.strip():
            logger.warning("Empty search keyword provided")
            return []

        results: list["VideoClip"] = []
        for source in self.video_sources:
            try:
                clips = await source.search_clips_async(keyword)
                results.extend(clips)
                logger.debug(f"Source '{source.get_source_name()}' returned {len(clips)} clips")
            except Exception as e:
                logger.warning(f"Search failed for source '{source.get_source_name()}': {e}")
        return results

    async def search(self, keywords: Sequence[str]) -> list["VideoClip"]:
        """Look up all keywords concurrently and merge the candidates.

        Args:
            keywords: Deduplicated search keywords

        Returns:
            Merged candidate clips, unique by URL. Empty when nothing was found.
        """
        if not keywords:
            return []

        tasks = [
            asyncio.wait_for(self.search_keyword(keyword), timeout=self.timeout)
            for keyword in keywords
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        merged: list["VideoClip"] = []
        seen_urls: set[str] = set()
        for keyword, result in zip(keywords, results):
            if isinstance(result, BaseException):
                logger.warning(f"Clip lookup for '{keyword}' failed: {result!r}")
                continue
            for clip in result:
                if clip.url in seen_urls:
                    continue
                seen_urls.add(clip.url)
                merged.append(clip)

        logger.info(f"Found {len(merged)} candidate clips for {len(keywords)} keywords")
        return merged
