"""Pexels video source for CC0-like stock footage."""

import logging
import os
from typing import Optional

import aiohttp

from models.video import VideoClip
from services.video_sources.base import VideoSource, VideoSourceError

logger = logging.getLogger(__name__)


class PexelsVideoSource(VideoSource):
    """Pexels video source.

    Pexels provides royalty-free videos under the Pexels license (similar to
    CC0, no attribution required for most uses). Searches ask for portrait
    footage since the output is a vertical short.

    API Documentation: https://www.pexels.com/api/documentation/
    """

    BASE_URL = "https://api.pexels.com/videos/search"

    def __init__(
        self,
        max_results: int = 5,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """Initialize Pexels video source.

        Args:
            max_results: Maximum number of search results to return (max 80 per page)
            api_key: API key, defaults to PEXELS_API_KEY
            timeout: Request timeout in seconds
        """
        self.max_results = min(max_results, 80)  # Pexels API limit
        self.api_key = api_key if api_key is not None else os.getenv("PEXELS_API_KEY", "")
        self.timeout = timeout

        if not self.api_key:
            logger.warning(
                "[Pexels] No API key configured. Set PEXELS_API_KEY to enable Pexels search."
            )

    def get_source_name(self) -> str:
        return "pexels"

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search_clips_async(self, keyword: str) -> list[VideoClip]:
        if not keyword.strip() or not self.api_key:
            return []

        logger.info(f"[Pexels] Searching for: '{keyword}'")

        headers = {"Authorization": self.api_key}
        params = {
            "query": keyword,
            "per_page": self.max_results,
            "orientation": "portrait",
        }

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as session:
                async with session.get(self.BASE_URL, headers=headers, params=params) as response:
                    if response.status == 401:
                        logger.error("[Pexels] Invalid API key")
                        return []

                    if response.status == 429:
                        raise VideoSourceError("Pexels rate limit exceeded")

                    if response.status != 200:
                        logger.warning(f"[Pexels] API returned status {response.status}")
                        return []

                    data = await response.json()

        except aiohttp.ClientError as e:
            raise VideoSourceError(f"Pexels network error: {e}") from e

        results = []
        for video in data.get("videos", []):
            clip = self._parse_video(video, keyword)
            if clip:
                results.append(clip)

        logger.info(f"[Pexels] Found {len(results)} clips for '{keyword}'")
        return results

    def _parse_video(self, video: dict, keyword: str) -> Optional[VideoClip]:
        """Parse a Pexels API video entry into a VideoClip.

        Picks the file best suited to vertical output: portrait files first,
        then the tallest.

        Args:
            video: Video dict from Pexels API
            keyword: Keyword that found this video

        Returns:
            VideoClip or None if the entry has no usable file or duration
        """
        try:
            video_files = [f for f in video.get("video_files", []) if f.get("link")]
            if not video_files:
                return None

            best_file = max(
                video_files,
                key=lambda f: (
                    (f.get("height") or 0) >= (f.get("width") or 0),
                    f.get("height") or 0,
                ),
            )

            duration = float(video.get("duration") or 0)
            if duration <= 0:
                return None

            return VideoClip(
                url=best_file["link"],
                duration=duration,
                source="pexels",
                keyword=keyword,
            )

        except (TypeError, ValueError) as e:
            logger.warning(f"[Pexels] Failed to parse video: {e}")
            return None
