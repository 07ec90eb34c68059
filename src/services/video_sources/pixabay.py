"""Pixabay video source for CC0-like stock footage."""

import logging
import os
from typing import Optional

import aiohttp

from models.video import VideoClip
from services.video_sources.base import VideoSource, VideoSourceError

logger = logging.getLogger(__name__)

# large (1920x1080) > medium (1280x720) > small > tiny
QUALITY_ORDER = ("large", "medium", "small", "tiny")


class PixabayVideoSource(VideoSource):
    """Pixabay video source.

    API Documentation: https://pixabay.com/api/docs/
    """

    BASE_URL = "https://pixabay.com/api/videos/"

    def __init__(
        self,
        max_results: int = 5,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """Initialize Pixabay video source.

        Args:
            max_results: Maximum number of search results (Pixabay accepts 3-200)
            api_key: API key, defaults to PIXABAY_API_KEY
            timeout: Request timeout in seconds
        """
        self.max_results = max(3, min(max_results, 200))
        self.api_key = api_key if api_key is not None else os.getenv("PIXABAY_API_KEY", "")
        self.timeout = timeout

        if not self.api_key:
            logger.warning(
                "[Pixabay] No API key configured. Set PIXABAY_API_KEY to enable Pixabay search."
            )

    def get_source_name(self) -> str:
        return "pixabay"

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search_clips_async(self, keyword: str) -> list[VideoClip]:
        if not keyword.strip() or not self.api_key:
            return []

        logger.info(f"[Pixabay] Searching for: '{keyword}'")

        params = {
            "key": self.api_key,
            "q": keyword,
            "per_page": self.max_results,
            "video_type": "all",
            "safesearch": "true",
        }

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as session:
                async with session.get(self.BASE_URL, params=params) as response:
                    if response.status in (400, 401):
                        logger.error(f"[Pixabay] Request rejected (status {response.status})")
                        return []

                    if response.status == 429:
                        raise VideoSourceError("Pixabay rate limit exceeded")

                    if response.status != 200:
                        logger.warning(f"[Pixabay] API returned status {response.status}")
                        return []

                    data = await response.json()

        except aiohttp.ClientError as e:
            raise VideoSourceError(f"Pixabay network error: {e}") from e

        results = []
        for video in data.get("hits", []):
            clip = self._parse_video(video, keyword)
            if clip:
                results.append(clip)

        logger.info(f"[Pixabay] Found {len(results)} clips for '{keyword}'")
        return results

    def _parse_video(self, video: dict, keyword: str) -> Optional[VideoClip]:
        """Parse a Pixabay API hit into a VideoClip.

        Args:
            video: Hit dict from Pixabay API
            keyword: Keyword that found this video

        Returns:
            VideoClip or None if no rendition or duration is usable
        """
        try:
            renditions = video.get("videos") or {}
            download_url = ""
            for quality in QUALITY_ORDER:
                rendition = renditions.get(quality) or {}
                if rendition.get("url"):
                    download_url = rendition["url"]
                    break

            if not download_url:
                return None

            duration = float(video.get("duration") or 0)
            if duration <= 0:
                return None

            return VideoClip(
                url=download_url,
                duration=duration,
                source="pixabay",
                keyword=keyword,
            )

        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"[Pixabay] Failed to parse video: {e}")
            return None
