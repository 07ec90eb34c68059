"""Base abstraction for stock footage sources."""

from abc import ABC, abstractmethod

from models.video import VideoClip


class VideoSourceError(Exception):
    """Raised when a source cannot complete a search (network, rate limit)."""

    pass


class VideoSource(ABC):
    """Abstract base class for stock footage sources (Pexels, Pixabay, ...)."""

    @abstractmethod
    async def search_clips_async(self, keyword: str) -> list[VideoClip]:
        """Search for clips matching a keyword.

        Args:
            keyword: Search query string

        Returns:
            Candidate clips in the source's own relevance order

        Raises:
            VideoSourceError: If the source could not be queried
        """

    @abstractmethod
    def get_source_name(self) -> str:
        """Get the name of this video source.

        Returns:
            Source name (e.g., "pexels", "pixabay")
        """

    def is_configured(self) -> bool:
        """Check if this source has required configuration (API keys, etc.).

        Default implementation returns True (no config required).
        Override in subclasses that require API keys.

        Returns:
            True if source is properly configured and ready to use
        """
        return True
