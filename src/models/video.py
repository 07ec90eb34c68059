"""Video-related data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class VideoClip:
    """A candidate or selected piece of stock footage.

    ``start_time`` is an in-point offset into the source asset. ``duration``
    is the usable length from that offset; for selected clips it is the trim
    length assigned by the clip selector.
    """

    url: str
    duration: float  # in seconds
    start_time: Optional[float] = None
    # Where the clip came from (pexels, pixabay, ...) and which keyword found it
    source: str = "unknown"
    keyword: Optional[str] = None

    @property
    def end_time(self) -> float:
        """Out-point in the source asset."""
        return (self.start_time or 0.0) + self.duration

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses and debug dumps."""
        return {
            "url": self.url,
            "duration": self.duration,
            "start_time": self.start_time,
            "source": self.source,
            "keyword": self.keyword,
        }
