"""Stock footage sources used to gather candidate clips."""

from services.video_sources.base import VideoSource, VideoSourceError
from services.video_sources.pexels import PexelsVideoSource
from services.video_sources.pixabay import PixabayVideoSource

__all__ = ["VideoSource", "VideoSourceError", "PexelsVideoSource", "PixabayVideoSource"]
