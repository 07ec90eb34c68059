# Data models shared by services and the shorts pipeline
from .video import VideoClip
from .tts import Voice

__all__ = [
    "VideoClip",
    "Voice",
]
