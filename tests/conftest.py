"""Shared pytest fixtures for shorts generator tests."""

import io
import struct
import sys
import tempfile
import wave
from pathlib import Path
from typing import Dict, Generator
from unittest.mock import AsyncMock, Mock

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.tts import Voice  # noqa: E402
from models.video import VideoClip  # noqa: E402


def make_wav_bytes(frame_count: int, framerate: int = 24000) -> bytes:
    """Create a silent mono 16-bit WAV payload."""
    output = io.BytesIO()
    with wave.open(output, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(framerate)
        wav_file.writeframes(b"\x00\x00" * frame_count)
    return output.getvalue()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config(temp_dir) -> Dict:
    """Sample configuration for testing (no credentials)."""
    return {
        "gemini_api_key": None,
        "gemini_model": "gemini-3-flash-preview",
        "clip_source_priority": ["pexels", "pixabay"],
        "clips_per_keyword": 5,
        "max_selection_passes": 50,
        "tts_server_url": "",
        "tts_default_voice": "default",
        "silent_narration_fallback": True,
        "script_timeout_seconds": 5.0,
        "search_timeout_seconds": 5.0,
        "tts_timeout_seconds": 5.0,
        "ffmpeg_timeout_seconds": 5.0,
        "local_output_folder": str(temp_dir / "output"),
        "log_level": "INFO",
        "log_json": False,
    }


@pytest.fixture
def sample_clips() -> list[VideoClip]:
    """Three 4-second candidate clips in relevance order."""
    return [
        VideoClip(url=f"https://videos.example.com/clip{i}.mp4", duration=4.0, source="pexels", keyword="coffee")
        for i in range(1, 4)
    ]


@pytest.fixture
def mock_clip_search(sample_clips):
    """Mock ClipSearchService returning the sample clips."""
    mock = Mock()
    mock.search = AsyncMock(return_value=sample_clips)
    return mock


@pytest.fixture
def mock_tts_service():
    """Mock TTSService that returns half a second of WAV audio."""
    mock = Mock()
    mock.is_configured = True
    mock.list_voices = AsyncMock(return_value=[Voice(name="Emily.wav"), Voice(name="Gianna.wav")])
    mock.generate = AsyncMock(return_value=make_wav_bytes(12000))
    mock.close = AsyncMock()
    return mock


def make_float_wav_bytes(frame_count: int, framerate: int = 24000) -> bytes:
    """Create a mono 32-bit IEEE float WAV payload, which the wave module cannot read."""
    data = b"\x00\x00\x00\x00" * frame_count
    fmt = struct.pack("<HHIIHH", 3, 1, framerate, framerate * 4, 4, 32)
    body = b"WAVE" + b"fmt " + struct.pack("<I", len(fmt)) + fmt + b"data" + struct.pack("<I", len(data)) + data
    return b"RIFF" + struct.pack("<I", len(body)) + body
