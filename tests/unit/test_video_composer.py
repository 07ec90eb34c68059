"""Unit tests for the FFmpeg composer with subprocess calls mocked out."""

import asyncio
import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import httpx
import pytest

from models.video import VideoClip
from shorts_agent.models import SubtitleSegment
from shorts_agent.video_composer import VideoComposer, VideoComposerError, parse_resolution


class FakeFFmpeg:
    """Records commands and writes a placeholder for each output file."""

    def __init__(self, fail_on: str | None = None):
        self.commands: list[list[str]] = []
        self.fail_on = fail_on

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        if cmd[0] == "ffprobe":
            return Mock(returncode=0, stdout='{"format": {"duration": "15.0"}}', stderr="")
        if self.fail_on and any(self.fail_on in part for part in cmd):
            return Mock(returncode=1, stdout="", stderr="Error while filtering")
        Path(cmd[-1]).write_bytes(b"video")
        return Mock(returncode=0, stdout="", stderr="")

    def find(self, flag: str) -> list[list[str]]:
        return [c for c in self.commands if flag in c]


@pytest.fixture
def local_clips(temp_dir) -> list[VideoClip]:
    sources = []
    for name in ("a", "b"):
        path = temp_dir / f"{name}.mp4"
        path.write_bytes(b"source")
        sources.append(path)
    return [
        VideoClip(url=str(sources[0]), duration=4.0),
        VideoClip(url=str(sources[1]), duration=4.0, start_time=2.0),
        VideoClip(url=str(sources[0]), duration=2.0),
    ]


@pytest.fixture
def narration_file(temp_dir) -> Path:
    path = temp_dir / "narration.wav"
    path.write_bytes(b"RIFF")
    return path


class TestParseResolution:
    def test_valid(self):
        assert parse_resolution("1080x1920") == (1080, 1920)
        assert parse_resolution("720x1280") == (720, 1280)

    @pytest.mark.parametrize("value", ["", "1080", "1080x", "axb", "0x1920"])
    def test_invalid(self, value):
        with pytest.raises(VideoComposerError):
            parse_resolution(value)


class TestEnsureAvailable:
    def test_missing_tools(self):
        with patch("shorts_agent.video_composer.shutil.which", return_value=None):
            with pytest.raises(VideoComposerError, match="ffmpeg, ffprobe"):
                VideoComposer().ensure_available()

    def test_tools_present(self):
        with patch("shorts_agent.video_composer.shutil.which", return_value="/usr/bin/ffmpeg"):
            VideoComposer().ensure_available()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_compose_runs_pipeline_and_reports_monotonic_progress(local_clips, narration_file, temp_dir):
    fake = FakeFFmpeg()
    progress: list[float] = []
    composer = VideoComposer(output_dir=temp_dir / "out")
    subtitles = [SubtitleSegment(0.0, 5.0, "Hello there"), SubtitleSegment(5.0, 10.0, "General Kenobi")]

    with patch("shorts_agent.video_composer.subprocess.run", side_effect=fake):
        result = await composer.compose(
            local_clips, subtitles, narration_file, "720x1280", on_progress=progress.append
        )

    assert result == temp_dir / "out" / "short.mp4"
    assert result.exists()

    renders = fake.find("-an")[:3]
    assert [c[c.index("-t") + 1] for c in renders] == ["4.000", "4.000", "2.000"]
    assert "-ss" in renders[1] and "-ss" not in renders[0]
    assert any("crop=720:1280" in part for part in renders[0])

    assert len(fake.find("concat")) == 1
    assert any(part.startswith("ass=") for c in fake.commands for part in c)
    mux = fake.find("1:a:0")[0]
    assert "-shortest" not in mux

    assert progress == sorted(progress)
    assert len(set(progress)) == len(progress)
    assert progress[-1] == 100.0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_compose_without_subtitles_skips_burn_in(local_clips, narration_file, temp_dir):
    fake = FakeFFmpeg()

    with patch("shorts_agent.video_composer.subprocess.run", side_effect=fake):
        await VideoComposer(output_dir=temp_dir).compose(local_clips[:1], [], narration_file, "1080x1920")

    assert not any(part.startswith("ass=") for c in fake.commands for part in c)
    # A single clip is copied instead of concatenated
    assert not fake.find("concat")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_compose_ffmpeg_failure_raises_and_leaves_no_output(local_clips, narration_file, temp_dir):
    fake = FakeFFmpeg(fail_on="concat")
    output = temp_dir / "final" / "short.mp4"

    with patch("shorts_agent.video_composer.subprocess.run", side_effect=fake):
        with pytest.raises(VideoComposerError, match="concatenate"):
            await VideoComposer().compose(local_clips, [], narration_file, "1080x1920", output_path=output)

    assert not output.exists()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_compose_timeout_raises(local_clips, narration_file, temp_dir):
    with patch(
        "shorts_agent.video_composer.subprocess.run",
        side_effect=subprocess.TimeoutExpired(["ffmpeg"], 1),
    ):
        with pytest.raises(VideoComposerError, match="timed out"):
            await VideoComposer(output_dir=temp_dir).compose(local_clips, [], narration_file, "1080x1920")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_compose_validates_inputs(local_clips, narration_file, temp_dir):
    composer = VideoComposer(output_dir=temp_dir)

    with pytest.raises(VideoComposerError, match="No clips"):
        await composer.compose([], [], narration_file, "1080x1920")
    with pytest.raises(VideoComposerError, match="Narration audio not found"):
        await composer.compose(local_clips, [], temp_dir / "missing.wav", "1080x1920")
    with pytest.raises(VideoComposerError, match="Clip source not found"):
        await composer.compose([VideoClip(url=str(temp_dir / "nope.mp4"), duration=3)], [], narration_file, "1080x1920")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_download_file_streams_to_disk(temp_dir):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"mp4 bytes")))
    dest = temp_dir / "clip.mp4"
    try:
        await VideoComposer()._download_file(client, "https://videos.example.com/clip.mp4", dest)
    finally:
        await client.aclose()

    assert dest.read_bytes() == b"mp4 bytes"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_download_file_http_error_raises(temp_dir):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    try:
        with pytest.raises(VideoComposerError, match="Failed to download"):
            await VideoComposer()._download_file(client, "https://videos.example.com/gone.mp4", temp_dir / "x.mp4")
    finally:
        await client.aclose()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_download_cancels_remaining_downloads(temp_dir):
    cancelled: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/gone.mp4":
            return httpx.Response(404)
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            cancelled.append(request.url.path)
            raise
        return httpx.Response(200, content=b"mp4 bytes")

    real_client = httpx.AsyncClient
    transport = httpx.MockTransport(handler)
    clips = [
        VideoClip(url="https://videos.example.com/slow.mp4", duration=5.0),
        VideoClip(url="https://videos.example.com/gone.mp4", duration=5.0),
    ]

    with patch(
        "shorts_agent.video_composer.httpx.AsyncClient",
        side_effect=lambda **kwargs: real_client(transport=transport, **kwargs),
    ):
        with pytest.raises(VideoComposerError, match="gone.mp4"):
            await asyncio.wait_for(VideoComposer()._fetch_clips(clips, temp_dir, lambda percent: None), timeout=5)

    assert cancelled == ["/slow.mp4"]
    assert not (temp_dir / "source_000.mp4").exists()
