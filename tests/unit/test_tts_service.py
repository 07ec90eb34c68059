"""Unit tests for TTSService chunking, voice listing and generation."""

import io
import json
import wave

import httpx
import pytest
from services.tts_service import TTSService, TTSServiceError

from conftest import make_float_wav_bytes, make_wav_bytes


def _service_with_handler(handler) -> TTSService:
    service = TTSService("http://tts.local/")
    service.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return service


@pytest.mark.unit
@pytest.mark.asyncio
async def test_split_text_chunks_preserves_text():
    """Long text should be chunked and reconstruct to the same normalized text."""
    service = TTSService("http://example.com")
    try:
        text = (
            "This is a very long sentence for testing chunk behavior. "
            "It should be split into multiple chunks without dropping words. "
            "The resulting chunks should still preserve order and readability."
        )

        chunks = service._split_text_chunks(text, max_chars=60)

        assert len(chunks) > 1
        assert all(len(chunk) <= 60 for chunk in chunks)
        assert " ".join(chunks) == " ".join(text.split())
    finally:
        await service.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_split_text_chunks_short_text_is_one_chunk():
    service = TTSService("http://example.com")
    try:
        assert service._split_text_chunks("  Hello   world. ") == ["Hello world."]
        assert service._split_text_chunks("   ") == []
    finally:
        await service.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_merge_audio_chunks_wav():
    """WAV chunks should merge into one valid WAV stream."""
    service = TTSService("http://example.com")
    try:
        merged = service._merge_audio_chunks([make_wav_bytes(4000, 16000), make_wav_bytes(6000, 16000)])

        assert service.detect_audio_format(merged) == "wav"
        with wave.open(io.BytesIO(merged), "rb") as wav_file:
            assert wav_file.getnframes() == 10000
            assert wav_file.getframerate() == 16000
    finally:
        await service.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_merge_audio_chunks_mixed_format_raises():
    """Mixed audio formats should fail fast when merging chunks."""
    service = TTSService("http://example.com")
    try:
        with pytest.raises(TTSServiceError, match="mixed audio formats"):
            service._merge_audio_chunks([make_wav_bytes(1000), b"ID3" + b"\x00" * 100])
    finally:
        await service.close()


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "bad_chunk",
    [make_float_wav_bytes(2400), make_wav_bytes(2400)[:30]],
    ids=["float-samples", "truncated"],
)
async def test_merge_audio_chunks_unreadable_wav_raises(bad_chunk):
    """WAV chunks the wave module cannot read should surface as TTSServiceError."""
    service = TTSService("http://example.com")
    try:
        with pytest.raises(TTSServiceError, match="unreadable WAV chunk"):
            service._merge_audio_chunks([make_wav_bytes(2400), bad_chunk])
    finally:
        await service.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_voices_parses_dicts_and_strings():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/get_predefined_voices"
        return httpx.Response(200, json=[
            {"display_name": "Emily", "filename": "Emily.wav", "language": "en"},
            "Gianna.wav",
            {"name": ""},
            42,
        ])

    service = _service_with_handler(handler)
    try:
        voices = await service.list_voices()
    finally:
        await service.close()

    assert [v.name for v in voices] == ["Emily.wav", "Gianna.wav"]
    assert voices[0].lang == "en"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_voices_empty_on_error_or_unconfigured():
    service = _service_with_handler(lambda request: httpx.Response(500))
    try:
        assert await service.list_voices() == []
    finally:
        await service.close()

    unconfigured = TTSService("")
    try:
        assert not unconfigured.is_configured
        assert await unconfigured.list_voices() == []
    finally:
        await unconfigured.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_posts_predefined_voice_and_merges_chunks():
    payloads = []

    def handler(request: httpx.Request) -> httpx.Response:
        payloads.append(json.loads(request.content))
        return httpx.Response(200, content=make_wav_bytes(2400))

    service = _service_with_handler(handler)
    try:
        text = " ".join(["A fairly ordinary sentence for narration."] * 20)
        audio = await service.generate(text, "Emily.wav")
    finally:
        await service.close()

    assert len(payloads) > 1
    assert all(p["predefined_voice_id"] == "Emily.wav" for p in payloads)
    assert all(p["voice_mode"] == "predefined" for p in payloads)
    assert " ".join(p["text"] for p in payloads) == " ".join(text.split())
    with wave.open(io.BytesIO(audio), "rb") as wav_file:
        assert wav_file.getnframes() == 2400 * len(payloads)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_server_error_raises_with_detail():
    service = _service_with_handler(lambda request: httpx.Response(400, json={"detail": "Voice not found"}))
    try:
        with pytest.raises(TTSServiceError, match="Voice not found"):
            await service.generate("Hello.", "Missing.wav")
    finally:
        await service.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_empty_audio_raises():
    service = _service_with_handler(lambda request: httpx.Response(200, content=b""))
    try:
        with pytest.raises(TTSServiceError, match="empty audio"):
            await service.generate("Hello.", "Emily.wav")
    finally:
        await service.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_without_server_raises():
    service = TTSService("")
    try:
        with pytest.raises(TTSServiceError, match="No TTS server"):
            await service.generate("Hello.", "Emily.wav")
    finally:
        await service.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_health():
    service = _service_with_handler(lambda request: httpx.Response(200, json={}))
    try:
        health = await service.check_health()
    finally:
        await service.close()

    assert health == {"connected": True, "server_url": "http://tts.local"}
