"""TTS Service - HTTP client for a Chatterbox-style TTS server."""

import io
import logging
import re
import wave

import httpx

from models.tts import Voice

logger = logging.getLogger(__name__)

TTS_CHUNK_MAX_CHARS = 450


class TTSServiceError(Exception):
    """Error from TTS service."""

    pass


class TTSService:
    """HTTP client for speech synthesis with the server's predefined voices."""

    def __init__(self, server_url: str = "", timeout: float = 180.0):
        """Initialize TTS service.

        Args:
            server_url: Base URL of the TTS server (e.g., https://xxx.ngrok.io)
            timeout: Seconds allowed for one synthesis request
        """
        self.server_url = server_url.rstrip("/") if server_url else ""
        self.client = httpx.AsyncClient(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self.server_url)

    @staticmethod
    def detect_audio_format(audio_bytes: bytes) -> str:
        """Detect audio format from magic bytes."""
        if len(audio_bytes) >= 12 and audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE":
            return "wav"
        if audio_bytes[:3] == b"ID3" or (
            len(audio_bytes) >= 2
            and audio_bytes[0] == 0xFF
            and (audio_bytes[1] & 0xE0) == 0xE0
        ):
            return "mp3"
        if audio_bytes[:4] == b"OggS":
            return "ogg"
        return "bin"

    def _split_text_chunks(self, text: str, max_chars: int = TTS_CHUNK_MAX_CHARS) -> list[str]:
        """Split long text into sentence-aware chunks of at most max_chars."""
        normalized = " ".join(text.strip().split())
        if not normalized:
            return []

        if len(normalized) <= max_chars:
            return [normalized]

        pieces: list[str] = []
        for sentence in re.split(r"(?<=[.!?])\s+", normalized):
            if len(sentence) <= max_chars:
                pieces.append(sentence)
                continue
            # Hard wrap overlong sentences on word boundaries
            line = ""
            for word in sentence.split():
                if line and len(line) + 1 + len(word) > max_chars:
                    pieces.append(line)
                    line = word
                else:
                    line = f"{line} {word}" if line else word
            if line:
                pieces.append(line)

        chunks: list[str] = []
        current = ""
        for piece in pieces:
            if current and len(current) + 1 + len(piece) <= max_chars:
                current = f"{current} {piece}"
            else:
                if current:
                    chunks.append(current)
                current = piece
        if current:
            chunks.append(current)

        return chunks

    def _merge_wav_chunks(self, audio_chunks: list[bytes]) -> bytes:
        """Merge WAV byte chunks into one valid WAV file."""
        frames: list[bytes] = []
        expected_params: tuple[int, int, int] | None = None

        for i, chunk in enumerate(audio_chunks, 1):
            try:
                with wave.open(io.BytesIO(chunk), "rb") as wav_file:
                    params = (
                        wav_file.getnchannels(),
                        wav_file.getsampwidth(),
                        wav_file.getframerate(),
                    )
                    chunk_frames = wav_file.readframes(wav_file.getnframes())
            except (wave.Error, EOFError) as e:
                raise TTSServiceError(f"TTS returned an unreadable WAV chunk ({i}/{len(audio_chunks)}): {e}") from e

            if expected_params is None:
                expected_params = params
            elif params != expected_params:
                raise TTSServiceError("TTS returned WAV chunks with incompatible audio parameters")
            frames.append(chunk_frames)

        if expected_params is None:
            raise TTSServiceError("No WAV chunks to merge")

        output = io.BytesIO()
        with wave.open(output, "wb") as wav_out:
            wav_out.setnchannels(expected_params[0])
            wav_out.setsampwidth(expected_params[1])
            wav_out.setframerate(expected_params[2])
            wav_out.writeframes(b"".join(frames))

        return output.getvalue()

    def _merge_audio_chunks(self, audio_chunks: list[bytes]) -> bytes:
        """Merge chunked TTS audio into a single file."""
        if not audio_chunks:
            raise TTSServiceError("No audio chunks returned from TTS generation")
        if len(audio_chunks) == 1:
            return audio_chunks[0]

        formats = {self.detect_audio_format(chunk) for chunk in audio_chunks}
        if len(formats) != 1:
            raise TTSServiceError("TTS chunks returned mixed audio formats")

        audio_format = formats.pop()
        if audio_format == "wav":
            return self._merge_wav_chunks(audio_chunks)
        if audio_format == "mp3":
            # MP3 frame streams can be concatenated for sequential playback.
            return b"".join(audio_chunks)

        raise TTSServiceError(f"Unsupported chunk merge format: {audio_format}")

    async def check_health(self) -> dict:
        """Check if the TTS server is reachable.

        Returns:
            Health status dict with 'connected' boolean, 'server_url', and optional 'error'.
        """
        if not self.server_url:
            return {"connected": False, "server_url": None, "error": "No server URL configured"}

        base_response = {"server_url": self.server_url}

        try:
            response = await self.client.get(f"{self.server_url}/api/ui/initial-data", timeout=10.0)
            if response.status_code == 200:
                return {"connected": True, **base_response}
            return {
                "connected": False,
                "error": f"Server returned status {response.status_code}",
                **base_response,
            }
        except httpx.TimeoutException:
            return {"connected": False, "error": "Connection timed out", **base_response}
        except httpx.HTTPError as e:
            return {"connected": False, "error": f"Connection failed: {e}", **base_response}

    async def list_voices(self) -> list[Voice]:
        """Enumerate the server's predefined voices.

        Returns:
            Voices in server order. Empty when the server is unconfigured,
            unreachable, or returns something unexpected.
        """
        if not self.server_url:
            return []

        try:
            response = await self.client.get(f"{self.server_url}/get_predefined_voices", timeout=10.0)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to list TTS voices: {e}")
            return []

        if isinstance(data, dict):
            data = data.get("voices", [])
        if not isinstance(data, list):
            logger.warning(f"Unexpected voice list payload: {type(data).__name__}")
            return []

        voices = []
        for item in data:
            if isinstance(item, str):
                name, lang = item, "en"
            elif isinstance(item, dict):
                name = item.get("name") or item.get("filename") or item.get("display_name") or ""
                lang = item.get("lang") or item.get("language") or "en"
            else:
                continue
            if name:
                voices.append(Voice(name=str(name), lang=str(lang)))

        logger.info(f"TTS server offers {len(voices)} voices")
        return voices

    async def generate(self, text: str, voice: str) -> bytes:
        """Generate audio for text with a predefined voice.

        Long text is sent in sentence-aware chunks and the audio is merged.

        Args:
            text: Text to convert to speech
            voice: Predefined voice name

        Returns:
            Audio bytes (WAV unless the server ignores the requested format)

        Raises:
            TTSServiceError: If generation fails
        """
        if not self.server_url:
            raise TTSServiceError("No TTS server URL configured")

        chunks = self._split_text_chunks(text)
        if not chunks:
            raise TTSServiceError("No text to synthesize")

        logger.info(f"Generating TTS for {len(text)} characters in {len(chunks)} chunk(s), voice={voice}")

        audio_chunks = []
        for i, chunk in enumerate(chunks, 1):
            audio_chunks.append(await self._generate_chunk(chunk, voice))
            logger.debug(f"TTS chunk {i}/{len(chunks)} done")

        audio = self._merge_audio_chunks(audio_chunks)
        logger.info(f"TTS generation complete: {len(audio)} bytes")
        return audio

    async def _generate_chunk(self, text: str, voice: str) -> bytes:
        payload = {
            "text": text,
            "voice_mode": "predefined",
            "predefined_voice_id": voice,
            "output_format": "wav",
            "split_text": False,
        }

        try:
            response = await self.client.post(f"{self.server_url}/tts", json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TTSServiceError(
                "TTS generation timed out. The text may be too long or the server is overloaded."
            ) from e
        except httpx.HTTPStatusError as e:
            try:
                error_detail = e.response.json().get("detail", str(e))
            except (ValueError, AttributeError):
                error_detail = e.response.text or str(e)
            raise TTSServiceError(f"TTS server error: {error_detail}") from e
        except httpx.HTTPError as e:
            raise TTSServiceError(f"TTS generation failed: {e}") from e

        if not response.content:
            raise TTSServiceError("TTS server returned empty audio")
        return response.content

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
