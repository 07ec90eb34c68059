"""TTS (Text-to-Speech) data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Voice:
    """A voice offered by the speech synthesis server."""

    name: str
    lang: str = "en"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {"name": self.name, "lang": self.lang}
