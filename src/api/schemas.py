"""Pydantic request/response models for the Shorts API."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

# =============================================================================
# Response Models
# =============================================================================


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Operation completed successfully"}]}}


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Shorts Generator API", "version": "1.0.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str

    model_config = {"json_schema_extra": {"examples": [{"status": "healthy"}]}}


class VoiceResponse(BaseModel):
    """A narration voice offered by the TTS server."""

    name: str
    lang: str


class ShortCreatedResponse(BaseModel):
    """Response after accepting a generation request."""

    job_id: str
    status: str

    model_config = {"json_schema_extra": {"examples": [{"job_id": "3f2a9c1d0b7e", "status": "idle"}]}}


class ShortSettingsResponse(BaseModel):
    prompt: str
    duration: int
    resolution: str
    voice: str


class ShortJobResponse(BaseModel):
    """State of one generation run."""

    job_id: str
    state: str
    step: int = Field(ge=0)
    total_steps: int
    label: str
    message: str
    percent: float = Field(ge=0, le=100)
    error: str | None = None
    fallbacks: list[str] = []
    video_ready: bool
    settings: ShortSettingsResponse
    created_at: float
    finished_at: float | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "job_id": "3f2a9c1d0b7e",
                    "state": "composing",
                    "step": 6,
                    "total_steps": 7,
                    "label": "Composing Video",
                    "message": "Composing video: 40%",
                    "percent": 91.43,
                    "error": None,
                    "fallbacks": ["script: API key not configured"],
                    "video_ready": False,
                    "settings": {
                        "prompt": "morning coffee routine",
                        "duration": 15,
                        "resolution": "1080x1920",
                        "voice": "",
                    },
                    "created_at": 1760000000.0,
                    "finished_at": None,
                }
            ]
        }
    }


# =============================================================================
# Request Models
# =============================================================================


class ShortCreateRequest(BaseModel):
    """Request body for generating a short."""

    prompt: str = Field(..., min_length=1, max_length=500)
    duration: Literal[15, 30, 60] = 30
    resolution: Literal["1080x1920", "720x1280"] = "1080x1920"
    voice: str = Field(default="", max_length=200)

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("prompt must not be blank")
        return value
