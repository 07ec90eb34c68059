"""Core routes for the Shorts API (root, health check, voices)."""

from api.dependencies import get_agent
from api.schemas import HealthResponse, RootResponse, VoiceResponse
from fastapi import APIRouter, Depends
from shorts_agent import ShortsProductionAgent

router = APIRouter(tags=["Core"])


@router.get(
    "/",
    response_model=RootResponse,
    summary="API root",
    description="Returns API name and version.",
)
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Shorts Generator API", "version": "1.0.0"}


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns server health status.",
)
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@router.get(
    "/api/voices",
    response_model=list[VoiceResponse],
    summary="List narration voices",
    description="Voices offered by the TTS server. Empty when none are available; runs then use the default voice.",
)
async def list_voices(agent: ShortsProductionAgent = Depends(get_agent)) -> list[dict]:
    """List voices for the settings form."""
    voices = await agent.list_voices()
    return [voice.to_dict() for voice in voices]
