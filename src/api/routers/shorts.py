"""Shorts generation routes."""

import asyncio
import logging

from api.dependencies import get_agent
from api.schemas import ShortCreatedResponse, ShortCreateRequest, ShortJobResponse
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, JSONResponse
from shorts_agent import PipelineRun, PipelineState, ShortsProductionAgent, VideoSettings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Shorts"])

# Run storage (in-memory, generated assets are not kept across restarts)
short_jobs: dict[str, PipelineRun] = {}

# Keep references to background tasks to prevent garbage collection
_background_tasks: set = set()


def _get_run(job_id: str) -> PipelineRun:
    run = short_jobs.get(job_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return run


def active_run() -> PipelineRun | None:
    """The run that has not finished yet, if any."""
    for run in short_jobs.values():
        if not run.is_terminal:
            return run
    return None


async def cancel_background_tasks() -> None:
    """Cancel runs still executing, used on server shutdown."""
    for task in list(_background_tasks):
        task.cancel()
    if _background_tasks:
        await asyncio.gather(*_background_tasks, return_exceptions=True)


@router.post(
    "/api/shorts",
    response_model=ShortCreatedResponse,
    status_code=202,
    summary="Generate a short",
    description="Start a generation run. Returns the job ID immediately.",
    responses={409: {"description": "Another run is in progress"}, 422: {"description": "Invalid settings"}},
)
async def create_short(
    request: ShortCreateRequest,
    agent: ShortsProductionAgent = Depends(get_agent),
):
    """Start a run in the background. Only one run may be active at a time."""
    current = active_run()
    if current is not None:
        raise HTTPException(
            status_code=409,
            detail=f"Run {current.run_id} is still in progress",
        )

    settings = VideoSettings(
        prompt=request.prompt,
        duration=request.duration,
        resolution=request.resolution,
        voice=request.voice,
    )
    run = PipelineRun(settings)
    short_jobs[run.run_id] = run

    task = asyncio.create_task(agent.run(settings, run))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    logger.info(f"Accepted short {run.run_id}: '{settings.prompt[:60]}' ({settings.duration}s)")
    return JSONResponse(
        status_code=202,
        content={"job_id": run.run_id, "status": run.state.value},
    )


@router.get("/api/shorts", response_model=list[ShortJobResponse], summary="List runs")
async def list_shorts() -> list[dict]:
    return [run.to_dict() for run in short_jobs.values()]


@router.get(
    "/api/shorts/{job_id}",
    response_model=ShortJobResponse,
    summary="Get run status",
    responses={404: {"description": "Job not found"}},
)
async def get_short(job_id: str) -> dict:
    """Get state, step, message and progress of a run."""
    return _get_run(job_id).to_dict()


@router.post(
    "/api/shorts/{job_id}/cancel",
    response_model=ShortCreatedResponse,
    summary="Cancel a run",
    responses={404: {"description": "Job not found"}, 409: {"description": "Run already finished"}},
)
async def cancel_short(job_id: str) -> dict:
    """Request cancellation; the run stops at its current stage."""
    run = _get_run(job_id)
    if not run.cancel():
        raise HTTPException(
            status_code=409,
            detail=f"Run already finished (state: {run.state.value})",
        )
    return {"job_id": run.run_id, "status": "cancelling"}


@router.get(
    "/api/shorts/{job_id}/download",
    summary="Download video",
    description="Download the composed MP4 of a finished run.",
    responses={404: {"description": "Job or video not found"}},
)
async def download_short(job_id: str):
    run = _get_run(job_id)

    if run.state is not PipelineState.DONE or run.output_path is None:
        raise HTTPException(
            status_code=404,
            detail=f"Video not available (state: {run.state.value})",
        )
    if not run.output_path.exists():
        raise HTTPException(status_code=404, detail="Video file not found")

    return FileResponse(
        path=str(run.output_path),
        media_type="video/mp4",
        filename=f"short_{run.run_id}.mp4",
    )


@router.websocket("/ws/shorts/{job_id}")
async def websocket_short(websocket: WebSocket, job_id: str) -> None:
    """Stream progress events of a run until it finishes.

    The client may send "ping" (answered with "pong") or "cancel".

    Args:
        websocket: WebSocket connection
        job_id: Job ID to monitor
    """
    await websocket.accept()

    run = short_jobs.get(job_id)
    if run is None:
        await websocket.send_json({"type": "error", "message": "Job not found"})
        await websocket.close()
        return

    stream = run.subscribe()

    async def read_commands() -> None:
        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
                elif data == "cancel":
                    stream.cancel()
        except WebSocketDisconnect:
            # Client went away: stop streaming
            stream.close()

    reader = asyncio.create_task(read_commands())
    try:
        async for event in stream:
            await websocket.send_json({"type": "progress", "job_id": job_id, **event.to_dict()})
        await websocket.close()
    except WebSocketDisconnect:
        logger.debug(f"WebSocket client left run {job_id}")
    except Exception as e:
        logger.error(f"WebSocket error for run {job_id}: {e}")
    finally:
        stream.close()
        reader.cancel()
