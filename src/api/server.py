#!/usr/bin/env python
"""FastAPI server for the Shorts Generator web interface."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import close_agent
from api.routers import core, shorts
from utils.config import load_config
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup; stop running jobs and close clients on shutdown."""
    config = load_config()
    setup_logging(config.get("log_level", "INFO"), json_output=config.get("log_json", False))
    logger.info("Shorts Generator API starting")
    yield
    await shorts.cancel_background_tasks()
    await close_agent()
    logger.info("Shorts Generator API stopped")


app = FastAPI(
    title="Shorts Generator API",
    description="Turn a text prompt into a narrated, captioned vertical video",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(core.router)
app.include_router(shorts.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
