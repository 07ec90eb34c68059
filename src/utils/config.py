"""Configuration loading and validation for the shorts generator."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from rich.logging import RichHandler

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

KNOWN_CLIP_SOURCES = ("pexels", "pixabay")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    source_priority = [
        name.strip().lower()
        for name in os.getenv("CLIP_SOURCE_PRIORITY", "pexels,pixabay").split(",")
        if name.strip()
    ]

    config = {
        # Script generation (optional: absent key means template scripts)
        "gemini_api_key": os.getenv("GEMINI_API_KEY"),
        "gemini_model": os.getenv("GEMINI_MODEL", "gemini-3-flash-preview"),
        # Stock footage search
        "clip_source_priority": source_priority,
        "clips_per_keyword": int(os.getenv("CLIPS_PER_KEYWORD", "5")),
        "max_selection_passes": int(os.getenv("MAX_SELECTION_PASSES", "50")),
        # Narration
        "tts_server_url": os.getenv("TTS_SERVER_URL", ""),
        "tts_default_voice": os.getenv("TTS_DEFAULT_VOICE", "default"),
        "silent_narration_fallback": _env_bool("SILENT_NARRATION_FALLBACK", "true"),
        # Timeouts (seconds)
        "script_timeout_seconds": float(os.getenv("SCRIPT_TIMEOUT_SECONDS", "30")),
        "search_timeout_seconds": float(os.getenv("SEARCH_TIMEOUT_SECONDS", "30")),
        "tts_timeout_seconds": float(os.getenv("TTS_TIMEOUT_SECONDS", "180")),
        "ffmpeg_timeout_seconds": float(os.getenv("FFMPEG_TIMEOUT_SECONDS", "600")),
        # Output
        "local_output_folder": resolve_path(os.getenv("LOCAL_OUTPUT_FOLDER"), "output"),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": _env_bool("LOG_JSON", "false"),
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of problems.

    None of these stop a run by themselves: script planning and narration
    degrade gracefully, but a run without any clip source cannot find footage.
    """
    errors = []

    unknown = [s for s in config.get("clip_source_priority", []) if s not in KNOWN_CLIP_SOURCES]
    if unknown:
        errors.append(f"Unknown clip sources in CLIP_SOURCE_PRIORITY: {', '.join(unknown)}")

    if not (os.getenv("PEXELS_API_KEY") or os.getenv("PIXABAY_API_KEY")):
        errors.append("No clip source configured: set PEXELS_API_KEY or PIXABAY_API_KEY")

    if config.get("clips_per_keyword", 1) < 1:
        errors.append("CLIPS_PER_KEYWORD must be at least 1")

    if config.get("max_selection_passes", 1) < 1:
        errors.append("MAX_SELECTION_PASSES must be at least 1")

    if config.get("local_output_folder"):
        output_path = Path(config["local_output_folder"])
        try:
            output_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create local output folder: {e}")
    else:
        errors.append("LOCAL_OUTPUT_FOLDER is required")

    return errors


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration with Rich for terminal output."""
    # Clear any existing handlers
    logging.root.handlers.clear()

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,  # Disable markup to avoid conflicts
    )

    # File handler for plain text logging (always in src directory)
    log_file = PROJECT_ROOT / "src" / "shorts_generator.log"
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[rich_handler, file_handler],
        format="%(message)s",
    )

    # Suppress noisy third-party loggers
    noisy_loggers = [
        "httpx",
        "httpcore",
        "google_genai",
        "google_genai.models",
        "urllib3.connectionpool",
        "aiohttp.access",
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
