"""Structured logging for the API server.

Uses structlog on top of stdlib logging so every module keeps using
`logging.getLogger(__name__)`. Each pipeline run sets its run id as the job
context, and the id is attached to every log line of that run.
"""

import logging
import sys
from contextvars import ContextVar, Token

import structlog

# Run id of the pipeline run being executed in the current task
current_job_id: ContextVar[str | None] = ContextVar("current_job_id", default=None)


def add_job_id(_logger, _method_name, event_dict):
    """Structlog processor to inject job_id into all log events."""
    job_id = current_job_id.get()
    if job_id:
        event_dict["job_id"] = job_id
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON logs (for production). If False, use colored console output.
    """
    # Shared processors for both structlog and stdlib
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_job_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        # JSON output for production/log aggregation
        renderer = structlog.processors.JSONRenderer()
    else:
        # Colored console output for development
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdlib records (our modules log through logging.getLogger) get the
    # same processors, job_id included, via foreign_pre_chain
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Suppress noisy third-party loggers
    noisy_loggers = [
        "httpx",
        "google_genai",
        "google_genai.models",
        "httpcore",
        "urllib3.connectionpool",
        "aiohttp.access",
        "uvicorn.access",
    ]
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def set_job_context(job_id: str) -> Token:
    """Set the current job ID for log correlation.

    Args:
        job_id: Job ID to include in all subsequent log messages

    Returns:
        Token for clear_job_context to restore the previous value
    """
    return current_job_id.set(job_id)


def clear_job_context(token: Token | None = None) -> None:
    """Clear the current job context, or restore it from a token."""
    if token is not None:
        current_job_id.reset(token)
    else:
        current_job_id.set(None)
