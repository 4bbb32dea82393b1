"""FallWatch server: main entry point.

This is the only file that knows about concrete implementations.
It wires together the detector sessions, stats, and API layers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TextIO

import structlog
from fastapi import FastAPI

from fallwatch.api.devices import router as devices_router
from fallwatch.api.monitoring import router as monitoring_router
from fallwatch.api.motion import router as motion_router
from fallwatch.config import AppConfig, load_config
from fallwatch.core.processor import MotionProcessor
from fallwatch.core.sessions import SessionRegistry
from fallwatch.core.stats import ServerStats

log = structlog.get_logger()

# Module-level singletons (set during startup)
_processor: MotionProcessor | None = None
_sessions: SessionRegistry | None = None
_stats: ServerStats | None = None
_config: AppConfig | None = None
_log_file: TextIO | None = None


def get_processor() -> MotionProcessor:
    assert _processor is not None, "Server not initialized"
    return _processor


def get_sessions() -> SessionRegistry:
    assert _sessions is not None, "Server not initialized"
    return _sessions


def get_stats() -> ServerStats:
    assert _stats is not None, "Server not initialized"
    return _stats


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def _setup_logging(config: AppConfig) -> TextIO | None:
    """Configure structlog based on the logging config.

    Returns the log file handle when logging to a file; the caller closes it.
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    log_file = None
    logger_factory = structlog.PrintLoggerFactory()
    if config.logging.file:
        log_file = open(config.logging.file, "a")
        logger_factory = structlog.WriteLoggerFactory(file=log_file)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
        logger_factory=logger_factory,
    )
    return log_file


def build_components(config: AppConfig) -> tuple[ServerStats, SessionRegistry, MotionProcessor]:
    """Create the stats, session registry and processor for a config."""
    stats = ServerStats(
        active_window_seconds=config.limits.active_window_seconds,
        recent_falls_kept=config.limits.recent_falls_kept,
    )
    sessions = SessionRegistry(
        config.detector,
        stats,
        idle_timeout_seconds=config.limits.active_window_seconds,
    )
    processor = MotionProcessor(
        sessions=sessions,
        stats=stats,
        max_events_per_message=config.limits.max_events_per_message,
    )
    return stats, sessions, processor


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _processor, _sessions, _stats, _config, _log_file

    _config = load_config()
    _log_file = _setup_logging(_config)

    log.info("server_starting",
             env=_config.server.env,
             acceleration_threshold=_config.detector.acceleration_threshold,
             cooldown_ms=_config.detector.cooldown_ms)

    _stats, _sessions, _processor = build_components(_config)

    log.info("server_started",
             host=_config.server.host,
             port=_config.server.port)

    yield

    log.info("server_stopped", sessions=len(_sessions))

    if _log_file is not None:
        structlog.reset_defaults()
        _log_file.close()
        _log_file = None


app = FastAPI(
    title="FallWatch",
    description="Fall detection from phone motion sensors",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(motion_router)
app.include_router(devices_router)
app.include_router(monitoring_router)
