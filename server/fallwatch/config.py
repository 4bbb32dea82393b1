"""Server and detector configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: FALLWATCH_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class DetectorConfig:
    """Thresholds and windows of the fall heuristic.

    Magnitudes include gravity (a phone at rest reads ~9.8 m/s²).
    """
    acceleration_threshold: float = 15.0       # m/s², impact
    angular_velocity_threshold: float = 4.3    # rad/s, twist or tilt
    low_activity_threshold: float = 5.0        # m/s², stillness after impact
    pattern_duration_ms: int = 1500
    rotation_window_ms: int = 1000
    low_activity_start_ms: int = 200
    low_activity_samples: int = 10
    cooldown_ms: int = 3000
    buffer_size: int = 100

    def validate(self) -> None:
        """Raise ValueError if the thresholds cannot describe a fall pattern."""
        for name in ("acceleration_threshold", "angular_velocity_threshold",
                     "low_activity_threshold", "pattern_duration_ms",
                     "rotation_window_ms", "low_activity_samples", "buffer_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"detector.{name} must be positive")
        if self.low_activity_start_ms < 0 or self.cooldown_ms < 0:
            raise ValueError("detector windows must not be negative")
        if self.rotation_window_ms > self.pattern_duration_ms:
            raise ValueError("detector.rotation_window_ms exceeds pattern_duration_ms")
        if self.low_activity_start_ms >= self.pattern_duration_ms:
            raise ValueError("detector.low_activity_start_ms must be below pattern_duration_ms")
        if self.buffer_size < self.low_activity_samples:
            raise ValueError("detector.buffer_size is smaller than low_activity_samples")


@dataclass
class LimitsConfig:
    max_events_per_message: int = 500
    active_window_seconds: float = 120.0
    recent_falls_kept: int = 100


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"
    file: str = ""


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    det = config.detector
    mapping = {
        "FALLWATCH_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "FALLWATCH_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "FALLWATCH_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "FALLWATCH_DETECTOR_ACCELERATION_THRESHOLD": lambda v: setattr(det, "acceleration_threshold", float(v)),
        "FALLWATCH_DETECTOR_ANGULAR_VELOCITY_THRESHOLD": lambda v: setattr(det, "angular_velocity_threshold", float(v)),
        "FALLWATCH_DETECTOR_LOW_ACTIVITY_THRESHOLD": lambda v: setattr(det, "low_activity_threshold", float(v)),
        "FALLWATCH_DETECTOR_PATTERN_DURATION_MS": lambda v: setattr(det, "pattern_duration_ms", int(v)),
        "FALLWATCH_DETECTOR_COOLDOWN_MS": lambda v: setattr(det, "cooldown_ms", int(v)),
        "FALLWATCH_DETECTOR_BUFFER_SIZE": lambda v: setattr(det, "buffer_size", int(v)),
        "FALLWATCH_LIMITS_MAX_EVENTS": lambda v: setattr(config.limits, "max_events_per_message", int(v)),
        "FALLWATCH_LIMITS_ACTIVE_WINDOW": lambda v: setattr(config.limits, "active_window_seconds", float(v)),
        "FALLWATCH_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "FALLWATCH_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
        "FALLWATCH_LOG_FILE": lambda v: setattr(config.logging, "file", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    if config_path is None:
        config_path = Path("config.yaml")
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section in ("server", "detector", "limits", "logging"):
            target = getattr(config, section)
            for k, v in (raw.get(section) or {}).items():
                if hasattr(target, k):
                    setattr(target, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    config.detector.validate()
    return config
