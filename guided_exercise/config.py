"""Configuration loading and management."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .engine.stages import ExerciseConfig, exercise_config_from_dict


@dataclass
class EngineSettings:
    # Raise on wrong-variant exercise data instead of logging and dropping it
    strict: bool = True
    module_context: str = "standalone"


@dataclass
class PersistenceConfig:
    auto_save: bool = True
    save_directory: str = "sessions"
    debounce_sec: float = 2.0


@dataclass
class AnalyticsConfig:
    sinks: list[str] = field(default_factory=lambda: ["log"])
    endpoint: str | None = None
    api_key: str | None = None
    timeout: float = 10.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_file: str | None = None
    rotation: str = "10 MB"
    retention: str = "7 days"


@dataclass
class Config:
    """Complete application configuration."""

    engine: EngineSettings = field(default_factory=EngineSettings)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Extra exercises defined in the config file
    exercises: list[ExerciseConfig] = field(default_factory=list)


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from YAML file.

    Args:
        path: Path to config file. If None, uses default.yaml

    Returns:
        Loaded configuration

    Raises:
        ConfigError: If an exercise defined in the file is malformed
    """
    if path is None:
        # Try default locations
        candidates = [
            Path("config/default.yaml"),
            Path("config.yaml"),
            Path.home() / ".config" / "guided-exercise" / "config.yaml",
        ]
        for candidate in candidates:
            if candidate.exists():
                path = candidate
                break

    config = Config()

    if path is not None and Path(path).exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if "engine" in data:
            config.engine = _update_dataclass(EngineSettings(), data["engine"])
        if "persistence" in data:
            config.persistence = _update_dataclass(PersistenceConfig(), data["persistence"])
        if "analytics" in data:
            config.analytics = _update_dataclass(AnalyticsConfig(), data["analytics"])
        if "logging" in data:
            config.logging = _update_dataclass(LoggingConfig(), data["logging"])
        if "exercises" in data:
            config.exercises = [exercise_config_from_dict(e) for e in data["exercises"] or []]

    # Handle environment variable substitution
    config.persistence.save_directory = _expand_env(config.persistence.save_directory)
    config.analytics.endpoint = _expand_env(config.analytics.endpoint)
    config.analytics.api_key = _expand_env(config.analytics.api_key)

    return config


def _expand_env(value: str | None) -> str | None:
    """Replace a "${VAR}" value with the environment variable's value."""
    if value and value.startswith("${") and value.endswith("}"):
        return os.environ.get(value[2:-1])
    return value


def _update_dataclass(instance: Any, data: dict) -> Any:
    """Update dataclass instance from dictionary."""
    for key, value in data.items():
        if hasattr(instance, key):
            setattr(instance, key, value)
    return instance
