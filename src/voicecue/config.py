# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for voicecue.
Handles loading and saving settings from a YAML config file.
"""

import copy
import logging
from pathlib import Path
from typing import Any, TypedDict

import yaml

from .matcher import MatcherSettings
from .supervisor import SupervisorSettings

logger = logging.getLogger(__name__)

CONFIG_FILENAME: str = ".voicecue.yaml"


class RecognitionConfig(TypedDict):
    """Type definition for speech recognition settings."""
    provider: str  # "vosk"
    model_id: str  # Model identifier (e.g., "vosk-en-us-small")
    model_path: str | None  # Optional custom path
    locale: str
    audio_device: int | None
    chunk_ms: int


class MatchingSettings(TypedDict):
    """Type definition for window matching settings."""
    min_window: int
    match_window: int
    region_previous: int
    region_next: int
    reading_lead: int
    distance_weight: float
    thresholds: list[float]
    refine_span: int
    smoothing_samples: int
    smoothing_min_samples: int


class SupervisorConfig(TypedDict):
    """Type definition for session restart settings."""
    restart_window_s: float
    max_restarts: int
    restart_debounce_s: float


class Config(TypedDict):
    """Type definition for the complete configuration."""
    recognition: RecognitionConfig
    matching: MatchingSettings
    supervisor: SupervisorConfig


# Default configuration values
DEFAULT_CONFIG: Config = {
    "recognition": {
        "provider": "vosk",
        "model_id": "vosk-en-us-small",
        "model_path": None,
        "locale": "en-US",
        "audio_device": None,
        "chunk_ms": 100,
    },

    # Matching thresholds (hand tuned, see voicecue-replay for calibration)
    "matching": {
        "min_window": 3,
        "match_window": 6,
        "region_previous": 10,
        "region_next": 50,
        "reading_lead": 2,
        "distance_weight": 0.03,
        "thresholds": [0.1, 0.3, 0.5],
        "refine_span": 2,
        "smoothing_samples": 3,
        "smoothing_min_samples": 2,
    },

    # Restart policy for recognizers that end sessions by themselves
    "supervisor": {
        "restart_window_s": 60.0,
        "max_restarts": 60,
        "restart_debounce_s": 1.0,
    },
}


def get_config_path() -> Path:
    """Get the path to the config file in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Deep merge two dictionaries, with override taking precedence.
    Returns a new dictionary without modifying the originals.

    Args:
        base: Base dictionary to merge from.
        override: Dictionary with values that take precedence over base.

    Returns:
        New dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, merged with defaults.

    Args:
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        Configuration dictionary with all values (defaults + overrides from file).
    """
    if config_path is None:
        config_path = get_config_path()

    # Start with a private copy of the defaults
    config: dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)

    if config_path.exists():
        try:
            with open(config_path, encoding='utf-8') as f:
                file_config: dict[str, Any] | None = yaml.safe_load(f)
                if file_config:
                    config = _deep_merge(config, file_config)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load config from %s: %s", config_path, e)

    return config  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Args:
        config: Configuration dictionary to save.
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        True if save was successful, False otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
        return True
    except (OSError, yaml.YAMLError) as e:
        logger.error("Error saving config to %s: %s", config_path, e)
        return False


def get_recognition_settings(config: Config) -> RecognitionConfig:
    """Extract recognition settings from config."""
    return config.get("recognition",
                      DEFAULT_CONFIG["recognition"]
                      ).copy()  # type: ignore[return-value]


def get_matching_settings(config: Config) -> MatchingSettings:
    """Extract matching settings from config."""
    return config.get("matching", DEFAULT_CONFIG["matching"]).copy()  # type: ignore[return-value]


def get_supervisor_settings(config: Config) -> SupervisorConfig:
    """Extract restart policy settings from config."""
    return config.get("supervisor", DEFAULT_CONFIG["supervisor"]).copy()  # type: ignore[return-value]


def build_matcher_settings(config: Config) -> MatcherSettings:
    """
    Build MatcherSettings from the matching section of a config.

    Unknown keys are ignored so older or newer config files still load.
    """
    matching: dict[str, Any] = dict(get_matching_settings(config))
    known: set[str] = set(MatcherSettings.__dataclass_fields__)
    values: dict[str, Any] = {k: v for k, v in matching.items() if k in known}
    if "thresholds" in values:
        values["thresholds"] = tuple(float(t) for t in values["thresholds"])
    return MatcherSettings(**values)


def build_supervisor_settings(config: Config) -> SupervisorSettings:
    """Build SupervisorSettings from the supervisor and recognition sections."""
    supervisor: SupervisorConfig = get_supervisor_settings(config)
    recognition: RecognitionConfig = get_recognition_settings(config)
    return SupervisorSettings(
        locale=recognition.get("locale", "en-US"),
        restart_window_s=float(supervisor.get("restart_window_s", 60.0)),
        max_restarts=int(supervisor.get("max_restarts", 60)),
        restart_debounce_s=float(supervisor.get("restart_debounce_s", 1.0)),
    )
