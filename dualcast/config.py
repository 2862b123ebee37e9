"""
Settings loading and validation.

Settings live in a YAML file (see config/settings.yaml). Relative paths
are resolved against the project root, i.e. the parent of the config
directory.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .models import RecordingOptions, Timings

logger = logging.getLogger(__name__)

ENCODER_DEFAULTS = {
    "binary": "ffmpeg",
    "segment_time": 3,
    "container": "mkv",
    "preset": "ultrafast",
    "crf": 28,
    "gop": 30,
}


def load_config(config_path: str) -> dict:
    """Load and validate configuration."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config not found: {config_path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Config must be a mapping: {config_path}")

    # Required sections
    required = ["paths", "encoder", "upload"]
    missing = [s for s in required if s not in config]
    if missing:
        raise ConfigError(f"Missing config sections: {missing}")

    if "working_dir" not in (config["paths"] or {}):
        raise ConfigError("Missing paths.working_dir in config")

    encoder = dict(ENCODER_DEFAULTS)
    encoder.update(config["encoder"] or {})
    config["encoder"] = encoder

    config["upload"] = config["upload"] or {}
    config.setdefault("timing", {})
    config.setdefault("recording", {})

    try:
        config["timings"] = Timings.from_dict(config["timing"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid timing section: {e}") from e

    # Resolve paths relative to the project root
    config_dir = path.parent.parent
    for key, default in (("working_dir", "."), ("logs_dir", "logs")):
        value = config["paths"].get(key, default)
        if not Path(value).is_absolute():
            value = str(config_dir / value)
        config["paths"][key] = value

    return config


def options_from_config(config: dict,
                        overrides: Optional[Dict[str, Any]] = None) -> RecordingOptions:
    """Build RecordingOptions from the recording section plus CLI overrides."""
    data = dict(config.get("recording") or {})
    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value
    try:
        return RecordingOptions.from_dict(data)
    except ValueError as e:
        raise ConfigError(str(e)) from e
