"""Engine settings (scan depths, collection registries, debug, digest template)."""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from lorelens.models import EngineSettings

from .core import data_dir

_CONFIG_DEFAULTS: dict[str, Any] = EngineSettings().model_dump()

_MAP_FIELDS = ("chat_scan_depth", "character_scan_depth")


class SettingsError(ValueError):
    """Raised when a settings update does not validate."""


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    path = _config_path()
    if path.is_file():
        stored = json.loads(path.read_text())
        for name in config:
            if name in stored:
                config[name] = stored[name]
    return config


def get_settings() -> EngineSettings:
    """Stored config as a validated EngineSettings."""
    return EngineSettings.model_validate(get_config())


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config, validate and persist. Returns full config."""
    config = get_config()
    for name, value in fields.items():
        if name not in config:
            continue
        if name in _MAP_FIELDS and isinstance(value, dict):
            merged = dict(config[name])
            for key, depth in value.items():
                if depth is None:
                    merged.pop(key, None)
                else:
                    merged[key] = depth
            config[name] = merged
        else:
            config[name] = value

    try:
        validated = EngineSettings.model_validate(config)
    except ValidationError as e:
        raise SettingsError(str(e)) from e

    config = validated.model_dump()
    _config_path().write_text(json.dumps(config, indent=2))
    return config
