"""Global app configuration (connections, generator assignments, feature toggles, media)."""

import json
import math
from pathlib import Path
from typing import Any

from .core import data_dir

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_connections": [],
    "generators": {
        "narrator": "",
        "choices": "",
        "special_event": "",
        "npc": "",
        "search": "",
    },
    "features": {
        "delegation": True,
        "images": False,
        "audio": False,
        "search": True,
    },
    "image": {"provider_url": "https://api.x.ai", "api_key": "", "model": ""},
    "audio": {"provider_url": "", "api_key": "", "voice": "default-jp-001"},
    "task_timeout_seconds": 30,
}

# Sections merged key-by-key on read and update; unknown keys are dropped.
_NESTED = ("generators", "features", "image", "audio")


class ConfigError(ValueError):
    """A settings update with a value of the wrong type."""


def _config_path() -> Path:
    return data_dir() / "config.json"


def _merge_nested(config: dict[str, Any], fields: dict[str, Any]) -> None:
    if "llm_connections" in fields:
        config["llm_connections"] = fields["llm_connections"]
    for section in _NESTED:
        vals = fields.get(section)
        if isinstance(vals, dict):
            config[section].update({k: v for k, v in vals.items() if k in config[section]})
    if "task_timeout_seconds" in fields:
        config["task_timeout_seconds"] = fields["task_timeout_seconds"]


def _validate(fields: dict[str, Any]) -> None:
    conns = fields.get("llm_connections", [])
    if not isinstance(conns, list) or not all(isinstance(c, dict) for c in conns):
        raise ConfigError("llm_connections must be a list of objects")
    timeout = fields.get("task_timeout_seconds")
    if timeout is None:
        return
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or not math.isfinite(timeout) or timeout < 0:
        raise ConfigError("task_timeout_seconds must be a non-negative number or null")


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    path = _config_path()
    if path.is_file():
        _merge_nested(config, json.loads(path.read_text(encoding="utf-8")))
    return config


def merge_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Stored config with a partial update applied, without persisting it.

    Raises ConfigError when a scalar or the connections list has the wrong type.
    """
    _validate(fields)
    config = get_config()
    _merge_nested(config, fields)
    return config


def save_config(config: dict[str, Any]) -> dict[str, Any]:
    _config_path().write_text(json.dumps(config, indent=2, ensure_ascii=False), encoding="utf-8")
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    return save_config(merge_config(fields))
