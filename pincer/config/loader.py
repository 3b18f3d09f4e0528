"""Configuration loading utilities."""

import json
import os
import re
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from pincer.config.schema import Config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".pincer" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            # Use utf-8-sig to tolerate BOM-prefixed JSON written by some tools.
            with open(path, encoding="utf-8-sig") as f:
                data = json.load(f)
            return Config.model_validate(convert_keys(data))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file with an atomic replace.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    temp_path = path.with_suffix(path.suffix + ".tmp")
    with open(temp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    os.replace(temp_path, path)


def convert_keys(data: Any, _parent: str | None = None) -> Any:
    """Convert camelCase keys to snake_case for Pydantic.

    Profile names are user-chosen and left untouched.
    """
    return _rekey(data, camel_to_snake, _parent)


def convert_to_camel(data: Any, _parent: str | None = None) -> Any:
    """Convert snake_case keys to camelCase."""
    return _rekey(data, snake_to_camel, _parent)


def _rekey(data: Any, rename: Callable[[str], str], parent: str | None) -> Any:
    if isinstance(data, list):
        return [_rekey(item, rename, None) for item in data]
    if not isinstance(data, dict):
        return data
    out = {}
    for key, value in data.items():
        new_key = key if parent == "profiles" else rename(key)
        out[new_key] = _rekey(value, rename, camel_to_snake(new_key))
    return out


_UPPER = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return _UPPER.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)
