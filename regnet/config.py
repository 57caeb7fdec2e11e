"""Process-wide configuration for regnet.

Contract names, key namespaces, top-up codes and store settings are read
from config/config.yaml (or a file named on the command line) and checked
against the schema in config_schema before anything else runs. A registry
never reads YAML itself; it asks for the typed config here.

Usage:
    from regnet.config import load_config, get, get_validated_config

    load_config("config/config.yaml")       # once, at startup
    namespace = get_validated_config().namespaces.identity
    amount = get("top_up_codes.upg500")      # dot-path lookup
"""

from __future__ import annotations

import yaml
from pathlib import Path
from typing import Any

from .config_schema import AppConfig, load_validated_config, validate_config_dict


# Loaded lazily on first access
_config: dict[str, Any] | None = None
_validated_config: AppConfig | None = None

# Shipped configuration, next to the package
DEFAULT_CONFIG_PATH: Path = Path(__file__).parent.parent / "config" / "config.yaml"


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """Read a YAML config file and make it the active configuration.

    Args:
        config_path: File to read; the shipped config/config.yaml when None.

    Returns:
        The raw mapping as written in the file (defaults not filled in).

    Raises:
        FileNotFoundError: The file does not exist.
        pydantic.ValidationError: A key is unknown or a value is out of range.
    """
    global _config, _validated_config

    path: Path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _validated_config = load_validated_config(path)

    # get() looks here first, so keep what the file actually said
    with open(path) as f:
        loaded: Any = yaml.safe_load(f)
        if not isinstance(loaded, dict):
            loaded = {}
        _config = loaded

    return _config


def set_config(config_dict: dict[str, Any]) -> AppConfig:
    """Install a configuration from a dict instead of a file.

    Used by tests and embedding hosts that build their config in code.
    """
    global _config, _validated_config
    _validated_config = validate_config_dict(config_dict)
    _config = dict(config_dict)
    return _validated_config


def reset_config() -> None:
    """Forget the loaded configuration. The next access reloads the default file."""
    global _config, _validated_config
    _config = None
    _validated_config = None


def get_config() -> dict[str, Any]:
    """Raw mapping of the active configuration, loading the shipped file if needed."""
    global _config
    if _config is None:
        load_config()
    if _config is None:
        raise RuntimeError("No configuration loaded")
    return _config


def get_validated_config() -> AppConfig:
    """Typed view of the active configuration, loading the shipped file if needed."""
    global _validated_config
    if _validated_config is None:
        load_config()
    if _validated_config is None:
        raise RuntimeError("No configuration loaded")
    return _validated_config


def get(key: str, default: Any = None) -> Any:
    """Look up a value by dot-path, e.g. ``get("store.backend")``.

    Keys the file leaves out resolve to their schema defaults; ``default``
    is returned only for paths the schema does not define.
    """
    keys: list[str] = key.split(".")

    for source in (get_config(), get_validated_config().model_dump()):
        value: Any = source
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                break
        else:
            return value

    return default
