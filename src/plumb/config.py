"""YAML settings loading and validation."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from plumb.exceptions import ConfigError

VERSION = "0.1.0"
PLUMB_HOME = Path("~/.plumb")
DEFAULT_BUFFER_SIZE = 40 * 1024 * 1024
DEFAULT_DEBUG_LOG = "plumb.debug"


@dataclass(frozen=True)
class PlumbSettings:
    """Immutable runtime configuration, threaded through the app."""

    unsafe_mode: bool = False
    output_script: str | None = None
    debug: bool = False
    debug_log: str = DEFAULT_DEBUG_LOG
    buffer_size: int = DEFAULT_BUFFER_SIZE
    shell: str | None = None


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file."""
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {path}, got {type(data).__name__}")
    return data


def _section(data: dict[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = data.get(name, {}) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' in {path} must be a mapping")
    return section


def validate_buffer_size(value: Any) -> int:
    """Return value as a buffer size, or raise ConfigError."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"Invalid buffer_size: {value!r}. Must be a positive integer")
    return value


def validate_bool(name: str, value: Any) -> bool:
    """Return value as a boolean setting, or raise ConfigError."""
    if not isinstance(value, bool):
        raise ConfigError(f"Invalid {name}: {value!r}. Must be true or false")
    return value


def load_settings(path: Path) -> PlumbSettings:
    """Load and validate a settings.yaml file."""
    data = _load_yaml(path)
    plumb = _section(data, "plumb", path)
    capture = _section(data, "capture", path)
    debug = _section(data, "debug", path)

    return PlumbSettings(
        unsafe_mode=validate_bool(
            "plumb.unsafe_full_throttle", plumb.get("unsafe_full_throttle", False)
        ),
        output_script=plumb.get("output_script"),
        shell=plumb.get("shell"),
        buffer_size=validate_buffer_size(capture.get("buffer_size", DEFAULT_BUFFER_SIZE)),
        debug=validate_bool("debug.enabled", debug.get("enabled", False)),
        debug_log=debug.get("log_file", DEFAULT_DEBUG_LOG),
    )

