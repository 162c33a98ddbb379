"""Configuration loading utilities for the Elm development server."""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml  # type: ignore


logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


@dataclass(frozen=True)
class DevConfig:
    """Paths, compiler invocation and listen address shared by every component."""

    source_dir: Path = Path("./src")
    entry_file: Path = Path("./src/Main.elm")
    output_file: Path = Path("./public/elm.js")
    index_file: Path = Path("./public/index.html")
    compiler: str = "elm"
    extension: str = "elm"
    host: str = "127.0.0.1"
    port: int = 4355

    def compiler_args(self) -> List[str]:
        return [self.compiler, "make", str(self.entry_file), f"--output={self.output_file}"]


_PATH_FIELDS = ("source_dir", "entry_file", "output_file", "index_file")
_STR_FIELDS = ("compiler", "extension", "host")


def load_config(path: Optional[Path] = None) -> DevConfig:
    """Return the default configuration, overridden by an optional YAML file."""

    if path is None:
        return DevConfig()

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:  # pragma: no cover - logging helper
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if data is None:
        return DevConfig()
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    config = _parse_dev_config(data.get("dev", {}), config_path=path)
    logger.info("Loaded configuration from %s", path)
    return config


def _parse_dev_config(raw: Any, *, config_path: Path) -> DevConfig:
    if raw is None:
        return DevConfig()
    if not isinstance(raw, dict):
        raise ConfigError("'dev' section must be a mapping")

    known = {f.name for f in fields(DevConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown dev option(s): {', '.join(map(str, unknown))}")

    overrides: Dict[str, Any] = {}
    for name in _PATH_FIELDS:
        if name in raw:
            overrides[name] = _parse_path_field(raw[name], f"dev.{name}", config_path=config_path)
    for name in _STR_FIELDS:
        if name in raw:
            overrides[name] = _parse_str_field(raw[name], f"dev.{name}")
    if "extension" in overrides:
        overrides["extension"] = overrides["extension"].lstrip(".")
        if not overrides["extension"]:
            raise ConfigError("dev.extension must not be empty")
    if "port" in raw:
        overrides["port"] = _parse_port_field(raw["port"], "dev.port")

    return replace(DevConfig(), **overrides)


def _parse_path_field(value: Any, field_name: str, *, config_path: Path) -> Path:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{field_name} must be a non-empty string")
    result = Path(value)
    if not result.is_absolute():
        result = (config_path.parent / result).resolve()
    return result


def _parse_str_field(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{field_name} must be a non-empty string")
    return value.strip()


def _parse_port_field(value: Any, field_name: str) -> int:
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{field_name} must be an integer between 0 and 65535")
    if 0 <= value <= 65535:
        return value
    raise ConfigError(f"{field_name} must be between 0 and 65535")
