"""Configuration loading and validation."""

from __future__ import annotations

import logging
import os
import re
import sysconfig
from collections.abc import Iterable
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("hotsplice.yaml")
DEFAULT_LOG_LEVEL = "info"
DEFAULT_DEBOUNCE_SECONDS = 0.2
VENDOR_PATTERN = r"[/\\](site|dist)-packages[/\\]"


class ConfigError(ValueError):
    """Raised when configuration is invalid or missing."""


def _default_exclude() -> tuple[re.Pattern[str], ...]:
    patterns = [re.compile(VENDOR_PATTERN)]
    stdlib = sysconfig.get_paths().get("stdlib")
    if stdlib:
        patterns.append(re.compile("^" + re.escape(Path(stdlib).resolve().as_posix() + "/")))
    package_dir = Path(__file__).resolve().parent.as_posix()
    patterns.append(re.compile("^" + re.escape(package_dir + "/")))
    return tuple(patterns)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging-related configuration."""

    level: str = DEFAULT_LOG_LEVEL
    file: Path | None = None


@dataclass(frozen=True)
class HotConfig:
    """Process-wide hot reload options."""

    silent: bool = False
    patch_exports: bool = False
    exclude: tuple[re.Pattern[str], ...] = field(default_factory=_default_exclude)
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Path | str | None = None) -> HotConfig:
    """Load and validate configuration from YAML."""

    config_path, explicit = _resolve_config_path(path)
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        LOGGER.debug("No config file at %s; using defaults", config_path)
        return HotConfig()

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping.")

    return _parse_config(raw)


def merge_config(config: HotConfig, **options: Any) -> HotConfig:
    """Shallow-merge keyword options into ``config``."""

    known = {item.name for item in fields(HotConfig)}
    unknown = sorted(set(options) - known)
    if unknown:
        raise ConfigError(f"Unknown option(s): {', '.join(unknown)}")
    if "exclude" in options:
        options["exclude"] = compile_patterns(options["exclude"], "exclude")
    return replace(config, **options)


def compile_patterns(value: Any, field_name: str) -> tuple[re.Pattern[str], ...]:
    """Compile a sequence of path patterns, accepting strings or compiled regexes."""

    if isinstance(value, (str, re.Pattern)) or not isinstance(value, Iterable):
        raise ConfigError(f"{field_name} must be a list of patterns.")

    patterns: list[re.Pattern[str]] = []
    for idx, entry in enumerate(value, start=1):
        if isinstance(entry, re.Pattern):
            patterns.append(entry)
            continue
        if not isinstance(entry, str):
            raise ConfigError(f"{field_name}[{idx}] must be a string pattern.")
        try:
            patterns.append(re.compile(entry))
        except re.error as exc:
            raise ConfigError(f"{field_name}[{idx}] is not a valid pattern: {exc}") from exc
    return tuple(patterns)


def _resolve_config_path(explicit: Path | str | None) -> tuple[Path, bool]:
    if explicit:
        return Path(explicit).expanduser(), True
    env_path = os.environ.get("HOTSPLICE_CONFIG")
    if env_path:
        return Path(env_path).expanduser(), True
    return DEFAULT_CONFIG_PATH, False


def _parse_config(raw: dict[str, Any]) -> HotConfig:
    silent = _parse_bool(raw.get("silent"), "silent", False)
    patch_exports = _parse_bool(
        raw.get("patch_exports", raw.get("patchExports")), "patch_exports", False
    )
    exclude = _parse_exclude(raw.get("exclude"), raw.get("extend_exclude"))
    debounce = _parse_debounce(raw.get("debounce_seconds"))
    logging_config = _parse_logging(raw.get("logging"))
    return HotConfig(
        silent=silent,
        patch_exports=patch_exports,
        exclude=exclude,
        debounce_seconds=debounce,
        logging=logging_config,
    )


def _parse_bool(value: Any, field_name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a boolean.")
    return value


def _parse_exclude(value: Any, extend: Any) -> tuple[re.Pattern[str], ...]:
    base = _default_exclude() if value is None else compile_patterns(value, "exclude")
    if extend is None:
        return base
    return base + compile_patterns(extend, "extend_exclude")


def _parse_debounce(value: Any) -> float:
    if value is None:
        return DEFAULT_DEBOUNCE_SECONDS
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError("debounce_seconds must be a number.")
    if value < 0:
        raise ConfigError("debounce_seconds cannot be negative.")
    return float(value)


def _parse_logging(value: Any) -> LoggingConfig:
    if value is None:
        return LoggingConfig()
    if not isinstance(value, dict):
        raise ConfigError("logging must be a mapping.")
    level = str(value.get("level", DEFAULT_LOG_LEVEL)).lower()
    file_value = value.get("file")
    log_file = Path(file_value).expanduser() if file_value else None
    return LoggingConfig(level=level, file=log_file)


__all__ = [
    "HotConfig",
    "LoggingConfig",
    "ConfigError",
    "load_config",
    "merge_config",
    "compile_patterns",
]
