"""
Agent Configuration.

The YAML file is resolved from a fixed search path, parsed, merged with
environment overrides and validated once at startup. The resulting
``AgentConfig`` is frozen for the lifetime of the process.
"""

import dataclasses
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from ..config import Settings
from ..utils.durations import DurationError, parse_duration

CONFIG_FILENAME = "collector.yml"

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
LOG_FORMATS = ("text", "json")
SNAPSHOT_SCHEMAS = ("flat", "structured")

MAX_RETRIES_LIMIT = 10


class ConfigError(Exception):
    """Raised when the configuration cannot be found, parsed or validated."""


def search_paths() -> list[Path]:
    """Locations probed for the config file, in order."""
    return [
        Path(CONFIG_FILENAME),
        Path("/etc/hostpulse") / CONFIG_FILENAME,
        Path("/usr/local/etc/hostpulse") / CONFIG_FILENAME,
        Path(os.path.expanduser("~")) / ".config" / "hostpulse" / CONFIG_FILENAME,
    ]


def find_config_file(paths: Optional[list[Path]] = None) -> Path:
    """Return the first existing config file on the search path."""
    candidates = search_paths() if paths is None else paths
    for path in candidates:
        if path.is_file():
            return path.resolve()

    locations = ", ".join(str(p) for p in candidates)
    raise ConfigError(f"no {CONFIG_FILENAME} found in any of these locations: {locations}")


@dataclass(frozen=True)
class CollectorConfig:
    """Cadence and retry parameters."""
    interval: Union[str, float] = "60s"
    max_retries: int = 3
    initial_delay: Union[str, float] = "30s"
    schema: str = "flat"

    @property
    def interval_seconds(self) -> float:
        return parse_duration(self.interval)

    @property
    def initial_delay_seconds(self) -> float:
        return parse_duration(self.initial_delay)


@dataclass(frozen=True)
class DeliveryConfig:
    """Remote collector endpoint."""
    endpoint: str = ""
    auth_token: str = ""
    timeout: Union[str, float] = "30s"

    @property
    def timeout_seconds(self) -> float:
        return parse_duration(self.timeout)


@dataclass(frozen=True)
class LoggingConfig:
    """Log sink settings."""
    level: str = "info"
    format: str = "text"
    file: Optional[str] = None


@dataclass(frozen=True)
class AgentConfig:
    """Main agent configuration."""
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Where the config was loaded from, if anywhere
    source: Optional[str] = None

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AgentConfig":
        """Load configuration from a YAML file (not validated)."""
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"config file not found: {path}")

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"failed to read config file '{path}': {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"failed to parse config file '{path}': {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"failed to parse config file '{path}': top level must be a mapping")

        return cls._from_dict(data, source=str(path))

    @classmethod
    def _from_dict(cls, data: dict, source: Optional[str] = None) -> "AgentConfig":
        """Create config from dictionary."""
        return cls(
            collector=_section(CollectorConfig, data, "collector"),
            delivery=_section(DeliveryConfig, data, "delivery"),
            logging=_section(LoggingConfig, data, "logging"),
            source=source,
        )

    def with_overrides(self, settings: Settings) -> "AgentConfig":
        """Apply environment overrides."""
        delivery = self.delivery
        if settings.endpoint:
            delivery = dataclasses.replace(delivery, endpoint=settings.endpoint)
        if settings.auth_token:
            delivery = dataclasses.replace(delivery, auth_token=settings.auth_token)

        logging_config = self.logging
        if settings.log_level:
            logging_config = dataclasses.replace(logging_config, level=settings.log_level)
        if settings.log_file:
            logging_config = dataclasses.replace(logging_config, file=str(settings.log_file))

        return dataclasses.replace(self, delivery=delivery, logging=logging_config)

    def validate(self) -> "AgentConfig":
        """Check field ranges; raises ``ConfigError`` on the first problem."""
        collector = self.collector
        delivery = self.delivery

        interval = _duration("collector.interval", collector.interval)
        if interval <= 0:
            raise ConfigError(f"collector.interval must be positive, got '{collector.interval}'")

        initial_delay = _duration("collector.initial_delay", collector.initial_delay)
        if initial_delay < 0:
            raise ConfigError(
                f"collector.initial_delay must not be negative, got '{collector.initial_delay}'"
            )

        timeout = _duration("delivery.timeout", delivery.timeout)
        if timeout <= 0:
            raise ConfigError(f"delivery.timeout must be positive, got '{delivery.timeout}'")

        if not delivery.endpoint:
            raise ConfigError("delivery.endpoint is required")

        if not delivery.auth_token:
            raise ConfigError("delivery.auth_token is required")

        max_retries = collector.max_retries
        if isinstance(max_retries, bool) or not isinstance(max_retries, int):
            raise ConfigError(f"collector.max_retries must be an integer, got {max_retries!r}")
        if max_retries < 0 or max_retries > MAX_RETRIES_LIMIT:
            raise ConfigError(
                f"collector.max_retries must be between 0 and {MAX_RETRIES_LIMIT}, got {max_retries}"
            )

        if collector.schema not in SNAPSHOT_SCHEMAS:
            raise ConfigError(
                f"collector.schema must be one of {', '.join(SNAPSHOT_SCHEMAS)}, got '{collector.schema}'"
            )

        if str(self.logging.level).lower() not in LOG_LEVELS:
            raise ConfigError(
                f"logging.level must be one of {', '.join(LOG_LEVELS)}, got '{self.logging.level}'"
            )

        if self.logging.format not in LOG_FORMATS:
            raise ConfigError(
                f"logging.format must be one of {', '.join(LOG_FORMATS)}, got '{self.logging.format}'"
            )

        return self


def load_config(
    path: Optional[Union[str, Path]] = None,
    settings: Optional[Settings] = None,
) -> AgentConfig:
    """Resolve, parse, merge and validate the agent configuration.

    An explicit ``path`` wins over ``settings.config_path``, which wins over
    the search path.
    """
    if path is None and settings is not None and settings.config_path is not None:
        path = settings.config_path
    if path is None:
        path = find_config_file()

    config = AgentConfig.from_yaml(path)
    if settings is not None:
        config = config.with_overrides(settings)
    return config.validate()


def _section(cls, data: dict, name: str):
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{name}' section must be a mapping")

    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"unknown key(s) in '{name}': {', '.join(unknown)}")

    return cls(**raw)


def _duration(name: str, value: Any) -> float:
    try:
        seconds = parse_duration(value)
    except DurationError as e:
        raise ConfigError(f"invalid {name} '{value}': {e}") from e
    if not math.isfinite(seconds):
        raise ConfigError(f"{name} must be finite, got '{value}'")
    return seconds
