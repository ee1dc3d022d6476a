"""
Configuration loading for jaegertrace.

Settings come from three places:
1. A TOML file: ./jaegertrace.toml, then ~/.jaegertrace.toml
2. Environment variables prefixed with JAEGERTRACE_
3. Explicit keyword arguments passed to ``init()``

Priority: explicit params > environment vars > config file

Example jaegertrace.toml::

    [tracing]
    service_name = "checkout"
    sample_rate = 0.25

    [reporter]
    agent_host = "jaeger-agent"
    protocol = "binary"
    tags = { env = "prod" }

    [batching]
    max_batch_size = 50
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from jaegertrace.constants import DEFAULT_AGENT_HOST
from jaegertrace.encoder.thrift_codec import Protocol
from jaegertrace.errors import ConfigError
from jaegertrace.tracer.channel import DEFAULT_CAPACITY

logger = logging.getLogger(__name__)

ENV_PREFIX = "JAEGERTRACE_"
CONFIG_FILE_NAME = "jaegertrace.toml"

TagValue = Union[bool, int, float, str]


class TracingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service_name: str = "unknown_service"
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    report_unsampled: bool = True

    @field_validator("service_name")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("service_name must not be empty")
        return value


class ReporterConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    agent_host: str = DEFAULT_AGENT_HOST
    # None picks the standard port of the selected protocol
    agent_port: Optional[int] = Field(default=None, ge=1, le=65535)
    bind_host: str = "0.0.0.0"
    bind_port: int = Field(default=0, ge=0, le=65535)
    protocol: Protocol = Protocol.COMPACT
    tags: Dict[str, TagValue] = Field(default_factory=dict)


class BatchingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    queue_capacity: int = Field(default=DEFAULT_CAPACITY, gt=0)
    max_batch_size: int = Field(default=100, gt=0)
    schedule_delay_millis: int = Field(default=1000, gt=0)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    debug: bool = False


class JaegerTraceConfig(BaseModel):
    """Validated configuration, one attribute per TOML section."""

    model_config = ConfigDict(extra="forbid")

    tracing: TracingConfig = Field(default_factory=TracingConfig)
    reporter: ReporterConfig = Field(default_factory=ReporterConfig)
    batching: BatchingConfig = Field(default_factory=BatchingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Flat key -> TOML section. Flat keys are what init() accepts as keywords
# and what JAEGERTRACE_<KEY> environment variables name.
_SECTIONS: Dict[str, str] = {
    name: section
    for section, model in (
        ("tracing", TracingConfig),
        ("reporter", ReporterConfig),
        ("batching", BatchingConfig),
        ("logging", LoggingConfig),
    )
    for name in model.model_fields
}

_BOOL_KEYS = {"report_unsampled", "debug"}
_INT_KEYS = {"agent_port", "bind_port", "queue_capacity", "max_batch_size", "schedule_delay_millis"}
_FLOAT_KEYS = {"sample_rate"}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def find_config_file() -> Optional[str]:
    """
    Find a configuration file in the standard locations.

    Checks ./jaegertrace.toml, then ~/.jaegertrace.toml.

    Returns:
        Path to the config file, or None if neither exists
    """
    candidates = [Path.cwd() / CONFIG_FILE_NAME, Path.home() / f".{CONFIG_FILE_NAME}"]
    for path in candidates:
        if path.is_file():
            return str(path)
    return None


def load_toml_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a TOML config file as a nested dict.

    Returns an empty dict if the file does not exist.

    Raises:
        ConfigError: If the file cannot be read or is not valid TOML
    """
    path = Path(path)
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError("invalid TOML in config file", {"path": str(path)}, cause=e) from e
    except OSError as e:
        raise ConfigError("cannot read config file", {"path": str(path)}, cause=e) from e


def _parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"invalid boolean for {ENV_PREFIX}{key.upper()}", {"value": raw})


def _parse_tags(raw: str) -> Dict[str, str]:
    # "k1=v1,k2=v2"
    tags: Dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigError(f"invalid tag {item!r} in {ENV_PREFIX}TAGS", {"value": raw})
        tags[key.strip()] = value.strip()
    return tags


def _convert_env_value(key: str, raw: str) -> Any:
    try:
        if key in _BOOL_KEYS:
            return _parse_bool(key, raw)
        if key in _INT_KEYS:
            return int(raw)
        if key in _FLOAT_KEYS:
            return float(raw)
    except ValueError as e:
        raise ConfigError(
            f"invalid value for {ENV_PREFIX}{key.upper()}", {"value": raw}, cause=e
        ) from e
    if key == "tags":
        return _parse_tags(raw)
    return raw


def _nest(flat: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    nested: Dict[str, Dict[str, Any]] = {}
    for key, value in flat.items():
        section = _SECTIONS.get(key)
        if section is None:
            raise ConfigError(f"unknown configuration key {key!r}")
        nested.setdefault(section, {})[key] = value
    return nested


def _flatten(nested: Dict[str, Any]) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in nested.items():
        if key in _SECTIONS.values() and isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value
    return flat


def load_config_from_env(flat: bool = False) -> Dict[str, Any]:
    """
    Read every JAEGERTRACE_* variable that names a known setting.

    Values are converted to the setting's type. ``JAEGERTRACE_TAGS`` is a
    comma separated list of ``key=value`` pairs.

    Args:
        flat: Return ``{key: value}`` instead of ``{section: {key: value}}``

    Raises:
        ConfigError: If a variable cannot be converted
    """
    values: Dict[str, Any] = {}
    for key in _SECTIONS:
        raw = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
        if raw is None:
            continue
        values[key] = _convert_env_value(key, raw)
    return values if flat else _nest(values)


def load_config_with_priority(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Merge all configuration sources into one flat dict.

    Priority: explicit overrides > environment vars > config file.
    Overrides whose value is None are ignored.

    Args:
        config_file: Path to a TOML file; searched for when None
        overrides: Explicit flat settings
    """
    path = config_file or find_config_file()
    merged: Dict[str, Any] = {}
    if path:
        logger.debug("loading config file %s", path)
        merged.update(_flatten(load_toml_config(path)))
    merged.update(load_config_from_env(flat=True))
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})
    return merged


def load_config(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> JaegerTraceConfig:
    """
    Load and validate the effective configuration.

    Raises:
        ConfigError: If any source is unreadable, names an unknown key or
            holds an invalid value
    """
    merged = load_config_with_priority(config_file, overrides)
    nested = _nest(merged)
    try:
        return JaegerTraceConfig.model_validate(nested)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ConfigError("invalid configuration", {"errors": errors}, cause=e) from e


def validate_config(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[bool, str, Optional[JaegerTraceConfig]]:
    """
    Check the effective configuration without raising.

    Returns:
        ``(True, "ok", config)`` or ``(False, error message, None)``
    """
    try:
        config = load_config(config_file, overrides)
    except ConfigError as e:
        return False, str(e), None
    return True, "ok", config
