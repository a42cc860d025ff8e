"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``stock_config.schema``.  Callers go through
``stock_config.get_active_config()``; this module is the tooling beneath it.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``database.url`` is required; every other key has a default.
* The serial pattern must compile and the business timezone must resolve.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing file, malformed YAML, wrong value types, unknown timezone or
  invalid regex  -> ``ConfigurationError`` naming the offending key.
"""

from __future__ import annotations

import hashlib
import json
import re
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from stock_config.schema import (
    DatabaseSettings,
    LedgerOptions,
    LedgerSettings,
    LoggingSettings,
)
from stock_kernel.exceptions import ConfigurationError

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: file missing, unreadable or not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(str(path), "settings file not found") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"malformed YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(name, "must be a mapping")
    return value


def _typed(section: dict[str, Any], key: str, expected: type, default: Any, path: str) -> Any:
    value = section.get(key, default)
    # bool is an int subclass; reject it where an int is expected
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ConfigurationError(
            f"{path}.{key}", f"expected {expected.__name__}, got {value!r}"
        )
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    if "url" not in data or not data["url"]:
        raise ConfigurationError("database.url", "required")
    return DatabaseSettings(
        url=_typed(data, "url", str, None, "database"),
        pool_size=_typed(data, "pool_size", int, 10, "database"),
        max_overflow=_typed(data, "max_overflow", int, 5, "database"),
        echo=_typed(data, "echo", bool, False, "database"),
    )


def parse_ledger(data: dict[str, Any]) -> LedgerOptions:
    defaults = LedgerOptions()
    tz_name = _typed(data, "business_timezone", str, defaults.business_timezone, "ledger")
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError("ledger.business_timezone", f"unknown timezone {tz_name!r}") from None

    pattern = _typed(data, "serial_pattern", str, defaults.serial_pattern, "ledger")
    try:
        re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError("ledger.serial_pattern", f"invalid regex: {exc}") from exc

    return LedgerOptions(
        business_timezone=tz_name,
        serial_pattern=pattern,
        strict_chain=_typed(data, "strict_chain", bool, defaults.strict_chain, "ledger"),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError("logging.level", f"unknown level {level!r}")
    return LoggingSettings(level=level)


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """Parse a whole settings mapping.  Raises ConfigurationError."""
    return LedgerSettings(
        database=parse_database(_section(data, "database")),
        ledger=parse_ledger(_section(data, "ledger")),
        logging=parse_logging(_section(data, "logging")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
