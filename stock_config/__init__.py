"""
stock_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  Services and scripts receive the returned
    ``LedgerSettings``; nothing else reads settings files.

Architecture position:
    Configuration -- sits above ``stock_kernel`` and below
    ``stock_services``.  The kernel and the engines never import it.

Failure modes:
    - ``ConfigurationError`` for a missing file or an invalid value.

Audit relevance:
    Every successful call emits a ``STOCK_CONFIG_TRACE`` record with the
    source path and the checksum of the parsed YAML.
"""

from __future__ import annotations

from pathlib import Path

from stock_config.loader import load_yaml_file, parse_settings
from stock_config.schema import (
    DatabaseSettings,
    LedgerOptions,
    LedgerSettings,
    LoggingSettings,
)
from stock_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerSettings:
    """Load, validate and return the active settings.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``defaults.yaml``.

    Raises:
        ConfigurationError: file missing or a value is invalid.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    settings = parse_settings(load_yaml_file(path))

    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "trace_type": "STOCK_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": settings.checksum,
            "business_timezone": settings.ledger.business_timezone,
            "strict_chain": settings.ledger.strict_chain,
        },
    )
    return settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DatabaseSettings",
    "LedgerOptions",
    "LedgerSettings",
    "LoggingSettings",
    "get_active_config",
]
