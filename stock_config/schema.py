"""
Settings schema.

Frozen dataclasses produced by ``stock_config.loader`` from YAML.  The
runtime never sees raw dicts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from zoneinfo import ZoneInfo

from stock_kernel.domain.clock import Clock

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    pool_size: int = 10
    max_overflow: int = 5
    echo: bool = False


@dataclass(frozen=True)
class LedgerOptions:
    """Ledger behaviour shared by every entry point."""

    business_timezone: str = "Asia/Jakarta"
    serial_pattern: str = r"^\d{15}$"
    strict_chain: bool = True

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.business_timezone)

    @property
    def serial_regex(self) -> re.Pattern[str]:
        # ASCII: \d matches 0-9 only
        return re.compile(self.serial_pattern, re.ASCII)

    def business_today(self, clock: Clock) -> date:
        """Calendar day of the clock's instant in the business timezone."""
        return clock.today(self.timezone)


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    """The compiled settings object returned by ``get_active_config()``."""

    database: DatabaseSettings
    ledger: LedgerOptions = field(default_factory=LedgerOptions)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""

    @property
    def timezone(self) -> ZoneInfo:
        return self.ledger.timezone

    @property
    def serial_regex(self) -> re.Pattern[str]:
        return self.ledger.serial_regex

    def business_today(self, clock: Clock) -> date:
        return self.ledger.business_today(clock)
