"""
stock_services.rollover_service -- SQL wiring for the rollover scheduler.

Flushes within the caller's transaction; never commits.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from stock_config import LedgerOptions, LedgerSettings
from stock_engines.rollover import RolloverScheduler
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.services import SqlBalanceStore, SqlUnitTransactions


class RolloverService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._clock = clock or SystemClock()
        self._options = settings.ledger if settings is not None else LedgerOptions()
        self._scheduler = RolloverScheduler(
            SqlBalanceStore(session, self._clock),
            SqlUnitTransactions(session),
        )

    def rollover_if_needed(self, today: date | None = None) -> int:
        """Seed today's rows from yesterday's closings.  Returns rows inserted."""
        if today is None:
            today = self._options.business_today(self._clock)
        return self._scheduler.rollover_if_needed(today)
