"""
stock_services.recalculation_service -- SQL wiring for the recalculation engine.

Responsibility:
    Binds RecalculationEngine to the SQL adapters of one session and offers
    the two calling conventions the system needs:

    - ``recalculate()`` returns the result with failures collected, for
      operator-driven runs that commit healthy units.
    - ``cascade()`` raises RecalculationFailedError on any failure, for the
      retroactive-correction path where the event mutation must roll back
      together with the failed recalculation.

Architecture position:
    Services -- orchestration over engines + kernel.  Flushes within the
    caller's transaction; never commits.

Usage:
    service = RecalculationService(session, clock, settings)
    days, entries = service.recalculate(date(2024, 3, 1), date(2024, 3, 10)).as_tuple()
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from stock_config import LedgerOptions, LedgerSettings
from stock_engines.recalculation import RecalculationEngine, RecalculationResult
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import UnitKey, UnitScope
from stock_kernel.logging_config import get_logger
from stock_kernel.services import SqlBalanceStore, SqlEventReader, SqlUnitTransactions

logger = get_logger("services.recalculation")


class RecalculationService:
    """Recalculation over the ``stock_events`` / ``daily_balances`` tables."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._options = settings.ledger if settings is not None else LedgerOptions()
        self._engine = RecalculationEngine(
            events=SqlEventReader(session),
            balances=SqlBalanceStore(session, self._clock),
            transactions=SqlUnitTransactions(session),
            check_chain=self._options.strict_chain,
        )

    def today(self) -> date:
        """The business day of the clock, in ``ledger.business_timezone``."""
        return self._options.business_today(self._clock)

    def recalculate(
        self,
        from_date: date,
        to_date: date | None = None,
        location_id: str | None = None,
        model_id: str | None = None,
        serial: str | None = None,
        include_units: Iterable[UnitKey] = (),
    ) -> RecalculationResult:
        """Recompute [from_date, to_date or today]; failures are collected."""
        self._session.flush()
        return self._engine.recalculate(
            from_date,
            to_date or self.today(),
            UnitScope(location_id, model_id, serial),
            include_units=include_units,
        )

    def cascade(
        self,
        from_date: date,
        unit: UnitKey,
        include_unit: bool = False,
    ) -> RecalculationResult:
        """
        Ripple a change on ``unit`` from ``from_date`` through today.

        Raises:
            RecalculationFailedError: the unit could not be recomputed.
        """
        today = self.today()
        logger.info(
            "retroactive_cascade",
            extra={"from_date": from_date, "to_date": today, "unit": str(unit)},
        )
        result = self.recalculate(
            from_date,
            today,
            unit.location_id,
            unit.model_id,
            unit.serial,
            include_units=(unit,) if include_unit else (),
        )
        return result.raise_for_failures()
