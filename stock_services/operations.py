"""
stock_services.operations -- Transaction-owning entry points.

Responsibility:
    The operator-facing surface of the ledger.  Each function opens its own
    ``session_scope``, so unlike the services underneath it these DO commit.

    - ``recalculate``: commits every unit that succeeded, then raises
      RecalculationFailedError if any unit failed.
    - ``rollover_if_needed``: the once-a-day carry of night stock into
      morning stock; safe to call any number of times.
    - ``current_stock``: the dashboard's first read of the day; performs
      the rollover opportunistically, then returns today's stock.

Usage:
    from stock_kernel.db.engine import init_engine_from_url
    from stock_services import operations

    init_engine_from_url(settings.database.url)
    days, entries = operations.recalculate(date(2024, 3, 1), date(2024, 3, 31))
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session, sessionmaker

from stock_config import LedgerSettings, get_active_config
from stock_kernel.db.engine import session_scope
from stock_kernel.db.immutability import register_balance_guards
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import DailyBalanceRecord, UnitScope
from stock_kernel.logging_config import configure_logging, get_logger
from stock_kernel.selectors.balance_selector import BalanceSelector
from stock_services.recalculation_service import RecalculationService
from stock_services.rollover_service import RolloverService

logger = get_logger("services.operations")


def _bootstrap(settings: LedgerSettings | None) -> LedgerSettings:
    settings = settings or get_active_config()
    configure_logging(level=settings.logging.level)
    register_balance_guards()
    return settings


def recalculate(
    from_date: date,
    to_date: date | None = None,
    location_id: str | None = None,
    model_id: str | None = None,
    serial: str | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
    settings: LedgerSettings | None = None,
) -> tuple[int, int]:
    """
    Recompute balances for a range and commit.

    Returns:
        (days_processed, entries_written) for the units that committed.

    Raises:
        InvalidRangeError: from_date > to_date; nothing is written.
        RecalculationFailedError: after the healthy units were committed.
    """
    settings = _bootstrap(settings)
    with session_scope(session_factory) as session:
        result = RecalculationService(session, clock or SystemClock(), settings).recalculate(
            from_date, to_date, location_id, model_id, serial
        )
    return result.raise_for_failures().as_tuple()


def rollover_if_needed(
    today: date | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
    settings: LedgerSettings | None = None,
) -> int:
    """Carry yesterday's closings into today and commit.  Returns rows inserted."""
    settings = _bootstrap(settings)
    with session_scope(session_factory) as session:
        return RolloverService(session, clock or SystemClock(), settings).rollover_if_needed(today)


def current_stock(
    location_id: str | None = None,
    model_id: str | None = None,
    today: date | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
    settings: LedgerSettings | None = None,
) -> list[DailyBalanceRecord]:
    """Units with stock on hand today, after making sure today is seeded."""
    settings = _bootstrap(settings)
    clock = clock or SystemClock()
    today = today or settings.business_today(clock)
    with session_scope(session_factory) as session:
        rolled = RolloverService(session, clock, settings).rollover_if_needed(today)
        if rolled:
            logger.info("opportunistic_rollover", extra={"today": today, "rolled_units": rolled})
        return BalanceSelector(session).stock_on(today, UnitScope(location_id, model_id))
