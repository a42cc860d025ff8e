"""
Module: stock_engines.recalculation
Responsibility:
    The recalculation engine: turn the append-only event stream into a
    date-ordered chain of per-unit daily balances for a date range, so that
    an event inserted, edited or deleted on a past date ripples forward
    through every later day.

Architecture position:
    Engines -- storage-agnostic.  Works only through the EventReader,
    BalanceStore and UnitTransactions ports (stock_kernel.domain.ports);
    never opens a session, never reads the clock.

Invariants enforced:
    - Days of a unit are walked strictly ascending; each day's opening is
      the previous day's closing (plus that day's morning corrections).
    - One-day lookback: the first day of the window is seeded from the
      stored row for that day, else from the day before, else 0.  Nothing
      earlier is ever read.
    - Only units with serialized events in range (or units explicitly
      forced by the caller that already have balance rows) are touched.
    - Idempotent: re-running an unchanged range rewrites identical rows.
    - Per-unit isolation: each unit is walked inside its own transaction;
      a failure rolls back that unit only and the remaining units are
      still processed.

Failure modes:
    - InvalidRangeError when from_date > to_date, before any read or write.
    - WriteFailureError (per unit) when the store rejects a write.
    - OrderingViolationError (per unit) when the stored opening of the
      first day does not follow from the previous day's closing.
    Per-unit failures are collected on RecalculationResult.failures;
    ``raise_for_failures()`` turns them into RecalculationFailedError.

Audit relevance:
    Each invocation emits STOCK_ENGINE_TRACE plus recalculation_started /
    recalculation_completed records with the unit count and failures.
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Iterator

from stock_engines.aggregation import aggregate_day, close_day
from stock_engines.tracer import traced_engine
from stock_kernel.domain.ports import BalanceStore, EventReader, UnitTransactions
from stock_kernel.domain.values import StockEventRecord, UnitKey, UnitScope, iter_days
from stock_kernel.exceptions import (
    InvalidRangeError,
    OrderingViolationError,
    RecalculationError,
    RecalculationFailedError,
    WriteFailureError,
)
from stock_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.recalculation")

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class UnitFailure:
    """A unit whose day-walk was rolled back, and where it stopped."""

    unit: UnitKey
    failed_date: date
    error: RecalculationError


@dataclass(frozen=True)
class RecalculationResult:
    """
    Outcome of one recalculation.

    ``days_processed`` and ``entries_written`` only count units that
    committed.
    """

    from_date: date
    to_date: date
    days_processed: int = 0
    entries_written: int = 0
    units: tuple[UnitKey, ...] = ()
    failures: tuple[UnitFailure, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.failures

    def as_tuple(self) -> tuple[int, int]:
        return self.days_processed, self.entries_written

    def raise_for_failures(self) -> RecalculationResult:
        if self.failures:
            raise RecalculationFailedError(self)
        return self


class _NoTransactions:
    """UnitTransactions for stores that need neither locks nor rollback."""

    @contextmanager
    def unit_transaction(self, unit: UnitKey) -> Iterator[None]:
        yield


class RecalculationEngine:
    """
    Replays events into daily balances.

    Contract:
        ``recalculate(from_date, to_date, scope)`` recomputes every
        affected unit for every day in the inclusive range and upserts the
        rows.  Returns a RecalculationResult; never raises for a single
        unit's failure.

    Non-goals:
        - Does not decide "today"; callers pass the range explicitly.
        - Does not commit; the UnitTransactions port scopes each unit.
    """

    def __init__(
        self,
        events: EventReader,
        balances: BalanceStore,
        transactions: UnitTransactions | None = None,
        *,
        check_chain: bool = True,
    ):
        self._events = events
        self._balances = balances
        self._transactions = transactions or _NoTransactions()
        self._check_chain = check_chain

    @traced_engine(
        "recalculation",
        "1.0",
        fingerprint_fields=("from_date", "to_date", "scope"),
    )
    def recalculate(
        self,
        from_date: date,
        to_date: date,
        scope: UnitScope | None = None,
        include_units: Iterable[UnitKey] = (),
    ) -> RecalculationResult:
        """
        Recompute daily balances for [from_date, to_date].

        Args:
            from_date: First day to recompute (inclusive).
            to_date: Last day to recompute (inclusive), usually "today".
            scope: Optional location/model/serial filter.
            include_units: Units to recompute even without events in range
                (e.g. their last event was just deleted).  Ignored unless
                they already have a row on from_date or the day before.

        Raises:
            InvalidRangeError: from_date > to_date.
        """
        if from_date > to_date:
            raise InvalidRangeError(from_date, to_date)

        scope = scope or UnitScope()
        units = self._affected_units(from_date, to_date, scope, include_units)

        logger.info(
            "recalculation_started",
            extra={
                "from_date": from_date,
                "to_date": to_date,
                "unit_count": len(units),
                **scope.as_log_fields(),
            },
        )

        days_processed = 0
        entries_written = 0
        done: list[UnitKey] = []
        failures: list[UnitFailure] = []

        for unit in units:
            with LogContext.bind(unit=str(unit)):
                try:
                    written = self._recalculate_unit(unit, from_date, to_date)
                except (WriteFailureError, OrderingViolationError) as exc:
                    failed_date = getattr(exc, "failed_date", None) or exc.on_date
                    failures.append(UnitFailure(unit, failed_date, exc))
                    logger.error(
                        "unit_recalculation_failed",
                        extra={"failed_date": failed_date, "error_code": exc.code},
                        exc_info=True,
                    )
                    continue
            days_processed += written
            entries_written += written
            done.append(unit)

        result = RecalculationResult(
            from_date=from_date,
            to_date=to_date,
            days_processed=days_processed,
            entries_written=entries_written,
            units=tuple(done),
            failures=tuple(failures),
        )

        log = logger.warning if failures else logger.info
        log(
            "recalculation_completed",
            extra={
                "from_date": from_date,
                "to_date": to_date,
                "days_processed": days_processed,
                "entries_written": entries_written,
                "failed_units": [str(f.unit) for f in failures],
            },
        )
        return result

    def _affected_units(
        self,
        from_date: date,
        to_date: date,
        scope: UnitScope,
        include_units: Iterable[UnitKey],
    ) -> list[UnitKey]:
        units = set(self._events.affected_units(from_date, to_date, scope))
        for unit in include_units:
            if unit in units or not unit.serial or not scope.matches(unit):
                continue
            has_evidence = (
                self._balances.get_balance(unit, from_date) is not None
                or self._balances.get_balance(unit, from_date - ONE_DAY) is not None
            )
            if has_evidence:
                units.add(unit)
        return sorted(units)

    def _recalculate_unit(self, unit: UnitKey, from_date: date, to_date: date) -> int:
        """Walk one unit inside its own transaction.  Returns rows written."""
        failed_date = from_date
        try:
            with self._transactions.unit_transaction(unit):
                by_day: dict[date, list[StockEventRecord]] = defaultdict(list)
                for event in self._events.events_for_unit(unit, from_date, to_date):
                    by_day[event.event_date].append(event)

                seed = self._first_day_seed(unit, from_date)
                written = 0
                for day in iter_days(from_date, to_date):
                    failed_date = day
                    balance = close_day(unit, day, seed, aggregate_day(by_day.get(day, ())))
                    self._balances.upsert_balance(balance)
                    seed = balance.closing
                    written += 1

                self._warn_if_downstream_stale(unit, to_date, seed)
        except RecalculationError:
            raise
        except Exception as exc:
            raise WriteFailureError(unit, failed_date, exc) from exc

        logger.debug(
            "unit_recalculated",
            extra={"from_date": from_date, "to_date": to_date, "entries_written": written},
        )
        return written

    def _first_day_seed(self, unit: UnitKey, from_date: date) -> int:
        """Opening inherited by the first day of the window."""
        existing = self._balances.get_balance(unit, from_date)
        previous = self._balances.get_balance(unit, from_date - ONE_DAY)

        if existing is None:
            return previous.closing if previous is not None else 0

        if (
            self._check_chain
            and previous is not None
            and previous.closing != existing.inherited_opening
        ):
            logger.error(
                "balance_chain_broken",
                extra={
                    "on_date": from_date,
                    "previous_closing": previous.closing,
                    "inherited_opening": existing.inherited_opening,
                },
            )
            raise OrderingViolationError(
                unit, from_date, previous.closing, existing.inherited_opening
            )
        return existing.inherited_opening

    def _warn_if_downstream_stale(self, unit: UnitKey, to_date: date, closing: int) -> None:
        following = self._balances.get_balance(unit, to_date + ONE_DAY)
        if following is not None and following.inherited_opening != closing:
            logger.warning(
                "downstream_chain_stale",
                extra={
                    "to_date": to_date,
                    "closing": closing,
                    "next_inherited_opening": following.inherited_opening,
                },
            )
