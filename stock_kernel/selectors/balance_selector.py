"""
Module: stock_kernel.selectors.balance_selector
Responsibility: The sanctioned read interface for current and historical
    stock: daily balance rows by date range and unit filter, per-location
    totals for the dashboard, custody lookups for intake, and an audit of
    the running-total chain.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Returns DailyBalanceRecord / frozen DTOs, never ORM rows.
    - chain_breaks() reports every consecutive pair where
      closing[d] != opening[d+1] - morning_correction[d+1].
"""

from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import func, select

from stock_kernel.domain.values import ChainBreak, DailyBalanceRecord, UnitKey, UnitScope
from stock_kernel.models.daily_balance import DailyBalance
from stock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LocationStockTotal:
    """Summed morning/night stock of one model at one location."""

    location_id: str
    model_id: str
    units: int
    opening: int
    closing: int


class BalanceSelector(BaseSelector[DailyBalance]):
    """Read-only queries over ``daily_balances``."""

    def _scoped(self, stmt, scope: UnitScope):
        if scope.location_id is not None:
            stmt = stmt.where(DailyBalance.location_id == scope.location_id)
        if scope.model_id is not None:
            stmt = stmt.where(DailyBalance.model_id == scope.model_id)
        if scope.serial is not None:
            stmt = stmt.where(DailyBalance.serial == scope.serial)
        return stmt

    def balances(
        self,
        from_date: date,
        to_date: date,
        scope: UnitScope | None = None,
    ) -> list[DailyBalanceRecord]:
        """Rows in [from_date, to_date], ordered by unit then date."""
        stmt = select(DailyBalance).where(
            DailyBalance.balance_date >= from_date,
            DailyBalance.balance_date <= to_date,
        )
        stmt = self._scoped(stmt, scope or UnitScope()).order_by(
            DailyBalance.location_id,
            DailyBalance.model_id,
            DailyBalance.serial,
            DailyBalance.balance_date,
        )
        stmt = stmt.execution_options(populate_existing=True)
        return [DailyBalanceRecord.from_model(r) for r in self.session.execute(stmt).scalars()]

    def balance_on(self, unit: UnitKey, on_date: date) -> DailyBalanceRecord | None:
        rows = self.balances(on_date, on_date, UnitScope.for_unit(unit))
        return rows[0] if rows else None

    def stock_on(
        self,
        on_date: date,
        scope: UnitScope | None = None,
    ) -> list[DailyBalanceRecord]:
        """Units with non-zero night stock on ``on_date``."""
        return [b for b in self.balances(on_date, on_date, scope) if b.closing != 0]

    def totals_by_location(self, on_date: date) -> list[LocationStockTotal]:
        stmt = (
            select(
                DailyBalance.location_id,
                DailyBalance.model_id,
                func.count(DailyBalance.id),
                func.sum(DailyBalance.opening),
                func.sum(DailyBalance.closing),
            )
            .where(DailyBalance.balance_date == on_date)
            .group_by(DailyBalance.location_id, DailyBalance.model_id)
            .order_by(DailyBalance.location_id, DailyBalance.model_id)
        )
        return [
            LocationStockTotal(
                location_id=loc,
                model_id=model,
                units=int(units),
                opening=int(opening or 0),
                closing=int(closing or 0),
            )
            for loc, model, units, opening, closing in self.session.execute(stmt)
        ]

    def serials_in_custody(self, serials: list[str]) -> list[str]:
        """
        Serials whose most recent balance row at any location has stock.

        A serial sold or transferred out has a latest closing of 0 and is
        not in custody.
        """
        if not serials:
            return []
        stmt = (
            select(DailyBalance)
            .where(DailyBalance.serial.in_(serials))
            .order_by(DailyBalance.balance_date)
        )
        latest: dict[UnitKey, int] = {}
        for row in self.session.execute(stmt).scalars():
            latest[UnitKey(row.location_id, row.model_id, row.serial)] = row.closing
        held = {unit.serial for unit, closing in latest.items() if closing > 0}
        return sorted(held)

    def chain_breaks(
        self,
        from_date: date,
        to_date: date,
        scope: UnitScope | None = None,
    ) -> list[ChainBreak]:
        """Consecutive-day pairs inside the range whose chain does not hold."""
        breaks: list[ChainBreak] = []
        previous: DailyBalanceRecord | None = None
        for row in self.balances(from_date, to_date, scope):
            if (
                previous is not None
                and previous.unit == row.unit
                and previous.balance_date + timedelta(days=1) == row.balance_date
                and previous.closing != row.inherited_opening
            ):
                breaks.append(
                    ChainBreak(
                        unit=row.unit,
                        on_date=row.balance_date,
                        previous_closing=previous.closing,
                        inherited_opening=row.inherited_opening,
                    )
                )
            previous = row
        return breaks
