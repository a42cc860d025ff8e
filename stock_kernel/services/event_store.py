"""
SqlEventReader -- read side of the event store over SQLAlchemy.

Responsibility:
    Implements the ``EventReader`` port for the recalculation engine:
    selects the affected-unit set for a date range and filter, and loads a
    unit's events for its day-walk.

Architecture position:
    Kernel > Services -- storage adapter.  Read-only; never flushes.

Invariants enforced:
    - Only events with a present, non-empty serial define affected units.
    - Units come back sorted, so processing and lock order is stable.
"""

from datetime import date

from sqlalchemy import select

from stock_kernel.domain.values import StockEventRecord, UnitKey, UnitScope
from stock_kernel.models.stock_event import StockEvent
from stock_kernel.services.base import BaseService


class SqlEventReader(BaseService[StockEvent]):
    """EventReader port backed by the ``stock_events`` table."""

    def affected_units(
        self, from_date: date, to_date: date, scope: UnitScope
    ) -> list[UnitKey]:
        stmt = (
            select(StockEvent.location_id, StockEvent.model_id, StockEvent.serial)
            .where(
                StockEvent.event_date >= from_date,
                StockEvent.event_date <= to_date,
                StockEvent.serial.is_not(None),
                StockEvent.serial != "",
            )
            .distinct()
        )
        if scope.location_id is not None:
            stmt = stmt.where(StockEvent.location_id == scope.location_id)
        if scope.model_id is not None:
            stmt = stmt.where(StockEvent.model_id == scope.model_id)
        if scope.serial is not None:
            stmt = stmt.where(StockEvent.serial == scope.serial)

        rows = self.session.execute(stmt).all()
        return sorted(UnitKey(loc, model, serial) for loc, model, serial in rows)

    def events_for_unit(
        self, unit: UnitKey, from_date: date, to_date: date
    ) -> list[StockEventRecord]:
        stmt = (
            select(StockEvent)
            .where(
                StockEvent.location_id == unit.location_id,
                StockEvent.model_id == unit.model_id,
                StockEvent.serial == unit.serial,
                StockEvent.event_date >= from_date,
                StockEvent.event_date <= to_date,
            )
            .order_by(StockEvent.event_date, StockEvent.sequence)
        )
        return [
            StockEventRecord.from_model(e)
            for e in self.session.execute(stmt).scalars()
        ]
