"""
Ports -- storage interfaces consumed by the recalculation engine.

Responsibility:
    Declares what the engine needs from storage without naming a storage
    technology.  The SQL adapters live in ``stock_kernel.services``; the
    in-memory adapter lives in ``stock_engines.memory``.

Architecture position:
    Kernel > Domain -- typing only, zero I/O.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date
from typing import Protocol, Sequence

from stock_kernel.domain.values import (
    DailyBalanceRecord,
    StockEventRecord,
    UnitKey,
    UnitScope,
)


class EventReader(Protocol):
    """Read side of the event store."""

    def affected_units(
        self, from_date: date, to_date: date, scope: UnitScope
    ) -> Sequence[UnitKey]:
        """Distinct units with at least one serialized event in range, sorted."""
        ...

    def events_for_unit(
        self, unit: UnitKey, from_date: date, to_date: date
    ) -> Sequence[StockEventRecord]:
        ...


class BalanceStore(Protocol):
    """Engine-owned daily balance rows."""

    def get_balance(self, unit: UnitKey, on_date: date) -> DailyBalanceRecord | None:
        ...

    def upsert_balance(self, balance: DailyBalanceRecord) -> None:
        """Insert the row, or overwrite every derived field of the existing one."""
        ...

    def insert_if_absent(self, balance: DailyBalanceRecord) -> bool:
        """Insert the row unless one exists.  Returns True if inserted."""
        ...

    def units_on(self, on_date: date) -> Sequence[UnitKey]:
        """Units that have a row for ``on_date``, sorted."""
        ...


class UnitTransactions(Protocol):
    """Per-unit lock plus atomic scope."""

    def unit_transaction(self, unit: UnitKey) -> AbstractContextManager[None]:
        """Hold the unit's exclusive lock; undo every write on exception."""
        ...
