"""
In-memory stock store.

Implements EventReader, BalanceStore and UnitTransactions over plain
dicts so the engines can be exercised without a database: in unit tests,
property tests and the threaded convergence tests.

``unit_transaction`` holds a per-unit re-entrant lock and restores the
unit's balance rows if the block raises, which mirrors the SAVEPOINT
semantics of the SQL adapters.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Iterator
from uuid import UUID, uuid4

from stock_kernel.domain.values import (
    DailyBalanceRecord,
    EventKind,
    StockEventRecord,
    UnitKey,
    UnitScope,
)
from stock_kernel.exceptions import EventNotFoundError


class InMemoryStockStore:
    def __init__(self):
        self._events: dict[UUID, StockEventRecord] = {}
        self._balances: dict[tuple[UnitKey, date], DailyBalanceRecord] = {}
        self._unit_locks: dict[UnitKey, threading.RLock] = {}
        self._data_lock = threading.RLock()
        self.upserts = 0

    # -- events --------------------------------------------------------

    def record(
        self,
        event_date: date,
        unit: UnitKey,
        kind: EventKind,
        quantity: int = 1,
        notes: str | None = None,
    ) -> StockEventRecord:
        """Append an event for ``unit`` with the next free sequence."""
        with self._data_lock:
            sequence = 1 + max(
                (
                    e.sequence
                    for e in self._events.values()
                    if e.unit == unit and e.event_date == event_date
                ),
                default=0,
            )
            event = StockEventRecord(
                id=uuid4(),
                event_date=event_date,
                location_id=unit.location_id,
                model_id=unit.model_id,
                serial=unit.serial,
                kind=kind,
                quantity=quantity,
                sequence=sequence,
                notes=notes,
            )
            self._events[event.id] = event
        return event

    def add_event(self, event: StockEventRecord) -> None:
        with self._data_lock:
            self._events[event.id] = event

    def replace_event(self, event_id: UUID, **changes) -> StockEventRecord:
        with self._data_lock:
            if event_id not in self._events:
                raise EventNotFoundError(str(event_id))
            updated = replace(self._events[event_id], **changes)
            self._events[event_id] = updated
        return updated

    def remove_event(self, event_id: UUID) -> StockEventRecord:
        with self._data_lock:
            try:
                return self._events.pop(event_id)
            except KeyError:
                raise EventNotFoundError(str(event_id)) from None

    def affected_units(
        self, from_date: date, to_date: date, scope: UnitScope
    ) -> list[UnitKey]:
        with self._data_lock:
            units = {
                e.unit
                for e in self._events.values()
                if e.unit is not None
                and from_date <= e.event_date <= to_date
                and scope.matches(e.unit)
            }
        return sorted(units)

    def events_for_unit(
        self, unit: UnitKey, from_date: date, to_date: date
    ) -> list[StockEventRecord]:
        with self._data_lock:
            events = [
                e
                for e in self._events.values()
                if e.unit == unit and from_date <= e.event_date <= to_date
            ]
        return sorted(events, key=lambda e: (e.event_date, e.sequence))

    # -- balances ------------------------------------------------------

    def get_balance(self, unit: UnitKey, on_date: date) -> DailyBalanceRecord | None:
        with self._data_lock:
            return self._balances.get((unit, on_date))

    def upsert_balance(self, balance: DailyBalanceRecord) -> None:
        with self._data_lock:
            self._balances[(balance.unit, balance.balance_date)] = balance
            self.upserts += 1

    def insert_if_absent(self, balance: DailyBalanceRecord) -> bool:
        key = (balance.unit, balance.balance_date)
        with self._data_lock:
            if key in self._balances:
                return False
            self._balances[key] = balance
        return True

    def units_on(self, on_date: date) -> list[UnitKey]:
        with self._data_lock:
            return sorted(unit for unit, day in self._balances if day == on_date)

    def balances(self, unit: UnitKey | None = None) -> list[DailyBalanceRecord]:
        """Every stored row (optionally for one unit), ordered by unit then date."""
        with self._data_lock:
            rows = [
                b for (u, _), b in self._balances.items() if unit is None or u == unit
            ]
        return sorted(rows, key=lambda b: (b.unit, b.balance_date))

    # -- transactions --------------------------------------------------

    def _lock_for(self, unit: UnitKey) -> threading.RLock:
        with self._data_lock:
            return self._unit_locks.setdefault(unit, threading.RLock())

    @contextmanager
    def unit_transaction(self, unit: UnitKey) -> Iterator[None]:
        with self._lock_for(unit):
            with self._data_lock:
                snapshot = {k: v for k, v in self._balances.items() if k[0] == unit}
            try:
                yield
            except BaseException:
                with self._data_lock:
                    for key in [k for k in self._balances if k[0] == unit]:
                        del self._balances[key]
                    self._balances.update(snapshot)
                raise
