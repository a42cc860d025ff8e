"""
Module: stock_engines.aggregation
Responsibility:
    Turn one day's events for one unit into that day's movements, and
    movements plus the inherited opening into a daily balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel/domain.

Invariants enforced:
    - Morning corrections never enter the same-day aggregates; they adjust
      the opening instead.
    - closing = opening + incoming + returned - sold + net_adjustment.
    - Purity: identical inputs always produce identical outputs.

Usage:
    movements = aggregate_day(events_of_the_day)
    balance = close_day(unit, day, seed=previous.closing, movements=movements)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from stock_kernel.domain.values import DailyBalanceRecord, EventKind, StockEventRecord, UnitKey

# (bucket, sign) per kind
EVENT_EFFECTS: dict[EventKind, tuple[str, int]] = {
    EventKind.INTAKE: ("incoming", 1),
    EventKind.SALE: ("sold", 1),
    EventKind.RETURN_IN: ("returned", 1),
    EventKind.RETURN_OUT: ("net_adjustment", -1),
    EventKind.TRANSFER_IN: ("net_adjustment", 1),
    EventKind.TRANSFER_OUT: ("net_adjustment", -1),
    EventKind.CORRECTION: ("net_adjustment", 1),
    EventKind.MORNING_CORRECTION: ("morning_correction", 1),
}


@dataclass(frozen=True)
class DayMovements:
    """Same-day totals for one unit."""

    incoming: int = 0
    sold: int = 0
    returned: int = 0
    net_adjustment: int = 0
    morning_correction: int = 0

    @property
    def is_empty(self) -> bool:
        return self == DayMovements()


def aggregate_day(events: Iterable[StockEventRecord]) -> DayMovements:
    """Sum the day's events into movement buckets.  Order does not matter."""
    totals = {
        "incoming": 0,
        "sold": 0,
        "returned": 0,
        "net_adjustment": 0,
        "morning_correction": 0,
    }
    for event in events:
        bucket, sign = EVENT_EFFECTS[event.kind]
        totals[bucket] += sign * event.quantity
    return DayMovements(**totals)


def close_day(
    unit: UnitKey,
    on_date: date,
    seed: int,
    movements: DayMovements,
) -> DailyBalanceRecord:
    """Balance for ``on_date`` given the opening inherited from the night before."""
    return DailyBalanceRecord(
        balance_date=on_date,
        unit=unit,
        opening=seed + movements.morning_correction,
        incoming=movements.incoming,
        sold=movements.sold,
        returned=movements.returned,
        net_adjustment=movements.net_adjustment,
        morning_correction=movements.morning_correction,
    )


def carry_forward(previous: DailyBalanceRecord, on_date: date) -> DailyBalanceRecord:
    """Placeholder row for a day with no events yet: opening = previous closing."""
    return close_day(previous.unit, on_date, previous.closing, DayMovements())
