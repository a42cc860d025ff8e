"""
Pure domain layer.

This module contains value objects and storage interfaces with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.ports import BalanceStore, EventReader, UnitTransactions
from stock_kernel.domain.values import (
    ChainBreak,
    DailyBalanceRecord,
    EventKind,
    StockEventDraft,
    StockEventRecord,
    UnitKey,
    UnitScope,
    iter_days,
)

__all__ = [
    "BalanceStore",
    "ChainBreak",
    "Clock",
    "DailyBalanceRecord",
    "DeterministicClock",
    "EventKind",
    "EventReader",
    "StockEventDraft",
    "StockEventRecord",
    "SystemClock",
    "UnitKey",
    "UnitScope",
    "UnitTransactions",
    "iter_days",
]
