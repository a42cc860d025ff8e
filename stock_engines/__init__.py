"""
Stock engines -- pure calculation layer.

Engines read and write through the ports declared in
``stock_kernel.domain.ports`` and never open sessions or read the clock.
"""

from stock_engines.aggregation import (
    EVENT_EFFECTS,
    DayMovements,
    aggregate_day,
    carry_forward,
    close_day,
)
from stock_engines.memory import InMemoryStockStore
from stock_engines.recalculation import (
    RecalculationEngine,
    RecalculationResult,
    UnitFailure,
)
from stock_engines.rollover import RolloverScheduler
from stock_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "EVENT_EFFECTS",
    "DayMovements",
    "aggregate_day",
    "carry_forward",
    "close_day",
    "InMemoryStockStore",
    "RecalculationEngine",
    "RecalculationResult",
    "UnitFailure",
    "RolloverScheduler",
    "compute_input_fingerprint",
    "traced_engine",
]
