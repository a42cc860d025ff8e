"""
stock_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the storage-agnostic engines
    (stock_engines/) with database sessions, settings and the clock.  This
    is the only layer that reads "today" from a Clock.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        stock_services/ -> stock_engines/  (allowed)
        stock_services/ -> stock_kernel/   (allowed)
        stock_services/ -> stock_config/   (allowed)
        stock_engines/  -> stock_services/ (FORBIDDEN)
        stock_kernel/   -> stock_services/ (FORBIDDEN)
"""

from stock_services.event_service import StockEventService
from stock_services.recalculation_service import RecalculationService
from stock_services.rollover_service import RolloverService

__all__ = [
    "RecalculationService",
    "RolloverService",
    "StockEventService",
]
