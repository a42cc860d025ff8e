"""ORM models for the stock kernel."""

from stock_kernel.models.daily_balance import DailyBalance
from stock_kernel.models.stock_event import StockEvent

__all__ = [
    "DailyBalance",
    "StockEvent",
]
