"""Read-only selectors (the query side of the stock kernel)."""

from stock_kernel.selectors.balance_selector import BalanceSelector, LocationStockTotal
from stock_kernel.selectors.base import BaseSelector

__all__ = [
    "BalanceSelector",
    "BaseSelector",
    "LocationStockTotal",
]
