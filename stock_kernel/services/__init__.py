"""Kernel services: storage adapters for the event store and daily balances."""

from stock_kernel.services.balance_store import SqlBalanceStore, SqlUnitTransactions
from stock_kernel.services.event_store import SqlEventReader

__all__ = [
    "SqlBalanceStore",
    "SqlEventReader",
    "SqlUnitTransactions",
]
