"""
Stock Kernel

An event-sourced, per-unit stock ledger with:
- Append-only stock movement events (intake, sale, return, transfer, correction)
- Derived daily balances recomputed from the event history
- Engine-owned balance rows guarded against direct mutation
- Injectable clock for a deterministic "today"
"""

__version__ = "0.1.0"
