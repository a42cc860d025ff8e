"""
Module: stock_engines.rollover
Responsibility:
    Make sure every unit that had a balance yesterday has a placeholder
    row today, opening at yesterday's closing, before any event arrives.

Architecture position:
    Engines -- storage-agnostic.  Uses the BalanceStore and
    UnitTransactions ports only.

Invariants enforced:
    - Never overwrites: an existing row for today (written by an earlier
      rollover or by the recalculation engine) wins.
    - Idempotent: a second call on the same day inserts nothing.
    - Each insert runs under the unit's lock, so a concurrent recalculation
      of the same unit is serialized with it.
"""

from __future__ import annotations

from datetime import date, timedelta

from stock_engines.aggregation import carry_forward
from stock_engines.recalculation import _NoTransactions
from stock_engines.tracer import traced_engine
from stock_kernel.domain.ports import BalanceStore, UnitTransactions
from stock_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.rollover")


class RolloverScheduler:
    """Carries yesterday's night stock into today's morning stock."""

    def __init__(
        self,
        balances: BalanceStore,
        transactions: UnitTransactions | None = None,
    ):
        self._balances = balances
        self._transactions = transactions or _NoTransactions()

    @traced_engine("rollover", "1.0", fingerprint_fields=("today",))
    def rollover_if_needed(self, today: date) -> int:
        """Insert missing rows for ``today``.  Returns the number inserted."""
        yesterday = today - timedelta(days=1)
        already = set(self._balances.units_on(today))
        candidates = [u for u in self._balances.units_on(yesterday) if u not in already]

        rolled = 0
        for unit in candidates:
            with LogContext.bind(unit=str(unit)):
                with self._transactions.unit_transaction(unit):
                    previous = self._balances.get_balance(unit, yesterday)
                    if previous is None:
                        continue
                    if self._balances.insert_if_absent(carry_forward(previous, today)):
                        rolled += 1

        logger.info(
            "rollover_completed",
            extra={
                "today": today,
                "candidates": len(candidates),
                "rolled_units": rolled,
            },
        )
        return rolled
