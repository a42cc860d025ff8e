"""
ORM-Level Guards for Engine-Owned Daily Balances.

===============================================================================
WHY THIS EXISTS
===============================================================================

Daily balances are derived data.  The only writers are the recalculation
engine and the rollover scheduler, and both write through SQL upserts in
``stock_kernel.services.balance_store``.  Any ORM-level add, change or
delete of a ``DailyBalance`` object is an application bug that would break
the running-total chain, so it is refused before any SQL is sent:

    session.flush()
         |
         v
    [before_insert / before_update / before_delete]
         |
         v
    _refuse_balance_*() --> BalanceMutationError

Core ``insert()`` statements do not fire mapper events, which is what lets
the storage adapter write while everything else is blocked.

===============================================================================
USAGE
===============================================================================

Called once at application startup (the operator entry points do this):

    from stock_kernel.db.immutability import register_balance_guards
    register_balance_guards()

To temporarily disable (TESTS ONLY - e.g. to plant a corrupt chain):

    unregister_balance_guards()
    ...
    register_balance_guards()
"""

from sqlalchemy import event

from stock_kernel.exceptions import BalanceMutationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _refuse(operation: str, target) -> None:
    entity_id = str(target.id) if getattr(target, "id", None) else None
    logger.error(
        "balance_mutation_refused",
        extra={"operation": operation, "entity_id": entity_id},
    )
    raise BalanceMutationError(operation, entity_id)


def _refuse_balance_insert(mapper, connection, target):
    _refuse("insert", target)


def _refuse_balance_update(mapper, connection, target):
    _refuse("update", target)


def _refuse_balance_delete(mapper, connection, target):
    _refuse("delete", target)


_GUARDS = (
    ("before_insert", _refuse_balance_insert),
    ("before_update", _refuse_balance_update),
    ("before_delete", _refuse_balance_delete),
)


def register_balance_guards() -> None:
    """Install the DailyBalance listeners.  Safe to call more than once."""
    from stock_kernel.models.daily_balance import DailyBalance

    for event_name, listener in _GUARDS:
        if not event.contains(DailyBalance, event_name, listener):
            event.listen(DailyBalance, event_name, listener)


def unregister_balance_guards() -> None:
    """
    Remove the DailyBalance listeners.

    WARNING: Only use this in tests that need to plant inconsistent rows.
    """
    from stock_kernel.models.daily_balance import DailyBalance

    for event_name, listener in _GUARDS:
        if event.contains(DailyBalance, event_name, listener):
            event.remove(DailyBalance, event_name, listener)
