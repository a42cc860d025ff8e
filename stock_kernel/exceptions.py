"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock balances are derived from an event history that operators correct
retroactively.  When a recalculation fails, the caller needs to know WHICH
unit and WHICH day failed so it can re-run just that slice.  Parsing
message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (unit identity, dates, counts)

Example:
    try:
        service.recalculate(from_date, to_date)
    except RecalculationFailedError as e:
        for failure in e.failures:
            log.error("retry later", extra={"unit": str(failure.unit),
                                            "date": str(failure.failed_date)})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- EventError
    |   +-- EventNotFoundError
    |   +-- InvalidEventError
    |   +-- DuplicateSerialError
    |
    +-- RecalculationError
    |   +-- InvalidRangeError
    |   +-- WriteFailureError
    |   +-- OrderingViolationError
    |   +-- RecalculationFailedError
    |
    +-- BalanceMutationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Event           | EVENT_NOT_FOUND             | Event ID doesn't exist
                | INVALID_EVENT               | Kind/quantity/serial/date rejected
                | DUPLICATE_SERIAL            | Serial repeated or still in custody
----------------|-----------------------------|-----------------------------------------
Recalculation   | INVALID_RANGE               | from_date > to_date (no side effects)
                | WRITE_FAILURE               | Store rejected one unit/day upsert
                | ORDERING_VIOLATION          | closing[d] != opening[d+1] unexpectedly
                | RECALCULATION_FAILED        | Aggregate of per-unit failures
----------------|-----------------------------|-----------------------------------------
Balance         | BALANCE_MUTATION_FORBIDDEN  | Daily balance touched outside engine
----------------|-----------------------------|-----------------------------------------
Config          | CONFIGURATION_ERROR         | Settings file missing or invalid

===============================================================================
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stock_kernel.domain.values import UnitKey


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Event-related exceptions


class EventError(StockKernelError):
    """Base exception for event-related errors."""

    code: str = "EVENT_ERROR"


class EventNotFoundError(EventError):
    """Stock event with given ID was not found."""

    code: str = "EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Stock event not found: {event_id}")


class InvalidEventError(EventError):
    """Stock event was rejected at ingestion."""

    code: str = "INVALID_EVENT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid stock event ({field}): {reason}")


class DuplicateSerialError(EventError):
    """
    Serial repeated inside an intake batch, or still in custody.

    A serial identifies one physical unit; it cannot be taken in twice
    while the first intake still has stock on hand.
    """

    code: str = "DUPLICATE_SERIAL"

    def __init__(self, serials: list[str], reason: str):
        self.serials = serials
        self.reason = reason
        super().__init__(f"Duplicate serial(s) {', '.join(serials)}: {reason}")


# Recalculation exceptions


class RecalculationError(StockKernelError):
    """Base exception for recalculation errors."""

    code: str = "RECALCULATION_ERROR"


class InvalidRangeError(RecalculationError):
    """from_date is after to_date.  Raised before any read or write."""

    code: str = "INVALID_RANGE"

    def __init__(self, from_date: date, to_date: date):
        self.from_date = from_date
        self.to_date = to_date
        super().__init__(
            f"from_date ({from_date}) cannot be after to_date ({to_date})"
        )


class WriteFailureError(RecalculationError):
    """
    The balance store rejected an upsert for one unit/day.

    Carries the unit identity and the failing date so the caller can
    re-run exactly that unit from that day.
    """

    code: str = "WRITE_FAILURE"

    def __init__(self, unit: UnitKey, failed_date: date, cause: BaseException):
        self.unit = unit
        self.failed_date = failed_date
        self.cause = f"{type(cause).__name__}: {cause}"
        super().__init__(
            f"Failed to write daily balance for {unit} on {failed_date}: {self.cause}"
        )


class OrderingViolationError(RecalculationError):
    """
    Stored chain is broken: closing[d-1] != inherited opening[d].

    Indicates caller or data corruption.  The unit is left untouched and
    the violation is reported instead of being silently overwritten.
    """

    code: str = "ORDERING_VIOLATION"

    def __init__(self, unit: UnitKey, on_date: date, expected: int, found: int):
        self.unit = unit
        self.on_date = on_date
        self.expected = expected
        self.found = found
        super().__init__(
            f"Balance chain broken for {unit} on {on_date}: previous closing "
            f"is {expected} but stored opening inherits {found}"
        )


class RecalculationFailedError(RecalculationError):
    """
    One or more units failed during a recalculation.

    Raised after every independent unit was attempted.  ``result`` holds
    the counts of the units that did commit.
    """

    code: str = "RECALCULATION_FAILED"

    def __init__(self, result: Any):
        self.result = result
        self.failures = list(result.failures)
        summary = "; ".join(
            f"{f.unit}@{f.failed_date}: {f.error.code}" for f in self.failures
        )
        super().__init__(
            f"Recalculation failed for {len(self.failures)} unit(s): {summary}"
        )


# Balance exceptions


class BalanceMutationError(StockKernelError):
    """Daily balance rows are engine-owned and cannot be edited directly."""

    code: str = "BALANCE_MUTATION_FORBIDDEN"

    def __init__(self, operation: str, entity_id: str | None = None):
        self.operation = operation
        self.entity_id = entity_id
        super().__init__(
            f"Daily balances are derived data; direct {operation} is forbidden"
            + (f" (row {entity_id})" if entity_id else "")
        )


# Configuration exceptions


class ConfigurationError(StockKernelError):
    """Settings file is missing a key or holds an invalid value."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration '{key}': {reason}")
