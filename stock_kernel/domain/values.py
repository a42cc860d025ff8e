"""
Values -- Immutable value objects for the serialized stock ledger.

Responsibility:
    Defines the data that flows between the event store, the recalculation
    engine and the balance store: event kinds, unit identity, filters,
    event records and daily balance records.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  ``from_model()`` class methods are boundary
    converters invoked only from the storage adapters.

Invariants enforced:
    - A DailyBalanceRecord always satisfies
      ``closing == opening + incoming + returned - sold + net_adjustment``.
    - UnitKey ordering is total and stable, so units are always processed
      and locked in the same order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator
from uuid import UUID

if TYPE_CHECKING:
    from stock_kernel.models.daily_balance import DailyBalance as DailyBalanceModel
    from stock_kernel.models.stock_event import StockEvent as StockEventModel


class EventKind(str, Enum):
    """Physical movement recorded against a unit.

    Values are the strings stored in ``stock_events.kind``.
    """

    INTAKE = "masuk"
    SALE = "laku"
    RETURN_IN = "retur_in"
    RETURN_OUT = "retur_out"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    MORNING_CORRECTION = "koreksi_pagi"
    CORRECTION = "koreksi"

    @property
    def is_correction(self) -> bool:
        """Corrections carry a signed quantity; every other kind is positive."""
        return self in (EventKind.MORNING_CORRECTION, EventKind.CORRECTION)


@dataclass(frozen=True, order=True)
class UnitKey:
    """Identity of one serialized unit at one location for one model."""

    location_id: str
    model_id: str
    serial: str

    def __str__(self) -> str:
        return f"{self.location_id}/{self.model_id}/{self.serial}"


@dataclass(frozen=True)
class UnitScope:
    """Optional location/model/serial filter.  ``None`` matches anything."""

    location_id: str | None = None
    model_id: str | None = None
    serial: str | None = None

    @classmethod
    def for_unit(cls, unit: UnitKey) -> UnitScope:
        return cls(unit.location_id, unit.model_id, unit.serial)

    def matches(self, unit: UnitKey) -> bool:
        return (
            (self.location_id is None or self.location_id == unit.location_id)
            and (self.model_id is None or self.model_id == unit.model_id)
            and (self.serial is None or self.serial == unit.serial)
        )

    def as_log_fields(self) -> dict[str, str | None]:
        return {
            "location_id": self.location_id,
            "model_id": self.model_id,
            "serial": self.serial,
        }


def iter_days(from_date: date, to_date: date) -> Iterator[date]:
    """Yield every calendar day from ``from_date`` to ``to_date`` inclusive."""
    current = from_date
    one_day = timedelta(days=1)
    while current <= to_date:
        yield current
        current += one_day


@dataclass(frozen=True)
class StockEventDraft:
    """An event as submitted by an external actor, before persistence."""

    event_date: date
    location_id: str
    model_id: str
    kind: EventKind
    quantity: int
    serial: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def unit(self) -> UnitKey | None:
        if not self.serial:
            return None
        return UnitKey(self.location_id, self.model_id, self.serial)


@dataclass(frozen=True)
class StockEventRecord:
    """A persisted stock event."""

    id: UUID
    event_date: date
    location_id: str
    model_id: str
    serial: str | None
    kind: EventKind
    quantity: int
    sequence: int = 1
    notes: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def unit(self) -> UnitKey | None:
        """Unit identity, or None for non-serialized bulk adjustments."""
        if not self.serial:
            return None
        return UnitKey(self.location_id, self.model_id, self.serial)

    @classmethod
    def from_model(cls, model: StockEventModel) -> StockEventRecord:
        return cls(
            id=model.id,
            event_date=model.event_date,
            location_id=model.location_id,
            model_id=model.model_id,
            serial=model.serial,
            kind=EventKind(model.kind),
            quantity=model.quantity,
            sequence=model.sequence,
            notes=model.notes,
            metadata=dict(model.event_metadata or {}),
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class DailyBalanceRecord:
    """
    Derived per-unit balance for one calendar day.

    Contract:
        ``opening`` already includes ``morning_correction``; the value
        inherited from the previous day is ``inherited_opening``.

    Guarantees:
        closing == opening + incoming + returned - sold + net_adjustment.
    """

    balance_date: date
    unit: UnitKey
    opening: int
    incoming: int = 0
    sold: int = 0
    returned: int = 0
    net_adjustment: int = 0
    morning_correction: int = 0
    closing: int | None = None

    def __post_init__(self) -> None:
        expected = (
            self.opening + self.incoming + self.returned - self.sold + self.net_adjustment
        )
        if self.closing is None:
            object.__setattr__(self, "closing", expected)
        elif self.closing != expected:
            raise ValueError(
                f"closing {self.closing} does not match movements ({expected}) "
                f"for {self.unit} on {self.balance_date}"
            )

    @property
    def inherited_opening(self) -> int:
        """Opening before the day's morning corrections were applied."""
        return self.opening - self.morning_correction

    @classmethod
    def from_model(cls, model: DailyBalanceModel) -> DailyBalanceRecord:
        return cls(
            balance_date=model.balance_date,
            unit=UnitKey(model.location_id, model.model_id, model.serial),
            opening=model.opening,
            incoming=model.incoming,
            sold=model.sold,
            returned=model.returned,
            net_adjustment=model.net_adjustment,
            morning_correction=model.morning_correction,
            closing=model.closing,
        )


@dataclass(frozen=True)
class ChainBreak:
    """Consecutive rows whose closing/opening do not line up."""

    unit: UnitKey
    on_date: date
    previous_closing: int
    inherited_opening: int
