"""
Module: stock_kernel.models.stock_event
Responsibility: ORM persistence for stock movement events -- the append-only
    source of truth every daily balance is derived from.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (serial, location_id, model_id, event_date, sequence) is unique.
    - Recalculation orders by event_date only; created_at/updated_at are
      audit metadata.

Failure modes:
    - IntegrityError on a duplicate (unit, date, sequence) key when two
      writers race on the same unit/day.

Audit relevance:
    Events may be inserted, edited or deleted retroactively; every such
    mutation cascades a recalculation from the event's date to today
    (see stock_services.event_service).
"""

from datetime import date
from typing import Any

from sqlalchemy import JSON, Date, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase


class StockEvent(TrackedBase):
    """
    One physical movement of a unit (intake, sale, return, transfer,
    correction) on a calendar day.

    Non-goals:
        - This model does NOT validate kind/quantity/serial; that is the
          responsibility of StockEventService.
    """

    __tablename__ = "stock_events"

    __table_args__ = (
        UniqueConstraint(
            "serial",
            "location_id",
            "model_id",
            "event_date",
            "sequence",
            name="uq_stock_event_unit_day_seq",
        ),
        Index("idx_stock_event_date", "event_date"),
        Index("idx_stock_event_unit_date", "location_id", "model_id", "serial", "event_date"),
    )

    event_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Opaque master-data references
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    model_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Absent for non-serialized bulk adjustments
    serial: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # EventKind value ("masuk", "laku", ...)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # Position among the unit's events on the same day
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    def __repr__(self) -> str:
        return (
            f"<StockEvent {self.kind} x{self.quantity} {self.serial} "
            f"@{self.location_id} {self.event_date}>"
        )
