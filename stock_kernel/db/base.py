"""
Module: stock_kernel.db.base
Responsibility: Declarative base for the two ledger tables.
Architecture position: Kernel > DB.  Imported by models/ only; imports
    nothing from the kernel.

Invariants enforced:
    - Every row has a uuid4 primary key (native UUID on PostgreSQL,
      CHAR(32) on SQLite through ``sqlalchemy.Uuid``).
    - Timestamps are timezone-aware.  They are written by the services from
      the injected Clock; ``server_default`` only covers raw inserts.
    - ``stock_events`` additionally records the acting user
      (created_by_id, updated_by_id).  ``daily_balances`` is derived data
      and has no actor.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: Uuid(),
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TimestampMixin:
    """created_at / updated_at, shared by events and balances."""

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now())


class TrackedBase(TimestampMixin, Base):
    """Rows entered by a person: stock events."""

    __abstract__ = True

    created_by_id: Mapped[UUID]
    # Set by StockEventService.update_event
    updated_by_id: Mapped[UUID | None]
