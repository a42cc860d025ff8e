"""
Module: stock_kernel.models.daily_balance
Responsibility: ORM persistence for the derived per-unit daily snapshot
    (morning stock, same-day movements, night stock).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (balance_date, location_id, model_id, serial).
    - closing == opening + incoming + returned - sold + net_adjustment.
    - Rows are written only by the recalculation engine and the rollover
      scheduler, through SQL upserts.  ORM-level writes are refused by
      db/immutability.py.

Audit relevance:
    ``morning_correction`` keeps the signed morning corrections folded into
    ``opening``, so a re-run starting on this day can recover the opening
    it inherited from the previous night.
"""

from datetime import date

from sqlalchemy import Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, TimestampMixin


class DailyBalance(TimestampMixin, Base):
    """Per-unit daily balance row."""

    __tablename__ = "daily_balances"

    __table_args__ = (
        UniqueConstraint(
            "balance_date",
            "location_id",
            "model_id",
            "serial",
            name="uq_daily_balance_unit_day",
        ),
        Index("idx_daily_balance_location_date", "location_id", "balance_date"),
    )

    balance_date: Mapped[date] = mapped_column(Date, nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    model_id: Mapped[str] = mapped_column(String(64), nullable=False)
    serial: Mapped[str] = mapped_column(String(32), nullable=False)

    # Morning stock, after morning corrections
    opening: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    morning_correction: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    incoming: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    returned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_adjustment: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Night stock
    closing: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<DailyBalance {self.serial}@{self.location_id} {self.balance_date}: "
            f"{self.opening}->{self.closing}>"
        )
