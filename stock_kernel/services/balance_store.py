"""
SqlBalanceStore / SqlUnitTransactions -- daily balance persistence.

Responsibility:
    Implements the ``BalanceStore`` and ``UnitTransactions`` ports over
    SQLAlchemy.  These are the only code paths allowed to write
    ``daily_balances`` rows.

Architecture position:
    Kernel > Services -- storage adapter.  Writes through Core
    ``INSERT ... ON CONFLICT`` statements, which bypass the ORM balance
    guards in db/immutability.py.

Invariants enforced:
    - Upsert is keyed by (balance_date, location_id, model_id, serial) and
      overwrites every derived field.  A write that changes nothing leaves
      the row (including updated_at) untouched, so re-running an unchanged
      range is byte-identical.
    - One SAVEPOINT per unit: a failure rolls back that unit's day-walk
      only; other units' work in the same outer transaction survives.
    - On PostgreSQL, a transaction-scoped advisory lock keyed by the unit
      serializes concurrent day-walks of the same unit.

Failure modes:
    - NotImplementedError for dialects without ON CONFLICT support.
    - Any DBAPI error propagates to the engine, which wraps it as
      WriteFailureError with unit and date.
"""

import hashlib
from contextlib import contextmanager
from datetime import date
from typing import Iterator
from uuid import uuid4

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import DailyBalanceRecord, UnitKey
from stock_kernel.logging_config import get_logger
from stock_kernel.models.daily_balance import DailyBalance
from stock_kernel.services.base import BaseService

logger = get_logger("services.balance_store")

_KEY_COLUMNS = ("balance_date", "location_id", "model_id", "serial")
_DERIVED_COLUMNS = (
    "opening",
    "morning_correction",
    "incoming",
    "sold",
    "returned",
    "net_adjustment",
    "closing",
)


def _dialect_insert(session: Session):
    name = session.get_bind().dialect.name
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upsert not supported for dialect {name!r}")
    return insert


def unit_lock_key(unit: UnitKey) -> int:
    """Stable signed 64-bit key for ``pg_advisory_xact_lock``."""
    digest = hashlib.blake2b(str(unit).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def lock_unit(session: Session, unit: UnitKey) -> None:
    """
    Serialize writers of one unit until the enclosing transaction ends.

    No-op outside PostgreSQL; SQLite already allows a single writer.
    """
    if session.get_bind().dialect.name == "postgresql":
        session.execute(select(func.pg_advisory_xact_lock(unit_lock_key(unit))))


class SqlBalanceStore(BaseService[DailyBalance]):
    """BalanceStore port backed by the ``daily_balances`` table."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._table = DailyBalance.__table__

    def get_balance(self, unit: UnitKey, on_date: date) -> DailyBalanceRecord | None:
        stmt = (
            select(DailyBalance)
            .where(
                DailyBalance.balance_date == on_date,
                DailyBalance.location_id == unit.location_id,
                DailyBalance.model_id == unit.model_id,
                DailyBalance.serial == unit.serial,
            )
            .execution_options(populate_existing=True)
        )
        row = self.session.execute(stmt).scalar_one_or_none()
        return DailyBalanceRecord.from_model(row) if row is not None else None

    def _insert_stmt(self, balance: DailyBalanceRecord):
        now = self._clock.now_utc()
        insert = _dialect_insert(self.session)
        return insert(self._table).values(
            id=uuid4(),
            balance_date=balance.balance_date,
            location_id=balance.unit.location_id,
            model_id=balance.unit.model_id,
            serial=balance.unit.serial,
            opening=balance.opening,
            morning_correction=balance.morning_correction,
            incoming=balance.incoming,
            sold=balance.sold,
            returned=balance.returned,
            net_adjustment=balance.net_adjustment,
            closing=balance.closing,
            created_at=now,
            updated_at=now,
        )

    def upsert_balance(self, balance: DailyBalanceRecord) -> None:
        stmt = self._insert_stmt(balance)
        excluded = stmt.excluded
        changed = or_(
            *(self._table.c[col] != excluded[col] for col in _DERIVED_COLUMNS)
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_KEY_COLUMNS),
            set_={
                **{col: excluded[col] for col in _DERIVED_COLUMNS},
                "updated_at": excluded.updated_at,
            },
            where=changed,
        )
        self.session.execute(stmt)

    def insert_if_absent(self, balance: DailyBalanceRecord) -> bool:
        stmt = self._insert_stmt(balance).on_conflict_do_nothing(
            index_elements=list(_KEY_COLUMNS),
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def units_on(self, on_date: date) -> list[UnitKey]:
        stmt = (
            select(DailyBalance.location_id, DailyBalance.model_id, DailyBalance.serial)
            .where(DailyBalance.balance_date == on_date)
            .order_by(DailyBalance.location_id, DailyBalance.model_id, DailyBalance.serial)
        )
        return [UnitKey(loc, model, serial) for loc, model, serial in self.session.execute(stmt)]


class SqlUnitTransactions:
    """UnitTransactions port: one SAVEPOINT plus advisory lock per unit."""

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def unit_transaction(self, unit: UnitKey) -> Iterator[None]:
        with self.session.begin_nested():
            lock_unit(self.session, unit)
            yield
