"""Shared test data builders (plain functions, importable from any test)."""

from datetime import date, timedelta
from uuid import uuid4

from stock_kernel.domain.values import EventKind, StockEventDraft, StockEventRecord, UnitKey

# Business "today" for every test that does not move the clock
TODAY = date(2024, 3, 10)


def imei(n: int) -> str:
    """A well-formed 15-digit serial for test unit ``n``."""
    return f"35{n:013d}"


def make_unit(n: int = 1, location_id: str = "TOKO-01", model_id: str = "SM-A155F") -> UnitKey:
    return UnitKey(location_id, model_id, imei(n))


def days_before(n: int, anchor: date = TODAY) -> date:
    return anchor - timedelta(days=n)


def draft(
    unit: UnitKey,
    kind: EventKind,
    event_date: date,
    quantity: int = 1,
    **kwargs,
) -> StockEventDraft:
    return StockEventDraft(
        event_date=event_date,
        location_id=unit.location_id,
        model_id=unit.model_id,
        kind=kind,
        quantity=quantity,
        serial=unit.serial,
        **kwargs,
    )


def event_record(
    unit: UnitKey,
    kind: EventKind,
    event_date: date,
    quantity: int = 1,
    sequence: int = 1,
) -> StockEventRecord:
    return StockEventRecord(
        id=uuid4(),
        event_date=event_date,
        location_id=unit.location_id,
        model_id=unit.model_id,
        serial=unit.serial,
        kind=kind,
        quantity=quantity,
        sequence=sequence,
    )
