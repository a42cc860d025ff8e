"""
stock_services.event_service -- Event ingestion with retroactive cascade.

Responsibility:
    The write API for stock events.  Validates each event, persists it and,
    in the same transaction, recalculates the affected unit from the
    event's date through today so every later balance reflects it.
    Inserts, edits and deletions of past events all ripple forward.

Architecture position:
    Services -- orchestration over kernel models, selectors and the
    recalculation service.  Flushes, never commits.

Invariants enforced:
    - A mutation and its recalculation are atomic: both run inside one
      SAVEPOINT, and a failed recalculation rolls the mutation back.
    - "Today" is the business day of the injected Clock.
    - A deleted or moved event's old unit is recalculated even when it no
      longer has events in range.
    - Events without a serial are stored but never cascade.

Failure modes:
    - InvalidEventError: unknown kind, bad quantity sign, malformed serial,
      future date, unknown field in an update.
    - DuplicateSerialError: intake batch repeats a serial, or a serial is
      still in custody.
    - EventNotFoundError: update/delete/get of an unknown event.
    - RecalculationFailedError: the cascade could not recompute the unit.

Audit relevance:
    stock_event_recorded / stock_event_updated / stock_event_deleted are
    logged with the acting user, the unit and the event date.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_config import LedgerOptions, LedgerSettings
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import (
    EventKind,
    StockEventDraft,
    StockEventRecord,
    UnitKey,
)
from stock_kernel.exceptions import (
    DuplicateSerialError,
    EventNotFoundError,
    InvalidEventError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.stock_event import StockEvent
from stock_kernel.selectors.balance_selector import BalanceSelector
from stock_kernel.services.balance_store import lock_unit
from stock_services.recalculation_service import RecalculationService

logger = get_logger("services.event")

_UPDATABLE_FIELDS = frozenset(
    {
        "event_date",
        "location_id",
        "model_id",
        "serial",
        "kind",
        "quantity",
        "notes",
        "metadata",
    }
)


class StockEventService:
    """
    Records, edits and deletes stock events.

    Contract:
        Every public mutation returns only after the affected unit's
        balances have been recalculated through today.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._recalculation = RecalculationService(session, self._clock, settings)
        options = settings.ledger if settings is not None else LedgerOptions()
        self._serial_regex = options.serial_regex
        self._balances = BalanceSelector(session)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_event(self, event_id: UUID) -> StockEventRecord:
        return StockEventRecord.from_model(self._load(event_id))

    def _load(self, event_id: UUID) -> StockEvent:
        event = self._session.get(StockEvent, event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        return event

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def record_event(self, draft: StockEventDraft, actor_id: UUID) -> StockEventRecord:
        """Persist one event and cascade its unit from the event date."""
        return self.record_events([draft], actor_id)[0]

    def record_events(
        self,
        drafts: Sequence[StockEventDraft],
        actor_id: UUID,
    ) -> list[StockEventRecord]:
        """
        Persist several events atomically.

        Each distinct unit is recalculated once, from its earliest event
        date in the batch.
        """
        drafts = [self._validated(d) for d in drafts]

        with LogContext.bind(actor_id=str(actor_id)), self._session.begin_nested():
            self._lock_units(d.unit for d in drafts)
            events = [self._insert(d, actor_id) for d in drafts]

            earliest: dict[UnitKey, date] = {}
            for d in drafts:
                if d.unit is not None:
                    earliest[d.unit] = min(d.event_date, earliest.get(d.unit, d.event_date))
            for unit in sorted(earliest):
                self._recalculation.cascade(earliest[unit], unit)

            records = [StockEventRecord.from_model(e) for e in events]
            for record in records:
                logger.info(
                    "stock_event_recorded",
                    extra={
                        "event_id": record.id,
                        "kind": record.kind.value,
                        "quantity": record.quantity,
                        "event_date": record.event_date,
                        "unit": str(record.unit) if record.unit else None,
                    },
                )
        return records

    def record_intake_batch(
        self,
        serials: Sequence[str],
        event_date: date,
        location_id: str,
        model_id: str,
        actor_id: UUID,
        notes: str | None = None,
        cost_price: Decimal | int | str | None = None,
    ) -> list[StockEventRecord]:
        """
        Take a batch of new units into stock at one location.

        Raises:
            InvalidEventError: empty batch or malformed serial.
            DuplicateSerialError: a serial is repeated in the batch or is
                still held at any location.
        """
        cleaned = [s.strip() for s in serials if s and s.strip()]
        if not cleaned:
            raise InvalidEventError("serials", "intake batch is empty")

        repeated = sorted(s for s, n in Counter(cleaned).items() if n > 1)
        if repeated:
            raise DuplicateSerialError(repeated, "repeated within the batch")

        held = self._balances.serials_in_custody(cleaned)
        if held:
            raise DuplicateSerialError(held, "still in stock")

        metadata: dict[str, Any] = {}
        # Whole rupiah; zero or missing means "not recorded"
        price = int(Decimal(str(cost_price))) if cost_price is not None else 0
        if price > 0:
            metadata["cost_price"] = price

        drafts = [
            StockEventDraft(
                event_date=event_date,
                location_id=location_id,
                model_id=model_id,
                kind=EventKind.INTAKE,
                quantity=1,
                serial=serial,
                notes=notes,
                metadata=metadata,
            )
            for serial in cleaned
        ]
        records = self.record_events(drafts, actor_id)
        logger.info(
            "intake_batch_recorded",
            extra={
                "location_id": location_id,
                "model_id": model_id,
                "event_date": event_date,
                "count": len(records),
            },
        )
        return records

    def update_event(
        self,
        event_id: UUID,
        changes: Mapping[str, Any],
        actor_id: UUID,
    ) -> StockEventRecord:
        """
        Edit a past event and recalculate both its old and new position.

        ``changes`` maps field names (event_date, location_id, model_id,
        serial, kind, quantity, notes, metadata) to new values.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise InvalidEventError(", ".join(sorted(unknown)), "field cannot be updated")

        event = self._load(event_id)
        old = StockEventRecord.from_model(event)
        draft = self._validated(
            replace(
                StockEventDraft(
                    event_date=old.event_date,
                    location_id=old.location_id,
                    model_id=old.model_id,
                    kind=old.kind,
                    quantity=old.quantity,
                    serial=old.serial,
                    notes=old.notes,
                    metadata=old.metadata,
                ),
                **changes,
            )
        )

        with LogContext.bind(actor_id=str(actor_id)), self._session.begin_nested():
            self._lock_units([old.unit, draft.unit])
            moved = draft.unit != old.unit or draft.event_date != old.event_date
            if moved:
                event.sequence = self._next_sequence(draft)
            event.event_date = draft.event_date
            event.location_id = draft.location_id
            event.model_id = draft.model_id
            event.serial = draft.serial
            event.kind = draft.kind.value
            event.quantity = draft.quantity
            event.notes = draft.notes
            event.event_metadata = dict(draft.metadata)
            event.updated_by_id = actor_id
            event.updated_at = self._clock.now_utc()
            self._session.flush()

            if old.unit is not None and old.unit == draft.unit:
                self._recalculation.cascade(
                    min(old.event_date, draft.event_date), old.unit, include_unit=True
                )
            else:
                if old.unit is not None:
                    self._recalculation.cascade(old.event_date, old.unit, include_unit=True)
                if draft.unit is not None:
                    self._recalculation.cascade(draft.event_date, draft.unit)

            record = StockEventRecord.from_model(event)
            logger.info(
                "stock_event_updated",
                extra={
                    "event_id": event_id,
                    "changed_fields": sorted(changes),
                    "old_event_date": old.event_date,
                    "event_date": record.event_date,
                    "old_unit": str(old.unit) if old.unit else None,
                    "unit": str(record.unit) if record.unit else None,
                },
            )
        return record

    def delete_event(self, event_id: UUID, actor_id: UUID | None = None) -> StockEventRecord:
        """Remove an event and recalculate its unit from the event's date."""
        event = self._load(event_id)
        old = StockEventRecord.from_model(event)

        with LogContext.bind(actor_id=str(actor_id) if actor_id else None), self._session.begin_nested():
            self._session.delete(event)
            self._session.flush()
            if old.unit is not None:
                self._recalculation.cascade(old.event_date, old.unit, include_unit=True)
            logger.info(
                "stock_event_deleted",
                extra={
                    "event_id": event_id,
                    "event_date": old.event_date,
                    "unit": str(old.unit) if old.unit else None,
                },
            )
        return old

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validated(self, draft: StockEventDraft) -> StockEventDraft:
        try:
            kind = EventKind(draft.kind)
        except ValueError:
            raise InvalidEventError("kind", f"unknown event kind {draft.kind!r}") from None

        if not draft.location_id:
            raise InvalidEventError("location_id", "required")
        if not draft.model_id:
            raise InvalidEventError("model_id", "required")

        if not isinstance(draft.quantity, int) or isinstance(draft.quantity, bool):
            raise InvalidEventError("quantity", "must be an integer")
        if draft.quantity == 0:
            raise InvalidEventError("quantity", "must be non-zero")
        if draft.quantity < 0 and not kind.is_correction:
            raise InvalidEventError("quantity", f"{kind.value} requires a positive quantity")

        serial = draft.serial.strip() if draft.serial else None
        if serial and not self._serial_regex.fullmatch(serial):
            raise InvalidEventError("serial", f"{serial!r} does not match the serial format")

        today = self._recalculation.today()
        if draft.event_date > today:
            raise InvalidEventError("event_date", f"{draft.event_date} is after today ({today})")

        return replace(draft, kind=kind, serial=serial or None)

    def _lock_units(self, units: Iterable[UnitKey | None]) -> None:
        # Taken before reading max(sequence) so same-day writers queue up
        for unit in sorted({u for u in units if u is not None}):
            lock_unit(self._session, unit)

    def _next_sequence(self, draft: StockEventDraft) -> int:
        serial_clause = (
            StockEvent.serial == draft.serial
            if draft.serial
            else StockEvent.serial.is_(None)
        )
        stmt = select(func.max(StockEvent.sequence)).where(
            StockEvent.event_date == draft.event_date,
            StockEvent.location_id == draft.location_id,
            StockEvent.model_id == draft.model_id,
            serial_clause,
        )
        return (self._session.execute(stmt).scalar() or 0) + 1

    def _insert(self, draft: StockEventDraft, actor_id: UUID) -> StockEvent:
        now = self._clock.now_utc()
        event = StockEvent(
            event_date=draft.event_date,
            location_id=draft.location_id,
            model_id=draft.model_id,
            serial=draft.serial,
            kind=draft.kind.value,
            quantity=draft.quantity,
            sequence=self._next_sequence(draft),
            notes=draft.notes,
            event_metadata=dict(draft.metadata),
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self._session.add(event)
        self._session.flush()
        return event
