"""Tests for the ledger value objects (stock_kernel/domain/values.py)."""

from datetime import date

import pytest

from stock_kernel.domain.values import (
    DailyBalanceRecord,
    EventKind,
    StockEventDraft,
    UnitKey,
    UnitScope,
    iter_days,
)
from tests.factories import TODAY, make_unit

UNIT = make_unit(1)


class TestDailyBalanceRecord:
    def test_closing_is_derived(self):
        balance = DailyBalanceRecord(TODAY, UNIT, opening=2, incoming=1, returned=1, sold=3, net_adjustment=-1)
        assert balance.closing == 0

    def test_inconsistent_closing_rejected(self):
        with pytest.raises(ValueError, match="does not match"):
            DailyBalanceRecord(TODAY, UNIT, opening=1, sold=1, closing=1)

    def test_inherited_opening_removes_morning_correction(self):
        balance = DailyBalanceRecord(TODAY, UNIT, opening=0, morning_correction=-1)
        assert balance.inherited_opening == 1

    def test_is_frozen(self):
        balance = DailyBalanceRecord(TODAY, UNIT, opening=1)
        with pytest.raises(AttributeError):
            balance.opening = 2


class TestUnitKey:
    def test_ordering_is_location_model_serial(self):
        units = [
            UnitKey("TOKO-02", "A", "1"),
            UnitKey("TOKO-01", "B", "0"),
            UnitKey("TOKO-01", "A", "9"),
        ]
        assert sorted(units) == [units[2], units[1], units[0]]

    def test_str(self):
        assert str(UnitKey("TOKO-01", "SM-A155F", "350000000000001")) == "TOKO-01/SM-A155F/350000000000001"


class TestUnitScope:
    def test_empty_scope_matches_everything(self):
        assert UnitScope().matches(UNIT)

    @pytest.mark.parametrize(
        "scope, expected",
        [
            (UnitScope(location_id="TOKO-01"), True),
            (UnitScope(location_id="TOKO-02"), False),
            (UnitScope(model_id="SM-A155F", serial=UNIT.serial), True),
            (UnitScope(model_id="SM-A155F", serial="350000000000099"), False),
        ],
    )
    def test_matches(self, scope, expected):
        assert scope.matches(UNIT) is expected

    def test_for_unit_round_trips(self):
        assert UnitScope.for_unit(UNIT).matches(UNIT)
        assert not UnitScope.for_unit(UNIT).matches(make_unit(2))


def test_iter_days_is_inclusive():
    assert list(iter_days(date(2024, 2, 28), date(2024, 3, 1))) == [
        date(2024, 2, 28),
        date(2024, 2, 29),
        date(2024, 3, 1),
    ]
    assert list(iter_days(TODAY, TODAY)) == [TODAY]
    assert list(iter_days(TODAY, date(2024, 3, 9))) == []


@pytest.mark.parametrize("kind", list(EventKind))
def test_only_corrections_are_signed(kind):
    assert kind.is_correction is (kind in (EventKind.CORRECTION, EventKind.MORNING_CORRECTION))


def test_draft_without_serial_has_no_unit():
    draft = StockEventDraft(TODAY, "TOKO-01", "SM-A155F", EventKind.CORRECTION, -3)
    assert draft.unit is None
    assert StockEventDraft(
        TODAY, "TOKO-01", "SM-A155F", EventKind.INTAKE, 1, serial=UNIT.serial
    ).unit == UNIT
