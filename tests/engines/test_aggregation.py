"""
Tests for day aggregation (stock_engines/aggregation.py).

Pure functions, no store involved.
"""

import pytest

from stock_engines.aggregation import (
    EVENT_EFFECTS,
    DayMovements,
    aggregate_day,
    carry_forward,
    close_day,
)
from stock_kernel.domain.values import EventKind
from tests.factories import TODAY, days_before, event_record, make_unit

UNIT = make_unit(1)


class TestAggregateDay:
    def test_empty_day(self):
        movements = aggregate_day([])
        assert movements == DayMovements()
        assert movements.is_empty

    @pytest.mark.parametrize(
        "kind, expected",
        [
            (EventKind.INTAKE, DayMovements(incoming=1)),
            (EventKind.SALE, DayMovements(sold=1)),
            (EventKind.RETURN_IN, DayMovements(returned=1)),
            (EventKind.RETURN_OUT, DayMovements(net_adjustment=-1)),
            (EventKind.TRANSFER_IN, DayMovements(net_adjustment=1)),
            (EventKind.TRANSFER_OUT, DayMovements(net_adjustment=-1)),
            (EventKind.CORRECTION, DayMovements(net_adjustment=1)),
            (EventKind.MORNING_CORRECTION, DayMovements(morning_correction=1)),
        ],
    )
    def test_each_kind_lands_in_its_bucket(self, kind, expected):
        assert aggregate_day([event_record(UNIT, kind, TODAY)]) == expected

    def test_every_kind_has_an_effect(self):
        assert set(EVENT_EFFECTS) == set(EventKind)

    def test_signed_corrections(self):
        movements = aggregate_day(
            [
                event_record(UNIT, EventKind.CORRECTION, TODAY, quantity=-1),
                event_record(UNIT, EventKind.MORNING_CORRECTION, TODAY, quantity=-1, sequence=2),
            ]
        )
        assert movements.net_adjustment == -1
        assert movements.morning_correction == -1

    def test_net_adjustment_combines_kinds(self):
        movements = aggregate_day(
            [
                event_record(UNIT, EventKind.TRANSFER_IN, TODAY, sequence=1),
                event_record(UNIT, EventKind.TRANSFER_OUT, TODAY, sequence=2),
                event_record(UNIT, EventKind.RETURN_OUT, TODAY, sequence=3),
                event_record(UNIT, EventKind.CORRECTION, TODAY, quantity=2, sequence=4),
            ]
        )
        assert movements.net_adjustment == 1 - 1 - 1 + 2

    def test_order_does_not_matter(self):
        events = [
            event_record(UNIT, EventKind.INTAKE, TODAY, sequence=1),
            event_record(UNIT, EventKind.SALE, TODAY, sequence=2),
            event_record(UNIT, EventKind.RETURN_IN, TODAY, sequence=3),
        ]
        assert aggregate_day(events) == aggregate_day(list(reversed(events)))


class TestCloseDay:
    def test_closing_formula(self):
        balance = close_day(
            UNIT,
            TODAY,
            seed=2,
            movements=DayMovements(incoming=3, sold=1, returned=1, net_adjustment=-2),
        )
        assert balance.opening == 2
        assert balance.closing == 2 + 3 + 1 - 1 - 2

    def test_morning_correction_folds_into_opening(self):
        balance = close_day(UNIT, TODAY, seed=1, movements=DayMovements(morning_correction=-1))
        assert balance.opening == 0
        assert balance.inherited_opening == 1
        assert balance.net_adjustment == 0
        assert balance.closing == 0

    def test_carry_forward(self):
        yesterday = close_day(UNIT, days_before(1), seed=0, movements=DayMovements(incoming=1))
        placeholder = carry_forward(yesterday, TODAY)
        assert placeholder.balance_date == TODAY
        assert placeholder.unit == UNIT
        assert placeholder.opening == 1
        assert placeholder.closing == 1
        assert (placeholder.incoming, placeholder.sold, placeholder.returned) == (0, 0, 0)
        assert placeholder.net_adjustment == 0
