"""Tests for the injectable clocks (stock_kernel/domain/clock.py)."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from stock_kernel.domain.clock import DeterministicClock, SystemClock

JAKARTA = ZoneInfo("Asia/Jakarta")


def test_system_clock_is_aware_utc():
    assert SystemClock().now().tzinfo is not None
    assert SystemClock().now_utc().utcoffset() == timedelta(0)


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        clock = DeterministicClock.on_day(date(2024, 3, 10))
        assert clock.now() == clock.now()

        clock.advance(30)
        assert clock.now() == datetime(2024, 3, 10, 12, 0, 30, tzinfo=timezone.utc)

    def test_advance_days(self):
        clock = DeterministicClock.on_day(date(2024, 3, 10))
        clock.advance_days(2)
        assert clock.today() == date(2024, 3, 12)
        assert clock.now().hour == 12

    def test_today_in_business_timezone(self):
        # 20:00 UTC is already 03:00 the next morning in Jakarta
        clock = DeterministicClock.on_day(date(2024, 3, 9), hour=20)
        assert clock.today() == date(2024, 3, 9)
        assert clock.today(JAKARTA) == date(2024, 3, 10)

    def test_default_time(self):
        assert DeterministicClock().now() == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    def test_now_utc_normalizes(self):
        local = datetime(2024, 3, 10, 9, tzinfo=JAKARTA)
        assert DeterministicClock(local).now_utc() == datetime(2024, 3, 10, 2, tzinfo=timezone.utc)
