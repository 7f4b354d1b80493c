"""Tests for the recurrence engine."""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from charge_scheduler.models.charge import (
    Charge,
    ChargeStatus,
    Frequency,
    NewCharge,
    Recurrence,
)
from charge_scheduler.scheduling.recurrence import (
    add_months,
    build_successor,
    next_due_date,
    next_occurrence,
)


def _charge(due_date, frequency, is_recurring=True, anchor_day_of_month=None) -> Charge:
    return Charge.from_new(NewCharge(
        client_name="Ana Lima",
        reference="Apartment 12",
        amount=Decimal("1200.00"),
        due_date=due_date,
        due_time="09:00",
        recurrence=Recurrence(
            is_recurring=is_recurring,
            frequency=frequency,
            anchor_day_of_month=anchor_day_of_month,
        ),
    ))


class TestWeekly:

    def test_adds_seven_days(self):
        assert next_occurrence(date(2024, 3, 10), Frequency.WEEKLY) == date(2024, 3, 17)

    def test_crosses_month_and_year(self):
        assert next_occurrence(date(2024, 12, 28), Frequency.WEEKLY) == date(2025, 1, 4)

    def test_always_exactly_seven_days(self):
        day = date(2024, 1, 1)
        for _ in range(400):
            assert next_occurrence(day, Frequency.WEEKLY) - day == timedelta(days=7)
            day += timedelta(days=1)


class TestMonthly:

    def test_same_day_next_month(self):
        assert next_occurrence(date(2024, 3, 15), Frequency.MONTHLY) == date(2024, 4, 15)

    def test_december_rolls_into_january(self):
        assert next_occurrence(date(2024, 12, 5), Frequency.MONTHLY) == date(2025, 1, 5)

    def test_days_up_to_28_are_preserved(self):
        for month in range(1, 13):
            for day in range(1, 29):
                result = next_occurrence(date(2023, month, day), Frequency.MONTHLY)
                assert result.day == day
                assert (result.year * 12 + result.month) - (2023 * 12 + month) == 1

    def test_clamps_to_leap_february(self):
        """2024-01-31 -> 2024-02-29 under the last-day clamp."""
        assert next_occurrence(date(2024, 1, 31), Frequency.MONTHLY) == date(2024, 2, 29)

    def test_clamps_to_common_february(self):
        assert next_occurrence(date(2023, 1, 31), Frequency.MONTHLY) == date(2023, 2, 28)

    def test_clamps_to_thirty_day_month(self):
        assert next_occurrence(date(2024, 3, 31), Frequency.MONTHLY) == date(2024, 4, 30)

    def test_anchor_restores_month_end(self):
        """Anchored on the 31st, the chain returns to the 31st after February."""
        feb = next_occurrence(date(2024, 1, 31), Frequency.MONTHLY, anchor_day_of_month=31)
        mar = next_occurrence(feb, Frequency.MONTHLY, anchor_day_of_month=31)
        assert feb == date(2024, 2, 29)
        assert mar == date(2024, 3, 31)

    def test_add_months_negative(self):
        assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
        assert add_months(date(2024, 1, 15), -13) == date(2022, 12, 15)


class TestNoRecurrence:

    def test_none_frequency_has_no_next(self):
        assert next_occurrence(date(2024, 3, 10), Frequency.NONE) is None

    def test_flag_off_has_no_next(self):
        charge = _charge(date(2024, 3, 10), Frequency.WEEKLY, is_recurring=False)
        assert next_due_date(charge) is None
        assert build_successor(charge) is None


class TestBuildSuccessor:

    def test_copies_identity_and_links_back(self):
        charge = _charge(date(2024, 3, 10), Frequency.WEEKLY)
        successor = build_successor(charge)

        assert successor.client_name == charge.client_name
        assert successor.reference == charge.reference
        assert successor.amount == Decimal("1200.00")
        assert successor.due_time == "09:00"
        assert successor.recurrence == charge.recurrence
        assert successor.due_date == date(2024, 3, 17)
        assert successor.status == ChargeStatus.PENDING
        assert successor.settled_at is None
        assert successor.predecessor_id == charge.id

    def test_monthly_successor_uses_anchor(self):
        charge = _charge(date(2024, 2, 29), Frequency.MONTHLY, anchor_day_of_month=31)
        assert build_successor(charge).due_date == date(2024, 3, 31)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
