"""Tests for sms_ledger.debts — due-date status and debt CRUD."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from sms_ledger.debts import (
    DUE_TODAY,
    OVERDUE,
    PAID,
    UPCOMING,
    DebtTracker,
    debt_status,
)
from sms_ledger.errors import ValidationError
from sms_ledger.models import Debt, DebtStatus, IdGenerator


@pytest.fixture
def tracker(ids: IdGenerator) -> DebtTracker:
    return DebtTracker(ids=ids)


# ---------------------------------------------------------------------------
# debt_status
# ---------------------------------------------------------------------------


class TestDebtStatus:
    def test_overdue_by_one_day(self, today: date):
        status = debt_status(today - timedelta(days=1), False, today)
        assert status == DebtStatus(OVERDUE, 1)

    def test_due_today(self, today: date):
        assert debt_status(today, False, today) == DebtStatus(DUE_TODAY)

    def test_upcoming(self, today: date):
        assert debt_status(today + timedelta(days=3), False, today) == DebtStatus(UPCOMING, 3)

    def test_paid_wins_over_date(self, today: date):
        """A paid debt is paid regardless of how late it was."""
        assert debt_status(today - timedelta(days=30), True, today) == DebtStatus(PAID)

    @pytest.mark.parametrize(
        "offset,expected",
        [
            (-10, DebtStatus(OVERDUE, 10)),
            (-1, DebtStatus(OVERDUE, 1)),
            (0, DebtStatus(DUE_TODAY)),
            (1, DebtStatus(UPCOMING, 1)),
            (45, DebtStatus(UPCOMING, 45)),
        ],
    )
    def test_day_counts(self, today: date, offset: int, expected: DebtStatus):
        assert debt_status(today + timedelta(days=offset), False, today) == expected


# ---------------------------------------------------------------------------
# DebtTracker
# ---------------------------------------------------------------------------


class TestDebtTracker:
    def test_add_newest_first(self, tracker: DebtTracker, today: date):
        first = tracker.add("Rent", Decimal("7500000"), today)
        second = tracker.add("Loan", Decimal("1000000"), today)
        assert [d.id for d in tracker.debts] == [second.id, first.id]
        assert first.is_paid is False

    def test_add_strips_description(self, tracker: DebtTracker, today: date):
        debt = tracker.add("  Rent  ", Decimal("1"), today)
        assert debt.description == "Rent"

    def test_add_empty_description(self, tracker: DebtTracker, today: date):
        with pytest.raises(ValidationError):
            tracker.add("   ", Decimal("1"), today)
        assert tracker.debts == []

    def test_overdue_then_paid(self, tracker: DebtTracker, today: date):
        """A debt due yesterday is overdue by one day until it is toggled."""
        debt = tracker.add("Phone bill", Decimal("300000"), today - timedelta(days=1))
        assert tracker.status(debt.id, today) == DebtStatus(OVERDUE, 1)

        tracker.toggle_paid(debt.id)
        assert tracker.get(debt.id).is_paid is True
        assert tracker.status(debt.id, today) == DebtStatus(PAID)

    def test_toggle_twice_restores_unpaid(self, tracker: DebtTracker, today: date):
        debt = tracker.add("Loan", Decimal("1"), today)
        tracker.toggle_paid(debt.id)
        tracker.toggle_paid(debt.id)
        assert tracker.get(debt.id).is_paid is False

    def test_update_fields(self, tracker: DebtTracker, today: date):
        debt = tracker.add("Loan", Decimal("1000"), today)
        updated = tracker.update(
            debt.id, description="Car loan", amount=Decimal("2500"), due_date=today + timedelta(days=5)
        )
        assert updated.description == "Car loan"
        assert updated.amount == Decimal("2500")
        assert updated.due_date == today + timedelta(days=5)
        assert tracker.get(debt.id) == updated

    def test_update_keeps_unspecified_fields(self, tracker: DebtTracker, today: date):
        debt = tracker.add("Loan", Decimal("1000"), today)
        updated = tracker.update(debt.id, amount=Decimal("900"))
        assert updated.description == "Loan"
        assert updated.due_date == today

    def test_update_empty_description(self, tracker: DebtTracker, today: date):
        debt = tracker.add("Loan", Decimal("1000"), today)
        with pytest.raises(ValidationError):
            tracker.update(debt.id, description="")
        assert tracker.get(debt.id).description == "Loan"

    def test_delete(self, tracker: DebtTracker, today: date):
        keep = tracker.add("Keep", Decimal("1"), today)
        drop = tracker.add("Drop", Decimal("1"), today)
        tracker.delete(drop.id)
        assert tracker.debts == [keep]

    @pytest.mark.parametrize("operation", ["toggle_paid", "delete", "status", "update"])
    def test_unknown_id(self, tracker: DebtTracker, operation: str):
        with pytest.raises(ValidationError, match="Unknown debt 404"):
            getattr(tracker, operation)(404)

    def test_publishes_changes(self, tracker: DebtTracker, today: date):
        seen: list[str] = []
        tracker.subscribe(seen.append)
        debt = tracker.add("Loan", Decimal("1"), today)
        tracker.toggle_paid(debt.id)
        tracker.update(debt.id, amount=Decimal("2"))
        tracker.delete(debt.id)
        assert seen == ["debts"] * 4

    def test_ids_skip_loaded_debts(self, today: date):
        existing = Debt(id=500, description="Old", amount=Decimal("1"), due_date=today)
        tracker = DebtTracker([existing], ids=IdGenerator(clock=lambda: 0))
        assert tracker.add("New", Decimal("1"), today).id == 501
