"""Debt tracker: CRUD over debts plus the derived due-date status."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import date
from decimal import Decimal

from sms_ledger.errors import ValidationError
from sms_ledger.events import Observable
from sms_ledger.models import Debt, DebtStatus, IdGenerator

logger = logging.getLogger(__name__)

OVERDUE = "overdue"
DUE_TODAY = "due-today"
UPCOMING = "upcoming"
PAID = "paid"


def debt_status(due_date: date, is_paid: bool, today: date | None = None) -> DebtStatus:
    """Derive a debt's status from its due date.

    Args:
        due_date: The calendar day the debt is due.
        is_paid: Whether the debt has been paid.
        today: Reference day. Defaults to :meth:`date.today`.

    Returns:
        ``paid`` if paid; otherwise ``upcoming`` with days remaining,
        ``due-today``, or ``overdue`` with days past.
    """
    if is_paid:
        return DebtStatus(PAID)
    if today is None:
        today = date.today()
    diff = (due_date - today).days
    if diff > 0:
        return DebtStatus(UPCOMING, diff)
    if diff == 0:
        return DebtStatus(DUE_TODAY)
    return DebtStatus(OVERDUE, -diff)


class DebtTracker(Observable):
    """Owns the debt list, newest first. Publishes ``"debts"`` on change."""

    def __init__(self, debts: Iterable[Debt] = (), ids: IdGenerator | None = None) -> None:
        super().__init__()
        self._debts: list[Debt] = list(debts)
        self._ids = ids if ids is not None else IdGenerator()
        self._ids.observe(d.id for d in self._debts)

    @property
    def debts(self) -> list[Debt]:
        return list(self._debts)

    def get(self, debt_id: int) -> Debt | None:
        for debt in self._debts:
            if debt.id == debt_id:
                return debt
        return None

    def status(self, debt_id: int, today: date | None = None) -> DebtStatus:
        debt = self._require(debt_id)
        return debt_status(debt.due_date, debt.is_paid, today)

    def add(self, description: str, amount: Decimal, due_date: date) -> Debt:
        description = description.strip()
        if not description:
            raise ValidationError("Debt description must not be empty")
        debt = Debt(
            id=self._ids.next_id(),
            description=description,
            amount=Decimal(amount),
            due_date=due_date,
        )
        self._debts.insert(0, debt)
        self._publish("debts")
        return debt

    def update(
        self,
        debt_id: int,
        description: str | None = None,
        amount: Decimal | None = None,
        due_date: date | None = None,
    ) -> Debt:
        debt = self._require(debt_id)
        changes: dict = {}
        if description is not None:
            if not description.strip():
                raise ValidationError("Debt description must not be empty")
            changes["description"] = description.strip()
        if amount is not None:
            changes["amount"] = Decimal(amount)
        if due_date is not None:
            changes["due_date"] = due_date
        return self._put(replace(debt, **changes))

    def toggle_paid(self, debt_id: int) -> Debt:
        debt = self._require(debt_id)
        updated = self._put(replace(debt, is_paid=not debt.is_paid))
        logger.info("Debt %d marked %s", debt_id, "paid" if updated.is_paid else "unpaid")
        return updated

    def delete(self, debt_id: int) -> None:
        self._require(debt_id)
        self._debts = [d for d in self._debts if d.id != debt_id]
        self._publish("debts")

    def _require(self, debt_id: int) -> Debt:
        debt = self.get(debt_id)
        if debt is None:
            raise ValidationError(f"Unknown debt {debt_id}")
        return debt

    def _put(self, debt: Debt) -> Debt:
        self._debts = [debt if d.id == debt.id else d for d in self._debts]
        self._publish("debts")
        return debt
