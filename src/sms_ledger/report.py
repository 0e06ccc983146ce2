"""Plain-text dashboard and list printers.

- :func:`print_dashboard` prints total and per-account balances, the most
  recent transactions, and unpaid debts with their derived status.
- :func:`print_transactions` prints the transaction log, most recent first.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sms_ledger.debts import DUE_TODAY, OVERDUE, PAID, UPCOMING, debt_status
from sms_ledger.models import (
    INCOME,
    AccountWithBalance,
    Category,
    Debt,
    DebtStatus,
    Transaction,
)

RECENT_LIMIT = 5


def format_amount(amount: Decimal) -> str:
    """Format a rial amount with thousands separators, e.g. ``1,200,000``."""
    return f"{amount:,f}"


def format_status(status: DebtStatus) -> str:
    if status.kind == PAID:
        return "paid"
    if status.kind == DUE_TODAY:
        return "due today!"
    if status.kind == UPCOMING:
        return f"{status.days} day(s) left"
    if status.kind == OVERDUE:
        return f"{status.days} day(s) overdue"
    return status.kind


def format_transaction(txn: Transaction, categories: dict[int, Category]) -> str:
    sign = "+" if txn.type == INCOME else "-"
    when = txn.date.isoformat() if txn.date else "(no date)"
    if txn.time:
        when = f"{when} {txn.time}"
    category = categories.get(txn.category_id)
    cat_name = category.name if category else f"#{txn.category_id}"
    line = f"[{txn.id}] {when:<16} {sign}{format_amount(txn.amount):>14}  {cat_name}"
    if txn.bank:
        line += f"  ({txn.bank})"
    if txn.notes:
        line += f"  -- {txn.notes}"
    return line


def print_transactions(
    transactions: list[Transaction],
    categories: list[Category],
    limit: int | None = None,
) -> None:
    """Print *transactions* in the order given, one per line."""
    by_id = {c.id: c for c in categories}
    shown = transactions if limit is None else transactions[:limit]
    if not shown:
        print("No transactions yet.")
        return
    for txn in shown:
        print(f"  {format_transaction(txn, by_id)}")


def print_dashboard(
    balances: list[AccountWithBalance],
    transactions: list[Transaction],
    categories: list[Category],
    debts: list[Debt],
    today: date | None = None,
) -> None:
    """Print the dashboard summary to stdout.

    Args:
        balances: Derived balances from the ledger.
        transactions: The visible log, most recent first.
        categories: Known categories, for naming transactions.
        debts: All debts; only unpaid ones are listed.
        today: Reference day for debt status.
    """
    total = sum((b.current_balance for b in balances), Decimal("0"))

    print()
    print("== Dashboard ==")
    print(f"Total balance: {format_amount(total)} rials")

    print()
    print("Accounts:")
    if not balances:
        print("  (none) -- add one with 'ledger account add'")
    for acc in balances:
        print(f"  [{acc.id}] {acc.name:<25} {format_amount(acc.current_balance):>16}")

    print()
    print("Recent transactions:")
    print_transactions(transactions, categories, limit=RECENT_LIMIT)

    open_debts = [d for d in debts if not d.is_paid]
    if open_debts:
        print()
        print("Open debts:")
        for debt in sorted(open_debts, key=lambda d: d.due_date):
            status = debt_status(debt.due_date, debt.is_paid, today)
            print(
                f"  [{debt.id}] {debt.description:<25} "
                f"{format_amount(debt.amount):>14}  due {debt.due_date.isoformat()} "
                f"({format_status(status)})"
            )

    print()
