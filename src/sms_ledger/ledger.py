"""Ledger engine: accounts, categories, and the transaction log.

The transaction log is the single source of truth for balances.
:func:`compute_balances` derives every account's current balance from
``(accounts, transactions)`` and nothing else; :class:`Ledger` memoizes
that derivation keyed on a version counter that every mutation bumps, so
no balance is ever stored or maintained by hand.

The only way a transaction enters the log is :meth:`Ledger.commit_transaction`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal

from sms_ledger.errors import IncompleteDataError, ValidationError
from sms_ledger.events import Observable
from sms_ledger.models import (
    TRANSACTION_TYPES,
    Account,
    AccountWithBalance,
    CandidateTransaction,
    Category,
    IdGenerator,
    Transaction,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pure derivations
# ---------------------------------------------------------------------------


def compute_balances(
    accounts: Sequence[Account],
    transactions: Iterable[Transaction],
) -> list[AccountWithBalance]:
    """Derive each account's current balance from the transaction log.

    ``current_balance = initial_balance + sum(income) - sum(expense)``,
    restricted to the account's own transactions. Transactions pointing at
    unknown accounts are ignored here; :meth:`Ledger.integrity_problems`
    reports them.

    Args:
        accounts: Accounts in display order.
        transactions: The full transaction log, in any order.

    Returns:
        One :class:`AccountWithBalance` per account, in the order of
        *accounts*.
    """
    totals: dict[int, Decimal] = {acc.id: Decimal("0") for acc in accounts}
    for txn in transactions:
        if txn.account_id in totals:
            totals[txn.account_id] += txn.signed_amount

    return [
        AccountWithBalance(
            id=acc.id,
            name=acc.name,
            initial_balance=acc.initial_balance,
            current_balance=acc.initial_balance + totals[acc.id],
        )
        for acc in accounts
    ]


def sort_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Order transactions most recent date first.

    Undated transactions sort after every dated one. The sort is stable, so
    transactions sharing a date keep their relative order; since new
    commits are prepended, the most recently committed comes first.
    """
    return sorted(transactions, key=lambda t: t.date or date.min, reverse=True)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class Ledger(Observable):
    """Owns the account set, the category set, and the transaction log.

    Publishes ``"accounts"``, ``"categories"`` or ``"transactions"`` to
    subscribers after each completed mutation.

    Args:
        accounts: Existing accounts, in display order.
        categories: Existing categories, in display order.
        transactions: Existing transaction log.
        ids: Shared id generator. A fresh one is created if omitted.
    """

    def __init__(
        self,
        accounts: Iterable[Account] = (),
        categories: Iterable[Category] = (),
        transactions: Iterable[Transaction] = (),
        ids: IdGenerator | None = None,
    ) -> None:
        super().__init__()
        self._accounts: list[Account] = list(accounts)
        self._categories: list[Category] = list(categories)
        self._transactions: list[Transaction] = sort_transactions(transactions)
        self._ids = ids if ids is not None else IdGenerator()
        self._ids.observe(a.id for a in self._accounts)
        self._ids.observe(c.id for c in self._categories)
        self._ids.observe(t.id for t in self._transactions)
        self._version = 0
        self._balances_cache: tuple[int, list[AccountWithBalance]] | None = None

    # -- Read access --------------------------------------------------------

    @property
    def accounts(self) -> list[Account]:
        return list(self._accounts)

    @property
    def categories(self) -> list[Category]:
        return list(self._categories)

    @property
    def transactions(self) -> list[Transaction]:
        """The visible log, most recent first."""
        return list(self._transactions)

    @property
    def version(self) -> int:
        return self._version

    def get_account(self, account_id: int | None) -> Account | None:
        for acc in self._accounts:
            if acc.id == account_id:
                return acc
        return None

    def get_category(self, category_id: int | None) -> Category | None:
        for cat in self._categories:
            if cat.id == category_id:
                return cat
        return None

    def balances(self) -> list[AccountWithBalance]:
        """Return current balances, recomputed whenever the ledger changed."""
        if self._balances_cache is None or self._balances_cache[0] != self._version:
            self._balances_cache = (
                self._version,
                compute_balances(self._accounts, self._transactions),
            )
        return list(self._balances_cache[1])

    def total_balance(self) -> Decimal:
        return sum((b.current_balance for b in self.balances()), Decimal("0"))

    def integrity_problems(self) -> list[str]:
        """Describe transactions whose account or category does not exist."""
        problems: list[str] = []
        account_ids = {a.id for a in self._accounts}
        category_ids = {c.id for c in self._categories}
        for txn in self._transactions:
            if txn.account_id not in account_ids:
                problems.append(
                    f"Transaction {txn.id} references unknown account {txn.account_id}"
                )
            if txn.category_id not in category_ids:
                problems.append(
                    f"Transaction {txn.id} references unknown category {txn.category_id}"
                )
        return problems

    # -- Accounts and categories ---------------------------------------------

    def add_account(self, name: str, initial_balance: Decimal) -> Account:
        name = name.strip()
        if not name:
            raise ValidationError("Account name must not be empty")
        account = Account(
            id=self._ids.next_id(),
            name=name,
            initial_balance=Decimal(initial_balance),
        )
        self._accounts.append(account)
        self._changed("accounts")
        logger.info("Added account %d (%s)", account.id, account.name)
        return account

    def rename_account(self, account_id: int, name: str) -> Account:
        name = name.strip()
        if not name:
            raise ValidationError("Account name must not be empty")
        for i, acc in enumerate(self._accounts):
            if acc.id == account_id:
                self._accounts[i] = replace(acc, name=name)
                self._changed("accounts")
                return self._accounts[i]
        raise ValidationError(f"Unknown account {account_id}")

    def add_category(self, name: str, icon: str = "other") -> Category:
        name = name.strip()
        self._check_category_name(name)
        category = Category(id=self._ids.next_id(), name=name, icon=icon)
        self._categories.append(category)
        self._changed("categories")
        logger.info("Added category %d (%s)", category.id, category.name)
        return category

    def rename_category(self, category_id: int, name: str) -> Category:
        name = name.strip()
        for i, cat in enumerate(self._categories):
            if cat.id == category_id:
                if cat.name != name:
                    self._check_category_name(name)
                self._categories[i] = replace(cat, name=name)
                self._changed("categories")
                return self._categories[i]
        raise ValidationError(f"Unknown category {category_id}")

    def _check_category_name(self, name: str) -> None:
        if not name:
            raise ValidationError("Category name must not be empty")
        if any(c.name == name for c in self._categories):
            raise ValidationError(f"Category {name!r} already exists")

    # -- Commit ---------------------------------------------------------------

    def commit_transaction(
        self,
        candidate: CandidateTransaction,
        account_id: int | None,
        category_id: int | None,
        notes: str = "",
    ) -> Transaction:
        """Turn a reviewed candidate into a committed transaction.

        Validates the references, assigns a fresh id, prepends the new
        transaction to the log and re-sorts it (date descending, undated
        last, ties in insertion order). Nothing is written if validation
        fails.

        Args:
            candidate: The reviewed parser output.
            account_id: Id of an existing account.
            category_id: Id of an existing category.
            notes: Optional free-text notes.

        Returns:
            The committed :class:`Transaction`.

        Raises:
            ValidationError: If *account_id* or *category_id* is absent or
                unknown.
            IncompleteDataError: If the candidate lacks a positive
                ``amount`` or has no valid ``type``.
        """
        if account_id is None or self.get_account(account_id) is None:
            raise ValidationError(f"Unknown account {account_id}")
        if category_id is None or self.get_category(category_id) is None:
            raise ValidationError(f"Unknown category {category_id}")
        if candidate.amount is None:
            raise IncompleteDataError("Transaction amount is missing")
        if not candidate.amount.is_finite() or candidate.amount <= 0:
            raise IncompleteDataError(
                f"Transaction amount must be a positive number: {candidate.amount}"
            )
        if candidate.type not in TRANSACTION_TYPES:
            raise IncompleteDataError(f"Transaction type is missing or invalid: {candidate.type!r}")

        txn = Transaction(
            id=self._ids.next_id(),
            account_id=account_id,
            amount=candidate.amount,
            type=candidate.type,
            category_id=category_id,
            date=candidate.date,
            time=candidate.time,
            bank=candidate.bank,
            notes=notes or "",
        )
        self._transactions = sort_transactions([txn, *self._transactions])
        self._changed("transactions")
        logger.info(
            "Committed %s of %s to account %d as transaction %d",
            txn.type,
            txn.amount,
            txn.account_id,
            txn.id,
        )
        return txn

    def _changed(self, slot: str) -> None:
        self._version += 1
        self._publish(slot)
