"""Core data models for SMS Ledger.

This module defines the dataclasses shared by the ledger, the parsing
pipeline, the debt tracker, and the store. It has zero internal imports --
everything depends on it, but it depends on nothing within the package.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)


class IdGenerator:
    """Hands out unique, strictly increasing integer ids.

    Ids are derived from the wall clock in milliseconds, but never fall
    behind the last id issued or observed: ``max(now_ms, last + 1)``.  Two
    ids requested within the same millisecond therefore still differ, and
    ids always increase in creation order.

    Args:
        start: The largest id already in use. Default: 0.
        clock: Callable returning the current time in seconds.
    """

    def __init__(self, start: int = 0, clock: Callable[[], float] = time.time) -> None:
        self._last = start
        self._clock = clock

    @property
    def last(self) -> int:
        return self._last

    def next_id(self) -> int:
        self._last = max(int(self._clock() * 1000), self._last + 1)
        return self._last

    def observe(self, ids: Iterable[int]) -> None:
        """Advance past every id in *ids* so they are never handed out again."""
        for used in ids:
            if used > self._last:
                self._last = used


@dataclass(frozen=True)
class Account:
    """A bank account the ledger measures transactions against.

    Attributes:
        id: Unique account id.
        name: Display name, e.g. "Bank Melli".
        initial_balance: Signed opening balance.
    """

    id: int
    name: str
    initial_balance: Decimal


@dataclass(frozen=True)
class AccountWithBalance:
    """An :class:`Account` plus its derived balance. Never persisted."""

    id: int
    name: str
    initial_balance: Decimal
    current_balance: Decimal


@dataclass(frozen=True)
class Category:
    """A flat transaction category.

    Attributes:
        id: Unique category id.
        name: Display name; unique across categories.
        icon: Icon reference understood by the presentation layer.
    """

    id: int
    name: str
    icon: str = "other"


@dataclass(frozen=True)
class CandidateTransaction:
    """The parser's structured guess for one message, before review.

    ``amount`` and ``type`` may be ``None`` only while the candidate is
    being validated; a candidate held by the pipeline for review always
    has both.
    """

    amount: Decimal | None
    type: str | None
    bank: str | None = None
    date: date | None = None
    time: str | None = None


@dataclass(frozen=True)
class Transaction:
    """A committed ledger entry. Immutable once created.

    Attributes:
        id: Unique id, increasing with commit order.
        account_id: Id of the account the money moved in or out of.
        amount: Non-negative amount.
        type: ``"income"`` or ``"expense"``.
        category_id: Id of the assigned category.
        date: Transaction date, or ``None`` if unknown.
        time: Time of day as ``"HH:MM"``, or ``None``.
        bank: Free-text source label, e.g. the sending bank.
        notes: Optional user notes.
    """

    id: int
    account_id: int
    amount: Decimal
    type: str
    category_id: int
    date: date | None = None
    time: str | None = None
    bank: str | None = None
    notes: str = ""

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == INCOME else -self.amount


@dataclass(frozen=True)
class InboxMessage:
    """A raw bank notification waiting to be turned into a transaction."""

    id: int
    sender: str
    text: str


@dataclass(frozen=True)
class Debt:
    """A debt or installment with a due date.

    Its status (overdue, due today, upcoming, paid) is derived from
    ``due_date`` and ``is_paid`` by :func:`sms_ledger.debts.debt_status`
    and never stored.
    """

    id: int
    description: str
    amount: Decimal
    due_date: date
    is_paid: bool = False


@dataclass(frozen=True)
class DebtStatus:
    """Derived debt status.

    Attributes:
        kind: One of ``"overdue"``, ``"due-today"``, ``"upcoming"``, ``"paid"``.
        days: Days past due for ``"overdue"``, days remaining for
            ``"upcoming"``, 0 otherwise.
    """

    kind: str
    days: int = 0


@dataclass
class AppConfig:
    """Top-level application configuration loaded from config.toml.

    Attributes:
        data_dir: Directory holding one JSON file per store slot,
            relative to the project root. Default: "data".
        parser_provider: External parser name. "anthropic" or "none".
        parser_model: Model identifier for the parser.
        parser_api_key_env: Name of the environment variable containing
            the parser API key.
        parser_timeout: HTTP timeout in seconds for one parse request.
        categories: Default categories used until the categories slot
            has been saved once.
    """

    data_dir: str = "data"
    parser_provider: str = "anthropic"
    parser_model: str = "claude-sonnet-4-20250514"
    parser_api_key_env: str = "ANTHROPIC_API_KEY"
    parser_timeout: float = 30.0
    categories: list[Category] = field(default_factory=list)
