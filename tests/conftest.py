"""Shared pytest fixtures for SMS Ledger tests.

Provides reusable fixtures for:
- today: A fixed reference date so date defaults and debt status are stable.
- categories / account_a: The default category set and one funded account.
- ledger / inbox: Ledger and inbox instances wired to a deterministic id
  generator.
- fake_parser: A scriptable stand-in for the external message parser.
- project_dir: A temporary initialized project for store and CLI tests.
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from sms_ledger.config import initialize, load_categories
from sms_ledger.inbox import DEFAULT_INBOX, Inbox
from sms_ledger.ledger import Ledger
from sms_ledger.models import Account, Category, IdGenerator
from sms_ledger.pipeline import ParsingPipeline

TODAY = date(2024, 7, 23)


class FakeParser:
    """Scriptable message parser.

    - ``responses`` maps message text to the dict returned for it;
      ``default`` is returned for any other text.
    - ``error`` is raised instead of answering, when set.
    - ``gates`` maps message text to an :class:`asyncio.Event` the parse
      waits on before answering, to simulate a slow parser.
    """

    def __init__(self) -> None:
        self.responses: dict[str, dict] = {}
        self.default: dict | None = None
        self.error: Exception | None = None
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []

    async def parse(self, text: str) -> dict:
        self.calls.append(text)
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return self.responses.get(text, self.default)


@pytest.fixture
def today() -> date:
    """Fixed reference date (1403/05/02 in the Solar Hijri calendar)."""
    return TODAY


@pytest.fixture
def ids() -> IdGenerator:
    """Id generator with a frozen clock: ids are simply last + 1."""
    return IdGenerator(clock=lambda: 0)


@pytest.fixture
def categories() -> list[Category]:
    """The six default categories, ids 1-6, "حقوق" (salary) first."""
    return [
        Category(id=1, name="حقوق", icon="salary"),
        Category(id=2, name="خواروبار", icon="groceries"),
        Category(id=3, name="حمل و نقل", icon="transport"),
        Category(id=4, name="قبوض", icon="bills"),
        Category(id=5, name="سرگرمی", icon="entertainment"),
        Category(id=6, name="متفرقه", icon="other"),
    ]


@pytest.fixture
def account_a() -> Account:
    """Account A with an initial balance of 1,000,000."""
    return Account(id=100, name="Bank Melli", initial_balance=Decimal("1000000"))


@pytest.fixture
def ledger(account_a: Account, categories: list[Category], ids: IdGenerator) -> Ledger:
    return Ledger(accounts=[account_a], categories=categories, ids=ids)


@pytest.fixture
def inbox(ids: IdGenerator) -> Inbox:
    """Inbox seeded with the first three sample messages (ids 1-3)."""
    return Inbox(DEFAULT_INBOX, ids=ids)


@pytest.fixture
def fake_parser() -> FakeParser:
    return FakeParser()


@pytest.fixture
def pipeline(fake_parser: FakeParser, ledger: Ledger, inbox: Inbox, today: date) -> ParsingPipeline:
    return ParsingPipeline(fake_parser, ledger, inbox, today=lambda: today)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A temporary directory initialized with default config files."""
    project = tmp_path / "ledger-project"
    initialize(project)
    return project


@pytest.fixture
def default_categories(project_dir: Path) -> list[Category]:
    return load_categories(project_dir)
