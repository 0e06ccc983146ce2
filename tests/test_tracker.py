"""Tests for sms_ledger.tracker — wiring, persistence, and recovery."""

import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from conftest import FakeParser
from sms_ledger.errors import InvalidTransitionError, PersistenceError
from sms_ledger.models import CandidateTransaction, Category
from sms_ledger.pipeline import AWAITING_REVIEW, IDLE
from sms_ledger.store import JsonStore
from sms_ledger.tracker import Tracker


def make_tracker(
    data_dir: Path,
    categories: list[Category],
    today: date,
    parser: FakeParser | None = None,
) -> Tracker:
    return Tracker(
        JsonStore(data_dir),
        parser or FakeParser(),
        default_categories=categories,
        today=lambda: today,
    )


class TestFreshStart:
    def test_defaults(self, tmp_path: Path, categories: list[Category], today: date):
        tracker = make_tracker(tmp_path / "data", categories, today)
        assert tracker.ledger.accounts == []
        assert tracker.ledger.transactions == []
        assert tracker.ledger.categories == categories
        assert [m.id for m in tracker.inbox.messages] == [1, 2, 3]
        assert tracker.debts.debts == []

    def test_nothing_written_until_a_change(
        self, tmp_path: Path, categories: list[Category], today: date
    ):
        make_tracker(tmp_path / "data", categories, today)
        assert not (tmp_path / "data").exists()


class TestPersistence:
    def test_changes_survive_restart(self, tmp_path: Path, categories: list[Category], today: date):
        data_dir = tmp_path / "data"
        tracker = make_tracker(data_dir, categories, today)
        account = tracker.ledger.add_account("Bank Melli", Decimal("1000000"))
        txn = tracker.ledger.commit_transaction(
            CandidateTransaction(Decimal("150000"), "expense", date=today),
            account_id=account.id,
            category_id=2,
        )
        tracker.inbox.remove(1)
        debt = tracker.debts.add("Rent", Decimal("7500000"), today)

        reopened = make_tracker(data_dir, categories, today)
        assert reopened.ledger.accounts == [account]
        assert reopened.ledger.transactions == [txn]
        assert [m.id for m in reopened.inbox.messages] == [2, 3]
        assert reopened.debts.debts == [debt]
        assert reopened.ledger.balances()[0].current_balance == Decimal("850000")

    def test_new_ids_do_not_collide_after_restart(
        self, tmp_path: Path, categories: list[Category], today: date
    ):
        data_dir = tmp_path / "data"
        first = make_tracker(data_dir, categories, today)
        account = first.ledger.add_account("A", Decimal("0"))

        reopened = make_tracker(data_dir, categories, today)
        debt = reopened.debts.add("Loan", Decimal("1"), today)
        assert debt.id > account.id

    @pytest.mark.asyncio
    async def test_pipeline_commit_persists(
        self, tmp_path: Path, categories: list[Category], today: date
    ):
        parser = FakeParser()
        parser.default = {"amount": 25000000, "type": "income"}
        data_dir = tmp_path / "data"
        tracker = make_tracker(data_dir, categories, today, parser)
        account = tracker.ledger.add_account("Bank Melli", Decimal("0"))

        assert await tracker.pipeline.start_parse(tracker.inbox.get(2)) == AWAITING_REVIEW
        tracker.pipeline.commit(category_id=1, account_id=account.id)

        saved = json.loads((data_dir / "transactions.json").read_text(encoding="utf-8"))
        assert saved[0]["amount"] == "25000000"
        assert saved[0]["date"] == today.isoformat()
        inbox = json.loads((data_dir / "inbox.json").read_text(encoding="utf-8"))
        assert [m["id"] for m in inbox] == [1, 3]


class TestFailures:
    def test_failed_write_keeps_memory_state(
        self, tmp_path: Path, categories: list[Category], today: date, caplog
    ):
        blocker = tmp_path / "blocked"
        blocker.write_text("x")
        tracker = make_tracker(blocker, categories, today)

        with caplog.at_level(logging.ERROR, logger="sms_ledger.tracker"):
            account = tracker.ledger.add_account("A", Decimal("5"))

        assert tracker.ledger.accounts == [account]
        assert isinstance(tracker.last_persistence_error, PersistenceError)
        assert tracker.last_persistence_error.slot == "accounts"
        assert "Failed to save accounts" in caplog.text

    def test_integrity_problems_logged_on_load(
        self, tmp_path: Path, categories: list[Category], today: date, caplog
    ):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        orphan = {
            "id": 9,
            "account_id": 77,
            "amount": "10",
            "type": "expense",
            "category_id": 1,
            "date": "2024-07-01",
        }
        (data_dir / "transactions.json").write_text(json.dumps([orphan]), encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="sms_ledger.tracker"):
            tracker = make_tracker(data_dir, categories, today)

        assert len(tracker.ledger.transactions) == 1
        assert "unknown account 77" in caplog.text

    @pytest.mark.asyncio
    async def test_unencodable_notes_commit_once(
        self, tmp_path: Path, categories: list[Category], today: date
    ):
        """A slot that cannot be written still ends the run with one transaction."""
        parser = FakeParser()
        parser.default = {"amount": 550000, "type": "expense"}
        tracker = make_tracker(tmp_path / "data", categories, today, parser)
        account = tracker.ledger.add_account("Bank Mellat", Decimal("1000000"))

        await tracker.pipeline.start_parse(tracker.inbox.get(1))
        txn = tracker.pipeline.commit(2, account.id, notes="lunch \udcff")

        assert tracker.ledger.transactions == [txn]
        assert 1 not in tracker.inbox
        assert tracker.pipeline.state == IDLE
        assert tracker.last_persistence_error.slot == "transactions"
        with pytest.raises(InvalidTransitionError):
            tracker.pipeline.commit(2, account.id)
        assert len(tracker.ledger.transactions) == 1

    def test_unencodable_message_text(
        self, tmp_path: Path, categories: list[Category], today: date
    ):
        tracker = make_tracker(tmp_path / "data", categories, today)
        message = tracker.inbox.add("Bank", "bad \udcff byte")

        assert message.id in tracker.inbox
        assert tracker.last_persistence_error.slot == "inbox"
