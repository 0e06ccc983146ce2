"""Composition root: builds the ledger, inbox, debt tracker and pipeline.

:class:`Tracker` loads every store slot once, hands the loaded collections
to their owners, and subscribes a persistence handler that rewrites a slot
after each committed change. In-memory state is authoritative; a failed
write is logged and the process carries on.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from datetime import date

from sms_ledger.debts import DebtTracker
from sms_ledger.errors import PersistenceError
from sms_ledger.inbox import DEFAULT_INBOX, Inbox
from sms_ledger.ledger import Ledger
from sms_ledger.models import Category, IdGenerator
from sms_ledger.parser import MessageParser
from sms_ledger.pipeline import ParsingPipeline
from sms_ledger.store import JsonStore

logger = logging.getLogger(__name__)


class Tracker:
    """Owns every piece of application state for one data directory.

    Args:
        store: Persistent store the slots are loaded from and synced to.
        parser: External message parser used by the pipeline.
        default_categories: Categories used when none have been saved yet.
        today: Callable returning the current date.
        clock: Callable returning the current time in seconds, for ids.
    """

    def __init__(
        self,
        store: JsonStore,
        parser: MessageParser,
        default_categories: Iterable[Category] = (),
        today: Callable[[], date] = date.today,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.today = today
        self.last_persistence_error: PersistenceError | None = None

        ids = IdGenerator(clock=clock)
        self.ledger = Ledger(
            accounts=store.load("accounts", []),
            categories=store.load("categories", list(default_categories)),
            transactions=store.load("transactions", []),
            ids=ids,
        )
        self.inbox = Inbox(store.load("inbox", DEFAULT_INBOX), ids=ids)
        self.debts = DebtTracker(store.load("debts", []), ids=ids)
        self.pipeline = ParsingPipeline(parser, self.ledger, self.inbox, today=today)

        for problem in self.ledger.integrity_problems():
            logger.warning("Integrity problem: %s", problem)

        self.ledger.subscribe(self._sync)
        self.inbox.subscribe(self._sync)
        self.debts.subscribe(self._sync)

    def _collection(self, slot: str) -> list:
        if slot == "accounts":
            return self.ledger.accounts
        if slot == "categories":
            return self.ledger.categories
        if slot == "transactions":
            return self.ledger.transactions
        if slot == "inbox":
            return self.inbox.messages
        if slot == "debts":
            return self.debts.debts
        raise KeyError(slot)

    def _sync(self, slot: str) -> None:
        try:
            self.store.save(slot, self._collection(slot))
        except PersistenceError as exc:
            self.last_persistence_error = exc
            logger.error("Failed to save %s, keeping in-memory state: %s", slot, exc)
