"""Tests for sms_ledger.inbox."""

import random

from sms_ledger.inbox import DEFAULT_INBOX, SAMPLE_MESSAGES, Inbox
from sms_ledger.models import IdGenerator


class TestSamples:
    def test_six_samples_with_fixed_ids(self):
        assert [m.id for m in SAMPLE_MESSAGES] == [1, 2, 3, 4, 5, 6]

    def test_default_inbox_is_first_three(self):
        assert [m.id for m in DEFAULT_INBOX] == [1, 2, 3]


class TestInbox:
    def test_membership_and_lookup(self, inbox: Inbox):
        assert 2 in inbox
        assert 9 not in inbox
        assert inbox.get(2).sender == "Bank Melli"
        assert inbox.get(9) is None
        assert len(inbox) == 3

    def test_add_goes_first(self, inbox: Inbox):
        message = inbox.add("Bank Tejarat", "واریز 100,000 ریال")
        assert inbox.messages[0] == message
        assert message.id not in {1, 2, 3}

    def test_remove(self, inbox: Inbox):
        assert inbox.remove(2) is True
        assert 2 not in inbox
        assert inbox.remove(2) is False

    def test_messages_is_a_copy(self, inbox: Inbox):
        inbox.messages.clear()
        assert len(inbox) == 3

    def test_fetch_sample_picks_unused(self, inbox: Inbox):
        message = inbox.fetch_sample()
        assert message is not None
        assert message.id in {4, 5, 6}
        assert inbox.messages[0] == message

    def test_fetch_sample_exhausted(self):
        inbox = Inbox(SAMPLE_MESSAGES, ids=IdGenerator(clock=lambda: 0))
        assert inbox.fetch_sample() is None
        assert len(inbox) == 6

    def test_fetch_until_exhausted(self):
        inbox = Inbox(rng=random.Random(7))
        fetched = [inbox.fetch_sample() for _ in range(6)]
        assert sorted(m.id for m in fetched) == [1, 2, 3, 4, 5, 6]
        assert inbox.fetch_sample() is None

    def test_publishes_changes(self, inbox: Inbox):
        seen: list[str] = []
        inbox.subscribe(seen.append)
        inbox.add("Bank", "text")
        inbox.fetch_sample()
        inbox.remove(1)
        inbox.remove(1)
        assert seen == ["inbox", "inbox", "inbox"]

    def test_unsubscribe(self, inbox: Inbox):
        seen: list[str] = []
        inbox.subscribe(seen.append)
        inbox.unsubscribe(seen.append)
        inbox.add("Bank", "text")
        assert seen == []

    def test_failing_subscriber_does_not_undo_change(self, inbox: Inbox):
        seen: list[str] = []

        def broken(slot: str) -> None:
            raise RuntimeError("disk on fire")

        inbox.subscribe(broken)
        inbox.subscribe(seen.append)
        message = inbox.add("Bank", "text")

        assert message.id in inbox
        assert seen == ["inbox"]
