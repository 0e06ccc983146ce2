"""Inbox of raw bank messages awaiting conversion.

A message leaves the inbox exactly once: when the transaction derived from
it is committed. Failed or aborted parses leave it untouched for retry.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable

from sms_ledger.events import Observable
from sms_ledger.models import IdGenerator, InboxMessage

logger = logging.getLogger(__name__)

# Built-in sample notifications, used to seed a fresh inbox and by
# ``ledger inbox fetch``.
SAMPLE_MESSAGES: list[InboxMessage] = [
    InboxMessage(
        id=1,
        sender="Bank Mellat",
        text="برداشت\nمبلغ: 550,000 ریال\nاز: ...6037\nمانده: 12,340,000 ریال\nتاریخ: 1403/05/01 18:45",
    ),
    InboxMessage(
        id=2,
        sender="Bank Melli",
        text="واریز مبلغ 25,000,000 ریال به حساب ...1234 در تاریخ 1403/05/02 با موفقیت انجام شد.",
    ),
    InboxMessage(
        id=3,
        sender="Blubank",
        text="خرید با کارت\nمبلغ: 1,200,000 ریال\nفروشگاه افق کوروش\nمانده: 4,500,000 ریال\n1403/05/03 - 11:20",
    ),
    InboxMessage(
        id=4,
        sender="Bank Pasargad",
        text="برداشت از کارت\nمبلغ: 2,000,000 ریال\nمانده حساب: 8,750,000 ریال\n1403/05/04 09:00",
    ),
    InboxMessage(
        id=5,
        sender="Saman Bank",
        text="تراکنش کارت\nبرداشت: 350,000 ریال\nمانده: 2,150,000 ریال\nبابت خرید از اسنپ فود",
    ),
    InboxMessage(
        id=6,
        sender="Bank Ayandeh",
        text="انتقال پایا\nمبلغ: 7,500,000 ریال\nاز حساب ...5678\nبه دلیل: اجاره ماهانه\nتاریخ: 1403/05/06 10:00",
    ),
]

DEFAULT_INBOX = SAMPLE_MESSAGES[:3]


class Inbox(Observable):
    """Ordered collection of :class:`InboxMessage`, newest first.

    Publishes ``"inbox"`` after every change.
    """

    def __init__(
        self,
        messages: Iterable[InboxMessage] = (),
        ids: IdGenerator | None = None,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__()
        self._messages: list[InboxMessage] = list(messages)
        self._ids = ids if ids is not None else IdGenerator()
        self._ids.observe(m.id for m in self._messages)
        self._rng = rng or random.Random()

    @property
    def messages(self) -> list[InboxMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return any(m.id == message_id for m in self._messages)

    def get(self, message_id: int) -> InboxMessage | None:
        for msg in self._messages:
            if msg.id == message_id:
                return msg
        return None

    def add(self, sender: str, text: str) -> InboxMessage:
        message = InboxMessage(id=self._ids.next_id(), sender=sender, text=text)
        self._messages.insert(0, message)
        self._publish("inbox")
        return message

    def fetch_sample(self) -> InboxMessage | None:
        """Add a random sample message not already present.

        Returns:
            The added message, or ``None`` when every sample is already in
            the inbox.
        """
        unused = [s for s in SAMPLE_MESSAGES if s.id not in self]
        if not unused:
            logger.info("No unused sample messages left")
            return None
        message = self._rng.choice(unused)
        self._messages.insert(0, message)
        self._publish("inbox")
        return message

    def remove(self, message_id: int) -> bool:
        """Remove a message. Returns ``False`` if it was not present."""
        before = len(self._messages)
        self._messages = [m for m in self._messages if m.id != message_id]
        if len(self._messages) == before:
            return False
        self._publish("inbox")
        return True
