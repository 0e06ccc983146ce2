"""Parsing pipeline: one inbox message from raw text to committed transaction.

States::

    idle --start_parse--> parsing --parser ok--> awaiting-review --commit--> idle
                             |                        |
                             +--parser fails--> failed --abort--> idle
                                                      |
    (abort from parsing or awaiting-review also returns to idle)

The pipeline is single-flight: while a message is parsing, awaiting review,
or failed, ``start_parse`` is rejected with
:class:`~sms_ledger.errors.PipelineBusyError`.

Each ``start_parse`` owns a cancellation token. ``abort`` cancels it, and a
parser response that arrives for a cancelled or superseded token is
dropped, so a slow parser can never resurrect an aborted message.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date
from decimal import Decimal, InvalidOperation

from sms_ledger.errors import (
    IncompleteDataError,
    IncompleteParseError,
    InvalidTransitionError,
    ParseFailure,
    ParserRejectedError,
    PipelineBusyError,
    ValidationError,
)
from sms_ledger.inbox import Inbox
from sms_ledger.ledger import Ledger
from sms_ledger.models import (
    TRANSACTION_TYPES,
    CandidateTransaction,
    InboxMessage,
    Transaction,
)
from sms_ledger.parser import MessageParser

logger = logging.getLogger(__name__)

IDLE = "idle"
PARSING = "parsing"
AWAITING_REVIEW = "awaiting-review"
FAILED = "failed"


class ParseToken:
    """Identifies one ``start_parse`` call; cancelled by ``abort``."""

    def __init__(self, message_id: int) -> None:
        self.message_id = message_id
        self.cancelled = False


class ParsingPipeline:
    """Drives one message at a time through parse, review, and commit.

    Args:
        parser: The external message parser.
        ledger: Ledger that receives the committed transaction.
        inbox: Inbox the message is removed from on commit.
        today: Callable returning the fallback date for undated candidates.
    """

    def __init__(
        self,
        parser: MessageParser,
        ledger: Ledger,
        inbox: Inbox,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._parser = parser
        self._ledger = ledger
        self._inbox = inbox
        self._today = today
        self._state = IDLE
        self._token: ParseToken | None = None
        self._message: InboxMessage | None = None
        self._candidate: CandidateTransaction | None = None
        self._error: str | None = None
        self._error_kind: str | None = None
        self._review_error: str | None = None

    # -- Observable state ----------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def message(self) -> InboxMessage | None:
        """The message in flight, or ``None`` when idle."""
        return self._message

    @property
    def candidate(self) -> CandidateTransaction | None:
        """The candidate awaiting review, or ``None``."""
        return self._candidate

    @property
    def error(self) -> str | None:
        """Human-readable reason for the failed state."""
        return self._error

    @property
    def error_kind(self) -> str | None:
        """``"rejected"`` or ``"incomplete"`` while failed."""
        return self._error_kind

    @property
    def review_error(self) -> str | None:
        """Message from the last rejected commit attempt, if any."""
        return self._review_error

    @property
    def is_busy(self) -> bool:
        return self._state != IDLE

    # -- Transitions ---------------------------------------------------------

    async def start_parse(self, message: InboxMessage) -> str:
        """Parse *message* and move to ``awaiting-review`` or ``failed``.

        Returns:
            The pipeline state once the parser has answered. If the run was
            aborted while parsing, this is whatever state the pipeline is
            in by then (``idle`` or a newer run's state).

        Raises:
            PipelineBusyError: If another message is already in flight.
            ValidationError: If *message* is not in the inbox.
        """
        if self._state != IDLE:
            raise PipelineBusyError(
                f"Message {self._message.id if self._message else '?'} is already being processed"
            )
        if message.id not in self._inbox:
            raise ValidationError(f"Message {message.id} is not in the inbox")

        token = ParseToken(message.id)
        self._token = token
        self._state = PARSING
        self._message = message
        self._candidate = None
        self._error = None
        self._error_kind = None
        self._review_error = None
        logger.info("Parsing message %d from %s", message.id, message.sender)

        failure: ParseFailure | None = None
        candidate: CandidateTransaction | None = None
        try:
            raw = await self._parser.parse(message.text)
            candidate = self._build_candidate(raw)
        except ParseFailure as exc:
            failure = exc
        except asyncio.CancelledError:
            if self._is_current(token):
                self._reset()
            raise
        except Exception as exc:
            logger.exception("Parser raised an unexpected error")
            failure = ParserRejectedError(f"Parser error: {exc}")

        if not self._is_current(token):
            logger.info("Ignoring late parser response for aborted message %d", token.message_id)
            return self._state

        if failure is not None:
            logger.warning(
                "Parsing message %d failed (%s): %s", message.id, failure.kind, failure
            )
            self._state = FAILED
            self._error = str(failure)
            self._error_kind = failure.kind
            return self._state

        self._candidate = candidate
        self._state = AWAITING_REVIEW
        return self._state

    def commit(
        self,
        category_id: int | None,
        account_id: int | None,
        notes: str = "",
    ) -> Transaction:
        """Commit the reviewed candidate and consume its message.

        On success the message leaves the inbox and the pipeline returns
        to ``idle``. If the ledger rejects the commit, the pipeline stays in
        ``awaiting-review`` so the caller can retry with other selections.

        Raises:
            InvalidTransitionError: If nothing is awaiting review.
            ValidationError: If the account or category is unknown.
            IncompleteDataError: If the candidate lacks amount or type.
        """
        if self._state != AWAITING_REVIEW or self._candidate is None or self._message is None:
            raise InvalidTransitionError(f"Cannot commit while {self._state}")

        try:
            txn = self._ledger.commit_transaction(
                self._candidate,
                account_id=account_id,
                category_id=category_id,
                notes=notes,
            )
        except (ValidationError, IncompleteDataError) as exc:
            self._review_error = str(exc)
            logger.warning("Commit of message %d rejected: %s", self._message.id, exc)
            raise

        # The transaction is in the log; the run must end even if removal fails.
        message_id = self._message.id
        try:
            self._inbox.remove(message_id)
        finally:
            self._reset()
        logger.info("Message %d committed as transaction %d", message_id, txn.id)
        return txn

    def abort(self) -> None:
        """Discard the message in flight and return to ``idle``.

        The message stays in the inbox. A parser response still pending
        for it will be ignored. Aborting while idle does nothing.
        """
        if self._state == IDLE:
            return
        if self._message is not None:
            logger.info("Aborted message %d while %s", self._message.id, self._state)
        self._reset()

    # -- Internals -----------------------------------------------------------

    def _is_current(self, token: ParseToken) -> bool:
        return not token.cancelled and self._token is token

    def _reset(self) -> None:
        if self._token is not None:
            self._token.cancelled = True
        self._token = None
        self._state = IDLE
        self._message = None
        self._candidate = None
        self._error = None
        self._error_kind = None
        self._review_error = None

    def _build_candidate(self, raw: object) -> CandidateTransaction:
        """Validate parser output and fill in the fallback date.

        Raises:
            IncompleteParseError: If amount or type is missing or unusable.
        """
        if not isinstance(raw, dict):
            raise IncompleteParseError("Parser returned no transaction data")

        amount = _to_amount(raw.get("amount"))
        if amount is None:
            raise IncompleteParseError("Extracted data is missing the amount")

        txn_type = raw.get("type")
        if isinstance(txn_type, str):
            txn_type = txn_type.strip().lower()
        if txn_type not in TRANSACTION_TYPES:
            raise IncompleteParseError("Extracted data is missing the transaction type")

        return CandidateTransaction(
            amount=amount,
            type=txn_type,
            bank=_to_text(raw.get("bank")),
            date=_to_date(raw.get("date")) or self._today(),
            time=_to_text(raw.get("time")),
        )


def _to_amount(value: object) -> Decimal | None:
    """Coerce a parsed amount to a positive Decimal.

    ``None``, booleans, zero, and non-numeric values count as missing.
    Negative amounts are taken as their magnitude; the type carries the sign.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).replace(",", "").strip())
        if not amount.is_finite() or amount == 0:
            return None
        # "2.5e7" is stored and shown as 25000000, not 2.5E+7
        if amount == amount.to_integral_value():
            amount = amount.quantize(Decimal(1))
    except InvalidOperation:
        return None
    return abs(amount)


def _to_date(value: object) -> date | None:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.warning("Ignoring unparseable date %r", value)
        return None


def _to_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
