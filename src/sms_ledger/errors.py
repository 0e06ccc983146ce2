"""Exception hierarchy for SMS Ledger.

Every error the core raises derives from :class:`LedgerError` so callers
(the CLI, mostly) can report any of them without a traceback.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base exception for SMS Ledger errors."""


class ParseFailure(LedgerError):
    """The external parser could not produce a usable candidate.

    Recoverable by the user retrying; the message stays in the inbox.
    """

    kind = "parse-failure"


class ParserRejectedError(ParseFailure):
    """The parser call itself failed (network, HTTP, timeout, bad response)."""

    kind = "rejected"


class IncompleteParseError(ParseFailure):
    """The parser answered, but without a usable ``amount`` or ``type``."""

    kind = "incomplete"


class ValidationError(LedgerError):
    """A commit referenced a missing or unknown account or category,
    or a create/rename broke a uniqueness rule."""


class IncompleteDataError(LedgerError):
    """A candidate reached commit without ``amount`` or ``type``."""


class PersistenceError(LedgerError):
    """A store read or write failed. In-memory state stays authoritative."""

    def __init__(self, slot: str, message: str):
        self.slot = slot
        super().__init__(f"{slot}: {message}")


class PipelineBusyError(LedgerError):
    """A parse was requested while another message is still in flight."""


class InvalidTransitionError(LedgerError):
    """A pipeline operation is not allowed in the current state."""
