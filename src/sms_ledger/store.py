"""JSON-file persistent store.

Each named slot (``accounts``, ``transactions``, ``categories``, ``debts``,
``inbox``) lives in its own ``<data_dir>/<slot>.json`` file holding a JSON
list of records. Slots are read once at startup and rewritten in full after
every committed change to the collection that owns them.

Reads never fail: a missing, unreadable, or malformed slot falls back to
the caller's default and is logged. Writes go to a temporary file that
replaces the slot file, so a crash mid-write leaves the previous version in
place; a failed write raises :class:`~sms_ledger.errors.PersistenceError`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, TypeVar

from sms_ledger.errors import PersistenceError
from sms_ledger.models import Account, Category, Debt, InboxMessage, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

SLOTS = ("accounts", "transactions", "categories", "debts", "inbox")


# ---------------------------------------------------------------------------
# Record codecs
# ---------------------------------------------------------------------------


def _to_json(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def encode(items: list) -> list[dict]:
    """Convert a list of model dataclasses into JSON-ready dicts."""
    return [{k: _to_json(v) for k, v in asdict(item).items()} for item in items]


def _opt_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _decode_account(rec: dict) -> Account:
    return Account(
        id=int(rec["id"]),
        name=rec["name"],
        initial_balance=Decimal(str(rec["initial_balance"])),
    )


def _decode_transaction(rec: dict) -> Transaction:
    return Transaction(
        id=int(rec["id"]),
        account_id=int(rec["account_id"]),
        amount=Decimal(str(rec["amount"])),
        type=rec["type"],
        category_id=int(rec["category_id"]),
        date=_opt_date(rec.get("date")),
        time=rec.get("time"),
        bank=rec.get("bank"),
        notes=rec.get("notes") or "",
    )


def _decode_category(rec: dict) -> Category:
    return Category(id=int(rec["id"]), name=rec["name"], icon=rec.get("icon", "other"))


def _decode_debt(rec: dict) -> Debt:
    return Debt(
        id=int(rec["id"]),
        description=rec["description"],
        amount=Decimal(str(rec["amount"])),
        due_date=date.fromisoformat(rec["due_date"]),
        is_paid=bool(rec.get("is_paid", False)),
    )


def _decode_message(rec: dict) -> InboxMessage:
    return InboxMessage(id=int(rec["id"]), sender=rec["sender"], text=rec["text"])


DECODERS: dict[str, Callable[[dict], Any]] = {
    "accounts": _decode_account,
    "transactions": _decode_transaction,
    "categories": _decode_category,
    "debts": _decode_debt,
    "inbox": _decode_message,
}


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class JsonStore:
    """Slot-keyed JSON persistence rooted at *data_dir*."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)

    def path_for(self, slot: str) -> Path:
        return self.data_dir / f"{slot}.json"

    def load(self, slot: str, default: list[T]) -> list[T]:
        """Load and decode *slot*, or return *default* if it cannot be read.

        Args:
            slot: One of :data:`SLOTS`.
            default: Value returned when the slot file is missing or bad.

        Returns:
            The decoded model objects.
        """
        path = self.path_for(slot)
        if not path.is_file():
            logger.debug("Slot %s not found, using default", slot)
            return list(default)

        try:
            records = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(records, list):
                raise PersistenceError(slot, "expected a JSON list")
            decode = DECODERS[slot]
            return [decode(rec) for rec in records]
        except PersistenceError as exc:
            logger.warning("Could not load %s: %s", path, exc)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
        except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
            logger.warning("Malformed record in %s: %r", path, exc)
        return list(default)

    def save(self, slot: str, items: list) -> None:
        """Encode *items* and replace the slot file.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        path = self.path_for(slot)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            payload = json.dumps(encode(items), indent=2, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise PersistenceError(slot, f"cannot encode records: {exc}") from exc
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload)
            tmp_path.replace(path)
        except OSError as exc:
            raise PersistenceError(slot, str(exc)) from exc
        logger.debug("Saved %d record(s) to %s", len(items), path)
