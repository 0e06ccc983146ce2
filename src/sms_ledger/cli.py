"""Click CLI entry point for the ledger command.

Handles argument parsing, config loading, and error display. All business
logic is delegated to ``tracker``, ``ledger``, ``pipeline``, ``debts``, and
``report`` modules.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import NoReturn

import click

from sms_ledger import __version__
from sms_ledger.errors import LedgerError, ValidationError
from sms_ledger.models import AppConfig
from sms_ledger.parser import AnthropicParser, MessageParser, NullParser
from sms_ledger.pipeline import FAILED

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _parse_amount(value: str) -> Decimal:
    """Parse a user-entered amount such as ``1,200,000``."""
    try:
        amount = Decimal(value.replace(",", "").strip())
    except InvalidOperation:
        raise click.BadParameter(f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise click.BadParameter(f"Invalid amount: {value!r}")
    if amount == amount.to_integral_value():
        try:
            amount = amount.quantize(Decimal(1))
        except InvalidOperation:
            raise click.BadParameter(f"Amount too large: {value!r}") from None
    return amount


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(
            f"Invalid date: {value!r}. Expected YYYY-MM-DD (e.g. 2026-01-31)."
        ) from None


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _load_config() -> AppConfig:
    from sms_ledger.config import load_config

    try:
        return load_config(Path.cwd())
    except FileNotFoundError as exc:
        _fail(f"{exc}. Run 'ledger init' to create the project structure.")
    except Exception as exc:
        _fail(f"Could not load configuration: {exc}")


def _make_parser(config: AppConfig, no_llm: bool = False) -> MessageParser:
    """Select the message parser configured for this project."""
    if no_llm or config.parser_provider == "none":
        return NullParser()
    return AnthropicParser(
        model=config.parser_model,
        api_key_env=config.parser_api_key_env,
        timeout=config.parser_timeout,
    )


def _open_tracker(no_llm: bool = False):
    from sms_ledger.store import JsonStore
    from sms_ledger.tracker import Tracker

    config = _load_config()
    store = JsonStore(Path.cwd() / config.data_dir)
    return Tracker(
        store=store,
        parser=_make_parser(config, no_llm),
        default_categories=config.categories,
    )


# ---------------------------------------------------------------------------
# Top-level group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="sms-ledger")
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def cli(verbose: bool, debug: bool) -> None:
    """Personal finance ledger fed by bank notification messages."""
    _configure_logging(verbose, debug)


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
@click.option("--data-dir", default="data", help="Data directory, relative to --dir.")
def init(target_dir: str, data_dir: str) -> None:
    """Initialize a new ledger project with default config files."""
    from sms_ledger.config import initialize

    target = Path(target_dir).resolve()

    try:
        initialize(target, data_dir=data_dir)
    except Exception as exc:
        _fail(f"Could not initialize project: {exc}")

    click.echo(f"Initialized ledger project in {target}")


@cli.command()
def dashboard() -> None:
    """Show balances, recent transactions, and open debts."""
    from sms_ledger.report import print_dashboard

    tracker = _open_tracker()
    print_dashboard(
        balances=tracker.ledger.balances(),
        transactions=tracker.ledger.transactions,
        categories=tracker.ledger.categories,
        debts=tracker.debts.debts,
        today=tracker.today(),
    )


@cli.command()
@click.option("--limit", type=int, default=None, help="Show at most this many.")
def transactions(limit: int | None) -> None:
    """List transactions, most recent first."""
    from sms_ledger.report import print_transactions

    tracker = _open_tracker()
    print_transactions(tracker.ledger.transactions, tracker.ledger.categories, limit=limit)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@cli.group()
def account() -> None:
    """Manage bank accounts."""


@account.command("add")
@click.argument("name")
@click.option("--initial-balance", required=True, help="Opening balance in rials.")
def account_add(name: str, initial_balance: str) -> None:
    """Add a bank account."""
    try:
        balance = _parse_amount(initial_balance)
    except click.BadParameter as exc:
        _fail(exc.format_message())
    tracker = _open_tracker()
    try:
        acc = tracker.ledger.add_account(name, balance)
    except LedgerError as exc:
        _fail(str(exc))
    click.echo(f"Added account [{acc.id}] {acc.name}")


@account.command("list")
def account_list() -> None:
    """List accounts with their current balances."""
    from sms_ledger.report import format_amount

    tracker = _open_tracker()
    balances = tracker.ledger.balances()
    if not balances:
        click.echo("No accounts yet. Add one with 'ledger account add'.")
        return
    for acc in balances:
        click.echo(
            f"[{acc.id}] {acc.name:<25} initial {format_amount(acc.initial_balance):>14}"
            f"  current {format_amount(acc.current_balance):>14}"
        )


@account.command("rename")
@click.argument("account_id", type=int)
@click.argument("name")
def account_rename(account_id: int, name: str) -> None:
    """Rename an account."""
    tracker = _open_tracker()
    try:
        acc = tracker.ledger.rename_account(account_id, name)
    except LedgerError as exc:
        _fail(str(exc))
    click.echo(f"Renamed account [{acc.id}] to {acc.name}")


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@cli.group()
def category() -> None:
    """Manage transaction categories."""


@category.command("add")
@click.argument("name")
@click.option("--icon", default="other", help="Icon reference.")
def category_add(name: str, icon: str) -> None:
    """Add a category. Names must be unique."""
    tracker = _open_tracker()
    try:
        cat = tracker.ledger.add_category(name, icon=icon)
    except LedgerError as exc:
        _fail(str(exc))
    click.echo(f"Added category [{cat.id}] {cat.name}")


@category.command("list")
def category_list() -> None:
    """List categories."""
    tracker = _open_tracker()
    for cat in tracker.ledger.categories:
        click.echo(f"[{cat.id}] {cat.name} ({cat.icon})")


@category.command("rename")
@click.argument("category_id", type=int)
@click.argument("name")
def category_rename(category_id: int, name: str) -> None:
    """Rename a category."""
    tracker = _open_tracker()
    try:
        cat = tracker.ledger.rename_category(category_id, name)
    except LedgerError as exc:
        _fail(str(exc))
    click.echo(f"Renamed category [{cat.id}] to {cat.name}")


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


@cli.group()
def inbox() -> None:
    """Bank messages waiting to be recorded."""


@inbox.command("list")
def inbox_list() -> None:
    """List messages in the inbox."""
    tracker = _open_tracker()
    messages = tracker.inbox.messages
    if not messages:
        click.echo("Your inbox is empty.")
        return
    for msg in messages:
        click.echo(f"[{msg.id}] From: {msg.sender}")
        for line in msg.text.splitlines():
            click.echo(f"    {line}")


@inbox.command("add")
@click.option("--sender", required=True, help="Message sender, e.g. the bank.")
@click.option("--text", required=True, help="Raw message text.")
def inbox_add(sender: str, text: str) -> None:
    """Add a message to the inbox."""
    tracker = _open_tracker()
    msg = tracker.inbox.add(sender, text)
    click.echo(f"Added message [{msg.id}] from {msg.sender}")


@inbox.command("fetch")
def inbox_fetch() -> None:
    """Receive a new sample bank message."""
    tracker = _open_tracker()
    msg = tracker.inbox.fetch_sample()
    if msg is None:
        click.echo("No new messages to show.")
        return
    click.echo(f"New message [{msg.id}] from {msg.sender}")


@inbox.command("process")
@click.argument("message_id", type=int)
@click.option("--account", "account_id", type=int, default=None, help="Account id.")
@click.option("--category", "category_id", type=int, default=None, help="Category id.")
@click.option("--notes", default="", help="Notes to attach.")
@click.option("--yes", is_flag=True, default=False, help="Commit without asking.")
@click.option("--no-llm", is_flag=True, default=False, help="Disable the message parser.")
def inbox_process(
    message_id: int,
    account_id: int | None,
    category_id: int | None,
    notes: str,
    yes: bool,
    no_llm: bool,
) -> None:
    """Parse a message, review the result, and record it as a transaction."""
    from sms_ledger.report import format_amount

    tracker = _open_tracker(no_llm=no_llm)
    pipeline = tracker.pipeline

    message = tracker.inbox.get(message_id)
    if message is None:
        _fail(f"Message {message_id} is not in the inbox")

    try:
        state = asyncio.run(pipeline.start_parse(message))
    except LedgerError as exc:
        _fail(str(exc))

    if state == FAILED:
        reason = pipeline.error
        pipeline.abort()
        _fail(f"Parsing failed: {reason}. The message was kept in the inbox.")

    candidate = pipeline.candidate
    click.echo(f"Amount: {format_amount(candidate.amount)}")
    click.echo(f"Type:   {candidate.type}")
    click.echo(f"Bank:   {candidate.bank or '-'}")
    click.echo(f"Date:   {candidate.date.isoformat() if candidate.date else '-'}")
    click.echo(f"Time:   {candidate.time or '-'}")

    if not yes:
        if account_id is None:
            account_id = click.prompt("Account id", type=int)
        if category_id is None:
            category_id = click.prompt("Category id", type=int)
        if not click.confirm("Save this transaction?", default=True):
            pipeline.abort()
            click.echo("Discarded. The message was kept in the inbox.")
            return

    while True:
        try:
            txn = pipeline.commit(category_id=category_id, account_id=account_id, notes=notes)
            break
        except ValidationError as exc:
            if yes or not click.confirm(
                f"{exc}. Choose a different account/category?", default=True
            ):
                pipeline.abort()
                _fail(str(exc))
            account_id = click.prompt("Account id", type=int)
            category_id = click.prompt("Category id", type=int)
        except LedgerError as exc:
            pipeline.abort()
            _fail(str(exc))

    click.echo(f"Saved transaction [{txn.id}]")


# ---------------------------------------------------------------------------
# Debts
# ---------------------------------------------------------------------------


@cli.group()
def debt() -> None:
    """Track debts and installments."""


@debt.command("add")
@click.argument("description")
@click.option("--amount", required=True, help="Amount in rials.")
@click.option("--due", "due", required=True, help="Due date as YYYY-MM-DD.")
def debt_add(description: str, amount: str, due: str) -> None:
    """Add a debt."""
    try:
        value = _parse_amount(amount)
        due_date = _parse_date(due)
    except click.BadParameter as exc:
        _fail(exc.format_message())
    tracker = _open_tracker()
    try:
        item = tracker.debts.add(description, value, due_date)
    except LedgerError as exc:
        _fail(str(exc))
    click.echo(f"Added debt [{item.id}] {item.description}")


@debt.command("list")
def debt_list() -> None:
    """List debts with their status."""
    from sms_ledger.debts import debt_status
    from sms_ledger.report import format_amount, format_status

    tracker = _open_tracker()
    items = tracker.debts.debts
    if not items:
        click.echo("No debts recorded.")
        return
    today = tracker.today()
    for item in items:
        status = debt_status(item.due_date, item.is_paid, today)
        click.echo(
            f"[{item.id}] {item.description:<25} {format_amount(item.amount):>14}"
            f"  due {item.due_date.isoformat()}  {format_status(status)}"
        )


@debt.command("toggle")
@click.argument("debt_id", type=int)
def debt_toggle(debt_id: int) -> None:
    """Mark a debt paid, or unpaid again."""
    tracker = _open_tracker()
    try:
        item = tracker.debts.toggle_paid(debt_id)
    except LedgerError as exc:
        _fail(str(exc))
    click.echo(f"Debt [{item.id}] is now {'paid' if item.is_paid else 'unpaid'}")


@debt.command("update")
@click.argument("debt_id", type=int)
@click.option("--description", default=None, help="New description.")
@click.option("--amount", default=None, help="New amount in rials.")
@click.option("--due", default=None, help="New due date as YYYY-MM-DD.")
def debt_update(
    debt_id: int, description: str | None, amount: str | None, due: str | None
) -> None:
    """Change a debt's description, amount, or due date."""
    try:
        value = _parse_amount(amount) if amount is not None else None
        due_date = _parse_date(due) if due is not None else None
    except click.BadParameter as exc:
        _fail(exc.format_message())
    tracker = _open_tracker()
    try:
        item = tracker.debts.update(
            debt_id, description=description, amount=value, due_date=due_date
        )
    except LedgerError as exc:
        _fail(str(exc))
    click.echo(f"Updated debt [{item.id}]")


@debt.command("delete")
@click.argument("debt_id", type=int)
def debt_delete(debt_id: int) -> None:
    """Delete a debt."""
    tracker = _open_tracker()
    try:
        tracker.debts.delete(debt_id)
    except LedgerError as exc:
        _fail(str(exc))
    click.echo(f"Deleted debt [{debt_id}]")
