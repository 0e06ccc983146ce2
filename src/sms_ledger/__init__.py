"""SMS Ledger: personal finance tracking from bank notification messages."""

__version__ = "0.1.0"
