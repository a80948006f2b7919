"""Home poker night ledger and statistics server."""

__version__ = "1.0.0"
