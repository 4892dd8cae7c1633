"""Client for the ledger explorer API."""

from lockgate.ledger.client import (
    LedgerClient,
    LedgerUnavailableError,
    TransactionNotFoundError,
)
from lockgate.ledger.models import LedgerTransaction, TimelockInfo, TransactionOutput

__all__ = [
    "LedgerClient",
    "LedgerTransaction",
    "LedgerUnavailableError",
    "TimelockInfo",
    "TransactionNotFoundError",
    "TransactionOutput",
]
