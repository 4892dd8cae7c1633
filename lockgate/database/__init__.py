"""Lock record persistence."""

from lockgate.database.models import LockRecordModel
from lockgate.database.repositories import InsertOutcome, LockRecordRepository

__all__ = ["InsertOutcome", "LockRecordModel", "LockRecordRepository"]
