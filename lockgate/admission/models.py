"""Data models for the admission workflow."""

from dataclasses import dataclass
from enum import Enum

from lockgate.content_store.models import ContentIdentifier


class AdmissionState(str, Enum):
    """Lifecycle of one admission attempt."""

    RECEIVED = "received"
    VALIDATING = "validating"
    LEDGER_CHECKING = "ledger_checking"
    REUSE_CHECKING = "reuse_checking"
    FRESHNESS_CHECKING = "freshness_checking"
    PROOF_CHECKING = "proof_checking"
    COMMITTING = "committing"
    ADMITTED = "admitted"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class LockPolicy:
    """The single (amount, duration) pair a lock proof must match exactly."""

    amount: int
    lock_duration_blocks: int
    freshness_window_seconds: float = 86_400
    reference_pattern: str = r"^[0-9a-fA-F]{64}$"


@dataclass(frozen=True)
class ExistenceResult:
    """Outcome of an existence check."""

    exists: bool
    identifier: ContentIdentifier
