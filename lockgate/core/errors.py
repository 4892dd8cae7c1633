"""Rejection and failure taxonomy for admission requests.

Every error carries the HTTP status it maps to, a stable reason code that
clients can branch on, a human readable message and optional context. The
error middleware renders all of them through the same JSON contract.
"""

from typing import Any

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)


class AdmissionError(Exception):
    """Base class for every expected admission outcome other than success."""

    status_code: int = HTTP_400_BAD_REQUEST
    reason_code: str = "AdmissionError"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Render the structured error body."""
        return {
            "statusCode": self.status_code,
            "reasonCode": self.reason_code,
            "message": self.message,
            "context": self.context,
        }


class BadRequest(AdmissionError):
    """Missing or malformed input. The client must fix it and resend."""

    reason_code = "BadRequest"


class FileTooLarge(AdmissionError):
    """Upload exceeded the configured size cap."""

    status_code = 413
    reason_code = "FileTooLarge"


class DuplicateContent(AdmissionError):
    """Content with this fingerprint is already pinned."""

    reason_code = "DuplicateContent"


class TransactionNotFound(AdmissionError):
    """The ledger has no transaction for this reference."""

    reason_code = "TransactionNotFound"


class TransactionAlreadyUsed(AdmissionError):
    """The reference is already bound to admitted content."""

    reason_code = "TransactionAlreadyUsed"


class TransactionExpired(AdmissionError):
    """The transaction is older than the freshness window."""

    reason_code = "TransactionExpired"


class InvalidLockProof(AdmissionError):
    """No output matches the required amount and lock duration."""

    reason_code = "InvalidLockProof"


class RecordNotFound(AdmissionError):
    status_code = HTTP_404_NOT_FOUND
    reason_code = "RecordNotFound"


class LedgerUnavailable(AdmissionError):
    """The ledger explorer could not be reached or answered garbage."""

    status_code = HTTP_500_INTERNAL_SERVER_ERROR
    reason_code = "LedgerUnavailable"


class ContentStoreUnavailable(AdmissionError):
    """The content store could not be reached or rejected the call."""

    status_code = HTTP_500_INTERNAL_SERVER_ERROR
    reason_code = "ContentStoreUnavailable"


class InternalCommitFailure(AdmissionError):
    """Store and record store disagree. Indicates a broken invariant."""

    status_code = HTTP_500_INTERNAL_SERVER_ERROR
    reason_code = "InternalCommitFailure"
