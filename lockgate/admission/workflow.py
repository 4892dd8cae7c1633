"""Admission workflow: verify a time-lock proof and bind it to uploaded content.

The ``admit`` pipeline runs its checks in a fixed order and stops at the
first failure:

1. presence of the file and the transaction reference
2. duplicate content (dry-run hash + pin status), before any ledger call
3. ledger fetch
4. reuse of the transaction reference
5. transaction freshness
6. lock proof (exact amount and exact lock duration)
7. commit: store the content, then bind the reference to it

The record store's unique constraint on the reference is the authority on
reuse. The lookup in step 4 only rejects early; a conflicting insert in step 7
is reported as ``TransactionAlreadyUsed`` as well.
"""

import asyncio
import re
import time
from collections.abc import Callable
from typing import Any, BinaryIO, Optional, Protocol

from structlog.stdlib import BoundLogger

from lockgate.admission.models import AdmissionState, ExistenceResult, LockPolicy
from lockgate.admission.uploads import TemporaryUpload
from lockgate.content_store.client import ContentStoreError
from lockgate.content_store.models import ContentIdentifier
from lockgate.core.errors import (
    AdmissionError,
    BadRequest,
    ContentStoreUnavailable,
    DuplicateContent,
    InternalCommitFailure,
    InvalidLockProof,
    LedgerUnavailable,
    TransactionAlreadyUsed,
    TransactionExpired,
    TransactionNotFound,
)
from lockgate.core.events import (
    ADMISSIONS_TOTAL,
    COMMIT_FAILURES_TOTAL,
    EXISTENCE_CHECKS_TOTAL,
)
from lockgate.core.logging import get_logger
from lockgate.database.models import LockRecordModel
from lockgate.database.repositories import InsertOutcome
from lockgate.ledger.client import LedgerUnavailableError, TransactionNotFoundError
from lockgate.ledger.models import LedgerTransaction

logger = get_logger(__name__)


class ContentStore(Protocol):
    async def hash_only(self, stream: BinaryIO, filename: str = ...) -> ContentIdentifier: ...

    async def store(self, stream: BinaryIO, filename: str = ...) -> ContentIdentifier: ...

    async def is_pinned(self, cid: str) -> bool: ...

    async def unpin(self, cid: str) -> None: ...


class LedgerQuery(Protocol):
    async def get_transaction(self, reference: str) -> LedgerTransaction: ...


class LockRecordStore(Protocol):
    async def find_by_reference(self, reference: str) -> Optional[LockRecordModel]: ...

    async def find_by_content(self, cid_v0: str) -> Optional[LockRecordModel]: ...

    async def insert_if_absent(
        self, reference: str, content_identifier_v0: str, content_identifier_v1: str
    ) -> InsertOutcome: ...


class AdmissionAttempt:
    """Tracks the state of one admission and logs each transition."""

    def __init__(self, reference: Optional[str], filename: Optional[str]):
        self.state = AdmissionState.RECEIVED
        self.commit_task: Optional[asyncio.Future[ContentIdentifier]] = None
        self.log: BoundLogger = logger.bind(
            transaction_reference=reference, filename=filename
        )

    def transition(self, state: AdmissionState) -> None:
        self.log.debug("admission_state", previous=self.state.value, state=state.value)
        self.state = state

    def reject(self, error: AdmissionError) -> None:
        failed = error.status_code >= 500
        self.state = AdmissionState.FAILED if failed else AdmissionState.REJECTED
        log = self.log.error if failed else self.log.info
        log(
            "admission_rejected",
            state=self.state.value,
            reason_code=error.reason_code,
            message=error.message,
        )


class AdmissionWorkflow:
    """Orchestrates the content store, ledger client and lock record store."""

    def __init__(
        self,
        content_store: ContentStore,
        ledger: LedgerQuery,
        records: LockRecordStore,
        policy: LockPolicy,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the workflow.

        Args:
            content_store: Content store collaborator
            ledger: Ledger query collaborator
            records: Lock record store collaborator
            policy: Required lock amount, duration and freshness window
            clock: Source of the current time in seconds since epoch
        """
        self.content_store = content_store
        self.ledger = ledger
        self.records = records
        self.policy = policy
        self.clock = clock
        self._reference_re = re.compile(policy.reference_pattern)

    async def check_existence(self, upload: Optional[TemporaryUpload]) -> ExistenceResult:
        """Check whether the upload's content is already admitted.

        Nothing is written to the store. The caller releases ``upload``.

        Raises:
            BadRequest: No file or an empty file
            ContentStoreUnavailable: Store could not be queried
        """
        if upload is None or upload.size == 0:
            raise BadRequest("There is no upload file in the payload request.")

        identifier = await self._fingerprint(upload)
        exists = await self._is_pinned(identifier)
        EXISTENCE_CHECKS_TOTAL.labels(exists=str(exists).lower()).inc()
        if exists:
            logger.info(
                "content_already_exists",
                filename=upload.filename,
                cid_v0=identifier.v0,
            )
        return ExistenceResult(exists=exists, identifier=identifier)

    async def admit(
        self,
        upload: Optional[TemporaryUpload],
        transaction_reference: Optional[str],
    ) -> ContentIdentifier:
        """Verify the lock proof and admit the upload into the store.

        The workflow owns ``upload`` and releases it on every exit path.

        Args:
            upload: Spooled upload, or None when the request carried no file
            transaction_reference: Reference of the time-lock transaction

        Returns:
            Identifiers of the admitted content

        Raises:
            AdmissionError: The subclass names the failed check
        """
        attempt = AdmissionAttempt(
            transaction_reference, upload.filename if upload else None
        )
        try:
            identifier = await self._run(attempt, upload, transaction_reference)
        except AdmissionError as e:
            attempt.reject(e)
            ADMISSIONS_TOTAL.labels(outcome=e.reason_code).inc()
            raise
        except Exception:
            attempt.state = AdmissionState.FAILED
            attempt.log.exception("admission_failed")
            ADMISSIONS_TOTAL.labels(outcome="error").inc()
            raise
        finally:
            if upload is not None:
                self._release_after_commit(attempt, upload)

        attempt.state = AdmissionState.ADMITTED
        attempt.log.info(
            "admission_committed", cid_v0=identifier.v0, cid_v1=identifier.v1
        )
        ADMISSIONS_TOTAL.labels(outcome="admitted").inc()
        return identifier

    async def lookup(self, reference: str) -> Optional[LockRecordModel]:
        """Get the record bound to ``reference``, if any."""
        return await self.records.find_by_reference(reference)

    async def _run(
        self,
        attempt: AdmissionAttempt,
        upload: Optional[TemporaryUpload],
        transaction_reference: Optional[str],
    ) -> ContentIdentifier:
        attempt.transition(AdmissionState.VALIDATING)
        upload, reference = self._check_presence(upload, transaction_reference)

        identifier = await self._fingerprint(upload)
        if await self._is_pinned(identifier):
            raise DuplicateContent(
                f"The upload file {upload.filename} already exists on the "
                "system. Please upload another file.",
                context=identifier.to_dict(),
            )

        attempt.transition(AdmissionState.LEDGER_CHECKING)
        transaction = await self._fetch_transaction(reference)

        attempt.transition(AdmissionState.REUSE_CHECKING)
        existing = await self.records.find_by_reference(reference)
        if existing is not None:
            raise self._already_used(reference, existing)

        attempt.transition(AdmissionState.FRESHNESS_CHECKING)
        self._check_freshness(reference, transaction)

        attempt.transition(AdmissionState.PROOF_CHECKING)
        self._check_lock_proof(reference, transaction)

        attempt.transition(AdmissionState.COMMITTING)
        # A started commit always runs to completion, even if the request is cancelled
        attempt.commit_task = asyncio.ensure_future(
            self._commit(attempt, upload, reference, identifier)
        )
        return await asyncio.shield(attempt.commit_task)

    def _check_presence(
        self, upload: Optional[TemporaryUpload], transaction_reference: Optional[str]
    ) -> tuple[TemporaryUpload, str]:
        if upload is None or upload.size == 0:
            raise BadRequest("There is no upload file in the payload request.")

        reference = (transaction_reference or "").strip()
        if not reference:
            raise BadRequest("There is no time-lock transaction in the payload request.")
        if not self._reference_re.match(reference):
            raise BadRequest(
                f"Invalid time-lock transaction reference {reference!r}.",
                context={"transactionReference": reference},
            )
        return upload, reference

    async def _fingerprint(self, upload: TemporaryUpload) -> ContentIdentifier:
        try:
            with upload.open() as stream:
                return await self.content_store.hash_only(stream, upload.filename)
        except ContentStoreError as e:
            raise ContentStoreUnavailable(
                "Failed to compute the content identifier.", context={"error": str(e)}
            ) from e

    async def _is_pinned(self, identifier: ContentIdentifier) -> bool:
        try:
            return await self.content_store.is_pinned(identifier.v0)
        except ContentStoreError as e:
            raise ContentStoreUnavailable(
                "Failed to query the content store.", context={"error": str(e)}
            ) from e

    async def _fetch_transaction(self, reference: str) -> LedgerTransaction:
        try:
            return await self.ledger.get_transaction(reference)
        except TransactionNotFoundError as e:
            raise TransactionNotFound(
                f"Time-lock transaction {reference} was not found on the ledger.",
                context={"transactionReference": reference},
            ) from e
        except LedgerUnavailableError as e:
            raise LedgerUnavailable(
                f"Failed to get info of time-lock transaction {reference}. "
                "Please try again later.",
                context={"transactionReference": reference, "error": str(e)},
            ) from e

    def _check_freshness(self, reference: str, transaction: LedgerTransaction) -> None:
        oldest_accepted = self.clock() - self.policy.freshness_window_seconds
        if transaction.timestamp < oldest_accepted:
            raise TransactionExpired(
                f"The timestamp of time-lock transaction {reference} is too old. "
                f"The transaction must be within {self.policy.freshness_window_seconds:g} "
                "seconds of the current time.",
                context={
                    "transactionReference": reference,
                    "timestamp": transaction.timestamp,
                    "oldestAccepted": oldest_accepted,
                },
            )

    def _check_lock_proof(self, reference: str, transaction: LedgerTransaction) -> None:
        if not transaction.has_lock_output(
            self.policy.amount, self.policy.lock_duration_blocks
        ):
            raise InvalidLockProof(
                f"Can't find correct time-lock output in the transaction {reference}. "
                f"The lockup amount must be {self.policy.amount} and the lockup period "
                f"must be {self.policy.lock_duration_blocks} blocks.",
                context={
                    "transactionReference": reference,
                    "requiredAmount": self.policy.amount,
                    "requiredLockDurationBlocks": self.policy.lock_duration_blocks,
                },
            )

    async def _commit(
        self,
        attempt: AdmissionAttempt,
        upload: TemporaryUpload,
        reference: str,
        expected: ContentIdentifier,
    ) -> ContentIdentifier:
        try:
            with upload.open() as stream:
                stored = await self.content_store.store(stream, upload.filename)
        except ContentStoreError as e:
            # The node may have pinned the content before the call failed
            COMMIT_FAILURES_TOTAL.labels(stage="store").inc()
            attempt.log.critical(
                "admission_commit_failed",
                stage="store",
                cid_v0=expected.v0,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            await self._compensate(attempt, expected)
            raise ContentStoreUnavailable(
                "Failed to store the upload file.", context={"error": str(e)}
            ) from e

        if stored != expected:
            COMMIT_FAILURES_TOTAL.labels(stage="identifier_mismatch").inc()
            attempt.log.critical(
                "admission_commit_failed",
                stage="identifier_mismatch",
                expected_cid_v0=expected.v0,
                stored_cid_v0=stored.v0,
            )
            await self._compensate(attempt, stored)
            raise InternalCommitFailure(
                "Stored content does not match the computed content identifier.",
                context={"expected": expected.to_dict(), "stored": stored.to_dict()},
            )

        try:
            outcome = await self.records.insert_if_absent(reference, stored.v0, stored.v1)
        except Exception as e:
            COMMIT_FAILURES_TOTAL.labels(stage="record_insert").inc()
            attempt.log.critical(
                "admission_commit_failed",
                stage="record_insert",
                cid_v0=stored.v0,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            await self._compensate(attempt, stored)
            raise InternalCommitFailure(
                "Content was stored but the lock record could not be saved.",
                context={"transactionReference": reference, **stored.to_dict()},
            ) from e

        if outcome is InsertOutcome.ALREADY_EXISTS:
            # Lost a race with a concurrent admission using the same reference
            await self._compensate(attempt, stored)
            existing = await self.records.find_by_reference(reference)
            raise self._already_used(reference, existing)

        return stored

    async def _compensate(self, attempt: AdmissionAttempt, stored: ContentIdentifier) -> None:
        """Unpin content that ended up without a lock record.

        Content bound to some other record is never unpinned. If that cannot
        be established the content stays pinned and is logged as orphaned.
        """
        try:
            if await self.records.find_by_content(stored.v0) is not None:
                return
            await self.content_store.unpin(stored.v0)
        except Exception as e:
            attempt.log.critical(
                "orphaned_content",
                cid_v0=stored.v0,
                cid_v1=stored.v1,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            return
        attempt.log.warning("content_compensated", cid_v0=stored.v0)

    def _already_used(
        self, reference: str, existing: Optional[LockRecordModel]
    ) -> TransactionAlreadyUsed:
        context: dict[str, Any] = {"transactionReference": reference}
        message = f"Invalid time-lock transaction {reference}. This transaction was already used"
        if existing is not None:
            context["contentIdentifierV0"] = existing.content_identifier_v0
            context["contentIdentifierV1"] = existing.content_identifier_v1
            message += f" to upload file having CIDv0 {existing.content_identifier_v0}"
        return TransactionAlreadyUsed(message + ".", context=context)

    @staticmethod
    def _release_after_commit(attempt: AdmissionAttempt, upload: TemporaryUpload) -> None:
        task = attempt.commit_task
        if task is None or task.done():
            upload.release()
            return

        # The caller was cancelled mid-commit; release once the commit settles
        def _settled(finished: "asyncio.Future[ContentIdentifier]") -> None:
            upload.release()
            if not finished.cancelled() and finished.exception() is not None:
                attempt.log.error(
                    "detached_commit_failed", error=str(finished.exception())
                )

        task.add_done_callback(_settled)
