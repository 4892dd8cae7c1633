"""Explicit dependency context for the admission workflow."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from lockgate.admission.models import LockPolicy
from lockgate.admission.workflow import AdmissionWorkflow
from lockgate.content_store.client import ContentStoreClient
from lockgate.core.config import Settings
from lockgate.core.db import create_engine, create_session_factory, create_tables
from lockgate.database.repositories import LockRecordRepository
from lockgate.ledger.client import LedgerClient


def policy_from_settings(settings: Settings) -> LockPolicy:
    return LockPolicy(
        amount=settings.REQUIRED_LOCK_AMOUNT,
        lock_duration_blocks=settings.REQUIRED_LOCK_DURATION_BLOCKS,
        freshness_window_seconds=settings.FRESHNESS_WINDOW_SECONDS,
        reference_pattern=settings.TX_REFERENCE_PATTERN,
    )


@dataclass
class AdmissionContext:
    """Collaborators shared by all requests of one process.

    None of them hold per-request state; durable state lives in the content
    store and the record store.
    """

    settings: Settings
    content_store: ContentStoreClient
    ledger: LedgerClient
    records: LockRecordRepository
    engine: AsyncEngine
    workflow: AdmissionWorkflow

    @classmethod
    async def create(cls, settings: Settings) -> "AdmissionContext":
        """Build clients, the record store and the workflow from settings.

        The record store schema is created if missing.
        """
        engine = create_engine(settings.DATABASE_URL, settings.MAX_CONNECTIONS)
        await create_tables(engine)
        records = LockRecordRepository(create_session_factory(engine))
        content_store = ContentStoreClient(
            settings.CONTENT_STORE_URL, timeout=settings.CONTENT_STORE_TIMEOUT_SECONDS
        )
        ledger = LedgerClient(
            settings.LEDGER_ENDPOINT, timeout=settings.LEDGER_TIMEOUT_SECONDS
        )
        workflow = AdmissionWorkflow(
            content_store=content_store,
            ledger=ledger,
            records=records,
            policy=policy_from_settings(settings),
        )
        return cls(
            settings=settings,
            content_store=content_store,
            ledger=ledger,
            records=records,
            engine=engine,
            workflow=workflow,
        )

    async def aclose(self) -> None:
        await self.content_store.aclose()
        await self.ledger.aclose()
        await self.engine.dispose()
