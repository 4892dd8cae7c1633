"""Repository for lock record operations."""

from enum import Enum
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lockgate.core.logging import get_logger

from .models import LockRecordModel

logger = get_logger(__name__)


class InsertOutcome(str, Enum):
    """Result of an insert-if-absent attempt."""

    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


class LockRecordRepository:
    """Persistent uniqueness index from transaction reference to content.

    Each call runs in its own session so the repository can be shared by
    concurrent requests. Uniqueness of ``transaction_reference`` is enforced
    by the database, which makes :meth:`insert_if_absent` atomic.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_by_reference(self, reference: str) -> Optional[LockRecordModel]:
        """Get the record bound to a transaction reference."""
        query = select(LockRecordModel).filter(
            LockRecordModel.transaction_reference == reference
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def find_by_content(self, cid_v0: str) -> Optional[LockRecordModel]:
        """Get a record bound to content with this CIDv0."""
        query = (
            select(LockRecordModel)
            .filter(LockRecordModel.content_identifier_v0 == cid_v0)
            .limit(1)
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def insert_if_absent(
        self,
        reference: str,
        content_identifier_v0: str,
        content_identifier_v1: str,
    ) -> InsertOutcome:
        """Insert a new binding unless the reference is already bound.

        Args:
            reference: Ledger transaction reference (uniqueness key)
            content_identifier_v0: CIDv0 of the admitted content
            content_identifier_v1: CIDv1 of the admitted content

        Returns:
            INSERTED, or ALREADY_EXISTS when the unique constraint rejected
            the row

        Raises:
            SQLAlchemyError: Any other database failure
        """
        async with self.session_factory() as session:
            session.add(
                LockRecordModel(
                    transaction_reference=reference,
                    content_identifier_v0=content_identifier_v0,
                    content_identifier_v1=content_identifier_v1,
                )
            )
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.warning(
                    "lock_record_conflict",
                    transaction_reference=reference,
                    error=str(e.orig),
                )
                return InsertOutcome.ALREADY_EXISTS

        logger.info(
            "lock_record_inserted",
            transaction_reference=reference,
            content_identifier_v0=content_identifier_v0,
        )
        return InsertOutcome.INSERTED

    async def count(self) -> int:
        """Count lock records."""
        query = select(func.count()).select_from(LockRecordModel)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar() or 0
