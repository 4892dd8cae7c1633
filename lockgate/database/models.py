"""SQLAlchemy models for lock records."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Text

from .base import Base


class LockRecordModel(Base):
    """Binding between a consumed time-lock transaction and admitted content.

    Rows are inserted once and never updated or deleted.
    """

    __tablename__ = "lock_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_reference = Column(Text, nullable=False, unique=True, index=True)
    content_identifier_v0 = Column(Text, nullable=False, index=True)
    content_identifier_v1 = Column(Text, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict[str, str | None]:
        """Public representation used by the API and CLI."""
        return {
            "transactionReference": self.transaction_reference,
            "contentIdentifierV0": self.content_identifier_v0,
            "contentIdentifierV1": self.content_identifier_v1,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
