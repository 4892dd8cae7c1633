"""Response models for the v1 API."""

from pydantic import BaseModel, ConfigDict, Field

from lockgate.content_store.models import ContentIdentifier


class AdmitResponse(BaseModel):
    """Identifiers of newly admitted content."""

    model_config = ConfigDict(populate_by_name=True)

    content_identifier_v0: str = Field(alias="contentIdentifierV0")
    content_identifier_v1: str = Field(alias="contentIdentifierV1")

    @classmethod
    def from_identifier(cls, identifier: ContentIdentifier) -> "AdmitResponse":
        return cls(
            content_identifier_v0=identifier.v0, content_identifier_v1=identifier.v1
        )


class CheckResponse(AdmitResponse):
    """Whether content with this fingerprint is already admitted."""

    exists: bool


class LockRecordResponse(BaseModel):
    """A consumed transaction reference and the content it unlocked."""

    model_config = ConfigDict(populate_by_name=True)

    transaction_reference: str = Field(alias="transactionReference")
    content_identifier_v0: str = Field(alias="contentIdentifierV0")
    content_identifier_v1: str = Field(alias="contentIdentifierV1")
    created_at: str | None = Field(default=None, alias="createdAt")


class HealthResponse(BaseModel):
    status: str
    version: str
    correlation_id: str | None = None
