"""API v1 router module."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from lockgate.admission.uploads import TemporaryUpload, spool_upload
from lockgate.admission.workflow import AdmissionWorkflow
from lockgate.api.v1.models import (
    AdmitResponse,
    CheckResponse,
    HealthResponse,
    LockRecordResponse,
)
from lockgate.core.config import Settings
from lockgate.core.errors import RecordNotFound
from lockgate.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(default_response_class=JSONResponse)


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    settings: Settings = request.app.state.settings
    return settings


def get_workflow(request: Request) -> AdmissionWorkflow:
    """Admission workflow from the application's dependency context."""
    workflow: AdmissionWorkflow = request.app.state.context.workflow
    return workflow


async def _spool(file: Optional[UploadFile], settings: Settings) -> Optional[TemporaryUpload]:
    if file is None or not file.filename:
        return None
    try:
        return await spool_upload(
            file,
            file.filename,
            max_bytes=settings.MAX_UPLOAD_BYTES,
            chunk_bytes=settings.UPLOAD_CHUNK_BYTES,
        )
    finally:
        await file.close()


@router.post("/admit", response_model=AdmitResponse)
async def admit_content(
    file: Optional[UploadFile] = File(None),
    transactionReference: Optional[str] = Form(None),
    timelocktx: Optional[str] = Form(None),
    settings: Settings = Depends(get_settings),
    workflow: AdmissionWorkflow = Depends(get_workflow),
) -> AdmitResponse:
    """
    Verify a time-lock transaction and add the uploaded file to the store.

    The transaction reference may be sent as ``transactionReference`` or
    under its legacy field name ``timelocktx``.
    """
    upload = await _spool(file, settings)
    reference = transactionReference or timelocktx
    identifier = await workflow.admit(upload, reference)
    return AdmitResponse.from_identifier(identifier)


@router.post("/check", response_model=CheckResponse)
async def check_content(
    file: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_settings),
    workflow: AdmissionWorkflow = Depends(get_workflow),
) -> CheckResponse:
    """Check whether the uploaded file's content is already in the store."""
    upload = await _spool(file, settings)
    try:
        result = await workflow.check_existence(upload)
    finally:
        if upload is not None:
            upload.release()
    return CheckResponse(
        exists=result.exists,
        content_identifier_v0=result.identifier.v0,
        content_identifier_v1=result.identifier.v1,
    )


@router.get("/records/{reference}", response_model=LockRecordResponse)
async def get_record(
    reference: str,
    workflow: AdmissionWorkflow = Depends(get_workflow),
) -> LockRecordResponse:
    """Show which content a consumed transaction reference unlocked."""
    record = await workflow.lookup(reference)
    if record is None:
        raise RecordNotFound(
            f"No lock record for transaction {reference}.",
            context={"transactionReference": reference},
        )
    return LockRecordResponse.model_validate(record.to_dict())


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request, settings: Settings = Depends(get_settings)
) -> HealthResponse:
    """Liveness probe."""
    return HealthResponse(
        status="healthy",
        version=settings.version,
        correlation_id=getattr(request.state, "correlation_id", None),
    )
