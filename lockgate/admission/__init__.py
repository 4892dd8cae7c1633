"""Time-lock verified admission of uploads."""

from lockgate.admission.models import AdmissionState, ExistenceResult, LockPolicy
from lockgate.admission.uploads import TemporaryUpload, spool_upload
from lockgate.admission.workflow import AdmissionWorkflow

__all__ = [
    "AdmissionState",
    "AdmissionWorkflow",
    "ExistenceResult",
    "LockPolicy",
    "TemporaryUpload",
    "spool_upload",
]
