"""Pydantic schemas for API request/response validation."""

from medshare.schemas.access import (
    AccessGrantApprove,
    AccessGrantCreate,
    AccessGrantDetail,
    AccessGrantResponse,
    AccessRequestCreate,
    AccessRequestResult,
    SweepResult,
)
from medshare.schemas.comment import CommentCreate, CommentResponse
from medshare.schemas.medication import (
    MedicationBase,
    MedicationCreate,
    MedicationResponse,
    MedicationUpdate,
)
from medshare.schemas.patient import (
    PatientBase,
    PatientCreate,
    PatientResponse,
    PatientUpdate,
    SharedPatientPreview,
    ShareTokenAccessResponse,
    VisiblePatientResponse,
)

__all__ = [
    # Access
    "AccessRequestCreate",
    "AccessRequestResult",
    "AccessGrantApprove",
    "AccessGrantCreate",
    "AccessGrantResponse",
    "AccessGrantDetail",
    "SweepResult",
    # Patient
    "PatientBase",
    "PatientCreate",
    "PatientResponse",
    "PatientUpdate",
    "VisiblePatientResponse",
    "SharedPatientPreview",
    "ShareTokenAccessResponse",
    # Medication
    "MedicationBase",
    "MedicationCreate",
    "MedicationUpdate",
    "MedicationResponse",
    # Comment
    "CommentCreate",
    "CommentResponse",
]
