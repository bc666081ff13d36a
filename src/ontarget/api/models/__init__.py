"""API data models."""

from .requests import ConsultationRequest, LabValuesRequest
from .responses import (
    HealthResponse,
    PatientListResponse,
    SectionResponse,
    SubmissionResponse,
)

__all__ = [
    # Request models
    "LabValuesRequest",
    "ConsultationRequest",
    # Response models
    "HealthResponse",
    "PatientListResponse",
    "SectionResponse",
    "SubmissionResponse",
]
