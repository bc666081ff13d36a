"""API request schemas."""

from pydantic import BaseModel, Field


class LabValuesRequest(BaseModel):
    """Request to record lab values for a patient."""

    gfr: str = Field(default="", description="GFR in mL/min/1.73m2; blank to skip")
    hemoglobin: str = Field(default="", description="Hemoglobin in g/dL; blank to skip")
    effective_date: str | None = Field(
        default=None,
        description="Measurement date (YYYY-MM-DD), defaults to today",
    )


class ConsultationRequest(BaseModel):
    """Request to file a consultation report for a patient."""

    date: str | None = Field(
        default=None,
        description="Consultation date (YYYY-MM-DD), defaults to today",
    )
    chief_complaint: str = ""
    history_of_present_illness: str = ""
    physical_examination: str = ""
    assessment: str = ""
    plan: str = ""
    notes: str = ""
