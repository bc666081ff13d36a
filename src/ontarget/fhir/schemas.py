"""Pydantic schemas for FHIR record display and clinical form input.

Display records hold the human-readable strings produced by the formatters.
Form inputs hold the raw user-entered fields consumed by the builders.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


def _today() -> str:
    return date.today().isoformat()


class OrganizationRef(BaseModel):
    """Reference to the organization that performs or authors new resources."""

    id: str = Field(..., min_length=1)
    display: str = Field(..., description="Display name stamped on the reference")


# =============================================================================
# Display records
# =============================================================================


class PatientSummary(BaseModel):
    """Display fields for a Patient."""

    id: str
    name: str
    gender: str
    birth_date: str
    contact: str | None = None
    address: str | None = None


class ConditionSummary(BaseModel):
    """Display fields for a Condition."""

    id: str | None = None
    code: str
    clinical_status: str
    severity: str | None = None
    onset: str
    recorded: str | None = None


class ProcedureSummary(BaseModel):
    """Display fields for a Procedure."""

    id: str | None = None
    code: str
    status: str
    performed: str
    performer: str | None = None
    reason: str | None = None
    note: str | None = None


class MedicationSummary(BaseModel):
    """Display fields for a MedicationRequest."""

    id: str | None = None
    name: str
    status: str
    intent: str
    dosage: str
    authored_on: str
    reason: str | None = None
    requester: str | None = None


class DiagnosticReportSummary(BaseModel):
    """Display fields for a DiagnosticReport."""

    id: str | None = None
    code: str
    status: str
    effective: str
    issued: str | None = None
    conclusion: str | None = None
    conclusion_codes: list[str] = Field(default_factory=list)
    result_count: int = 0
    performer: str | None = None
    based_on: str | None = None


class ObservationComponent(BaseModel):
    """One rendered component of a multi-part Observation."""

    code: str
    value: str


class ObservationSummary(BaseModel):
    """Display fields for an Observation."""

    id: str | None = None
    code: str
    value: str
    date: str
    category: str | None = None
    components: list[ObservationComponent] | None = None


class ObservationGroups(BaseModel):
    """Observations partitioned by their first category code."""

    vital_signs: list[dict] = Field(default_factory=list)
    laboratory: list[dict] = Field(default_factory=list)
    other: list[dict] = Field(default_factory=list)


class CompositionSection(BaseModel):
    """Title and extracted narrative text of one Composition section."""

    title: str
    text: str


class CompositionSummary(BaseModel):
    """Display fields for a Composition (consultation report)."""

    id: str | None = None
    title: str
    date: str
    status: str
    author: str | None = None
    sections: list[CompositionSection] = Field(default_factory=list)


# =============================================================================
# Form inputs
# =============================================================================


class LabValuesInput(BaseModel):
    """Lab value form. Blank numeric fields are skipped."""

    gfr: str = Field(
        default="",
        description="Glomerular filtration rate in mL/min/1.73m2",
    )
    hemoglobin: str = Field(
        default="",
        description="Hemoglobin in g/dL",
    )
    effective_date: str = Field(
        default_factory=_today,
        description="Date the values were measured (YYYY-MM-DD)",
    )


class ConsultationInput(BaseModel):
    """Consultation report form. Blank sections are omitted."""

    date: str = Field(default_factory=_today, description="Consultation date (YYYY-MM-DD)")
    chief_complaint: str = ""
    history_of_present_illness: str = ""
    physical_examination: str = ""
    assessment: str = ""
    plan: str = ""
    notes: str = ""


# =============================================================================
# Outputs
# =============================================================================


class SubmissionOutput(BaseModel):
    """Outcome of submitting one or more new resources."""

    success: bool
    created_ids: list[str] = Field(default_factory=list)
    error: str | None = Field(None, description="Error message if any creation failed")
