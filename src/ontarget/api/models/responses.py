"""API response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ...fhir.schemas import PatientSummary


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    fhir_base_url: str


class PatientListResponse(BaseModel):
    """Patients of the configured organization."""

    patients: list[PatientSummary]
    total: int
    error: str | None = None


class SectionResponse(BaseModel):
    """One chart section for a patient."""

    section: str
    items: list[dict[str, Any]]
    total: int
    groups: dict[str, list[dict[str, Any]]] | None = Field(
        default=None,
        description="Observations only: items split into vital_signs, laboratory, other",
    )
    error: str | None = None


class SubmissionResponse(BaseModel):
    """Result of a lab value or consultation submission."""

    success: bool
    created_ids: list[str] = Field(default_factory=list)
    error: str | None = None
