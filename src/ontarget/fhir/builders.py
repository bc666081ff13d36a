"""Builders for new clinical resources.

Turns the lab value and consultation forms into FHIR R4 Observation and
Composition bodies ready to POST. Input is validated here, so a form that
fails never reaches the network.
"""

from __future__ import annotations

import html
import math
from dataclasses import dataclass

from .formatters import format_name
from .schemas import ConsultationInput, LabValuesInput, OrganizationRef

LOINC = "http://loinc.org"
SNOMED = "http://snomed.info/sct"
UCUM = "http://unitsofmeasure.org"
OBSERVATION_CATEGORY = "http://terminology.hl7.org/CodeSystem/observation-category"
XHTML_NS = "http://www.w3.org/1999/xhtml"

CONSULTATION_TITLE = "Cardiology Consultation Report"


class ResourceValidationError(ValueError):
    """Raised when form input cannot be turned into a valid resource."""


@dataclass(frozen=True)
class LabTest:
    """A lab value the form can record."""

    field: str
    label: str
    loinc_code: str
    display: str
    unit: str


GFR = LabTest(
    field="gfr",
    label="GFR",
    loinc_code="33914-3",
    display="Glomerular filtration rate/1.73 sq M.predicted",
    unit="mL/min/1.73m2",
)
HEMOGLOBIN = LabTest(
    field="hemoglobin",
    label="Hemoglobin",
    loinc_code="718-7",
    display="Hemoglobin [Mass/volume] in Blood",
    unit="g/dL",
)
LAB_TESTS = (GFR, HEMOGLOBIN)


@dataclass(frozen=True)
class SectionSpec:
    """A consultation report section and its LOINC section code."""

    field: str
    title: str
    loinc_code: str
    display: str


CONSULTATION_SECTIONS = (
    SectionSpec("chief_complaint", "Chief Complaint", "10154-3", "Chief complaint"),
    SectionSpec(
        "history_of_present_illness",
        "History of Present Illness",
        "10164-2",
        "History of present illness",
    ),
    SectionSpec("physical_examination", "Physical Examination", "29545-1", "Physical examination"),
    SectionSpec("assessment", "Assessment", "51848-0", "Assessment"),
    SectionSpec("plan", "Plan", "18776-5", "Plan"),
    SectionSpec("notes", "Additional Notes", "11506-3", "Progress note"),
)


def patient_reference(patient: dict) -> dict:
    """Subject reference for a Patient resource, with its display name."""
    return {
        "reference": f"Patient/{patient['id']}",
        "display": format_name(patient.get("name")),
    }


def organization_reference(organization: OrganizationRef) -> dict:
    return {
        "reference": f"Organization/{organization.id}",
        "display": organization.display,
    }


def xhtml_div(text: str) -> str:
    """Wrap plain text in a single XHTML narrative div."""
    return f'<div xmlns="{XHTML_NS}">{html.escape(text, quote=False)}</div>'


# =============================================================================
# Observation
# =============================================================================


def _parse_lab_value(raw: str, test: LabTest) -> float | None:
    """Parse one numeric form field; None when the field is blank."""
    if not raw or not raw.strip():
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        raise ResourceValidationError(f"{test.label} must be a valid positive number") from None
    if not math.isfinite(value) or value < 0:
        raise ResourceValidationError(f"{test.label} must be a valid positive number")
    return value


def lab_observation(
    test: LabTest,
    value: float,
    effective_date: str,
    patient: dict,
    organization: OrganizationRef,
) -> dict:
    """Build a final laboratory Observation for one measured value."""
    return {
        "resourceType": "Observation",
        "status": "final",
        "category": [
            {
                "coding": [
                    {
                        "system": OBSERVATION_CATEGORY,
                        "code": "laboratory",
                        "display": "Laboratory",
                    }
                ],
                "text": "Laboratory",
            }
        ],
        "code": {
            "coding": [
                {
                    "system": LOINC,
                    "code": test.loinc_code,
                    "display": test.display,
                }
            ],
            "text": test.display,
        },
        "subject": patient_reference(patient),
        "effectiveDateTime": effective_date,
        "valueQuantity": {
            "value": value,
            "unit": test.unit,
            "system": UCUM,
            "code": test.unit,
        },
        "performer": [organization_reference(organization)],
    }


def lab_values(data: LabValuesInput) -> list[tuple[LabTest, float]]:
    """Validate the lab form and return each filled-in test with its value.

    Raises:
        ResourceValidationError: A value is non-numeric or negative, or
            every field is blank.
    """
    values = []
    for test in LAB_TESTS:
        value = _parse_lab_value(getattr(data, test.field), test)
        if value is not None:
            values.append((test, value))

    if not values:
        raise ResourceValidationError("Please enter at least one lab value")
    return values


def build_lab_observations(
    data: LabValuesInput,
    patient: dict,
    organization: OrganizationRef,
) -> list[dict]:
    """Build one Observation per filled-in lab value."""
    return [
        lab_observation(test, value, data.effective_date, patient, organization)
        for test, value in lab_values(data)
    ]


# =============================================================================
# Composition
# =============================================================================


def consultation_sections(data: ConsultationInput) -> list[dict]:
    """Validate the consultation form and build its Composition sections.

    Raises:
        ResourceValidationError: Chief complaint, assessment, and plan are
            all blank, or no section has content.
    """
    if not any(
        getattr(data, field).strip() for field in ("chief_complaint", "assessment", "plan")
    ):
        raise ResourceValidationError(
            "Please provide at least Chief Complaint, Assessment, or Plan"
        )

    sections = []
    for spec in CONSULTATION_SECTIONS:
        text = getattr(data, spec.field).strip()
        if not text:
            continue
        sections.append(
            {
                "title": spec.title,
                "code": {
                    "coding": [
                        {
                            "system": LOINC,
                            "code": spec.loinc_code,
                            "display": spec.display,
                        }
                    ]
                },
                "text": {
                    "status": "generated",
                    "div": xhtml_div(text),
                },
            }
        )

    if not sections:
        raise ResourceValidationError(
            "Please provide at least one section of the consultation report"
        )
    return sections


def build_consultation(
    data: ConsultationInput,
    patient: dict,
    organization: OrganizationRef,
) -> dict:
    """Build a consultation report Composition with one section per filled field."""
    sections = consultation_sections(data)
    return {
        "resourceType": "Composition",
        "status": "final",
        "type": {
            "coding": [
                {
                    "system": LOINC,
                    "code": "11506-3",
                    "display": "Progress note",
                }
            ],
            "text": CONSULTATION_TITLE,
        },
        "category": [
            {
                "coding": [
                    {
                        "system": SNOMED,
                        "code": "308335008",
                        "display": "Patient consultation",
                    }
                ],
                "text": "Consultation",
            }
        ],
        "subject": patient_reference(patient),
        "date": data.date,
        "author": [organization_reference(organization)],
        "title": CONSULTATION_TITLE,
        "section": sections,
    }
