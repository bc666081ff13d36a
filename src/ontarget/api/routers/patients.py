"""Patient chart API endpoints.

Lists the organization's patients, serves each chart section on demand, and
accepts new lab values and consultation reports.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from ...config import get_config
from ...fhir.builders import ResourceValidationError, consultation_sections, lab_values
from ...fhir.client import FhirClient, FhirError, FhirHTTPError, get_client
from ...fhir.formatters import format_observation
from ...fhir.schemas import ConsultationInput, LabValuesInput, OrganizationRef, SubmissionOutput
from ...records import (
    SECTION_VIEWS,
    ObservationsView,
    PatientListView,
    submit_consultation,
    submit_lab_values,
)
from ..models.requests import ConsultationRequest, LabValuesRequest
from ..models.responses import PatientListResponse, SectionResponse, SubmissionResponse

router = APIRouter(prefix="/patients", tags=["patients"])


def get_fhir_client() -> FhirClient:
    return get_client()


def get_organization() -> OrganizationRef:
    config = get_config()
    return OrganizationRef(id=config.organization_id, display=config.organization_name)


def get_department() -> OrganizationRef:
    config = get_config()
    return OrganizationRef(id=config.organization_id, display=config.department_display)


def _submission_response(result: SubmissionOutput, response: Response) -> SubmissionResponse:
    """Answer 502 when the server rejected every resource; partial success stays 201."""
    if not result.success and not result.created_ids:
        response.status_code = 502
    return SubmissionResponse(**result.model_dump())


async def _read_patient(client: FhirClient, patient_id: str) -> dict:
    try:
        return await client.read("Patient", patient_id)
    except FhirHTTPError as e:
        if e.status_code in (404, 410):
            raise HTTPException(status_code=404, detail=f"Patient not found: {patient_id}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch patient: {e}")
    except FhirError as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch patient: {e}")


@router.get("", response_model=PatientListResponse)
async def list_patients(client: FhirClient = Depends(get_fhir_client)) -> PatientListResponse:
    """List the patients managed by the configured organization."""
    view = PatientListView(client)
    await view.fetch()
    patients = view.summaries()
    return PatientListResponse(patients=patients, total=len(patients), error=view.error)


@router.get("/{patient_id}/{section}", response_model=SectionResponse)
async def get_section(
    patient_id: str,
    section: str,
    client: FhirClient = Depends(get_fhir_client),
) -> SectionResponse:
    """Fetch one chart section (conditions, procedures, medications, ...)."""
    view_class = SECTION_VIEWS.get(section)
    if view_class is None:
        raise HTTPException(status_code=404, detail=f"Unknown section: {section}")

    view = view_class(client, patient_id)
    await view.fetch()
    items = [summary.model_dump() for summary in view.summaries()]

    groups = None
    if isinstance(view, ObservationsView):
        grouped = view.groups
        groups = {
            name: [format_observation(obs).model_dump() for obs in getattr(grouped, name)]
            for name in ("vital_signs", "laboratory", "other")
        }

    return SectionResponse(
        section=section,
        items=items,
        total=len(items),
        groups=groups,
        error=view.error,
    )


@router.post("/{patient_id}/lab-values", response_model=SubmissionResponse, status_code=201)
async def add_lab_values(
    patient_id: str,
    request: LabValuesRequest,
    response: Response,
    client: FhirClient = Depends(get_fhir_client),
    organization: OrganizationRef = Depends(get_organization),
) -> SubmissionResponse:
    """Record GFR and/or hemoglobin values as laboratory Observations."""
    data = LabValuesInput(**request.model_dump(exclude_none=True))
    try:
        lab_values(data)
    except ResourceValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    patient = await _read_patient(client, patient_id)
    result = await submit_lab_values(client, patient, data, organization)
    return _submission_response(result, response)


@router.post("/{patient_id}/consultations", response_model=SubmissionResponse, status_code=201)
async def add_consultation(
    patient_id: str,
    request: ConsultationRequest,
    response: Response,
    client: FhirClient = Depends(get_fhir_client),
    department: OrganizationRef = Depends(get_department),
) -> SubmissionResponse:
    """File a consultation report Composition."""
    data = ConsultationInput(**request.model_dump(exclude_none=True))
    try:
        consultation_sections(data)
    except ResourceValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    patient = await _read_patient(client, patient_id)
    result = await submit_consultation(client, patient, data, department)
    return _submission_response(result, response)
