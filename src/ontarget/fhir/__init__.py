"""FHIR R4 client, display formatters, and resource builders.

Usage:
    from ontarget.fhir import FhirClient, format_observation

    client = FhirClient("https://hapi.fhir.org/baseR4", organization_id="53655767")
    observations = await client.search_patient_records("Observation", "123")
    values = [format_observation(obs).value for obs in observations]
"""

from .builders import (
    ResourceValidationError,
    build_consultation,
    build_lab_observations,
)
from .client import (
    FhirClient,
    FhirError,
    FhirHTTPError,
    FhirResponseError,
    FhirTransportError,
    get_client,
)
from .formatters import (
    extract_section_text,
    format_composition,
    format_condition,
    format_date,
    format_datetime,
    format_diagnostic_report,
    format_medication,
    format_name,
    format_observation,
    format_patient,
    format_procedure,
    group_observations,
)
from .schemas import (
    ConsultationInput,
    LabValuesInput,
    OrganizationRef,
    SubmissionOutput,
)

__all__ = [
    # Client
    "FhirClient",
    "get_client",
    "FhirError",
    "FhirHTTPError",
    "FhirResponseError",
    "FhirTransportError",
    # Builders
    "ResourceValidationError",
    "build_lab_observations",
    "build_consultation",
    # Formatters
    "format_name",
    "format_date",
    "format_datetime",
    "format_patient",
    "format_condition",
    "format_procedure",
    "format_medication",
    "format_diagnostic_report",
    "format_observation",
    "group_observations",
    "format_composition",
    "extract_section_text",
    # Schemas
    "LabValuesInput",
    "ConsultationInput",
    "OrganizationRef",
    "SubmissionOutput",
]
