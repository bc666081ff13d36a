"""Patient record views and clinical form submission.

Each view loads one slice of the chart on demand (the patient list, or one
resource type for one patient) and keeps the latest snapshot together with
an error message. Fetch failures are captured on the view and never raised,
so one failing section cannot take down the rest of the chart.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import ClassVar

from pydantic import BaseModel

from .fhir.builders import build_consultation, build_lab_observations
from .fhir.client import FhirClient, FhirError, FhirHTTPError
from .fhir.formatters import (
    format_composition,
    format_condition,
    format_diagnostic_report,
    format_medication,
    format_observation,
    format_patient,
    format_procedure,
    group_observations,
)
from .fhir.schemas import (
    ConsultationInput,
    LabValuesInput,
    ObservationGroups,
    OrganizationRef,
    SubmissionOutput,
)

logger = logging.getLogger(__name__)


class RecordView:
    """On-demand snapshot of one patient's resources of a single type."""

    resource_type: ClassVar[str]
    label: ClassVar[str]
    formatter: ClassVar[Callable[[dict], BaseModel]]

    def __init__(self, client: FhirClient, patient_id: str):
        self.client = client
        self.patient_id = patient_id
        self.items: list[dict] = []
        self.error: str | None = None
        self.loaded = False

    async def _load(self) -> list[dict]:
        return await self.client.search_patient_records(self.resource_type, self.patient_id)

    async def fetch(self) -> None:
        """Load the latest resources, replacing the previous snapshot.

        On failure the previous items are kept and ``error`` is set.
        """
        self.error = None
        try:
            items = await self._load()
        except (FhirError, ValueError) as e:
            logger.warning(f"Error fetching {self.label} for patient {self.patient_id}: {e}")
            self.error = str(e)
        else:
            self.items = items
        self.loaded = True

    def summaries(self) -> list[BaseModel]:
        return [type(self).formatter(item) for item in self.items]


class PatientListView(RecordView):
    """The patients managed by the client's organization."""

    resource_type = "Patient"
    label = "patients"
    formatter = staticmethod(format_patient)

    def __init__(self, client: FhirClient):
        super().__init__(client, patient_id="")

    async def _load(self) -> list[dict]:
        return await self.client.search_patients()


class ConditionsView(RecordView):
    resource_type = "Condition"
    label = "conditions"
    formatter = staticmethod(format_condition)


class ProceduresView(RecordView):
    resource_type = "Procedure"
    label = "procedures"
    formatter = staticmethod(format_procedure)


class MedicationsView(RecordView):
    resource_type = "MedicationRequest"
    label = "medications"
    formatter = staticmethod(format_medication)


class DiagnosticReportsView(RecordView):
    resource_type = "DiagnosticReport"
    label = "diagnostic reports"
    formatter = staticmethod(format_diagnostic_report)


class ObservationsView(RecordView):
    resource_type = "Observation"
    label = "observations"
    formatter = staticmethod(format_observation)

    @property
    def groups(self) -> ObservationGroups:
        return group_observations(self.items)


class ConsultationsView(RecordView):
    resource_type = "Composition"
    label = "consultation reports"
    formatter = staticmethod(format_composition)


# URL section name -> view class
SECTION_VIEWS: dict[str, type[RecordView]] = {
    "conditions": ConditionsView,
    "procedures": ProceduresView,
    "medications": MedicationsView,
    "diagnostic-reports": DiagnosticReportsView,
    "observations": ObservationsView,
    "consultations": ConsultationsView,
}


# =============================================================================
# Submission
# =============================================================================


def _failure_detail(error: FhirError) -> str:
    if isinstance(error, FhirHTTPError):
        return f"{error.status_code} {error.diagnostics or ''}".strip()
    return str(error)


async def submit_lab_values(
    client: FhirClient,
    patient: dict,
    data: LabValuesInput,
    organization: OrganizationRef,
) -> SubmissionOutput:
    """Create the lab value Observations concurrently.

    Observations that were created stay created when another one fails; the
    failures are reported together in ``error``.

    Raises:
        ResourceValidationError: The form is invalid. Nothing is sent.
    """
    observations = build_lab_observations(data, patient, organization)

    results = await asyncio.gather(
        *(client.create(observation) for observation in observations),
        return_exceptions=True,
    )

    created_ids = []
    errors = []
    for observation, result in zip(observations, results):
        if isinstance(result, FhirError):
            errors.append(f"Failed to create {observation['code']['text']}: {_failure_detail(result)}")
        elif isinstance(result, BaseException):
            raise result
        else:
            created_ids.append(result.get("id", "unknown"))

    if errors:
        logger.warning(f"Lab value submission for patient {patient.get('id')} failed: {errors}")
        return SubmissionOutput(success=False, created_ids=created_ids, error="; ".join(errors))
    return SubmissionOutput(success=True, created_ids=created_ids)


async def submit_consultation(
    client: FhirClient,
    patient: dict,
    data: ConsultationInput,
    organization: OrganizationRef,
) -> SubmissionOutput:
    """Create a consultation report Composition.

    Raises:
        ResourceValidationError: The form is invalid. Nothing is sent.
    """
    composition = build_consultation(data, patient, organization)

    try:
        created = await client.create(composition)
    except FhirError as e:
        logger.warning(f"Consultation submission for patient {patient.get('id')} failed: {e}")
        return SubmissionOutput(
            success=False,
            error=f"Failed to create consultation report: {_failure_detail(e)}",
        )
    return SubmissionOutput(success=True, created_ids=[created.get("id", "unknown")])
