"""Seed the FHIR server with the demo patient's medical history.

Removes every patient of the configured organization (and the resources
that reference them), then creates John Doe and his history one resource at
a time, since later resources point at the ids of earlier ones.

Usage:
    python -m ontarget.seed

    # Keep existing patients
    python -m ontarget.seed --skip-cleanup

    # Against another server, without pauses between requests
    ONTARGET_FHIR_BASE_URL=http://localhost:8080/fhir python -m ontarget.seed --delay 0
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections import Counter

from .config import get_config
from .fhir.client import FhirClient, FhirError
from .fhir.schemas import OrganizationRef
from .history import (
    BLOOD_PRESSURE_READINGS,
    CONDITIONS,
    CONSULTATIONS,
    DIAGNOSTIC_TESTS,
    MEDICATIONS,
    JohnDoeHistory,
)

logger = logging.getLogger(__name__)

# Referencing types come before the types they reference
CLEANUP_ORDER = (
    "DiagnosticReport",
    "ServiceRequest",
    "MedicationRequest",
    "Procedure",
    "Composition",
    "Observation",
    "Condition",
)
CASCADE_TYPES = {"Condition", "Procedure"}

CLEANUP_PAGE_SIZE = 1000


async def delete_patient_resources(
    client: FhirClient,
    resource_type: str,
    patient_id: str,
    delay: float = 0.0,
) -> int:
    """Delete one patient's resources of a type. Returns how many were removed."""
    try:
        resources = await client.search(
            resource_type,
            {"subject": f"Patient/{patient_id}", "_count": str(CLEANUP_PAGE_SIZE)},
        )
    except FhirError as e:
        logger.warning(f"Could not list {resource_type} for Patient/{patient_id}: {e}")
        return 0

    deleted = 0
    cascade = resource_type in CASCADE_TYPES
    for resource in resources:
        if not resource.get("id"):
            continue
        if await client.delete(resource_type, resource["id"], cascade=cascade):
            deleted += 1
        await asyncio.sleep(delay)
    return deleted


async def delete_all_patients(client: FhirClient, delay: float = 0.0) -> int:
    """Delete every patient of the organization along with their records.

    Individual failures are logged and skipped. Returns the number of
    patients processed.
    """
    try:
        patients = await client.search_patients(count=CLEANUP_PAGE_SIZE)
    except FhirError as e:
        logger.warning(f"Could not list patients for cleanup: {e}")
        return 0

    if not patients:
        logger.info("No patients to delete")
        return 0

    logger.info(f"Found {len(patients)} patient(s) to delete")
    for patient in patients:
        patient_id = patient["id"]
        logger.info(f"Deleting resources for Patient/{patient_id}")
        for resource_type in CLEANUP_ORDER:
            deleted = await delete_patient_resources(client, resource_type, patient_id, delay)
            if deleted:
                logger.info(f"  Deleted {deleted} {resource_type} resource(s)")
        if await client.delete("Patient", patient_id, cascade=True):
            logger.info(f"  Deleted Patient/{patient_id}")
        await asyncio.sleep(delay * 2)

    return len(patients)


async def seed_history(
    client: FhirClient,
    history: JohnDoeHistory,
    delay: float = 0.0,
) -> tuple[str, Counter[str]]:
    """Create the demo patient and the full history, strictly in order.

    Returns the new patient id and a count of created resources per type.

    Raises:
        FhirError: Any creation failed; later resources are not attempted.
    """
    created: Counter[str] = Counter()

    async def create(resource: dict) -> str:
        result = await client.create(resource)
        created[resource["resourceType"]] += 1
        await asyncio.sleep(delay)
        return result["id"]

    patient_id = await create(history.patient())
    logger.info(f"Patient ID: {patient_id}")

    condition_ids = {}
    for spec in CONDITIONS:
        condition_ids[spec.key] = await create(history.condition(spec, patient_id))

    await create(history.stent_procedure(patient_id, condition_ids["cad"]))

    for years, systolic, diastolic in BLOOD_PRESSURE_READINGS:
        await create(history.blood_pressure(patient_id, years, systolic, diastolic))

    for spec in CONSULTATIONS:
        await create(history.consultation(spec, patient_id))

    for spec in MEDICATIONS:
        await create(history.medication_request(spec, patient_id, condition_ids[spec.reason]))

    order_ids = {}
    for spec in DIAGNOSTIC_TESTS:
        order_ids[spec.key] = await create(
            history.service_request(spec, patient_id, condition_ids[spec.reason])
        )

    for spec in DIAGNOSTIC_TESTS:
        await create(history.diagnostic_report(spec, patient_id, order_ids[spec.key]))

    return patient_id, created


async def run(skip_cleanup: bool = False, delay: float = 0.3) -> str:
    """Clean up the organization's patients, then seed the demo history."""
    config = get_config()
    client = FhirClient.from_settings(config)
    history = JohnDoeHistory(
        organization=OrganizationRef(id=config.organization_id, display=config.organization_name),
        department=OrganizationRef(id=config.organization_id, display=config.department_display),
    )

    if not skip_cleanup:
        logger.info("Deleting all patients and their associated resources...")
        await delete_all_patients(client, delay)
        await asyncio.sleep(delay * 3)

    logger.info(f"Seeding John Doe history on {config.fhir_base_url}")
    patient_id, created = await seed_history(client, history, delay)

    logger.info(f"Inserted medical history for Patient/{patient_id}")
    for resource_type, count in sorted(created.items()):
        logger.info(f"  {count} {resource_type} resource(s)")
    return patient_id


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the FHIR server with demo patient data")
    parser.add_argument(
        "--skip-cleanup",
        action="store_true",
        help="Keep the organization's existing patients",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=0.3,
        help="Seconds to pause between requests (default: 0.3)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(run(skip_cleanup=args.skip_cleanup, delay=args.delay))
    except FhirError as e:
        logger.error(f"Error inserting medical history: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
