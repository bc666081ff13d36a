"""Display formatting for FHIR resources.

Pure functions that turn a parsed FHIR resource (a plain dict) into the
human-readable strings shown for it. None of them touch the network, and
missing fields always fall back to a readable placeholder instead of raising.
"""

from __future__ import annotations

import html
import re
from datetime import datetime

from .schemas import (
    CompositionSection,
    CompositionSummary,
    ConditionSummary,
    DiagnosticReportSummary,
    MedicationSummary,
    ObservationComponent,
    ObservationGroups,
    ObservationSummary,
    PatientSummary,
    ProcedureSummary,
)

NOT_AVAILABLE = "N/A"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# FHIR allows reduced-precision dates: "2024" and "2024-03"
_PARTIAL_DATE = re.compile(r"^(\d{4})(?:-(\d{2}))?$")

_DIV_CONTENT = re.compile(r"<div[^>]*>(.*?)</div>", re.DOTALL)

_PERIOD_UNITS = {
    "s": "second",
    "min": "minute",
    "h": "hour",
    "d": "day",
    "wk": "week",
    "mo": "month",
    "a": "year",
}


# =============================================================================
# Primitives
# =============================================================================


def format_name(names: list[dict] | None) -> str:
    """Format the first HumanName as "Given Given Family"."""
    if not names:
        return "Unknown"
    first = names[0]
    given = " ".join(first.get("given") or [])
    family = first.get("family") or ""
    return f"{given} {family}".strip() or "Unknown"


def _parse_iso(value: str) -> datetime | None:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _format_partial(value: str) -> str | None:
    match = _PARTIAL_DATE.match(value.strip())
    if not match:
        return None
    year, month = match.groups()
    if month is None:
        return year
    month_number = int(month)
    if not 1 <= month_number <= 12:
        return None
    return f"{_MONTHS[month_number - 1]} {year}"


def format_date(value: str | None) -> str:
    """Format an ISO 8601 date or dateTime as "Jun 15, 1955".

    Returns "N/A" for missing input and the original string when it
    cannot be parsed.
    """
    if not value:
        return NOT_AVAILABLE
    partial = _format_partial(value)
    if partial:
        return partial
    parsed = _parse_iso(value)
    if parsed is None:
        return value
    return f"{_MONTHS[parsed.month - 1]} {parsed.day}, {parsed.year}"


def format_datetime(value: str | None) -> str:
    """Like :func:`format_date`, with the time of day when the value has one."""
    if not value:
        return NOT_AVAILABLE
    date_part = format_date(value)
    if date_part == value or "T" not in value:
        return date_part
    parsed = _parse_iso(value)
    hour = parsed.hour % 12 or 12
    meridiem = "AM" if parsed.hour < 12 else "PM"
    return f"{date_part}, {hour:02d}:{parsed.minute:02d} {meridiem}"


def format_number(value) -> str:
    """Render a JSON number without a spurious trailing ".0"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def coding_display(concept: dict | None, default: str | None = None) -> str | None:
    """Display text of a CodeableConcept: first coding's display, then text."""
    if not concept:
        return default
    codings = concept.get("coding") or []
    if codings and codings[0].get("display"):
        return codings[0]["display"]
    return concept.get("text") or default


def _reference_display(reference: dict | None) -> str | None:
    if reference is None:
        return None
    return reference.get("display") or NOT_AVAILABLE


def _first(items: list | None) -> dict | None:
    return items[0] if items else None


# =============================================================================
# Patient
# =============================================================================


def format_gender(gender: str | None) -> str:
    if not gender:
        return "Unknown"
    return gender[0].upper() + gender[1:]


def format_address(address: dict | None) -> str | None:
    if not address:
        return None
    parts = [
        ", ".join(address.get("line") or []),
        address.get("city"),
        address.get("state"),
        address.get("postalCode"),
    ]
    return ", ".join(part for part in parts if part) or None


def format_patient(patient: dict) -> PatientSummary:
    telecom = patient.get("telecom") or []
    contact = ", ".join(f"{t.get('system')}: {t.get('value')}" for t in telecom) or None
    return PatientSummary(
        id=patient.get("id", ""),
        name=format_name(patient.get("name")),
        gender=format_gender(patient.get("gender")),
        birth_date=format_date(patient.get("birthDate")),
        contact=contact,
        address=format_address(_first(patient.get("address"))),
    )


# =============================================================================
# Clinical records
# =============================================================================


def format_condition(condition: dict) -> ConditionSummary:
    status_coding = _first((condition.get("clinicalStatus") or {}).get("coding")) or {}
    severity_coding = _first((condition.get("severity") or {}).get("coding")) or {}
    onset = condition.get("onsetDateTime") or (condition.get("onsetPeriod") or {}).get("start")
    recorded = condition.get("recordedDate")
    return ConditionSummary(
        id=condition.get("id"),
        code=coding_display(condition.get("code"), "Unknown"),
        clinical_status=status_coding.get("display") or status_coding.get("code") or "unknown",
        severity=severity_coding.get("display"),
        onset=format_date(onset),
        recorded=format_date(recorded) if recorded else None,
    )


def format_procedure(procedure: dict) -> ProcedureSummary:
    performed = procedure.get("performedDateTime") or (
        procedure.get("performedPeriod") or {}
    ).get("start")
    performer = _first(procedure.get("performer"))
    note = _first(procedure.get("note"))
    return ProcedureSummary(
        id=procedure.get("id"),
        code=coding_display(procedure.get("code"), "Unknown"),
        status=procedure.get("status") or "unknown",
        performed=format_date(performed),
        performer=_reference_display(performer.get("actor") or {}) if performer else None,
        reason=_reference_display(_first(procedure.get("reasonReference"))),
        note=note.get("text") if note else None,
    )


def format_dosage(dosage_instructions: list[dict] | None) -> str:
    """Describe the first dosage instruction.

    Free text wins; otherwise the timing repeat is rendered as
    "{frequency}x per {unit}"; otherwise "As directed".
    """
    instruction = _first(dosage_instructions) or {}
    if instruction.get("text"):
        return instruction["text"]
    repeat = (instruction.get("timing") or {}).get("repeat")
    if repeat:
        frequency = format_number(repeat.get("frequency") or 1)
        unit_code = repeat.get("periodUnit")
        unit = _PERIOD_UNITS.get(unit_code, unit_code) if unit_code else "day"
        period = repeat.get("period")
        if period and period != 1:
            return f"{frequency}x per {format_number(period)} {unit}s"
        return f"{frequency}x per {unit}"
    return "As directed"


def format_medication(medication: dict) -> MedicationSummary:
    return MedicationSummary(
        id=medication.get("id"),
        name=coding_display(medication.get("medicationCodeableConcept"), "Unknown medication"),
        status=medication.get("status") or "unknown",
        intent=medication.get("intent") or "unknown",
        dosage=format_dosage(medication.get("dosageInstruction")),
        authored_on=format_date(medication.get("authoredOn")),
        reason=_reference_display(_first(medication.get("reasonReference"))),
        requester=_reference_display(medication.get("requester")),
    )


def format_diagnostic_report(report: dict) -> DiagnosticReportSummary:
    issued = report.get("issued")
    return DiagnosticReportSummary(
        id=report.get("id"),
        code=coding_display(report.get("code"), "Unknown test"),
        status=report.get("status") or "unknown",
        effective=format_datetime(report.get("effectiveDateTime") or issued),
        issued=format_datetime(issued) if issued else None,
        conclusion=report.get("conclusion"),
        conclusion_codes=[
            coding_display(code, NOT_AVAILABLE) for code in report.get("conclusionCode") or []
        ],
        result_count=len(report.get("result") or []),
        performer=_reference_display(_first(report.get("performer"))),
        based_on=_reference_display(_first(report.get("basedOn"))),
    )


# =============================================================================
# Observations
# =============================================================================


def _value_text(element: dict) -> str:
    """Render the value[x] of an Observation or Observation.component."""
    if element.get("valueQuantity"):
        quantity = element["valueQuantity"]
        return f"{format_number(quantity.get('value'))} {quantity.get('unit') or ''}".strip()
    if element.get("valueString"):
        return element["valueString"]
    if element.get("valueCodeableConcept"):
        return coding_display(element["valueCodeableConcept"], NOT_AVAILABLE)
    return NOT_AVAILABLE


def observation_category(observation: dict) -> str | None:
    category = _first(observation.get("category")) or {}
    coding = _first(category.get("coding")) or {}
    return coding.get("code")


def format_observation(observation: dict) -> ObservationSummary:
    """Resolve an Observation's display value.

    Components take priority: a two-part blood pressure renders as
    "systolic/diastolic", anything else as "code: value" pairs. Without
    components the single value[x] is used.
    """
    code = coding_display(observation.get("code"), "Unknown")
    components = None
    if observation.get("component"):
        components = [
            ObservationComponent(
                code=coding_display(component.get("code"), "Unknown"),
                value=_value_text(component),
            )
            for component in observation["component"]
        ]
        if len(components) == 2 and "blood pressure" in code.lower():
            value = f"{components[0].value}/{components[1].value}"
        else:
            value = ", ".join(f"{c.code}: {c.value}" for c in components)
    else:
        value = _value_text(observation)

    return ObservationSummary(
        id=observation.get("id"),
        code=code,
        value=value,
        date=format_date(observation.get("effectiveDateTime")),
        category=observation_category(observation),
        components=components,
    )


def group_observations(observations: list[dict]) -> ObservationGroups:
    """Partition observations into vital signs, laboratory, and other.

    Every observation lands in exactly one group and server order is kept
    within each group.
    """
    groups = ObservationGroups()
    for observation in observations:
        category = observation_category(observation)
        if category == "vital-signs":
            groups.vital_signs.append(observation)
        elif category == "laboratory":
            groups.laboratory.append(observation)
        else:
            groups.other.append(observation)
    return groups


# =============================================================================
# Compositions
# =============================================================================


def extract_section_text(div: str | None) -> str:
    """Return the text inside the first ``<div>`` of an XHTML narrative.

    The raw string is returned when it contains no div.
    """
    if not div:
        return ""
    match = _DIV_CONTENT.search(div)
    if not match:
        return div
    return html.unescape(match.group(1).strip())


def format_composition(composition: dict) -> CompositionSummary:
    type_concept = composition.get("type") or {}
    title = type_concept.get("text") or coding_display(type_concept, "Consultation Report")
    return CompositionSummary(
        id=composition.get("id"),
        title=title,
        date=format_date(composition.get("date")),
        status=composition.get("status") or "unknown",
        author=_reference_display(_first(composition.get("author"))),
        sections=[
            CompositionSection(
                title=section.get("title") or "",
                text=extract_section_text((section.get("text") or {}).get("div")),
            )
            for section in composition.get("section") or []
        ],
    )
