"""Synthetic multi-year cardiology history for the demo patient John Doe.

Builds the resources the seed script posts: carotid artery stenosis,
coronary artery disease treated with an LAD stent, and uncontrolled
hypertension, with readings, visits, prescriptions, and test results spread
over eight years. Resources that reference earlier ones take the
server-assigned ids as arguments, so they must be created in order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .fhir.builders import (
    LOINC,
    OBSERVATION_CATEGORY,
    SNOMED,
    UCUM,
    organization_reference,
    xhtml_div,
)
from .fhir.schemas import OrganizationRef

RXNORM = "http://www.nlm.nih.gov/research/umls/rxnorm"
CONDITION_CLINICAL = "http://terminology.hl7.org/CodeSystem/condition-clinical"
CONDITION_VER_STATUS = "http://terminology.hl7.org/CodeSystem/condition-ver-status"
MEDICATION_CATEGORY = "http://terminology.hl7.org/CodeSystem/medicationrequest-category"
DIAGNOSTIC_SERVICE = "http://terminology.hl7.org/CodeSystem/v2-0074"

PATIENT_NAME = "John Doe"


@dataclass(frozen=True)
class ConditionSpec:
    key: str
    code: str
    display: str
    text: str
    years_ago: float
    severity: tuple[str, str] | None = None


@dataclass(frozen=True)
class MedicationSpec:
    code: str
    display: str
    years_ago: float
    reason: str
    reason_display: str
    dosage: str


@dataclass(frozen=True)
class DiagnosticTestSpec:
    key: str
    system: str
    code: str
    display: str
    text: str
    reason: str
    reason_display: str
    ordered_years_ago: float
    reported_day: int
    service: tuple[str, str]
    conclusion: str
    conclusion_code: tuple[str, str]


CONDITIONS = (
    ConditionSpec("carotid", "397825006", "Carotid artery stenosis", "Carotid artery stenosis", 8),
    ConditionSpec("cad", "53741008", "Coronary artery disease", "Coronary artery disease", 5),
    ConditionSpec(
        "hypertension",
        "38341003",
        "Hypertensive disorder",
        "Uncontrolled hypertension",
        6,
        severity=("255604002", "Mild"),
    ),
)

# (years ago, systolic, diastolic)
BLOOD_PRESSURE_READINGS = (
    (6, 200, 110),
    (5.5, 195, 108),
    (5, 205, 112),
    (4.5, 198, 109),
    (4, 200, 110),
    (3.5, 202, 111),
    (3, 198, 108),
    (2.5, 200, 110),
    (2, 195, 109),
    (1.5, 200, 110),
    (1, 198, 108),
    (0.5, 200, 110),
)


@dataclass(frozen=True)
class ConsultationSpec:
    years_ago: float
    chief_complaint: str
    history: str
    physical_exam: str
    assessment: str
    plan: str


CONSULTATIONS = (
    ConsultationSpec(
        6,
        "Elevated blood pressure readings, headaches",
        "Patient presents with persistent hypertension. Blood pressure consistently "
        "elevated around 200/110 mmHg. Reports occasional headaches and dizziness.",
        "BP: 200/110 mmHg. Heart rate regular. No significant findings on cardiac auscultation.",
        "Uncontrolled hypertension. Risk factors include age and family history.",
        "Start antihypertensive medication (ACE inhibitor). Lifestyle modifications including "
        "low-sodium diet and regular exercise. Follow-up in 3 months.",
    ),
    ConsultationSpec(
        5.5,
        "Follow-up for hypertension management",
        "Patient reports some improvement in symptoms but blood pressure remains elevated. "
        "Compliance with medication is good.",
        "BP: 195/108 mmHg. Cardiovascular examination unremarkable.",
        "Hypertension still uncontrolled despite medication. Consider medication adjustment.",
        "Increase ACE inhibitor dosage. Add diuretic if needed. Continue lifestyle "
        "modifications. Recheck in 2 months.",
    ),
    ConsultationSpec(
        5,
        "Chest pain and shortness of breath",
        "Patient presents with new onset chest pain on exertion and occasional shortness of "
        "breath. History of uncontrolled hypertension.",
        "BP: 205/112 mmHg. Heart rate 88 bpm. S4 gallop present. No murmurs.",
        "Suspected coronary artery disease. Hypertension uncontrolled. Need cardiac workup.",
        "Order ECG, stress test, and cardiac catheterization. Continue antihypertensive "
        "medications. Cardiology referral.",
    ),
    ConsultationSpec(
        4.5,
        "Post-procedure follow-up after LAD stent",
        "Patient underwent LAD stent insertion 6 months ago. Reports improvement in chest "
        "pain. Blood pressure still elevated.",
        "BP: 198/109 mmHg. Heart rate regular. No signs of heart failure.",
        "Post-PCI status. CAD stable. Hypertension still uncontrolled.",
        "Continue dual antiplatelet therapy. Optimize antihypertensive regimen. Cardiac "
        "rehabilitation. Follow-up in 3 months.",
    ),
    ConsultationSpec(
        4,
        "Routine follow-up for CAD and hypertension",
        "Patient doing well post-stent. No chest pain. Blood pressure readings remain high.",
        "BP: 200/110 mmHg. Cardiovascular examination stable.",
        "CAD stable post-PCI. Hypertension uncontrolled despite multiple medications.",
        "Continue current medications. Consider adding beta-blocker. Lifestyle counseling. "
        "Follow-up in 4 months.",
    ),
    ConsultationSpec(
        3,
        "Annual cardiology follow-up",
        "Patient stable on current medications. No cardiac symptoms. Blood pressure still "
        "elevated.",
        "BP: 198/108 mmHg. Heart sounds normal.",
        "CAD stable. Hypertension uncontrolled. Carotid stenosis known, stable.",
        "Continue current treatment. Monitor carotid stenosis. Annual carotid ultrasound. "
        "Follow-up in 6 months.",
    ),
    ConsultationSpec(
        2,
        "Routine cardiovascular follow-up",
        "Patient reports feeling well. No new symptoms. Blood pressure readings consistently "
        "high.",
        "BP: 200/110 mmHg. No changes in cardiovascular examination.",
        "All conditions stable but hypertension remains uncontrolled.",
        "Continue medications. Emphasize lifestyle modifications. Consider medication review. "
        "Follow-up in 4 months.",
    ),
    ConsultationSpec(
        1,
        "Follow-up visit",
        "Patient stable. Blood pressure readings remain elevated around 200/110 mmHg. No "
        "cardiac symptoms.",
        "BP: 198/108 mmHg. Cardiovascular examination unchanged.",
        "CAD and carotid stenosis stable. Hypertension uncontrolled.",
        "Continue current treatment regimen. Monitor for complications. Follow-up in 6 months.",
    ),
    ConsultationSpec(
        0.5,
        "Recent blood pressure check",
        "Patient presents for routine follow-up. Blood pressure still elevated. No new "
        "concerns.",
        "BP: 200/110 mmHg. Physical examination unremarkable.",
        "Hypertension uncontrolled. CAD and carotid stenosis stable.",
        "Continue medications. Review medication compliance. Consider referral to "
        "hypertension specialist. Follow-up in 3 months.",
    ),
)

MEDICATIONS = (
    MedicationSpec("314076", "ACE inhibitor", 6, "hypertension", "Uncontrolled hypertension",
                   "Take as directed by physician"),
    MedicationSpec("197806", "Diuretic", 5.5, "hypertension", "Uncontrolled hypertension",
                   "Take as directed by physician"),
    MedicationSpec("3689", "Beta-blocker", 4, "cad", "Coronary artery disease",
                   "Take as directed by physician"),
    MedicationSpec("1191", "Aspirin", 4.5, "cad", "Coronary artery disease - post-PCI",
                   "81 mg daily"),
    MedicationSpec("32968", "Clopidogrel", 4.5, "cad", "Coronary artery disease - post-PCI",
                   "75 mg daily"),
)

DIAGNOSTIC_TESTS = (
    DiagnosticTestSpec(
        key="ecg",
        system=LOINC,
        code="34551-2",
        display="ECG 12 lead",
        text="ECG",
        reason="cad",
        reason_display="Suspected coronary artery disease",
        ordered_years_ago=5,
        reported_day=5,
        service=("CUS", "Cardiac Ultrasound"),
        conclusion="Sinus rhythm. ST-T wave changes consistent with ischemia. No acute changes.",
        conclusion_code=("429622005", "ST-T wave changes"),
    ),
    DiagnosticTestSpec(
        key="stress",
        system=LOINC,
        code="23288-9",
        display="Cardiac stress test",
        text="Stress test",
        reason="cad",
        reason_display="Suspected coronary artery disease",
        ordered_years_ago=5,
        reported_day=10,
        service=("CUS", "Cardiac Ultrasound"),
        conclusion="Positive stress test with ST depression in leads V4-V6. Indicates "
        "significant coronary artery disease. Recommend cardiac catheterization.",
        conclusion_code=("429622005", "Positive stress test"),
    ),
    DiagnosticTestSpec(
        key="cath",
        system=SNOMED,
        code="17401000",
        display="Cardiac catheterization",
        text="Cardiac catheterization",
        reason="cad",
        reason_display="Suspected coronary artery disease",
        ordered_years_ago=5,
        reported_day=20,
        service=("CUS", "Cardiac Ultrasound"),
        conclusion="Significant stenosis (90%) in the left anterior descending (LAD) artery. "
        "Other coronary arteries show mild to moderate disease. Recommended PCI with stent "
        "placement.",
        conclusion_code=("399068003", "Coronary artery stenosis"),
    ),
    DiagnosticTestSpec(
        key="carotid_us",
        system=LOINC,
        code="43351-2",
        display="Carotid artery US",
        text="Carotid ultrasound",
        reason="carotid",
        reason_display="Carotid artery stenosis",
        ordered_years_ago=3,
        reported_day=7,
        service=("US", "Ultrasound"),
        conclusion="Carotid artery stenosis stable. Right carotid shows 60% stenosis, left "
        "carotid shows 55% stenosis. No significant progression since last study. Continue "
        "monitoring.",
        conclusion_code=("397825006", "Carotid artery stenosis"),
    ),
)


def _concept(system: str, code: str, display: str, text: str | None = None) -> dict:
    concept = {"coding": [{"system": system, "code": code, "display": display}]}
    if text:
        concept["text"] = text
    return concept


@dataclass
class JohnDoeHistory:
    """Resource factory for the demo patient, anchored at ``now``.

    ``organization`` stamps the managing organization and vital-sign
    performers; ``department`` stamps clinical authors and requesters.
    """

    organization: OrganizationRef
    department: OrganizationRef
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def years_ago(self, years: float, month: int | None = None, day: int | None = None) -> str:
        """ISO instant ``years`` before now, optionally pinned to a month/day."""
        moment = self.now - timedelta(days=round(years * 365.25))
        if month is not None:
            moment = moment.replace(month=month, day=min(moment.day, 28))
        if day is not None:
            moment = moment.replace(day=day)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def _subject(self, patient_id: str) -> dict:
        return {"reference": f"Patient/{patient_id}", "display": PATIENT_NAME}

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def patient(self) -> dict:
        return {
            "resourceType": "Patient",
            "identifier": [
                {"system": "http://hospital.example/patient-id", "value": "JOHN-DOE-001"}
            ],
            "name": [{"family": "Doe", "given": ["John"]}],
            "gender": "male",
            "birthDate": "1955-06-15",
            "address": [
                {
                    "line": ["123 Main Street"],
                    "city": "Springfield",
                    "state": "IL",
                    "postalCode": "62701",
                    "country": "USA",
                }
            ],
            "telecom": [{"system": "phone", "value": "555-0123", "use": "home"}],
            "managingOrganization": organization_reference(self.organization),
        }

    def condition(self, spec: ConditionSpec, patient_id: str) -> dict:
        condition = {
            "resourceType": "Condition",
            "clinicalStatus": _concept(CONDITION_CLINICAL, "active", "Active"),
            "verificationStatus": _concept(CONDITION_VER_STATUS, "confirmed", "Confirmed"),
            "category": [_concept(SNOMED, "64572001", "Disease")],
            "code": _concept(SNOMED, spec.code, spec.display, spec.text),
            "subject": self._subject(patient_id),
            "onsetDateTime": self.years_ago(spec.years_ago),
            "recordedDate": self.years_ago(spec.years_ago),
        }
        if spec.severity:
            condition["severity"] = _concept(SNOMED, *spec.severity)
        return condition

    def stent_procedure(self, patient_id: str, cad_condition_id: str) -> dict:
        return {
            "resourceType": "Procedure",
            "status": "completed",
            "category": _concept(SNOMED, "387713003", "Surgical procedure"),
            "code": _concept(
                SNOMED,
                "415070008",
                "Percutaneous coronary intervention",
                "LAD stent insertion",
            ),
            "subject": self._subject(patient_id),
            "performedDateTime": self.years_ago(4),
            "performer": [{"actor": organization_reference(self.department)}],
            "reasonReference": [
                {"reference": f"Condition/{cad_condition_id}", "display": "Coronary artery disease"}
            ],
            "note": [
                {
                    "text": "LAD (Left Anterior Descending) artery stent insertion "
                    "performed successfully"
                }
            ],
        }

    def blood_pressure(self, patient_id: str, years: float, systolic: int, diastolic: int) -> dict:
        def component(code: str, display: str, value: int) -> dict:
            return {
                "code": _concept(LOINC, code, display),
                "valueQuantity": {
                    "value": value,
                    "unit": "mmHg",
                    "system": UCUM,
                    "code": "mm[Hg]",
                },
            }

        return {
            "resourceType": "Observation",
            "status": "final",
            "category": [_concept(OBSERVATION_CATEGORY, "vital-signs", "Vital Signs")],
            "code": _concept(LOINC, "85354-9", "Blood pressure panel with all children optional"),
            "subject": self._subject(patient_id),
            "effectiveDateTime": self.years_ago(years),
            "component": [
                component("8480-6", "Systolic blood pressure", systolic),
                component("8462-4", "Diastolic blood pressure", diastolic),
            ],
            "performer": [organization_reference(self.organization)],
        }

    def consultation(self, spec: ConsultationSpec, patient_id: str) -> dict:
        sections = (
            ("Chief Complaint", "10154-3", "Chief complaint", spec.chief_complaint),
            ("History of Present Illness", "10164-2", "History of present illness", spec.history),
            ("Physical Examination", "29545-1", "Physical examination", spec.physical_exam),
            ("Assessment", "51848-0", "Assessment", spec.assessment),
            ("Plan", "18776-5", "Plan", spec.plan),
        )
        return {
            "resourceType": "Composition",
            "status": "final",
            "type": _concept(LOINC, "11506-3", "Progress note", "Cardiology Consultation Report"),
            "category": [_concept(SNOMED, "308335008", "Patient consultation", "Consultation")],
            "subject": self._subject(patient_id),
            "date": self.years_ago(spec.years_ago),
            "author": [organization_reference(self.department)],
            "title": "Cardiology Consultation Report",
            "section": [
                {
                    "title": title,
                    "code": _concept(LOINC, code, display),
                    "text": {"status": "generated", "div": xhtml_div(text)},
                }
                for title, code, display, text in sections
            ],
        }

    def medication_request(self, spec: MedicationSpec, patient_id: str, reason_id: str) -> dict:
        return {
            "resourceType": "MedicationRequest",
            "status": "active",
            "intent": "order",
            "category": [_concept(MEDICATION_CATEGORY, "outpatient", "Outpatient")],
            "medicationCodeableConcept": _concept(RXNORM, spec.code, spec.display, spec.display),
            "subject": self._subject(patient_id),
            "authoredOn": self.years_ago(spec.years_ago),
            "requester": organization_reference(self.department),
            "reasonReference": [
                {"reference": f"Condition/{reason_id}", "display": spec.reason_display}
            ],
            "dosageInstruction": [
                {
                    "text": spec.dosage,
                    "timing": {"repeat": {"frequency": 1, "period": 1, "periodUnit": "d"}},
                }
            ],
        }

    def service_request(self, spec: DiagnosticTestSpec, patient_id: str, reason_id: str) -> dict:
        return {
            "resourceType": "ServiceRequest",
            "status": "completed",
            "intent": "order",
            "category": [_concept(SNOMED, "103693007", "Diagnostic procedure")],
            "code": _concept(spec.system, spec.code, spec.display, spec.text),
            "subject": self._subject(patient_id),
            "authoredOn": self.years_ago(spec.ordered_years_ago),
            "requester": organization_reference(self.department),
            "reasonReference": [
                {"reference": f"Condition/{reason_id}", "display": spec.reason_display}
            ],
        }

    def diagnostic_report(
        self,
        spec: DiagnosticTestSpec,
        patient_id: str,
        service_request_id: str,
    ) -> dict:
        reported = self.years_ago(spec.ordered_years_ago, month=1, day=spec.reported_day)
        return {
            "resourceType": "DiagnosticReport",
            "status": "final",
            "category": [_concept(DIAGNOSTIC_SERVICE, *spec.service)],
            "code": _concept(spec.system, spec.code, spec.display, spec.text),
            "subject": self._subject(patient_id),
            "effectiveDateTime": reported,
            "issued": reported,
            "performer": [organization_reference(self.department)],
            "conclusion": spec.conclusion,
            "conclusionCode": [_concept(SNOMED, *spec.conclusion_code)],
            "basedOn": [
                {
                    "reference": f"ServiceRequest/{service_request_id}",
                    "display": f"{spec.text} order",
                }
            ],
        }
