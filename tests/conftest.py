"""Pytest configuration and shared fixtures.

Provides an in-memory fake FHIR server wired into FhirClient through
httpx.MockTransport, plus common FHIR test data.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from ontarget.fhir.client import FhirClient
from ontarget.fhir.schemas import OrganizationRef

BASE_URL = "http://fhir.test/baseR4"
ORGANIZATION_ID = "org-1"

Handler = Callable[[httpx.Request], httpx.Response]


def bundle(*resources: dict) -> dict:
    """Wrap resources in a searchset Bundle."""
    body = {"resourceType": "Bundle", "type": "searchset", "total": len(resources)}
    if resources:
        body["entry"] = [{"resource": resource} for resource in resources]
    return body


def operation_outcome(diagnostics: str) -> dict:
    return {
        "resourceType": "OperationOutcome",
        "issue": [{"severity": "error", "code": "processing", "diagnostics": diagnostics}],
    }


class FakeFhirServer:
    """Records every request and answers from registered handlers.

    Unhandled POSTs echo the body back with a sequential id; any other
    unhandled request gets a 404 OperationOutcome.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.created: list[dict] = []
        self._handlers: dict[tuple[str, str], Handler] = {}
        self._next_id = 1

    def on(self, method: str, path: str, status: int = 200, json_body=None, handler=None):
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status, json=json_body)
        self._handlers[(method, path)] = handler

    def requests_for(self, method: str, path: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and (path is None or self.path(r) == path)
        ]

    @staticmethod
    def path(request: httpx.Request) -> str:
        return request.url.path.removeprefix("/baseR4")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self._handlers.get((request.method, self.path(request)))
        if handler is not None:
            return handler(request)
        if request.method == "POST":
            body = json.loads(request.content)
            body["id"] = str(self._next_id)
            self._next_id += 1
            self.created.append(body)
            return httpx.Response(201, json=body)
        return httpx.Response(404, json=operation_outcome("Resource not found"))


@pytest.fixture
def fhir_server() -> FakeFhirServer:
    return FakeFhirServer()


@pytest.fixture
def fhir_client(fhir_server: FakeFhirServer) -> FhirClient:
    return FhirClient(
        BASE_URL,
        organization_id=ORGANIZATION_ID,
        transport=httpx.MockTransport(fhir_server),
    )


@pytest.fixture
def organization() -> OrganizationRef:
    return OrganizationRef(id=ORGANIZATION_ID, display="Demo General Hospital")


# =============================================================================
# FHIR test data
# =============================================================================


@pytest.fixture
def patient() -> dict:
    return {
        "resourceType": "Patient",
        "id": "p1",
        "name": [{"family": "Doe", "given": ["John", "Quincy"]}],
        "gender": "male",
        "birthDate": "1955-06-15",
        "telecom": [{"system": "phone", "value": "555-0123", "use": "home"}],
        "address": [
            {
                "line": ["123 Main Street"],
                "city": "Springfield",
                "state": "IL",
                "postalCode": "62701",
            }
        ],
    }


@pytest.fixture
def blood_pressure() -> dict:
    return {
        "resourceType": "Observation",
        "id": "bp1",
        "status": "final",
        "category": [{"coding": [{"code": "vital-signs"}]}],
        "code": {"coding": [{"code": "85354-9", "display": "Blood pressure panel"}]},
        "effectiveDateTime": "2023-04-02T09:15:00Z",
        "component": [
            {
                "code": {"coding": [{"display": "Systolic blood pressure"}]},
                "valueQuantity": {"value": 200, "unit": "mmHg"},
            },
            {
                "code": {"coding": [{"display": "Diastolic blood pressure"}]},
                "valueQuantity": {"value": 110, "unit": "mmHg"},
            },
        ],
    }
