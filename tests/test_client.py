"""Tests for the FHIR REST client."""

import json

import httpx
import pytest

from conftest import BASE_URL, bundle, operation_outcome
from ontarget.fhir.client import (
    FhirClient,
    FhirHTTPError,
    FhirResponseError,
    FhirTransportError,
    bundle_resources,
)


class TestBundleResources:
    """Tests for bundle_resources."""

    def test_unwraps_entries_in_order(self):
        body = bundle({"resourceType": "Patient", "id": "a"}, {"resourceType": "Patient", "id": "b"})
        assert [r["id"] for r in bundle_resources(body)] == ["a", "b"]

    def test_missing_entry_is_empty(self):
        assert bundle_resources({"resourceType": "Bundle", "total": 0}) == []

    def test_skips_entries_without_resource(self):
        body = {"entry": [{"fullUrl": "x"}, {"resource": {"id": "a"}}]}
        assert bundle_resources(body) == [{"id": "a"}]


class TestSearch:
    """Tests for search query shape."""

    @pytest.mark.asyncio
    async def test_search_patients_filters_by_organization(self, fhir_server, fhir_client):
        fhir_server.on("GET", "/Patient", json_body=bundle({"resourceType": "Patient", "id": "p1"}))

        patients = await fhir_client.search_patients()

        assert [p["id"] for p in patients] == ["p1"]
        request = fhir_server.requests_for("GET", "/Patient")[0]
        assert request.url.params["organization"] == "Organization/org-1"
        assert request.url.params["_count"] == "100"
        assert request.headers["Accept"] == "application/fhir+json"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "resource_type, sort_key",
        [
            ("Condition", "-onset-date"),
            ("Procedure", "-date"),
            ("MedicationRequest", "-authoredon"),
            ("DiagnosticReport", "-date"),
            ("Observation", "-date"),
            ("Composition", "-date"),
        ],
    )
    async def test_patient_records_sorted_newest_first(
        self, fhir_server, fhir_client, resource_type, sort_key
    ):
        fhir_server.on("GET", f"/{resource_type}", json_body=bundle())

        await fhir_client.search_patient_records(resource_type, "p1")

        params = fhir_server.requests_for("GET", f"/{resource_type}")[0].url.params
        assert params["subject"] == "Patient/p1"
        assert params["_sort"] == sort_key
        assert params["_count"] == "50"

    @pytest.mark.asyncio
    async def test_unknown_type_is_not_sorted(self, fhir_server, fhir_client):
        fhir_server.on("GET", "/ServiceRequest", json_body=bundle())

        await fhir_client.search_patient_records("ServiceRequest", "p1")

        params = fhir_server.requests_for("GET", "/ServiceRequest")[0].url.params
        assert "_sort" not in params

    @pytest.mark.asyncio
    async def test_empty_bundle(self, fhir_server, fhir_client):
        fhir_server.on("GET", "/Condition", json_body=bundle())
        assert await fhir_client.search_patient_records("Condition", "p1") == []

    @pytest.mark.asyncio
    async def test_error_status_raises(self, fhir_server, fhir_client):
        fhir_server.on("GET", "/Condition", status=500, json_body=operation_outcome("boom"))

        with pytest.raises(FhirHTTPError) as exc_info:
            await fhir_client.search_patient_records("Condition", "p1")
        assert exc_info.value.status_code == 500
        assert exc_info.value.diagnostics == "boom"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = FhirClient(BASE_URL, "org-1", transport=httpx.MockTransport(refuse))
        with pytest.raises(FhirTransportError, match="ConnectError"):
            await client.search_patients()


class TestRead:
    """Tests for read."""

    @pytest.mark.asyncio
    async def test_read_patient(self, fhir_server, fhir_client, patient):
        fhir_server.on("GET", "/Patient/p1", json_body=patient)
        assert (await fhir_client.read("Patient", "p1"))["id"] == "p1"

    @pytest.mark.asyncio
    async def test_read_missing(self, fhir_client):
        with pytest.raises(FhirHTTPError) as exc_info:
            await fhir_client.read("Patient", "nope")
        assert exc_info.value.status_code == 404


class TestCreate:
    """Tests for create."""

    @pytest.mark.asyncio
    async def test_returns_server_id(self, fhir_server, fhir_client):
        created = await fhir_client.create({"resourceType": "Observation", "status": "final"})

        assert created["id"] == "1"
        request = fhir_server.requests_for("POST", "/Observation")[0]
        assert request.headers["Content-Type"] == "application/fhir+json"
        assert json.loads(request.content) == {"resourceType": "Observation", "status": "final"}

    @pytest.mark.asyncio
    async def test_operation_outcome_diagnostics(self, fhir_server, fhir_client):
        fhir_server.on("POST", "/Observation", status=422, json_body=operation_outcome("invalid code"))

        with pytest.raises(FhirHTTPError) as exc_info:
            await fhir_client.create({"resourceType": "Observation"})
        assert "422" in str(exc_info.value)
        assert "invalid code" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, fhir_server, fhir_client):
        fhir_server.on(
            "POST",
            "/Observation",
            handler=lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"),
        )

        with pytest.raises(FhirHTTPError) as exc_info:
            await fhir_client.create({"resourceType": "Observation"})
        assert exc_info.value.status_code == 502
        assert exc_info.value.diagnostics is None
        assert str(exc_info.value) == "HTTP 502"


class TestUnexpectedBodies:
    """Tests for 2xx responses whose body is not a FHIR JSON object."""

    @pytest.mark.asyncio
    async def test_search_with_array_body(self, fhir_server, fhir_client):
        fhir_server.on("GET", "/Condition", json_body=[])

        with pytest.raises(FhirResponseError, match="list"):
            await fhir_client.search_patient_records("Condition", "p1")

    @pytest.mark.asyncio
    async def test_read_with_html_body(self, fhir_server, fhir_client):
        fhir_server.on(
            "GET",
            "/Patient/p1",
            handler=lambda request: httpx.Response(200, text="<html>maintenance</html>"),
        )

        with pytest.raises(FhirResponseError, match="Invalid JSON"):
            await fhir_client.read("Patient", "p1")

    @pytest.mark.asyncio
    async def test_create_minimal_uses_location(self, fhir_server, fhir_client):
        fhir_server.on(
            "POST",
            "/Composition",
            handler=lambda request: httpx.Response(
                201, headers={"Location": f"{BASE_URL}/Composition/c42/_history/1"}
            ),
        )

        created = await fhir_client.create({"resourceType": "Composition", "status": "final"})

        assert created == {"resourceType": "Composition", "status": "final", "id": "c42"}

    @pytest.mark.asyncio
    async def test_create_empty_without_location(self, fhir_server, fhir_client):
        fhir_server.on("POST", "/Composition", handler=lambda request: httpx.Response(201))

        with pytest.raises(FhirResponseError, match="Location"):
            await fhir_client.create({"resourceType": "Composition"})


class TestDelete:
    """Tests for delete."""

    @pytest.mark.asyncio
    async def test_plain_delete(self, fhir_server, fhir_client):
        fhir_server.on("DELETE", "/Observation/o1", json_body=operation_outcome("ok"))

        assert await fhir_client.delete("Observation", "o1") is True
        request = fhir_server.requests_for("DELETE")[0]
        assert "_cascade" not in request.url.params

    @pytest.mark.asyncio
    async def test_cascade_param(self, fhir_server, fhir_client):
        fhir_server.on("DELETE", "/Condition/c1", json_body=operation_outcome("ok"))

        assert await fhir_client.delete("Condition", "c1", cascade=True) is True
        assert fhir_server.requests_for("DELETE")[0].url.params["_cascade"] == "delete"

    @pytest.mark.asyncio
    async def test_cascade_failure_retries_plain(self, fhir_server, fhir_client):
        def handler(request: httpx.Request) -> httpx.Response:
            if "_cascade" in request.url.params:
                return httpx.Response(400, json=operation_outcome("cascade not supported"))
            return httpx.Response(200, json=operation_outcome("ok"))

        fhir_server.on("DELETE", "/Condition/c1", handler=handler)

        assert await fhir_client.delete("Condition", "c1", cascade=True) is True
        requests = fhir_server.requests_for("DELETE")
        assert len(requests) == 2
        assert "_cascade" not in requests[1].url.params

    @pytest.mark.asyncio
    async def test_not_found_counts_as_deleted(self, fhir_server, fhir_client):
        assert await fhir_client.delete("Observation", "gone") is True

    @pytest.mark.asyncio
    async def test_failure_returns_false(self, fhir_server, fhir_client):
        fhir_server.on("DELETE", "/Patient/p1", status=409, json_body=operation_outcome("referenced"))

        assert await fhir_client.delete("Patient", "p1", cascade=True) is False
        assert len(fhir_server.requests_for("DELETE")) == 2
