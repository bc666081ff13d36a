"""Async FHIR R4 REST client.

Wraps search, read, create, and delete against a single FHIR server.
Search results are unwrapped from the Bundle ``entry[].resource`` envelope;
non-2xx responses are raised as :class:`FhirHTTPError` carrying the first
``OperationOutcome`` diagnostics string when the server provides one.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings, get_config

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"

PATIENT_PAGE_SIZE = 100
RECORD_PAGE_SIZE = 50

# Sort key per patient-scoped resource type, newest first
RECORD_SORT_KEYS: dict[str, str] = {
    "Condition": "-onset-date",
    "Procedure": "-date",
    "MedicationRequest": "-authoredon",
    "DiagnosticReport": "-date",
    "Observation": "-date",
    "Composition": "-date",
}


class FhirError(Exception):
    """Base class for failures talking to the FHIR server."""


class FhirTransportError(FhirError):
    """The request never produced an HTTP response (network, timeout)."""


class FhirResponseError(FhirError):
    """The server answered 2xx with a body that is not a FHIR JSON object."""


class FhirHTTPError(FhirError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, diagnostics: str | None = None):
        self.status_code = status_code
        self.diagnostics = diagnostics
        message = f"HTTP {status_code}"
        if diagnostics:
            message = f"{message}: {diagnostics}"
        super().__init__(message)


def _extract_diagnostics(response: httpx.Response) -> str | None:
    """Best-effort read of ``OperationOutcome.issue[].diagnostics``."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for issue in body.get("issue") or []:
        diagnostics = issue.get("diagnostics") if isinstance(issue, dict) else None
        if diagnostics:
            return diagnostics
    return None


def _json_object(response: httpx.Response, method: str, path: str) -> dict:
    """Decode a success body, raising FhirResponseError unless it is a JSON object."""
    try:
        body = response.json()
    except ValueError:
        raise FhirResponseError(
            f"Invalid JSON in {response.status_code} response to {method} {path}"
        ) from None
    if not isinstance(body, dict):
        raise FhirResponseError(
            f"Expected a JSON object in response to {method} {path}, "
            f"got {type(body).__name__}"
        )
    return body


def _location_id(response: httpx.Response, resource_type: str) -> str | None:
    """Resource id from a ``Location: {base}/{type}/{id}[/_history/{vid}]`` header."""
    parts = response.headers.get("Location", "").split("/")
    if resource_type in parts:
        index = parts.index(resource_type)
        if index + 1 < len(parts) and parts[index + 1]:
            return parts[index + 1]
    return None


def bundle_resources(bundle: dict) -> list[dict]:
    """Return the resources of a search Bundle in server order.

    A Bundle without ``entry`` is an empty result, not an error.
    """
    return [
        entry["resource"]
        for entry in bundle.get("entry") or []
        if isinstance(entry, dict) and entry.get("resource")
    ]


class FhirClient:
    """Async client for one FHIR server and one owning organization."""

    def __init__(
        self,
        base_url: str,
        organization_id: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.organization_id = organization_id
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> FhirClient:
        return cls(
            base_url=settings.fhir_base_url,
            organization_id=settings.organization_id,
            timeout=settings.timeout,
        )

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict | None = None,
    ) -> httpx.Response:
        """Send a request and raise the matching FhirError on failure."""
        url = f"{self.base_url}{path}"
        headers = {"Accept": FHIR_JSON}
        if json is not None:
            headers["Content-Type"] = FHIR_JSON

        try:
            async with self._http() as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=headers,
                )
        except httpx.TransportError as e:
            raise FhirTransportError(
                f"Network error during {method} {path}: {type(e).__name__}"
            ) from e

        if not response.is_success:
            raise FhirHTTPError(response.status_code, _extract_diagnostics(response))
        return response

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(self, resource_type: str, params: dict[str, Any]) -> list[dict]:
        """Search ``{base}/{resource_type}`` and unwrap the Bundle entries."""
        path = f"/{resource_type}"
        response = await self._request("GET", path, params=params)
        resources = bundle_resources(_json_object(response, "GET", path))
        logger.debug(f"Search {resource_type} {params} returned {len(resources)} resource(s)")
        return resources

    async def search_patients(self, count: int = PATIENT_PAGE_SIZE) -> list[dict]:
        """List the patients managed by the configured organization."""
        return await self.search(
            "Patient",
            {
                "organization": f"Organization/{self.organization_id}",
                "_count": str(count),
            },
        )

    async def search_patient_records(
        self,
        resource_type: str,
        patient_id: str,
        count: int = RECORD_PAGE_SIZE,
    ) -> list[dict]:
        """List one patient's resources of a type, newest first when sortable."""
        params = {"subject": f"Patient/{patient_id}"}
        sort_key = RECORD_SORT_KEYS.get(resource_type)
        if sort_key:
            params["_sort"] = sort_key
        params["_count"] = str(count)
        return await self.search(resource_type, params)

    async def read(self, resource_type: str, resource_id: str) -> dict:
        """Read a single resource by id."""
        path = f"/{resource_type}/{resource_id}"
        response = await self._request("GET", path)
        return _json_object(response, "GET", path)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, resource: dict) -> dict:
        """POST a resource and return the server's copy, including its new ``id``.

        A server that answers with an empty body (``Prefer: return=minimal``)
        only reports the id in ``Location``; the submitted body is returned
        with that id.
        """
        resource_type = resource["resourceType"]
        path = f"/{resource_type}"
        response = await self._request("POST", path, json=resource)
        if response.content.strip():
            created = _json_object(response, "POST", path)
        else:
            resource_id = _location_id(response, resource_type)
            if resource_id is None:
                raise FhirResponseError(
                    f"Empty {response.status_code} response to POST {path} without a Location"
                )
            created = {**resource, "id": resource_id}
        logger.info(f"Created {resource_type}/{created.get('id')}")
        return created

    async def delete(
        self,
        resource_type: str,
        resource_id: str,
        cascade: bool = False,
    ) -> bool:
        """Delete a resource, reporting failure instead of raising.

        A failed cascading delete is retried once without ``_cascade``.
        A 404 counts as deleted. Returns False when the resource could not be
        removed so a larger batch can carry on.
        """
        params = {"_cascade": "delete"} if cascade else None
        try:
            await self._request("DELETE", f"/{resource_type}/{resource_id}", params=params)
            return True
        except FhirHTTPError as e:
            if e.status_code == 404:
                return True
            if cascade:
                logger.warning(
                    f"Cascade delete of {resource_type}/{resource_id} failed ({e}), retrying"
                )
                return await self.delete(resource_type, resource_id, cascade=False)
            logger.warning(f"Could not delete {resource_type}/{resource_id}: {e}")
            return False
        except FhirTransportError as e:
            logger.warning(f"Could not delete {resource_type}/{resource_id}: {e}")
            return False


# Global client instance
_client: FhirClient | None = None


def get_client() -> FhirClient:
    """Get or create the global FHIR client from the environment settings."""
    global _client
    if _client is None:
        _client = FhirClient.from_settings(get_config())
    return _client
