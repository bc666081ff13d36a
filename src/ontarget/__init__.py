"""OnTarget EHR - viewer and editor for clinical records on a FHIR R4 server."""

__version__ = "0.1.0"
