from .fhir_client import FHIRClient, TokenProvider

__all__ = ["FHIRClient", "TokenProvider"]
