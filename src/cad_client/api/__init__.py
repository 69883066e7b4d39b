"""CAD API REST accessors."""

from cad_client.api.client import DEFAULT_BASE_URL, CADClient

__all__ = ["CADClient", "DEFAULT_BASE_URL"]
