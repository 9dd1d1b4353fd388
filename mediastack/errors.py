"""Exception types raised by the stack generator."""
from __future__ import annotations


class MediastackError(Exception):
    """Base class for errors raised by mediastack."""


class CatalogError(MediastackError):
    """The bundled service catalog could not be loaded."""


class ServiceNotFoundError(MediastackError, KeyError):
    """A service identifier is not present in the registry."""

    def __init__(self, service_id: str) -> None:
        super().__init__(service_id)
        self.service_id = service_id

    def __str__(self) -> str:
        return f"service not found: {self.service_id}"


class RenderError(MediastackError):
    """A compose strategy was invoked with a selection it cannot render.

    Validation runs before rendering, so this indicates a sequencing bug
    rather than a user-facing condition.
    """
