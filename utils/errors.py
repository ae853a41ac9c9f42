"""
Error types raised by the envelope calculation engines and the project importer.
"""

from typing import Optional


class EnvelopeError(Exception):
    """Base class for every error raised by this package."""


class GeometryError(EnvelopeError):
    """Degenerate or non-computable geometry (zero-area polygon, ray parallel to a plane...)."""

    def __init__(self, reason: str, geometry_id: Optional[str] = None):
        self.reason = reason
        self.geometry_id = geometry_id
        super().__init__(str(self))

    def __str__(self):
        if self.geometry_id:
            return f"Geometry error in '{self.geometry_id}': {self.reason}"
        return f"Geometry error: {self.reason}"


class CatalogError(EnvelopeError):
    """A referenced construction, material, glass or frame is missing from the catalog."""

    def __init__(self, kind: str, item_id: str, referenced_by: Optional[str] = None,
                 detail: Optional[str] = None):
        self.kind = kind
        self.item_id = item_id
        self.referenced_by = referenced_by
        self.detail = detail
        super().__init__(str(self))

    def __str__(self):
        if self.detail:
            return self.detail
        message = f"Unknown {self.kind} '{self.item_id}'"
        if self.referenced_by:
            message += f" referenced by '{self.referenced_by}'"
        return message


class ComputationError(EnvelopeError):
    """Numerically invalid input (non-positive thickness, zero resistance...)."""


class ParseError(EnvelopeError):
    """Malformed project description."""


class ModelReferenceError(EnvelopeError):
    """Dangling reference between entities of a project description."""
