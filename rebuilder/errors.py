"""Error taxonomy shared by the HTTP layer, the job worker and the extractor."""

from __future__ import annotations


class RebuilderError(Exception):
    """Base class for every error raised deliberately by this package."""


class AuthError(RebuilderError):
    """Signature missing (strict mode), uncomputable or mismatched."""


class ValidationError(RebuilderError):
    """Request is well-formed but its content is unacceptable."""


class NavigationError(RebuilderError):
    """The page could not be loaded, even after the permissive retry."""


class ExtractionError(RebuilderError):
    """The in-page capture script failed or returned unusable data."""


class InternalError(RebuilderError):
    """Unexpected failure inside the pipeline."""
