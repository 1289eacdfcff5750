"""Exception hierarchy mapped onto HTTP status codes by the web layer."""

from __future__ import annotations


class FacilityFinderError(Exception):
    """Base class for errors raised while serving a request."""

    status_code = 500


class ValidationError(FacilityFinderError):
    """Raised when a required parameter is missing or malformed."""

    status_code = 400


class NotFoundError(FacilityFinderError):
    """Raised for an unknown facility id or a geocode search with no match."""

    status_code = 404


class UpstreamError(FacilityFinderError):
    """Raised when the database or an external API fails."""

    status_code = 500


class StoreError(UpstreamError):
    """Raised when a database query fails."""


class OpenRouteError(UpstreamError):
    """Raised when OpenRouteService returns an unexpected response."""
