"""Errors raised by the mapping service.

Each error carries the HTTP status it maps to; the API turns any of them
into a JSON body of the form {"error": message}.
"""

from __future__ import annotations


class MappingError(Exception):
    """Base error for the mapping service."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MappingError):
    """Missing or invalid slug/type."""

    status_code = 400


class NotFound(MappingError):
    """No mapping for the requested UUID."""

    status_code = 404


class InternalError(MappingError):
    """Datastore failure; message is passed through from the driver."""

    status_code = 500
