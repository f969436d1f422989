"""
Error taxonomy shared by the stores, the session layer and the HTTP routes.

Every error carries the HTTP status it maps to; the application registers a
single handler that renders them as ``{"error": message}``.
"""

from __future__ import annotations


class RecordError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RecordError):
    """A candidate record broke a field constraint."""

    status_code = 400


class BadRequest(RecordError):
    """The request itself is malformed, e.g. an id with the wrong shape."""

    status_code = 400


class NotFound(RecordError):
    status_code = 404


class Unauthorized(RecordError):
    status_code = 401


class PersistenceError(RecordError):
    """The backing store was unreachable or refused the write."""

    status_code = 500
