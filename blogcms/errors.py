# blogcms/errors.py
from typing import Optional


class ContentError(Exception):
    """Base class for errors that map onto an HTTP status and envelope message."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ContentError):
    """Missing or malformed required input."""

    status_code = 400
    default_message = "Invalid request"


class NotFoundError(ContentError):
    """No record matches the id within the caller's ownership scope."""

    status_code = 404
    default_message = "Record not found or unauthorized"


class ConflictError(ContentError):
    """Per-owner uniqueness violation."""

    status_code = 409
    default_message = "Record already exists"


class UpstreamError(ContentError):
    """Attachment store or document store failure."""

    status_code = 500


class UnexpectedError(ContentError):
    """Any failure outside the taxonomy; rendered without internal detail."""

    status_code = 500
