"""
Error taxonomy for paylink.

Every error carries the HTTP status it maps to; handlers in paylink.main render
them as {"error": message}.
"""
from typing import Optional


class PaylinkError(Exception):
    status_code = 500
    message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(PaylinkError):
    """Bad amount or missing field. User-correctable."""
    status_code = 400
    message = "Invalid request"


class AuthenticityError(PaylinkError):
    """Webhook could not be trusted. The message never says why."""
    status_code = 400
    message = "Invalid webhook request"


class ParseError(AuthenticityError):
    """Webhook body is not an event we can read; rejected like a bad signature."""


class UpstreamError(PaylinkError):
    """Payment provider call failed or timed out."""
    status_code = 500
    message = "Payment provider request failed"

    def __init__(self, message: Optional[str] = None, code: str = "upstream_error"):
        super().__init__(message)
        self.code = code


class NotFound(PaylinkError):
    status_code = 404
    message = "Payment record not found"


class DuplicateKey(PaylinkError):
    status_code = 409
    message = "Payment record already exists"


class StoreUnavailable(PaylinkError):
    """Record store or audit log could not be read or written."""
    status_code = 500
    message = "Record store unavailable"
