"""Error taxonomy and the shared ``{"error": ...}`` response envelope."""

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class CeyLogError(Exception):
    """
    Base class for failures that map onto an HTTP response.

    ``message`` is what the caller sees. ``detail`` holds the internal cause
    and only ever reaches logs and audit records.
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class AuthFailure(CeyLogError):
    """Missing, malformed or unverifiable bearer credential."""
    status_code = 401
    default_message = "Unauthorized"


class QuotaExceeded(CeyLogError):
    """Free-plan allowance used up for a generation feature."""
    status_code = 402
    default_message = "Subscription limit reached"

    def __init__(self, message: Optional[str] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.payload = payload or {}

    def to_dict(self) -> Dict[str, Any]:
        return {**self.payload, "error": self.message}


class OriginRejected(CeyLogError):
    status_code = 403
    default_message = "Invalid origin"


class NotFound(CeyLogError):
    status_code = 404
    default_message = "Not found"


class PayloadTooLarge(CeyLogError):
    status_code = 413
    default_message = "Request too large"


class ValidationFailure(CeyLogError):
    """Schema or content violation; the message names the first problem."""
    status_code = 400
    default_message = "Invalid request"


class RateLimited(CeyLogError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


class ConversionFailure(CeyLogError):
    status_code = 500
    default_message = "Failed to convert report format"


class DeliveryFailure(CeyLogError):
    status_code = 500
    default_message = "Failed to send report email"


class GenerationFailure(CeyLogError):
    status_code = 500
    default_message = "Failed to generate content. Please try again later."


class PaymentFailure(CeyLogError):
    """Stripe call failed; status follows Stripe's own HTTP status when known."""
    default_message = "Payment processing failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None,
                 detail: Optional[str] = None):
        super().__init__(message, detail)
        if status_code:
            self.status_code = status_code


class ServiceUnavailable(CeyLogError):
    status_code = 503
    default_message = "Service not configured"


class ExportError(Exception):
    """Raised by an exporter that cannot produce its artifact."""
    pass


class MailDeliveryError(Exception):
    """Raised by the mail client when the provider rejects or cannot be reached."""
    pass


class StoreError(Exception):
    """Raised when a document-store read or write fails."""
    pass


def error_response(error: CeyLogError) -> JSONResponse:
    """Render a ``CeyLogError`` as a JSON response with its status code."""
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def ceylog_error_handler(request: Request, exc: CeyLogError) -> JSONResponse:
    """FastAPI exception handler registered for ``CeyLogError``."""
    return error_response(exc)
