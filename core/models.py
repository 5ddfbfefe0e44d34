"""
CeyLog Core Models

Pydantic v2 request models and the plain data records that flow through report
delivery and the AI generation routes.

Limits for ``DeliveryRequest`` are read from the validation context so the
same model honours whatever ``Settings`` the app was built with:

    request = DeliveryRequest.model_validate(body, context={"settings": settings})
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from email_validator import EmailNotValidError, validate_email
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from core.config import Settings
from core.security import sanitize_message, serialize_compact

_DEFAULT_SETTINGS = Settings()


def _settings_from(info: ValidationInfo) -> Settings:
    if info.context and isinstance(info.context.get("settings"), Settings):
        return info.context["settings"]
    return _DEFAULT_SETTINGS


class ReportFormat(str, Enum):
    """Export formats a report can be delivered in."""
    PDF = "pdf"      # paginated text document
    CSV = "csv"      # flat tabular export
    DOCX = "docx"    # styled paragraph document


class DeliveryRequest(BaseModel):
    """Body of ``POST /api/send-report-email``."""

    model_config = ConfigDict(populate_by_name=True)

    recipient: str
    format: ReportFormat
    report_data: Dict[str, Any] = Field(..., alias="reportData")
    message: Optional[str] = None

    @field_validator("recipient")
    @classmethod
    def check_recipient(cls, value: str, info: ValidationInfo) -> str:
        settings = _settings_from(info)
        value = value.strip()
        if "@" in value:
            domain = value.rsplit("@", 1)[1].lower()
            if domain not in settings.allowed_email_domains:
                raise ValueError("Email domain not allowed")
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            raise ValueError("Invalid email address")
        return value

    @field_validator("report_data")
    @classmethod
    def check_report_size(cls, value: Dict[str, Any], info: ValidationInfo) -> Dict[str, Any]:
        if len(serialize_compact(value)) > _settings_from(info).max_report_size:
            raise ValueError("Report data exceeds maximum size")
        return value

    @field_validator("message")
    @classmethod
    def clean_message(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value is None:
            return None
        limit = _settings_from(info).max_message_length
        if len(value) > limit:
            raise ValueError(f"Message must be at most {limit} characters")
        return sanitize_message(value)


def first_validation_message(exc: Union[ValidationError, RequestValidationError]) -> str:
    """
    Render the first pydantic error as ``"<field>: <message>"``.

    Example:
        >>> first_validation_message(exc)
        'recipient: Email domain not allowed'
    """
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    message = first.get("msg", "Invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {message}" if location else message


@dataclass
class ExportArtifact:
    """One exported attachment, produced fresh for each request."""
    filename: str
    content_type: str
    content: bytes
    format: ReportFormat


@dataclass
class AuditRecord:
    """Outcome of a single delivery attempt."""
    actor_id: str
    outcome: str  # "sent" or "error"
    recipient: Optional[str] = None
    export_format: Optional[str] = None
    message_id: Optional[str] = None
    error_detail: Optional[str] = None
    client_ip: str = "unknown"
    client_agent: str = "unknown"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_document(self) -> Dict[str, Any]:
        """Field names as stored in the ``email_logs`` collection."""
        document: Dict[str, Any] = {
            "userId": self.actor_id,
            "recipient": self.recipient,
            "format": self.export_format,
            "status": self.outcome,
            "ipAddress": self.client_ip,
            "userAgent": self.client_agent,
            "timestamp": self.timestamp,
        }
        if self.message_id is not None:
            document["messageId"] = self.message_id
        if self.error_detail is not None:
            document["error"] = self.error_detail
        return document


class ReportKind(str, Enum):
    """AI report families and the collection each one is saved to."""
    MARKET = "marketReports"
    MATCHMAKING = "matchmakingReports"
    VISIBILITY = "visibilityReports"


class ProductIn(BaseModel):
    """Product details sent to the generation routes and the product registry."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    sector: str = Field(..., min_length=1, max_length=100)
    price: Optional[float] = Field(None, ge=0)
    product_id: Optional[str] = Field(None, alias="productId", max_length=128)


class BuyerContact(BaseModel):
    name: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    linkedin: str = Field(..., min_length=1)
    email: Optional[str] = None

    @field_validator("name", "title", "linkedin", "email", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class BuyerMatch(BaseModel):
    """One prospective UK buyer returned by matchmaking."""
    company: str
    website: str
    department: str
    contacts: List[BuyerContact]

    @field_validator("company", "website", "department")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()


class VisibilityContent(BaseModel):
    """Marketing copy for one product."""

    model_config = ConfigDict(populate_by_name=True)

    seo_text: str = Field(..., alias="seoText", min_length=1)
    linkedin_post: str = Field(..., alias="linkedinPost", min_length=1)
    ebay_listing: str = Field(..., alias="ebayListing", min_length=1)
    email_pitch: str = Field(..., alias="emailPitch", min_length=1)
