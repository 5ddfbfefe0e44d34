"""
Report Delivery

Runs ``POST /api/send-report-email`` as one linear sequence. Each stage either
passes or raises a ``CeyLogError`` that ends the request:

    origin  ->  declared size  ->  bearer identity  ->  rate gate
            ->  body shape     ->  sensitive scan   ->  export
            ->  mail send      ->  audit write

Once the actor is known, every outcome is written to the audit trail. An audit
write that fails is swallowed in both directions: it cannot turn a sent report
into an error, nor a failed send into a success.

Example usage:
    service = ReportDeliveryService(settings, verifier, rate_gate, mailer, audit_log)
    result = await service.deliver(request.headers, request.body, client_ip)
    return result.to_dict()
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from auth.identity import resolve_actor
from auth.models import Actor
from core.audit import AuditLog
from core.config import Settings
from core.errors import (
    CeyLogError,
    ConversionFailure,
    DeliveryFailure,
    OriginRejected,
    RateLimited,
    ValidationFailure,
)
from core.exporters import export_report
from core.logging import get_logger
from core.models import AuditRecord, DeliveryRequest, ExportArtifact, first_validation_message
from core.rate_limit import RateGate
from core.security import check_content_length, contains_sensitive_data, validate_origin

logger = get_logger(__name__)

EMAIL_SUBJECT = "Your Report from Ceylog"
DEFAULT_EMAIL_TEXT = "Please find your requested report attached."


@dataclass
class DeliveryResult:
    message_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"message": "Report sent successfully", "messageId": self.message_id}


def parse_json_object(content_type: Optional[str], body: bytes) -> Dict[str, Any]:
    """
    Decode a request body that must be a JSON object.

    Raises:
        ValidationFailure: wrong content type, malformed JSON, or a non-object
    """
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type != "application/json":
        raise ValidationFailure("Content-Type must be application/json")
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationFailure("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationFailure("Request body must be a JSON object")
    return payload


class ReportDeliveryService:
    """Validates, exports and emails one report per call."""

    def __init__(
        self,
        settings: Settings,
        verifier: Any,
        rate_gate: RateGate,
        mailer: Any,
        audit_log: AuditLog,
        exporter: Callable[..., ExportArtifact] = export_report,
    ):
        self.settings = settings
        self.verifier = verifier
        self.rate_gate = rate_gate
        self.mailer = mailer
        self.audit_log = audit_log
        self.exporter = exporter

    async def deliver(self, headers: Mapping[str, str], read_body: Callable[[], Awaitable[bytes]],
                      client_ip: str = "unknown") -> DeliveryResult:
        """
        Run the full delivery sequence for one request.

        Args:
            headers: Request headers (case-insensitive mapping)
            read_body: Coroutine function returning the raw body; only awaited
                once the request has passed the identity and rate gates
            client_ip: Caller address for the audit record

        Returns:
            DeliveryResult carrying the provider message id

        Raises:
            CeyLogError: the first stage that failed
        """
        # Nothing before identity resolution is audited: there is no actor yet.
        if not validate_origin(headers.get("origin"), self.settings.allowed_origins):
            raise OriginRejected()
        check_content_length(headers.get("content-length"), self.settings.max_request_size)
        actor = await resolve_actor(headers.get("authorization"), self.verifier)

        record = AuditRecord(
            actor_id=actor.uid,
            outcome="error",
            client_ip=client_ip or "unknown",
            client_agent=headers.get("user-agent") or "unknown",
        )
        try:
            message_id = await self._send(actor, headers, read_body, record)
        except CeyLogError as e:
            record.error_detail = e.detail or e.message
            await self.audit_log.record(record)
            raise

        record.outcome = "sent"
        record.message_id = message_id
        await self.audit_log.record(record)
        return DeliveryResult(message_id)

    async def _send(self, actor: Actor, headers: Mapping[str, str],
                    read_body: Callable[[], Awaitable[bytes]], record: AuditRecord) -> str:
        gate = await self.rate_gate.check(actor.uid)
        if not gate.allowed:
            raise RateLimited(gate.message)

        payload = parse_json_object(headers.get("content-type"), await read_body())
        if isinstance(payload.get("recipient"), str):
            record.recipient = payload["recipient"]
        if isinstance(payload.get("format"), str):
            record.export_format = payload["format"]

        try:
            request = DeliveryRequest.model_validate(payload, context={"settings": self.settings})
        except ValidationError as e:
            raise ValidationFailure(first_validation_message(e))

        record.recipient = request.recipient
        record.export_format = request.format.value

        if contains_sensitive_data(request.report_data):
            raise ValidationFailure("Report contains sensitive data")

        try:
            artifact = await run_in_threadpool(self.exporter, request.format, request.report_data)
        except Exception as e:
            logger.error(
                f"Format conversion error: {e}",
                extra={"actor_id": actor.uid, "export_format": request.format.value},
            )
            raise ConversionFailure(detail=str(e))

        try:
            return await self.mailer.send(
                to=request.recipient,
                subject=EMAIL_SUBJECT,
                text_body=request.message or DEFAULT_EMAIL_TEXT,
                attachment=artifact,
            )
        except Exception as e:
            logger.error(
                f"Email sending error: {e}",
                extra={"actor_id": actor.uid, "recipient": request.recipient},
            )
            raise DeliveryFailure(detail=str(e))
