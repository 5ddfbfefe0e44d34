"""
Process-scoped service wiring.

Every external client (Firebase, Firestore, Postmark, OpenAI) is built once
at startup and reached by routes through ``app.state.services``. Tests build
a ``ServiceContainer`` from fakes and pass it to ``create_app``.

Example usage:
    services = build_services(Settings.from_env())
    app = create_app(services=services)
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx
from openai import AsyncOpenAI

from auth.identity import FirebaseTokenVerifier
from core.ai import TradeAdvisor
from core.audit import AuditLog
from core.config import Settings
from core.delivery import ReportDeliveryService
from core.email import PostmarkMailer
from core.errors import ServiceUnavailable
from core.firestore import (
    FirestoreAuditStore,
    FirestoreCounterStore,
    FirestoreReportStore,
    FirestoreUserStore,
    init_firebase,
)
from core.logging import get_logger
from core.rate_limit import RateGate

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    token_verifier: Any
    delivery: ReportDeliveryService
    users: Any
    reports: Any
    advisor: Optional[TradeAdvisor] = None
    mailer: Optional[Any] = None
    http_client: Optional[httpx.AsyncClient] = None

    def require_advisor(self) -> TradeAdvisor:
        if self.advisor is None:
            raise ServiceUnavailable("AI generation not configured")
        return self.advisor

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.advisor is not None:
            await self.advisor.client.close()


def build_delivery(
    settings: Settings,
    verifier: Any,
    counter_store: Any,
    audit_store: Any,
    mailer: Any,
) -> ReportDeliveryService:
    """Assemble the delivery pipeline from its collaborators."""
    rate_gate = RateGate(
        counter_store,
        max_requests=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    )
    return ReportDeliveryService(settings, verifier, rate_gate, mailer, AuditLog(audit_store))


def build_services(settings: Settings) -> ServiceContainer:
    """
    Build the production container.

    Initialises Firebase Admin, opens one shared HTTP client for Postmark and,
    when an API key is present, one OpenAI client.
    """
    firebase_app, db = init_firebase(settings)
    verifier = FirebaseTokenVerifier(app=firebase_app)

    http_client = httpx.AsyncClient(timeout=15.0)
    mailer = PostmarkMailer(
        settings.postmark_token or "",
        settings.report_email_from,
        stream=settings.postmark_stream,
        client=http_client,
    )
    if not settings.postmark_token:
        logger.warning("POSTMARK_API_TOKEN not configured - report emails will fail")

    advisor = None
    if settings.openai_api_key:
        advisor = TradeAdvisor(
            AsyncOpenAI(api_key=settings.openai_api_key),
            model=settings.openai_model,
            match_model=settings.openai_match_model,
        )
    else:
        logger.warning("OPENAI_API_KEY not configured - AI generation disabled")

    return ServiceContainer(
        settings=settings,
        token_verifier=verifier,
        delivery=build_delivery(
            settings, verifier, FirestoreCounterStore(db), FirestoreAuditStore(db), mailer
        ),
        users=FirestoreUserStore(db),
        reports=FirestoreReportStore(db),
        advisor=advisor,
        mailer=mailer,
        http_client=http_client,
    )
