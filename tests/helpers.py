"""
CeyLog Test Helper Utilities

In-memory stand-ins for every external collaborator (Firebase token
verification, Firestore collections, Postmark, OpenAI) plus small builders for
request payloads and OpenAI completions.

Example usage:
    services = make_services()
    client = TestClient(create_app(services=services))
    response = client.post("/api/send-report-email", json=valid_delivery_body(), headers=auth_headers())
"""

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

from auth.models import Actor
from core.ai import TradeAdvisor
from core.config import Settings
from core.errors import AuthFailure, MailDeliveryError, StoreError
from core.models import ExportArtifact, ReportKind
from core.services import ServiceContainer, build_delivery

VALID_TOKEN = "valid-token"
OTHER_TOKEN = "other-token"
ALLOWED_ORIGIN = "https://ceylog.com"


class FakeTokenVerifier:
    """Accepts a fixed set of tokens; anything else is an ``AuthFailure``."""

    def __init__(self, tokens: Optional[Dict[str, Actor]] = None):
        self.tokens = tokens if tokens is not None else {
            VALID_TOKEN: Actor(uid="user-1", email="owner@gmail.com"),
            OTHER_TOKEN: Actor(uid="user-2", email="other@gmail.com"),
        }
        self.calls: List[str] = []

    async def verify(self, token: str) -> Actor:
        self.calls.append(token)
        if token not in self.tokens:
            raise AuthFailure(detail="unknown token")
        return self.tokens[token]


class FakeCounterStore:
    def __init__(self, fail: bool = False):
        self.entries: List[Tuple[str, datetime]] = []
        self.fail = fail

    def seed(self, actor_id: str, count: int, at: Optional[datetime] = None) -> None:
        at = at or datetime.now(timezone.utc)
        self.entries.extend((actor_id, at) for _ in range(count))

    async def count_since(self, actor_id: str, since: datetime) -> int:
        if self.fail:
            raise StoreError("counter store unavailable")
        return sum(1 for uid, at in self.entries if uid == actor_id and at > since)

    async def append(self, actor_id: str, at: datetime) -> None:
        if self.fail:
            raise StoreError("counter store unavailable")
        self.entries.append((actor_id, at))


class FakeAuditStore:
    def __init__(self, fail: bool = False):
        self.documents: List[Dict[str, Any]] = []
        self.attempts = 0
        self.fail = fail

    async def append(self, document: Dict[str, Any]) -> None:
        self.attempts += 1
        if self.fail:
            raise StoreError("audit store unavailable")
        self.documents.append(document)


class FakeMailer:
    def __init__(self, fail: bool = False, message_id: str = "pm-message-1"):
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail
        self.message_id = message_id

    async def send(self, to: str, subject: str, text_body: str, attachment: ExportArtifact) -> str:
        if self.fail:
            raise MailDeliveryError("Postmark API error: 422 - Inactive recipient")
        self.sent.append({"to": to, "subject": subject, "text_body": text_body, "attachment": attachment})
        return self.message_id


class FakeUserStore:
    def __init__(self, subscriptions: Optional[Dict[str, str]] = None, fail: bool = False):
        self.subscriptions = dict(subscriptions or {})
        self.fail = fail

    async def get_subscription(self, uid: str) -> Optional[str]:
        if self.fail:
            raise StoreError("users unavailable")
        return self.subscriptions.get(uid)

    async def set_subscription(self, uid: str, subscription: str) -> None:
        if self.fail:
            raise StoreError("users unavailable")
        self.subscriptions[uid] = subscription


class FakeReportStore:
    def __init__(self):
        self.products: Dict[str, Dict[str, Any]] = {}
        self.reports: Dict[ReportKind, List[Dict[str, Any]]] = {kind: [] for kind in ReportKind}
        self._next_id = 0

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    async def create_product(self, actor_id: str, product: Dict[str, Any]) -> str:
        product_id = self._new_id("product")
        self.products[product_id] = {
            **product,
            "createdBy": actor_id,
            "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=self._next_id),
        }
        return product_id

    async def list_products(self, actor_id: str) -> List[Dict[str, Any]]:
        owned = [{"id": pid, **data} for pid, data in self.products.items() if data["createdBy"] == actor_id]
        return sorted(owned, key=lambda p: p["createdAt"], reverse=True)

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        data = self.products.get(product_id)
        return {"id": product_id, **data} if data else None

    async def save_report(self, kind: ReportKind, actor_id: str, product_id: Optional[str],
                          content: Dict[str, Any]) -> str:
        self.reports[kind].append({**content, "productId": product_id, "createdBy": actor_id})
        return self._new_id(kind.value)

    async def count_reports(self, kind: ReportKind, actor_id: str) -> int:
        return sum(1 for report in self.reports[kind] if report["createdBy"] == actor_id)


def make_completion(content: Optional[str]) -> SimpleNamespace:
    """Shape of ``client.chat.completions.create`` results that the advisor reads."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def make_openai_client(content: Optional[str] = None, side_effect: Any = None) -> SimpleNamespace:
    create = AsyncMock(return_value=make_completion(content), side_effect=side_effect)
    return SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create)),
        close=AsyncMock(),
    )


def make_services(
    settings: Optional[Settings] = None,
    verifier: Optional[FakeTokenVerifier] = None,
    counter_store: Optional[FakeCounterStore] = None,
    audit_store: Optional[FakeAuditStore] = None,
    mailer: Optional[FakeMailer] = None,
    users: Optional[FakeUserStore] = None,
    reports: Optional[FakeReportStore] = None,
    openai_client: Any = None,
) -> ServiceContainer:
    """Service container wired entirely from fakes."""
    settings = settings or Settings()
    verifier = verifier or FakeTokenVerifier()
    mailer = mailer or FakeMailer()
    return ServiceContainer(
        settings=settings,
        token_verifier=verifier,
        delivery=build_delivery(
            settings,
            verifier,
            counter_store or FakeCounterStore(),
            audit_store or FakeAuditStore(),
            mailer,
        ),
        users=users or FakeUserStore(),
        reports=reports or FakeReportStore(),
        advisor=TradeAdvisor(openai_client) if openai_client is not None else None,
        mailer=mailer,
    )


def auth_headers(token: str = VALID_TOKEN, origin: Optional[str] = ALLOWED_ORIGIN) -> Dict[str, str]:
    headers = {"Authorization": f"Bearer {token}"}
    if origin is not None:
        headers["Origin"] = origin
    return headers


def valid_delivery_body(**overrides: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "recipient": "buyer@gmail.com",
        "format": "pdf",
        "reportData": {
            "product": "Ceylon Cinnamon",
            "sector": "Spices",
            "markets": ["United Kingdom", "Germany"],
            "metrics": {"units": 400, "price": 12.5},
        },
    }
    body.update(overrides)
    return body


def product_body(**overrides: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "name": "Ceylon Cinnamon",
        "description": "Alba grade cinnamon quills from Galle",
        "sector": "Spices",
    }
    body.update(overrides)
    return body


def dumps(data: Any) -> bytes:
    return json.dumps(data).encode("utf-8")
