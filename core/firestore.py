"""
Firestore-backed stores.

Every store wraps an async Firestore client created once per process by
``init_firebase`` and handed in at construction time. Store methods raise
``StoreError`` on any backend failure; callers decide whether that is fatal.

Collections:
    rate_limits          one document per accepted report request
    email_logs           audit trail of report deliveries
    users                profile and subscription flag
    products             products registered by suppliers
    marketReports        AI market analyses saved against a product
    matchmakingReports   AI buyer matches saved against a product
    visibilityReports    AI marketing copy saved against a product
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import firebase_admin
from firebase_admin import credentials, firestore_async
from google.cloud.firestore_v1.base_query import FieldFilter

from core.config import Settings
from core.errors import StoreError
from core.logging import get_logger
from core.models import ReportKind

logger = get_logger(__name__)

RATE_LIMITS = "rate_limits"
EMAIL_LOGS = "email_logs"
USERS = "users"
PRODUCTS = "products"


def init_firebase(settings: Settings) -> Tuple[Any, Any]:
    """
    Initialise (or reuse) the default firebase_admin app.

    Args:
        settings: Process settings with optional credentials path and project id

    Returns:
        Tuple of (firebase_admin app, async Firestore client)
    """
    try:
        app = firebase_admin.get_app()
    except ValueError:
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        if settings.firebase_credentials:
            cred = credentials.Certificate(settings.firebase_credentials)
        else:
            cred = credentials.ApplicationDefault()
        app = firebase_admin.initialize_app(cred, options)
        logger.info("Firebase Admin initialised", extra={"project_id": settings.firebase_project_id})

    return app, firestore_async.client(app)


class FirestoreCounterStore:
    """Per-actor request markers used by the report rate gate."""

    def __init__(self, client: Any, collection: str = RATE_LIMITS):
        self.client = client
        self.collection = collection

    async def count_since(self, actor_id: str, since: datetime) -> int:
        try:
            query = (
                self.client.collection(self.collection)
                .where(filter=FieldFilter("userId", "==", actor_id))
                .where(filter=FieldFilter("timestamp", ">", since))
            )
            snapshots = await query.get()
            return len(snapshots)
        except Exception as e:
            raise StoreError(f"rate counter read failed: {e}") from e

    async def append(self, actor_id: str, at: datetime) -> None:
        try:
            await self.client.collection(self.collection).add({"userId": actor_id, "timestamp": at})
        except Exception as e:
            raise StoreError(f"rate counter write failed: {e}") from e


class FirestoreAuditStore:
    """Append-only store for delivery audit documents."""

    def __init__(self, client: Any, collection: str = EMAIL_LOGS):
        self.client = client
        self.collection = collection

    async def append(self, document: Dict[str, Any]) -> None:
        try:
            await self.client.collection(self.collection).add(document)
        except Exception as e:
            raise StoreError(f"audit write failed: {e}") from e


class FirestoreUserStore:
    """Subscription flag on ``users/{uid}``."""

    def __init__(self, client: Any, collection: str = USERS):
        self.client = client
        self.collection = collection

    async def get_subscription(self, uid: str) -> Optional[str]:
        try:
            snapshot = await self.client.collection(self.collection).document(uid).get()
        except Exception as e:
            raise StoreError(f"user read failed: {e}") from e
        if not snapshot.exists:
            return None
        return (snapshot.to_dict() or {}).get("subscription")

    async def set_subscription(self, uid: str, subscription: str) -> None:
        try:
            await self.client.collection(self.collection).document(uid).set(
                {"subscription": subscription, "subscriptionUpdatedAt": datetime.now(timezone.utc)},
                merge=True,
            )
        except Exception as e:
            raise StoreError(f"user write failed: {e}") from e


class FirestoreReportStore:
    """Products and the AI reports generated for them."""

    def __init__(self, client: Any):
        self.client = client

    async def create_product(self, actor_id: str, product: Dict[str, Any]) -> str:
        document = {**product, "createdBy": actor_id, "createdAt": datetime.now(timezone.utc)}
        try:
            _, ref = await self.client.collection(PRODUCTS).add(document)
        except Exception as e:
            raise StoreError(f"product write failed: {e}") from e
        return ref.id

    async def list_products(self, actor_id: str) -> List[Dict[str, Any]]:
        try:
            query = (
                self.client.collection(PRODUCTS)
                .where(filter=FieldFilter("createdBy", "==", actor_id))
                .order_by("createdAt", direction="DESCENDING")
            )
            snapshots = await query.get()
        except Exception as e:
            raise StoreError(f"product query failed: {e}") from e
        return [{"id": snap.id, **(snap.to_dict() or {})} for snap in snapshots]

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = await self.client.collection(PRODUCTS).document(product_id).get()
        except Exception as e:
            raise StoreError(f"product read failed: {e}") from e
        if not snapshot.exists:
            return None
        return {"id": snapshot.id, **(snapshot.to_dict() or {})}

    async def save_report(self, kind: ReportKind, actor_id: str, product_id: str,
                          content: Dict[str, Any]) -> str:
        document = {
            **content,
            "productId": product_id,
            "createdBy": actor_id,
            "generatedAt": datetime.now(timezone.utc),
        }
        try:
            _, ref = await self.client.collection(kind.value).add(document)
        except Exception as e:
            raise StoreError(f"{kind.value} write failed: {e}") from e
        return ref.id

    async def count_reports(self, kind: ReportKind, actor_id: str) -> int:
        try:
            query = self.client.collection(kind.value).where(filter=FieldFilter("createdBy", "==", actor_id))
            snapshots = await query.get()
        except Exception as e:
            raise StoreError(f"{kind.value} count failed: {e}") from e
        return len(snapshots)
