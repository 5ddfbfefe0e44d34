"""Best-effort audit trail for report deliveries."""

from typing import Any

from core.logging import get_logger
from core.models import AuditRecord

logger = get_logger(__name__)


class AuditLog:
    """
    Writes ``AuditRecord``s to an append-only store.

    A failed write is logged and swallowed; it never changes the outcome of
    the request being audited.
    """

    def __init__(self, store: Any):
        self.store = store

    async def record(self, record: AuditRecord) -> bool:
        """
        Append one record.

        Returns:
            True if the store accepted the write, False otherwise
        """
        try:
            await self.store.append(record.to_document())
            return True
        except Exception as e:
            logger.error(
                f"Error logging activity: {e}",
                extra={
                    "actor_id": record.actor_id,
                    "outcome": record.outcome,
                    "export_format": record.export_format,
                }
            )
            return False
