"""
Tests for the best-effort AuditLog.
"""

from core.audit import AuditLog
from core.models import AuditRecord
from tests.helpers import FakeAuditStore


async def test_record_is_appended():
    store = FakeAuditStore()

    written = await AuditLog(store).record(AuditRecord(actor_id="user-1", outcome="sent", message_id="m-1"))

    assert written is True
    assert store.documents[0]["status"] == "sent"
    assert store.documents[0]["messageId"] == "m-1"


async def test_store_failure_is_swallowed_and_logged(caplog):
    store = FakeAuditStore(fail=True)

    written = await AuditLog(store).record(AuditRecord(actor_id="user-1", outcome="error", error_detail="x"))

    assert written is False
    assert store.attempts == 1
    assert any("Error logging activity" in r.getMessage() for r in caplog.records)
