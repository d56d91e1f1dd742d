"""Tests for the background audit scheduler."""

from unittest.mock import AsyncMock, MagicMock

from audit.service import AuditService
from models import UserProfile
from scheduler import AuditScheduler
from conftest import make_meeting


async def test_cycle_audits_connected_users(store):
    store.users["user-1"] = store.users["user-1"].model_copy(update={"google_connected": True})
    await store.upsert_meeting(make_meeting("a", attendees=20))
    scheduler = AuditScheduler(store, AuditService(store))

    processed = await scheduler.run_cycle()

    assert processed == 1
    assert "user-1" in store.audit_results


async def test_cycle_survives_user_failures(store):
    store.users["user-1"] = store.users["user-1"].model_copy(update={"google_connected": True})
    store.users["user-2"] = UserProfile(id="user-2", email="two@co.com", google_connected=True)
    service = AuditService(store)
    service.run_full_audit = AsyncMock(side_effect=[RuntimeError("boom"), MagicMock(total_issues=0)])
    scheduler = AuditScheduler(store, service)

    processed = await scheduler.run_cycle()

    assert processed == 1
    assert service.run_full_audit.await_count == 2
