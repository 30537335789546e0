from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from shopsync.crud import activity
from shopsync.crud.store import upsert_store
from shopsync.db.models.activity_log import ActivityLog
from shopsync.tasks import maintenance

SHOP = "activity-shop.myshopify.com"


@pytest.fixture
def store_factory(db):
    async def make():
        return await upsert_store(db, SHOP, "token", "read_orders")
    return make


@pytest.mark.asyncio
async def test_record_and_read_back(db, store_factory):
    store = await store_factory()
    await activity.record_activity(db, store.id, None, activity.READ, "order", None, activity.SUCCESS, {"count": 2})
    await activity.record_activity(db, store.id, None, activity.UPDATE, "order", 42, activity.ERROR, {"error": "x"})

    logs = await activity.get_logs(db, store.id)
    assert [log.action for log in logs] == [activity.UPDATE, activity.READ]
    assert logs[0].resource_id == "42"
    assert logs[0].details == {"error": "x"}
    assert logs[1].details == {"count": 2}


@pytest.mark.asyncio
async def test_pagination(db, store_factory):
    store = await store_factory()
    for i in range(5):
        await activity.record_activity(db, store.id, None, activity.READ, "product", i)

    page = await activity.get_logs(db, store.id, limit=2, offset=2)
    assert [log.resource_id for log in page] == ["2", "1"]


@pytest.mark.asyncio
async def test_by_resource_type(db, store_factory):
    store = await store_factory()
    await activity.record_activity(db, store.id, None, activity.READ, "order")
    await activity.record_activity(db, store.id, None, activity.READ, "customer")

    logs = await activity.get_logs_by_resource_type(db, store.id, "customer")
    assert [log.resource_type for log in logs] == ["customer"]


@pytest.mark.asyncio
async def test_recording_failure_is_swallowed(db, store_factory):
    await store_factory()
    # Unknown store id violates the foreign key
    assert await activity.record_activity(db, uuid4(), None, activity.READ, "order") is None
    # The session is still usable afterwards
    store = await store_factory()
    assert await activity.record_activity(db, store.id, None, activity.READ, "order") is not None


@pytest.mark.asyncio
async def test_summary_groups_and_orders_by_count(db, store_factory):
    store = await store_factory()
    for _ in range(3):
        await activity.record_activity(db, store.id, None, activity.READ, "order")
    await activity.record_activity(db, store.id, None, activity.READ, "order", status=activity.ERROR)
    await activity.record_activity(db, store.id, None, activity.UPDATE, "product")
    await activity.record_activity(db, store.id, None, activity.UPDATE, "product")

    summary = await activity.get_activity_summary(db, store.id, hours=24)
    rows = [(r.resource_type, r.action, r.status, r.count) for r in summary]
    assert rows[0] == ("order", "READ", "success", 3)
    assert rows[1] == ("product", "UPDATE", "success", 2)
    assert rows[2] == ("order", "READ", "error", 1)


def _old_entry(store_id, days):
    return ActivityLog(
        store_id=store_id,
        action=activity.READ,
        resource_type="order",
        status=activity.SUCCESS,
        created_at=datetime.now(timezone.utc) - timedelta(days=days),
    )


@pytest.mark.asyncio
async def test_purge_old_logs(db, store_factory):
    store = await store_factory()
    db.add_all([_old_entry(store.id, 45), _old_entry(store.id, 31)])
    await db.commit()
    await activity.record_activity(db, store.id, None, activity.READ, "order")

    assert await activity.purge_old_logs(db, days_to_keep=30) == 2
    assert len(await activity.get_logs(db, store.id)) == 1


@pytest.mark.asyncio
async def test_summary_ignores_entries_outside_window(db, store_factory):
    store = await store_factory()
    db.add(_old_entry(store.id, 2))
    await db.commit()
    await activity.record_activity(db, store.id, None, activity.READ, "order")

    [row] = await activity.get_activity_summary(db, store.id, hours=24)
    assert row.count == 1


@pytest.mark.asyncio
async def test_retention_task_uses_configured_days(db, store_factory, session_factory, monkeypatch):
    store = await store_factory()
    db.add_all([_old_entry(store.id, 10), _old_entry(store.id, 40)])
    await db.commit()

    monkeypatch.setattr(maintenance, "AsyncSessionLocal", session_factory)
    assert await maintenance.purge_activity() == 1
    assert await maintenance.purge_activity(days_to_keep=5) == 1
