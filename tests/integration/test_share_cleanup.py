"""Tests for admin share management and the periodic cleanup task."""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import select

from content_hub.core.errors import InvalidArgument
from content_hub.core.security import generate_share_token
from content_hub.models.file import FileState
from content_hub.models.share import Share
from content_hub.services import shares as share_service
from content_hub.services.shares import CleanupResult
from content_hub.tasks import share_cleanup
from content_hub.tasks.celery_app import celery_app


def _now():
    return datetime.now(timezone.utc)


@pytest.fixture
def add_share(session):
    async def _add(db_file, *, expires_at=None, max_views=None, view_count=0):
        share = Share(
            token=generate_share_token(),
            file_id=db_file.id,
            creator_id=db_file.owner_id,
            require_login=False,
            max_views=max_views,
            view_count=view_count,
            expires_at=expires_at or _now() + timedelta(days=7),
        )
        session.add(share)
        await session.commit()
        return share
    return _add


@pytest_asyncio.fixture
async def four_shares(storage, alice, make_file, add_share):
    healthy_file = await make_file(alice, filename="ok.txt")
    lost_file = await make_file(alice, filename="lost.txt")
    storage.delete(key=lost_file.storage_key)

    return {
        "healthy": await add_share(healthy_file, max_views=5, view_count=1),
        "expired": await add_share(healthy_file, expires_at=_now() - timedelta(hours=1)),
        "exhausted": await add_share(healthy_file, max_views=2, view_count=2),
        "missing": await add_share(lost_file),
    }


async def _remaining_tokens(session_maker) -> set[str]:
    async with session_maker() as s:
        result = await s.execute(select(Share.token))
        return set(result.scalars().all())


@pytest.mark.asyncio
async def test_cleanup_all_criteria(client, session_maker, admin, four_shares, headers_for):
    resp = await client.post("/api/admin/shares/cleanup", headers=headers_for(admin))
    assert resp.status_code == 200
    assert resp.json() == {"deleted": 3, "expired": 1, "missing_file": 1, "exhausted": 1}
    assert await _remaining_tokens(session_maker) == {four_shares["healthy"].token}


@pytest.mark.asyncio
async def test_cleanup_single_criterion(client, session_maker, admin, four_shares, headers_for):
    resp = await client.post(
        "/api/admin/shares/cleanup",
        json={"remove_expired": True, "remove_missing_file": False, "remove_exhausted": False},
        headers=headers_for(admin),
    )
    assert resp.json() == {"deleted": 1, "expired": 1, "missing_file": 0, "exhausted": 0}
    assert four_shares["expired"].token not in await _remaining_tokens(session_maker)


@pytest.mark.asyncio
async def test_cleanup_needs_a_criterion(client, admin, headers_for):
    resp = await client.post(
        "/api/admin/shares/cleanup",
        json={"remove_expired": False, "remove_missing_file": False, "remove_exhausted": False},
        headers=headers_for(admin),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_cleanup_is_admin_only(client, alice, headers_for):
    resp = await client.post("/api/admin/shares/cleanup", headers=headers_for(alice))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_expired_and_exhausted_share_counted_once(session, storage, alice, make_file, add_share):
    db_file = await make_file(alice)
    await add_share(db_file, expires_at=_now() - timedelta(days=1), max_views=1, view_count=1)

    outcome = await share_service.cleanup_shares(session, storage)
    assert outcome == CleanupResult(deleted=1, expired=1, missing_file=0, exhausted=0)


@pytest.mark.asyncio
async def test_soft_deleted_file_counts_as_missing(session, storage, alice, make_file, add_share):
    db_file = await make_file(alice)
    await add_share(db_file)
    db_file.state = FileState.SOFT_DELETED
    await session.commit()

    outcome = await share_service.cleanup_shares(session, storage, remove_expired=False, remove_exhausted=False)
    assert outcome.missing_file == 1
    assert outcome.deleted == 1


@pytest.mark.asyncio
async def test_storage_probe_failure_keeps_share(session, alice, make_file, add_share):
    db_file = await make_file(alice)
    await add_share(db_file)

    class BrokenStorage:
        def exists(self, *, key):
            raise RuntimeError("storage offline")

    outcome = await share_service.cleanup_shares(session, BrokenStorage())
    assert outcome.deleted == 0


@pytest.mark.asyncio
async def test_cleanup_rejects_no_criteria_in_service(session, storage):
    with pytest.raises(InvalidArgument):
        await share_service.cleanup_shares(
            session, storage, remove_expired=False, remove_missing_file=False, remove_exhausted=False
        )


@pytest.mark.asyncio
async def test_run_cleanup_uses_its_own_engine(db_url, storage, session_maker, four_shares):
    outcome = await share_cleanup.run_cleanup(database_url=db_url, storage=storage)
    assert outcome.deleted == 3
    assert await _remaining_tokens(session_maker) == {four_shares["healthy"].token}


def test_cleanup_task_reports_counts(monkeypatch):
    async def fake_run_cleanup():
        return CleanupResult(deleted=2, expired=2)

    monkeypatch.setattr(share_cleanup, "run_cleanup", fake_run_cleanup)
    assert share_cleanup.cleanup_shares() == {
        "ok": True,
        "deleted": 2,
        "expired": 2,
        "missing_file": 0,
        "exhausted": 0,
    }


def test_cleanup_task_propagates_failure(monkeypatch):
    async def failing_run_cleanup():
        raise RuntimeError("database down")

    monkeypatch.setattr(share_cleanup, "run_cleanup", failing_run_cleanup)
    with pytest.raises(RuntimeError):
        share_cleanup.cleanup_shares()


def test_cleanup_is_scheduled():
    entry = celery_app.conf.beat_schedule["share-cleanup"]
    assert entry["task"] == share_cleanup.cleanup_shares.name
    assert entry["schedule"] == timedelta(minutes=60)


@pytest.mark.asyncio
async def test_admin_list(client, admin, alice, make_file, make_share, headers_for):
    db_file = await make_file(alice, filename="deck.pdf")
    await make_share(alice, db_file, max_views=4)

    resp = await client.get("/api/admin/shares", headers=headers_for(admin))
    [item] = resp.json()
    assert item["filename"] == "deck.pdf"
    assert item["file_owner"] == "alice"
    assert item["creator"] == "alice"
    assert item["view_count"] == 0
    assert item["remaining_views"] == 4


@pytest.mark.asyncio
async def test_admin_revoke(client, session_maker, admin, alice, make_file, make_share, headers_for):
    db_file = await make_file(alice)
    share = await make_share(alice, db_file)

    resp = await client.delete(f"/api/admin/shares/{share.token}", headers=headers_for(admin))
    assert resp.json() == {"message": "share revoked", "deleted": 1}
    assert share.token not in await _remaining_tokens(session_maker)

    resp = await client.delete(f"/api/admin/shares/{share.token}", headers=headers_for(admin))
    assert resp.json()["deleted"] == 0
