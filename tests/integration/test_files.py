"""Tests for the file endpoints."""
import io

import pytest
from sqlalchemy import select

from content_hub.core.errors import Internal
from content_hub.models.file import File, FileState
from content_hub.models.share import Share
from content_hub.services import files as file_service


@pytest.mark.asyncio
async def test_upload_file(client, session_maker, storage, alice, headers_for):
    resp = await client.post(
        "/api/files",
        files={"file": ("report.pdf", b"%PDF-1.4 fake", "application/pdf")},
        data={"description": "quarterly"},
        headers=headers_for(alice),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["filename"] == "report.pdf"

    async with session_maker() as s:
        db_file = await s.get(File, body["id"])
    assert db_file.owner_id == alice.id
    assert db_file.size == len(b"%PDF-1.4 fake")
    assert db_file.mime_type == "application/pdf"
    assert db_file.description == "quarterly"
    assert db_file.state == FileState.ACTIVE
    assert db_file.storage_key.startswith(f"{alice.id}/")
    assert db_file.storage_key.endswith("-report.pdf")
    assert storage.exists(key=db_file.storage_key)


@pytest.mark.asyncio
async def test_upload_text(client, session_maker, storage, alice, headers_for):
    resp = await client.post("/api/files", data={"text": "just a note"}, headers=headers_for(alice))
    assert resp.status_code == 200
    body = resp.json()
    assert body["filename"].startswith("text-")
    assert body["filename"].endswith(".txt")

    async with session_maker() as s:
        db_file = await s.get(File, body["id"])
    assert db_file.mime_type == "text/plain"
    assert db_file.size == len("just a note")
    with storage.open(key=db_file.storage_key) as fh:
        assert fh.read() == b"just a note"


@pytest.mark.asyncio
async def test_upload_needs_content(client, alice, headers_for):
    resp = await client.post("/api/files", data={"description": "empty"}, headers=headers_for(alice))
    assert resp.status_code == 400
    assert resp.json() == {"detail": "file or text is required"}


@pytest.mark.asyncio
async def test_upload_rejects_file_and_text(client, alice, headers_for):
    resp = await client.post(
        "/api/files",
        files={"file": ("a.txt", b"a", "text/plain")},
        data={"text": "b"},
        headers=headers_for(alice),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_upload_requires_credentials(client):
    resp = await client.post("/api/files", data={"text": "x"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_upload_strips_client_path(session, storage, alice):
    db_file = await file_service.upload(
        session,
        storage,
        owner_id=alice.id,
        fileobj=io.BytesIO(b"x"),
        filename="C:\\Users\\alice\\photo.png",
        content_type=None,
    )
    assert db_file.filename == "photo.png"
    assert db_file.mime_type == "application/octet-stream"


@pytest.mark.asyncio
async def test_storage_failure_leaves_no_row(session, alice):
    class FailingStorage:
        def save(self, *, key, fileobj, content_type=None):
            raise OSError("disk full")

    with pytest.raises(Internal):
        await file_service.upload(session, FailingStorage(), owner_id=alice.id, text="hello")

    result = await session.execute(select(File))
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_list_is_scoped_to_owner(client, admin, alice, bob, make_file, headers_for):
    await make_file(alice, filename="a.txt")
    await make_file(bob, filename="b.txt")

    resp = await client.get("/api/files", headers=headers_for(alice))
    assert [f["filename"] for f in resp.json()] == ["a.txt"]
    assert resp.json()[0]["owner"] == "alice"

    resp = await client.get("/api/files", headers=headers_for(admin))
    assert sorted(f["filename"] for f in resp.json()) == ["a.txt", "b.txt"]


@pytest.mark.asyncio
async def test_other_users_file_is_not_found(client, alice, bob, make_file, headers_for):
    db_file = await make_file(alice)
    resp = await client.get(f"/api/files/{db_file.id}", headers=headers_for(bob))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_download_and_stream(client, alice, make_file, headers_for):
    db_file = await make_file(alice, content=b"col1,col2\n", filename="data export.csv", mime="text/csv")

    resp = await client.get(f"/api/files/{db_file.id}/download", headers=headers_for(alice))
    assert resp.status_code == 200
    assert resp.content == b"col1,col2\n"
    assert resp.headers["content-disposition"] == 'attachment; filename="data%20export.csv"'
    assert resp.headers["content-type"].startswith("text/csv")

    resp = await client.get(f"/api/files/{db_file.id}/stream", headers=headers_for(alice))
    assert resp.headers["content-disposition"].startswith("inline;")


@pytest.mark.asyncio
async def test_download_of_missing_blob(client, storage, alice, make_file, headers_for):
    db_file = await make_file(alice)
    storage.delete(key=db_file.storage_key)
    resp = await client.get(f"/api/files/{db_file.id}/download", headers=headers_for(alice))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_owner_delete_is_soft(client, session_maker, storage, alice, make_file, make_share, headers_for):
    db_file = await make_file(alice)
    share = await make_share(alice, db_file)

    resp = await client.delete(f"/api/files/{db_file.id}", headers=headers_for(alice))
    assert resp.json() == {"status": "deleted", "mode": "soft"}

    async with session_maker() as s:
        row = await s.get(File, db_file.id)
        kept_share = await s.get(Share, share.id)
    assert row.state == FileState.SOFT_DELETED
    assert row.deleted_at is not None
    assert kept_share is not None
    assert storage.exists(key=db_file.storage_key)

    assert (await client.get(f"/api/files/{db_file.id}", headers=headers_for(alice))).status_code == 404
    assert (await client.get("/api/files", headers=headers_for(alice))).json() == []
    assert (await client.delete(f"/api/files/{db_file.id}", headers=headers_for(alice))).status_code == 404


@pytest.mark.asyncio
async def test_owner_can_not_delete_others_file(client, alice, bob, make_file, headers_for):
    db_file = await make_file(alice)
    resp = await client.delete(f"/api/files/{db_file.id}", headers=headers_for(bob))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_admin_delete_purges(client, session_maker, storage, admin, alice, make_file, make_share, headers_for):
    db_file = await make_file(alice)
    share = await make_share(alice, db_file)

    resp = await client.delete(f"/api/files/{db_file.id}", headers=headers_for(admin))
    assert resp.json() == {"status": "deleted", "mode": "permanent"}

    async with session_maker() as s:
        assert await s.get(File, db_file.id) is None
        assert await s.get(Share, share.id) is None
    assert not storage.exists(key=db_file.storage_key)


@pytest.mark.asyncio
async def test_admin_purge_survives_blob_delete_failure(
    client, monkeypatch, session_maker, storage, admin, alice, make_file, headers_for
):
    db_file = await make_file(alice)

    def failing_delete(*, key):
        raise OSError("bucket unreachable")

    monkeypatch.setattr(storage, "delete", failing_delete)

    resp = await client.delete(f"/api/files/{db_file.id}", headers=headers_for(admin))
    assert resp.status_code == 200
    assert resp.json() == {"status": "deleted", "mode": "permanent"}
    async with session_maker() as s:
        assert await s.get(File, db_file.id) is None


@pytest.mark.asyncio
async def test_admin_purges_soft_deleted_file(client, storage, admin, alice, make_file, headers_for):
    db_file = await make_file(alice)
    await client.delete(f"/api/files/{db_file.id}", headers=headers_for(alice))

    resp = await client.delete(f"/api/files/{db_file.id}", headers=headers_for(admin))
    assert resp.json()["mode"] == "permanent"
    assert not storage.exists(key=db_file.storage_key)


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
