import io
import logging
import time
from pathlib import PurePosixPath
from typing import BinaryIO, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from content_hub.core.clock import utcnow
from content_hub.core.errors import Internal, InvalidArgument, NotFound
from content_hub.core.identity import Identity
from content_hub.models.file import File, FileState
from content_hub.storage.backend import BlobStorage
from content_hub.storage.errors import BlobNotFound

log = logging.getLogger(__name__)

DEFAULT_MIME = "application/octet-stream"
TEXT_MIME = "text/plain"


def display_name(filename: Optional[str]) -> str:
    # browsers may send a full client path
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    return name or "upload.bin"


def build_storage_key(owner_id: int, filename: Optional[str] = None) -> str:
    stamp = time.time_ns()
    if filename is None:
        return f"{owner_id}/text-{stamp}.txt"
    return f"{owner_id}/{stamp}-{filename}"


async def upload(
        session: AsyncSession,
        storage: BlobStorage,
        *,
        owner_id: int,
        fileobj: Optional[BinaryIO] = None,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        text: Optional[str] = None,
        description: Optional[str] = None,
) -> File:
    """
    Store either an uploaded file or an inline text snippet and record it.

    Exactly one of ``fileobj`` and ``text`` must be given.
    """
    has_file = fileobj is not None
    has_text = bool(text)
    if not has_file and not has_text:
        raise InvalidArgument("file or text is required")
    if has_file and has_text:
        raise InvalidArgument("Provide either a file or text, not both")

    if has_file:
        name = display_name(filename)
        key = build_storage_key(owner_id, name)
        mime = content_type or DEFAULT_MIME
        source = fileobj
    else:
        key = build_storage_key(owner_id)
        name = PurePosixPath(key).name
        mime = TEXT_MIME
        source = io.BytesIO(text.encode("utf-8"))

    try:
        size = await run_in_threadpool(storage.save, key=key, fileobj=source, content_type=mime)
    except Exception as e:
        log.exception("upload_store_failed owner_id=%s key=%s", owner_id, key)
        raise Internal("Failed to store upload") from e

    db_file = File(
        owner_id=owner_id,
        filename=name,
        mime_type=mime,
        size=size,
        description=description or "",
        storage_key=key,
    )
    session.add(db_file)
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        await run_in_threadpool(storage.delete, key=key)
        raise

    log.info("file_uploaded id=%s owner_id=%s size=%s mime=%s", db_file.id, owner_id, size, mime)
    return db_file


async def list_files(session: AsyncSession, identity: Identity) -> list[File]:
    query = (
        select(File)
        .options(selectinload(File.owner))
        .where(File.state == FileState.ACTIVE)
        .order_by(File.uploaded_at.desc(), File.id.desc())
    )
    if not identity.is_admin:
        query = query.where(File.owner_id == identity.user_id)

    result = await session.execute(query)
    return list(result.scalars().all())


async def get_visible_file(session: AsyncSession, identity: Identity, file_id: int) -> File:
    result = await session.execute(
        select(File).options(selectinload(File.owner)).where(File.id == file_id)
    )
    db_file = result.scalar_one_or_none()

    if not db_file or not db_file.is_active or (not identity.is_admin and db_file.owner_id != identity.user_id):
        raise NotFound("File not found")

    return db_file


async def open_content(storage: BlobStorage, db_file: File) -> BinaryIO:
    try:
        return await run_in_threadpool(storage.open, key=db_file.storage_key)
    except BlobNotFound:
        log.warning("file_blob_missing id=%s key=%s", db_file.id, db_file.storage_key)
        raise NotFound("File content is missing")


async def delete_file(session: AsyncSession, storage: BlobStorage, identity: Identity, file_id: int) -> FileState:
    """
    Owners soft-delete their own active files. Admins purge any file, soft
    deleted or not: blob first, then the row. A failing blob removal is logged
    and the row is still removed.
    """
    if identity.is_admin:
        db_file = await session.get(File, file_id)
        if not db_file:
            raise NotFound("File not found")

        try:
            await run_in_threadpool(storage.delete, key=db_file.storage_key)
        except Exception:
            log.warning("file_blob_delete_failed id=%s key=%s", db_file.id, db_file.storage_key, exc_info=True)

        await session.delete(db_file)
        await session.commit()
        log.info("file_purged id=%s by=%s", file_id, identity.user_id)
        return FileState.PURGED

    result = await session.execute(
        select(File).where(
            File.id == file_id,
            File.owner_id == identity.user_id,
            File.state == FileState.ACTIVE,
        )
    )
    db_file = result.scalar_one_or_none()
    if not db_file:
        raise NotFound("File not found")

    db_file.state = FileState.SOFT_DELETED
    db_file.deleted_at = utcnow()
    await session.commit()
    log.info("file_soft_deleted id=%s by=%s", file_id, identity.user_id)
    return FileState.SOFT_DELETED
