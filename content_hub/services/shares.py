# Content reads spend one view through a conditional UPDATE; a spent view is never rolled back.
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import BinaryIO, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from content_hub.core.clock import utcnow
from content_hub.core.errors import Forbidden, Gone, InvalidArgument, NotFound, Unauthenticated
from content_hub.core.identity import Identity
from content_hub.core.security import generate_share_token
from content_hub.models.file import File, FileState
from content_hub.models.share import Share
from content_hub.models.user import User
from content_hub.storage.backend import BlobStorage
from content_hub.storage.errors import BlobNotFound

log = logging.getLogger(__name__)

MAX_SHARE_VIEWS = 1000
DEFAULT_EXPIRES_IN_DAYS = 7
SHARE_DURATIONS = {
    1: timedelta(days=1),
    7: timedelta(days=7),
    30: timedelta(days=30),
}


def compute_expires_at(expires_in_days: Optional[int], now: datetime) -> datetime:
    days = DEFAULT_EXPIRES_IN_DAYS if expires_in_days is None else expires_in_days
    duration = SHARE_DURATIONS.get(days)
    if duration is None:
        allowed = " / ".join(str(d) for d in sorted(SHARE_DURATIONS))
        raise InvalidArgument(f"expires_in_days must be one of {allowed}")
    return now + duration


async def create_share(
        session: AsyncSession,
        identity: Identity,
        file_id: int,
        *,
        require_login: Optional[bool] = None,
        allow_username: Optional[str] = None,
        max_views: Optional[int] = None,
        expires_in_days: Optional[int] = None,
) -> Share:
    result = await session.execute(
        select(File).where(File.id == file_id, File.state == FileState.ACTIVE)
    )
    db_file = result.scalar_one_or_none()
    if not db_file:
        raise NotFound("File not found")

    if not identity.is_admin and db_file.owner_id != identity.user_id:
        raise Forbidden("No permission to share this file")

    require_login = True if require_login is None else require_login

    allowed_user = None
    allow_username = (allow_username or "").strip()
    if allow_username:
        if not identity.is_admin:
            raise Forbidden("Only admins can restrict a share to one user")
        found = await session.execute(select(User).where(User.username == allow_username))
        allowed_user = found.scalar_one_or_none()
        if not allowed_user:
            raise NotFound("Allowed user not found")
        # a named recipient can only be checked on a signed-in request
        require_login = True

    if max_views is not None and not 1 <= max_views <= MAX_SHARE_VIEWS:
        raise InvalidArgument(f"max_views must be between 1 and {MAX_SHARE_VIEWS}")

    expires_at = compute_expires_at(expires_in_days, utcnow())

    share = Share(
        token=generate_share_token(),
        file=db_file,
        creator_id=identity.user_id,
        require_login=require_login,
        allowed_user=allowed_user,
        max_views=max_views,
        view_count=0,
        expires_at=expires_at,
    )
    session.add(share)
    await session.commit()

    log.info(
        "share_created id=%s file_id=%s creator_id=%s require_login=%s allowed_user_id=%s max_views=%s",
        share.id, db_file.id, identity.user_id, share.require_login, share.allowed_user_id, share.max_views,
    )
    return share


def check_access(share: Share, now: datetime, identity: Optional[Identity]) -> None:
    if share.expired(now):
        raise Gone("Share has expired")
    if share.exhausted():
        raise Gone("Share has no views left")
    if share.require_login and identity is None:
        raise Unauthenticated("This share requires login")
    if share.allowed_user_id is not None:
        if identity is None:
            raise Unauthenticated("This share is restricted to a specific user")
        if identity.user_id != share.allowed_user_id:
            raise Forbidden("You are not allowed to view this share")


async def load_share(session: AsyncSession, token: str) -> Share:
    result = await session.execute(
        select(Share)
        .options(
            selectinload(Share.file).selectinload(File.owner),
            selectinload(Share.allowed_user),
        )
        .where(Share.token == token)
    )
    share = result.scalar_one_or_none()
    if not share:
        raise NotFound("Share not found")
    if share.file is None or not share.file.is_active:
        raise NotFound("Shared file is no longer available")
    return share


async def get_share_meta(session: AsyncSession, token: str, identity: Optional[Identity]) -> Share:
    share = await load_share(session, token)
    check_access(share, utcnow(), identity)
    return share


async def consume_view(session: AsyncSession, share: Share) -> None:
    stmt = update(Share).where(Share.id == share.id)
    if share.max_views is not None:
        stmt = stmt.where(Share.view_count < Share.max_views)
    stmt = stmt.values(view_count=Share.view_count + 1).execution_options(synchronize_session=False)

    result = await session.execute(stmt)
    await session.commit()

    if result.rowcount == 0:
        raise Gone("Share has no views left")


async def open_share_content(
        session: AsyncSession,
        storage: BlobStorage,
        token: str,
        identity: Optional[Identity],
) -> tuple[Share, BinaryIO]:
    share = await load_share(session, token)
    check_access(share, utcnow(), identity)
    await consume_view(session, share)

    try:
        content = await run_in_threadpool(storage.open, key=share.file.storage_key)
    except BlobNotFound:
        log.warning("share_blob_missing id=%s file_id=%s view_spent=true", share.id, share.file_id)
        raise NotFound("Shared file is missing on storage")

    log.info("share_view_consumed id=%s file_id=%s", share.id, share.file_id)
    return share, content


async def list_shares(session: AsyncSession) -> list[Share]:
    result = await session.execute(
        select(Share)
        .options(
            selectinload(Share.file).selectinload(File.owner),
            selectinload(Share.creator),
            selectinload(Share.allowed_user),
        )
        .order_by(Share.created_at.desc(), Share.id.desc())
    )
    return list(result.scalars().all())


async def revoke_share(session: AsyncSession, token: str) -> int:
    result = await session.execute(
        delete(Share).where(Share.token == token).execution_options(synchronize_session=False)
    )
    await session.commit()
    log.info("share_revoked deleted=%s", result.rowcount)
    return result.rowcount


@dataclass
class CleanupResult:
    deleted: int = 0
    expired: int = 0
    missing_file: int = 0
    exhausted: int = 0


async def _blob_present(storage: BlobStorage, db_file: Optional[File]) -> bool:
    if db_file is None or not db_file.is_active:
        return False
    try:
        return await run_in_threadpool(storage.exists, key=db_file.storage_key)
    except Exception:
        # unknown is not missing
        log.warning("share_cleanup_probe_failed file_id=%s", db_file.id, exc_info=True)
        return True


async def cleanup_shares(
        session: AsyncSession,
        storage: BlobStorage,
        *,
        remove_expired: bool = True,
        remove_missing_file: bool = True,
        remove_exhausted: bool = True,
) -> CleanupResult:
    if not (remove_expired or remove_missing_file or remove_exhausted):
        raise InvalidArgument("Enable at least one cleanup criterion")

    result = await session.execute(select(Share).options(selectinload(Share.file)))
    shares = result.scalars().all()

    now = utcnow()
    outcome = CleanupResult()
    doomed: list[int] = []
    presence: dict[int, bool] = {}

    for share in shares:
        if remove_expired and share.expired(now):
            outcome.expired += 1
        elif remove_exhausted and share.exhausted():
            outcome.exhausted += 1
        elif remove_missing_file:
            if share.file_id not in presence:
                presence[share.file_id] = await _blob_present(storage, share.file)
            if presence[share.file_id]:
                continue
            outcome.missing_file += 1
        else:
            continue
        doomed.append(share.id)

    if doomed:
        deleted = await session.execute(
            delete(Share).where(Share.id.in_(doomed)).execution_options(synchronize_session=False)
        )
        await session.commit()
        outcome.deleted = deleted.rowcount

    log.info(
        "share_cleanup deleted=%s expired=%s missing_file=%s exhausted=%s",
        outcome.deleted, outcome.expired, outcome.missing_file, outcome.exhausted,
    )
    return outcome
