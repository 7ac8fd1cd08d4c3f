import asyncio
import logging
from dataclasses import asdict

from celery import shared_task
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import NullPool

from content_hub.config import settings
from content_hub.database import build_engine
from content_hub.services import shares as share_service
from content_hub.services.shares import CleanupResult
from content_hub.storage.backend import BlobStorage, get_storage

log = logging.getLogger(__name__)


async def run_cleanup(database_url: str | None = None, storage: BlobStorage | None = None) -> CleanupResult:
    """
    One cleanup pass with every criterion enabled.

    Uses its own engine: each task run gets a fresh event loop and pooled
    async connections can not cross loops.
    """
    engine = build_engine(database_url or settings.database_url, poolclass=NullPool)
    try:
        session_maker = async_sessionmaker(engine, expire_on_commit=False)
        async with session_maker() as session:
            return await share_service.cleanup_shares(session, storage or get_storage())
    finally:
        await engine.dispose()


@shared_task(name="content_hub.tasks.share_cleanup.cleanup_shares")
def cleanup_shares():
    """
    Periodic sweep of expired, exhausted and orphaned shares
    """
    try:
        outcome = asyncio.run(run_cleanup())
    except Exception:
        log.exception("[share-cleanup] failed")
        raise

    log.info("[share-cleanup] done deleted=%s", outcome.deleted)
    return {"ok": True, **asdict(outcome)}
