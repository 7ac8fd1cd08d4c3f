from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from content_hub.database import get_async_session
from content_hub.core.deps import get_optional_identity
from content_hub.core.identity import Identity
from content_hub.core.streaming import blob_response
from content_hub.schemas.share import ShareMeta
from content_hub.services import shares as share_service
from content_hub.storage.backend import BlobStorage, get_storage

router = APIRouter(
    prefix="/shares",
    tags=["Shares"]
)


@router.get("/{token}", response_model=ShareMeta)
async def get_share_meta(
    token: str,
    session: AsyncSession = Depends(get_async_session),
    identity: Optional[Identity] = Depends(get_optional_identity),
):
    share = await share_service.get_share_meta(session, token, identity)
    return ShareMeta.from_share(share)


async def _open(token: str, session: AsyncSession, storage: BlobStorage, identity: Optional[Identity], attachment: bool):
    share, content = await share_service.open_share_content(session, storage, token, identity)
    return blob_response(
        content,
        filename=share.file.filename,
        mime_type=share.file.mime_type,
        attachment=attachment,
    )


@router.get("/{token}/stream")
async def stream_share(
    token: str,
    session: AsyncSession = Depends(get_async_session),
    storage: BlobStorage = Depends(get_storage),
    identity: Optional[Identity] = Depends(get_optional_identity),
):
    return await _open(token, session, storage, identity, attachment=False)


@router.get("/{token}/download")
async def download_share(
    token: str,
    session: AsyncSession = Depends(get_async_session),
    storage: BlobStorage = Depends(get_storage),
    identity: Optional[Identity] = Depends(get_optional_identity),
):
    return await _open(token, session, storage, identity, attachment=True)
