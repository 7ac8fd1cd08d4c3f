from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from content_hub.database import get_async_session
from content_hub.core.deps import get_current_identity
from content_hub.core.identity import Identity
from content_hub.models.file import File
from content_hub.services import files as file_service



async def get_file_or_404(
        file_id: int,
        session: AsyncSession = Depends(get_async_session),
        identity: Identity = Depends(get_current_identity),
) -> File:
    return await file_service.get_visible_file(session, identity, file_id)
