from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from content_hub.database import get_async_session
from content_hub.core.identity import (
    APIKeyResolver,
    BearerTokenResolver,
    Identity,
    resolve_identity,
)
from content_hub.models.api_key import SCOPE_FILES_UPLOAD


async def get_current_identity(
        authorization: Optional[str] = Header(default=None),
        session: AsyncSession = Depends(get_async_session),
) -> Identity:
    return await resolve_identity(
        session,
        [BearerTokenResolver(authorization)],
        missing_detail="Missing Authorization header",
    )


async def get_optional_identity(
        authorization: Optional[str] = Header(default=None),
        session: AsyncSession = Depends(get_async_session),
) -> Optional[Identity]:
    # absent is fine here, present-but-invalid still raises
    return await BearerTokenResolver(authorization).resolve(session)


def identity_or_api_key(scope: str):
    async def _dep(
            authorization: Optional[str] = Header(default=None),
            x_api_key: Optional[str] = Header(default=None),
            session: AsyncSession = Depends(get_async_session),
    ) -> Identity:
        return await resolve_identity(
            session,
            [BearerTokenResolver(authorization), APIKeyResolver(x_api_key, scope)],
            missing_detail="Missing Authorization or X-API-Key header",
        )
    return _dep


get_uploader_identity = identity_or_api_key(SCOPE_FILES_UPLOAD)
