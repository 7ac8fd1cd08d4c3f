from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from content_hub.database import get_async_session
from content_hub.schemas.api_key import APIKeyUser, APIKeyVerifyRequest, APIKeyVerifyResponse
from content_hub.services import api_keys as api_key_service

router = APIRouter(
    prefix="/apikeys",
    tags=["API keys"]
)


@router.post("/verify", response_model=APIKeyVerifyResponse)
async def verify_api_key(
    payload: APIKeyVerifyRequest | None = None,
    x_api_key: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_async_session),
):
    payload = payload or APIKeyVerifyRequest()
    # body wins over the header
    raw_key = payload.api_key if payload.api_key else x_api_key

    grant = await api_key_service.verify_key(session, raw_key, payload.scope)
    return APIKeyVerifyResponse(
        valid=True,
        scopes=grant.scopes,
        expires_at=grant.expires_at,
        bound_user=APIKeyUser(id=grant.user_id, username=grant.username),
        message="API key is valid",
    )
