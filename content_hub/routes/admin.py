from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from content_hub.core.rbac import require_admin
from content_hub.core.identity import Identity
from content_hub.database import get_async_session
from content_hub.schemas.api_key import APIKeyCreate, APIKeyCreated, APIKeyRead, APIKeyRevoked
from content_hub.schemas.share import CleanupRequest, CleanupResponse, ShareListItem, ShareRevoked
from content_hub.schemas.user import (
    PasswordReset,
    PasswordResetResult,
    RoleUpdate,
    RoleUpdated,
    UserCreate,
    UserDeleted,
    UserRead,
)
from content_hub.services import api_keys as api_key_service
from content_hub.services import shares as share_service
from content_hub.services import users as user_service
from content_hub.storage.backend import BlobStorage, get_storage

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)

#-----------Users--------------------

@router.post("/users", response_model=UserRead)
async def create_user(payload: UserCreate, session: AsyncSession = Depends(get_async_session)):
    return await user_service.create_user(session, payload.username, payload.password, payload.role)


@router.get("/users", response_model=list[UserRead])
async def list_users(session: AsyncSession = Depends(get_async_session)):
    return await user_service.list_users(session)


@router.delete("/users/{user_id}", response_model=UserDeleted)
async def delete_user(
    user_id: int,
    session: AsyncSession = Depends(get_async_session),
    admin: Identity = Depends(require_admin),
):
    deleted_id = await user_service.delete_user(session, admin.user_id, user_id)
    return UserDeleted(id=deleted_id)


@router.patch("/users/{user_id}/role", response_model=RoleUpdated)
async def update_user_role(
    user_id: int,
    payload: RoleUpdate,
    session: AsyncSession = Depends(get_async_session),
):
    user = await user_service.set_role(session, user_id, payload.role)
    return RoleUpdated(id=user.id, role=user.role)


@router.post("/users/{user_id}/reset-password", response_model=PasswordResetResult)
async def reset_password(
    user_id: int,
    payload: PasswordReset | None = None,
    session: AsyncSession = Depends(get_async_session),
):
    payload = payload or PasswordReset()
    user, password = await user_service.reset_password(session, user_id, payload.password)
    return PasswordResetResult(id=user.id, username=user.username, password=password)

#-----------API keys--------------------

@router.get("/apikeys", response_model=list[APIKeyRead])
async def list_api_keys(session: AsyncSession = Depends(get_async_session)):
    keys = await api_key_service.list_keys(session)
    return [APIKeyRead.from_key(k) for k in keys]


@router.post("/apikeys", response_model=APIKeyCreated)
async def create_api_key(
    payload: APIKeyCreate,
    session: AsyncSession = Depends(get_async_session),
    admin: Identity = Depends(require_admin),
):
    key, plain_key = await api_key_service.create_key(
        session,
        name=payload.name,
        scopes=payload.scopes,
        bound_user_id=payload.bound_user_id,
        creator_id=admin.user_id,
        expires_in_days=payload.expires_in_days,
    )
    return APIKeyCreated.from_key(key, plain_key=plain_key)


@router.delete("/apikeys/{key_id}", response_model=APIKeyRevoked)
async def revoke_api_key(key_id: int, session: AsyncSession = Depends(get_async_session)):
    changed = await api_key_service.revoke_key(session, key_id)
    return APIKeyRevoked(message="API key revoked" if changed else "API key was already revoked")

#-----------Shares--------------------

@router.get("/shares", response_model=list[ShareListItem])
async def list_shares(session: AsyncSession = Depends(get_async_session)):
    shares = await share_service.list_shares(session)
    return [ShareListItem.from_share(s) for s in shares]


@router.post("/shares/cleanup", response_model=CleanupResponse)
async def cleanup_shares(
    payload: CleanupRequest | None = None,
    session: AsyncSession = Depends(get_async_session),
    storage: BlobStorage = Depends(get_storage),
):
    payload = payload or CleanupRequest()
    outcome = await share_service.cleanup_shares(
        session,
        storage,
        remove_expired=payload.remove_expired,
        remove_missing_file=payload.remove_missing_file,
        remove_exhausted=payload.remove_exhausted,
    )
    return CleanupResponse(
        deleted=outcome.deleted,
        expired=outcome.expired,
        missing_file=outcome.missing_file,
        exhausted=outcome.exhausted,
    )


@router.delete("/shares/{token}", response_model=ShareRevoked)
async def revoke_share(token: str, session: AsyncSession = Depends(get_async_session)):
    deleted = await share_service.revoke_share(session, token)
    return ShareRevoked(message="share revoked", deleted=deleted)
