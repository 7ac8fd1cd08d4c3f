import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from content_hub.core.clock import utcnow
from content_hub.core.errors import Forbidden, InvalidArgument, NotFound, Unauthenticated
from content_hub.core.security import generate_api_key, hash_api_key, mask_api_key
from content_hub.models.api_key import APIKey, GRANTABLE_SCOPES, SCOPE_FILES_UPLOAD
from content_hub.models.user import User

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyGrant:
    """What a valid key grants, captured before the last-used bookkeeping."""
    key_id: int
    user_id: int
    username: str
    role: str
    scopes: list[str]
    expires_at: Optional[datetime]


def validate_scopes(scopes: list[str]) -> list[str]:
    cleaned = [s.strip() for s in scopes if s and s.strip()]
    if not cleaned:
        raise InvalidArgument("At least one scope is required")
    unknown = [s for s in cleaned if s not in GRANTABLE_SCOPES]
    if unknown:
        raise InvalidArgument(f"Unsupported scope: {', '.join(unknown)}")
    return cleaned


async def create_key(
        session: AsyncSession,
        *,
        name: str,
        scopes: list[str],
        bound_user_id: int,
        creator_id: int,
        expires_in_days: Optional[int] = None,
) -> tuple[APIKey, str]:
    """
    Create a key bound to ``bound_user_id``.

    Returns the stored record and the plaintext key. The plaintext is not kept
    anywhere, this is the only time it exists outside the caller.
    """
    scopes = validate_scopes(scopes)

    if expires_in_days is not None and expires_in_days <= 0:
        raise InvalidArgument("expires_in_days must be greater than 0")

    bound_user = await session.get(User, bound_user_id)
    if not bound_user:
        raise NotFound("Bound user not found")
    creator = await session.get(User, creator_id)

    plain_key = generate_api_key()
    key = APIKey(
        name=name,
        hashed_key=hash_api_key(plain_key),
        key_preview=mask_api_key(plain_key),
        scopes=",".join(scopes),
        expires_at=utcnow() + timedelta(days=expires_in_days) if expires_in_days else None,
        bound_user=bound_user,
        created_by=creator,
    )
    session.add(key)
    await session.commit()

    log.info("api_key_created id=%s name=%s bound_user_id=%s scopes=%s", key.id, key.name, bound_user.id, key.scopes)
    return key, plain_key


async def list_keys(session: AsyncSession) -> list[APIKey]:
    result = await session.execute(
        select(APIKey)
        .options(selectinload(APIKey.bound_user), selectinload(APIKey.created_by))
        .order_by(APIKey.created_at.desc(), APIKey.id.desc())
    )
    return list(result.scalars().all())


async def revoke_key(session: AsyncSession, key_id: int) -> bool:
    """Soft revoke. Returns False when the key was already revoked."""
    key = await session.get(APIKey, key_id)
    if not key:
        raise NotFound("API key not found")

    if key.revoked:
        return False

    key.revoked = True
    await session.commit()
    log.info("api_key_revoked id=%s", key.id)
    return True


async def _touch_last_used(session: AsyncSession, key_id: int) -> None:
    try:
        await session.execute(update(APIKey).where(APIKey.id == key_id).values(last_used_at=utcnow()))
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.warning("api_key_touch_failed id=%s", key_id, exc_info=True)


async def authenticate_key(session: AsyncSession, raw_key: str, required_scope: Optional[str]) -> KeyGrant:
    result = await session.execute(
        select(APIKey)
        .options(selectinload(APIKey.bound_user))
        .where(APIKey.hashed_key == hash_api_key(raw_key))
    )
    key = result.scalar_one_or_none()

    if not key:
        raise Unauthenticated("Invalid API key")
    if key.revoked:
        raise Unauthenticated("API key has been revoked")
    if key.expired(utcnow()):
        raise Forbidden("API key has expired")
    if not key.has_scope(required_scope):
        raise Forbidden("API key is not authorized for this scope")
    if key.bound_user is None:
        raise Unauthenticated("API key is not bound to an existing user")

    grant = KeyGrant(
        key_id=key.id,
        user_id=key.bound_user.id,
        username=key.bound_user.username,
        role=key.bound_user.role,
        scopes=key.scope_list(),
        expires_at=key.expires_at,
    )
    await _touch_last_used(session, key.id)
    return grant


async def verify_key(session: AsyncSession, raw_key: Optional[str], scope: Optional[str] = None) -> KeyGrant:
    raw_key = (raw_key or "").strip()
    if not raw_key:
        raise InvalidArgument("Missing X-API-Key header or api_key field")

    return await authenticate_key(session, raw_key, (scope or "").strip() or SCOPE_FILES_UPLOAD)
