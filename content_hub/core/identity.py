# A resolver returns None only when its credential is absent; a bad credential raises.
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from content_hub.core.errors import Unauthenticated
from content_hub.core.security import decode_token
from content_hub.models.user import User, ROLE_ADMIN
from content_hub.services import api_keys


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str
    auth_mode: str = "jwt"
    api_key_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def parse_bearer_header(header: Optional[str]) -> Optional[str]:
    if header is None or not header.strip():
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Invalid Authorization header")
    return token.strip()


class IdentityResolver(ABC):
    @abstractmethod
    async def resolve(self, session: AsyncSession) -> Optional[Identity]:
        ...


class BearerTokenResolver(IdentityResolver):
    def __init__(self, authorization: Optional[str]):
        self.authorization = authorization

    async def resolve(self, session: AsyncSession) -> Optional[Identity]:
        token = parse_bearer_header(self.authorization)
        if token is None:
            return None

        payload = decode_token(token)
        if not payload:
            raise Unauthenticated("Invalid token")

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            raise Unauthenticated("Invalid token payload")

        user = await session.get(User, user_id)
        if not user:
            raise Unauthenticated("User not found")

        return Identity(user_id=user.id, role=user.role)


class APIKeyResolver(IdentityResolver):
    def __init__(self, raw_key: Optional[str], required_scope: Optional[str]):
        self.raw_key = raw_key
        self.required_scope = required_scope

    async def resolve(self, session: AsyncSession) -> Optional[Identity]:
        raw = (self.raw_key or "").strip()
        if not raw:
            return None

        grant = await api_keys.authenticate_key(session, raw, self.required_scope)
        return Identity(
            user_id=grant.user_id,
            role=grant.role,
            auth_mode="api_key",
            api_key_id=grant.key_id,
        )


async def resolve_identity(
        session: AsyncSession,
        resolvers: Iterable[IdentityResolver],
        missing_detail: str = "Not authenticated",
) -> Identity:
    for resolver in resolvers:
        identity = await resolver.resolve(session)
        if identity is not None:
            return identity
    raise Unauthenticated(missing_detail)
