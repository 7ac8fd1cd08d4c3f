from datetime import datetime

from pydantic import BaseModel, Field

from content_hub.models.api_key import APIKey, SCOPE_FILES_UPLOAD
from content_hub.models.user import User


class APIKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    scopes: list[str] = Field(default_factory=lambda: [SCOPE_FILES_UPLOAD])
    bound_user_id: int
    expires_in_days: int | None = None


class APIKeyUser(BaseModel):
    id: int | None = None
    username: str | None = None

    @classmethod
    def from_user(cls, user: User | None) -> "APIKeyUser":
        if user is None:
            return cls()
        return cls(id=user.id, username=user.username)


class APIKeyRead(BaseModel):
    id: int
    name: str
    scopes: list[str]
    key_preview: str
    revoked: bool
    expires_at: datetime | None
    created_at: datetime
    last_used_at: datetime | None
    bound_user: APIKeyUser
    created_by: APIKeyUser

    @classmethod
    def from_key(cls, key: APIKey, **extra) -> "APIKeyRead":
        return cls(
            id=key.id,
            name=key.name,
            scopes=key.scope_list(),
            key_preview=key.key_preview,
            revoked=key.revoked,
            expires_at=key.expires_at,
            created_at=key.created_at,
            last_used_at=key.last_used_at,
            bound_user=APIKeyUser.from_user(key.bound_user),
            created_by=APIKeyUser.from_user(key.created_by),
            **extra,
        )


class APIKeyCreated(APIKeyRead):
    # shown once, never stored
    plain_key: str


class APIKeyVerifyRequest(BaseModel):
    api_key: str | None = None
    scope: str | None = None


class APIKeyVerifyResponse(BaseModel):
    valid: bool
    scopes: list[str]
    expires_at: datetime | None
    bound_user: APIKeyUser
    message: str


class APIKeyRevoked(BaseModel):
    message: str
