from datetime import datetime

from pydantic import BaseModel

from content_hub.models.share import Share


def _username(user) -> str | None:
    return user.username if user is not None else None


class ShareCreate(BaseModel):
    require_login: bool | None = None
    allow_username: str | None = None
    max_views: int | None = None
    expires_in_days: int | None = None


class ShareCreated(BaseModel):
    share_token: str
    preview_path: str
    requires_login: bool
    allow_username: str | None
    max_views: int | None
    expires_at: datetime | None

    @classmethod
    def from_share(cls, share: Share) -> "ShareCreated":
        return cls(
            share_token=share.token,
            preview_path=f"/preview/{share.token}",
            requires_login=share.require_login,
            allow_username=_username(share.allowed_user),
            max_views=share.max_views,
            expires_at=share.expires_at,
        )


class ShareMeta(BaseModel):
    token: str
    filename: str
    mime_type: str
    size: int
    description: str
    owner: str | None
    requires_login: bool
    allow_username: str | None
    max_views: int | None
    remaining_views: int | None
    expires_at: datetime | None
    created_at: datetime
    stream_path: str
    download_path: str
    preview_available: bool = True

    @classmethod
    def from_share(cls, share: Share) -> "ShareMeta":
        return cls(
            token=share.token,
            filename=share.file.filename,
            mime_type=share.file.mime_type,
            size=share.file.size,
            description=share.file.description,
            owner=_username(share.file.owner),
            requires_login=share.require_login,
            allow_username=_username(share.allowed_user),
            max_views=share.max_views,
            remaining_views=share.remaining_views(),
            expires_at=share.expires_at,
            created_at=share.created_at,
            stream_path=f"/api/shares/{share.token}/stream",
            download_path=f"/api/shares/{share.token}/download",
        )


class ShareListItem(BaseModel):
    token: str
    filename: str
    file_owner: str | None
    creator: str | None
    require_login: bool
    allow_username: str | None
    max_views: int | None
    view_count: int
    remaining_views: int | None
    expires_at: datetime | None
    created_at: datetime

    @classmethod
    def from_share(cls, share: Share) -> "ShareListItem":
        return cls(
            token=share.token,
            filename=share.file.filename,
            file_owner=_username(share.file.owner),
            creator=_username(share.creator),
            require_login=share.require_login,
            allow_username=_username(share.allowed_user),
            max_views=share.max_views,
            view_count=share.view_count,
            remaining_views=share.remaining_views(),
            expires_at=share.expires_at,
            created_at=share.created_at,
        )


class CleanupRequest(BaseModel):
    remove_expired: bool = True
    remove_missing_file: bool = True
    remove_exhausted: bool = True


class CleanupResponse(BaseModel):
    deleted: int
    expired: int
    missing_file: int
    exhausted: int


class ShareRevoked(BaseModel):
    message: str
    deleted: int
