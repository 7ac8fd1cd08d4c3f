from typing import Optional
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from content_hub.core.clock import as_utc
from content_hub.database import Base

SCOPE_FILES_UPLOAD = "files:upload"
SCOPE_WILDCARD = "*"

GRANTABLE_SCOPES = {SCOPE_FILES_UPLOAD, SCOPE_WILDCARD}


class APIKey(Base):
    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    hashed_key: Mapped[str] = mapped_column(String(191), unique=True, index=True, nullable=False)
    key_preview: Mapped[str] = mapped_column(String(32), nullable=False)
    # comma separated
    scopes: Mapped[str] = mapped_column(String, default="", nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    bound_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    bound_user: Mapped[Optional["User"]] = relationship("User", foreign_keys=[bound_user_id])
    created_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[created_by_id])

    def scope_list(self) -> list[str]:
        return [s.strip() for s in self.scopes.split(",") if s.strip()]

    def has_scope(self, scope: str | None) -> bool:
        if not scope:
            return True
        return any(s == SCOPE_WILDCARD or s == scope for s in self.scope_list())

    def expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > as_utc(self.expires_at)
