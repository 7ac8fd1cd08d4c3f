from typing import Optional
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, String, Boolean, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from content_hub.core.clock import as_utc
from content_hub.database import Base


class Share(Base):
    """
    A policy-governed public link to one file.

    view_count only ever moves through a conditional UPDATE, never through
    attribute assignment, so it can not overshoot max_views.
    """
    __tablename__ = "shares"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(191), unique=True, index=True, nullable=False)
    file_id: Mapped[int] = mapped_column(ForeignKey("files.id", ondelete="CASCADE"), index=True, nullable=False)
    creator_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    require_login: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allowed_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    max_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    file: Mapped["File"] = relationship("File", back_populates="shares")
    creator: Mapped[Optional["User"]] = relationship("User", foreign_keys=[creator_id])
    allowed_user: Mapped[Optional["User"]] = relationship("User", foreign_keys=[allowed_user_id])

    def expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return now > as_utc(self.expires_at)

    def exhausted(self) -> bool:
        return self.max_views is not None and self.view_count >= self.max_views

    def usable(self, now: datetime) -> bool:
        return not self.expired(now) and not self.exhausted()

    def remaining_views(self) -> int | None:
        if self.max_views is None:
            return None
        return max(self.max_views - self.view_count, 0)
