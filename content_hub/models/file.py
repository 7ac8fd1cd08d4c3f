import enum
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, String, BigInteger, DateTime, Text, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from content_hub.database import Base


class FileState(str, enum.Enum):
    # purged is terminal: the row and the blob are gone, it is never stored
    ACTIVE = "active"
    SOFT_DELETED = "soft_deleted"
    PURGED = "purged"


class File(Base):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, index=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    filename: Mapped[str] = mapped_column(String, nullable=False)
    mime_type: Mapped[str] = mapped_column(String, nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    storage_key: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    state: Mapped[FileState] = mapped_column(
        Enum(FileState, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        default=FileState.ACTIVE,
        nullable=False,
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    owner: Mapped["User"] = relationship("User", back_populates="files")
    shares: Mapped[list["Share"]] = relationship(back_populates="file", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def is_active(self) -> bool:
        return self.state == FileState.ACTIVE
