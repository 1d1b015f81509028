from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Enum, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mediavault.core.db import Base


class MediaKind(str, enum.Enum):
    image = "image"
    video = "video"
    audio = "audio"
    file = "file"


class MediaEntry(Base):
    """One row of the device media index mirrored into SQL."""

    __tablename__ = "media_entries"
    __table_args__ = (
        UniqueConstraint("kind", "media_id", name="uq_media_entries_kind_media"),
        Index("ix_media_entries_kind_captured", "kind", "captured_at"),
        Index("ix_media_entries_kind_album", "kind", "album_id"),
    )

    entry_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[MediaKind] = mapped_column(Enum(MediaKind), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    captured_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    size_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    album_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    album_name: Mapped[str | None] = mapped_column(String(512), nullable=True)


__all__ = ["MediaKind", "MediaEntry"]
