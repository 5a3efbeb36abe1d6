"""
Media center tables: categories and media contents (images, videos and
copywriting text).
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base, TimestampMixin, new_id
from .korda import Korda
from .user import User


class MediaType(str, enum.Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    COPYWRITING = "COPYWRITING"


class MediaCategory(TimestampMixin, Base):
    __tablename__ = "media_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class MediaContent(TimestampMixin, Base):
    __tablename__ = "media_contents"
    __table_args__ = (
        Index("media_contents_type_idx", "type"),
        Index("media_contents_korda_id_idx", "korda_id"),
        Index("media_contents_uploaded_by_idx", "uploaded_by"),
        Index("media_contents_is_archived_idx", "is_archived"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[MediaType] = mapped_column(Enum(MediaType, name="media_type", native_enum=False, length=20))
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_size_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("media_categories.id"), nullable=True)
    uploaded_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    korda_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("kordas.id"), nullable=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    category: Mapped[Optional[MediaCategory]] = relationship()
    uploader: Mapped[User] = relationship()
    korda: Mapped[Optional[Korda]] = relationship()
