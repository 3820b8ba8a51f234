# app/models.py
from datetime import datetime, timezone
from sqlalchemy import String, Text, Boolean, Integer, Enum, text
from sqlalchemy.orm import Mapped, mapped_column
from app.db import Base
import enum

def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

class ProcessingStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"

class BlogStatus(str, enum.Enum):
    draft = "draft"
    published = "published"

def _status_column(**kw):
    # Portable ENUM: native_enum=False -> becomes VARCHAR+CHECK on SQLite/MySQL
    return mapped_column(
        Enum(ProcessingStatus, native_enum=False, validate_strings=True),
        nullable=False,
        default=ProcessingStatus.pending,
        server_default=text("'pending'"),
        **kw,
    )

class VideoRecord(Base):
    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str | None] = mapped_column(String(512), default=None)

    audio_url: Mapped[str | None] = mapped_column(Text, default=None)
    audio_status: Mapped[ProcessingStatus] = _status_column(index=True)

    transcript: Mapped[str | None] = mapped_column(Text, default=None)
    transcript_status: Mapped[ProcessingStatus] = _status_column(index=True)
    transcript_job_id: Mapped[str | None] = mapped_column(String(128), default=None)
    transcript_model: Mapped[str | None] = mapped_column(String(64), default=None)
    transcript_updated_at: Mapped[datetime | None] = mapped_column(default=None)

    blog_created: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("0")
    )
    blog_post_id: Mapped[int | None] = mapped_column(Integer, default=None)

    error_message: Mapped[str | None] = mapped_column(Text, default=None)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

class AppSetting(Base):
    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text, default=None)

class BlogPost(Base):
    __tablename__ = "blog_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    slug: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    excerpt: Mapped[str | None] = mapped_column(Text, default=None)
    category: Mapped[str | None] = mapped_column(String(128), default=None)
    status: Mapped[BlogStatus] = mapped_column(
        Enum(BlogStatus, native_enum=False, validate_strings=True),
        nullable=False,
        default=BlogStatus.draft,
    )
    read_time_min: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    video_id: Mapped[str | None] = mapped_column(String(64), default=None, index=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
