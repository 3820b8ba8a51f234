# app/store.py
from datetime import datetime, timedelta
from typing import Any
from sqlalchemy import update, or_
from sqlalchemy.orm import sessionmaker
from app.db import SessionLocal
from app.models import VideoRecord, AppSetting, ProcessingStatus, utcnow


class VideoStore:
    """Single-row, keyed-by-id access to the videos table."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def get_video(self, video_id: str) -> VideoRecord | None:
        with self.session_factory() as db:
            return db.get(VideoRecord, video_id)

    def upsert_video(self, video_id: str, title: str | None = None) -> tuple[VideoRecord, bool]:
        """Create the record on first sight; returns (record, created)."""
        with self.session_factory() as db:
            video = db.get(VideoRecord, video_id)
            created = video is None
            if created:
                video = VideoRecord(
                    id=video_id,
                    title=title,
                    audio_status=ProcessingStatus.pending,
                    transcript_status=ProcessingStatus.pending,
                )
                db.add(video)
            elif title:
                video.title = title
            db.commit()
            db.refresh(video)
            return video, created

    def update_video(self, video_id: str, **fields: Any) -> None:
        with self.session_factory() as db:
            video = db.get(VideoRecord, video_id)
            if not video:
                return
            for k, v in fields.items():
                setattr(video, k, v)
            db.commit()

    def fail_audio_if_processing(self, video_id: str) -> bool:
        # Never clobber an audio_status that already reached "completed"
        stmt = (
            update(VideoRecord)
            .where(VideoRecord.id == video_id)
            .where(VideoRecord.audio_status == ProcessingStatus.processing)
            .values(audio_status=ProcessingStatus.failed, updated_at=utcnow())
        )
        with self.session_factory() as db:
            result = db.execute(stmt)
            db.commit()
            return result.rowcount > 0

    def mark_blog_created(self, video_id: str, blog_post_id: int) -> bool:
        stmt = (
            update(VideoRecord)
            .where(VideoRecord.id == video_id)
            .where(VideoRecord.blog_created == False)  # noqa: E712
            .values(blog_created=True, blog_post_id=blog_post_id, updated_at=utcnow())
        )
        with self.session_factory() as db:
            result = db.execute(stmt)
            db.commit()
            return result.rowcount > 0

    def fail_stale_processing(self, older_than: timedelta, now: datetime | None = None) -> int:
        """Reset rows left in "processing" by a crashed process. Returns rows touched."""
        cutoff = (now or utcnow()) - older_than
        message = "orchestration interrupted (process restarted while processing)"
        touched = 0
        with self.session_factory() as db:
            stale = (
                db.query(VideoRecord)
                .filter(VideoRecord.updated_at < cutoff)
                .filter(or_(
                    VideoRecord.transcript_status == ProcessingStatus.processing,
                    VideoRecord.audio_status == ProcessingStatus.processing,
                ))
                .all()
            )
            for video in stale:
                if video.transcript_status == ProcessingStatus.processing:
                    video.transcript_status = ProcessingStatus.failed
                if video.audio_status == ProcessingStatus.processing:
                    video.audio_status = ProcessingStatus.failed
                video.error_message = message
                touched += 1
            db.commit()
        return touched


class SettingsStore:
    """Operator key/value settings."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def get_setting(self, key: str) -> str | None:
        with self.session_factory() as db:
            row = db.get(AppSetting, key)
            return row.value if row else None

    def set_setting(self, key: str, value: str | None) -> None:
        with self.session_factory() as db:
            row = db.get(AppSetting, key)
            if row is None:
                db.add(AppSetting(key=key, value=value))
            else:
                row.value = value
            db.commit()
