# app/orchestrator.py
"""
Per-video transcription state machine.

    START -> ensure audio -> submit -> poll -> persist -> auto-blog

Every exit writes a terminal transcript status to the video row; provider and
network errors become `failed` + `error_message` and are never re-raised.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from app.blog import BlogCreator
from app.errors import PollTimeout, ProviderReportedFailure, TranscriptionError
from app.flags import FeatureFlags, SettingsSource
from app.models import ProcessingStatus, utcnow
from app.poller import JobState, OutcomeKind, PollPolicy, PollStatus, Sleep, poll_to_completion
from app.providers.base import Credentials
from app.providers.gateway import ProviderGateway
from app.settings import settings
from app.store import VideoStore

logger = logging.getLogger(__name__)


class TranscriptionOrchestrator:
    def __init__(
        self,
        store: VideoStore,
        gateway: ProviderGateway,
        settings_source: SettingsSource,
        blog_creator: BlogCreator | None = None,
        policy: PollPolicy | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.gateway = gateway
        self.settings_source = settings_source
        self.blog_creator = blog_creator
        self.policy = policy or PollPolicy(settings.POLL_INTERVAL_SEC, settings.TRANSCRIBE_MAX_ATTEMPTS)
        self.sleep = sleep
        self._in_flight: set[str] = set()

    # ── in-flight guard ───────────────────────────────────────────────

    def is_running(self, video_id: str) -> bool:
        return video_id in self._in_flight

    def _claim(self, video_id: str) -> bool:
        if video_id in self._in_flight:
            logger.warning("video %s already has an orchestration running; ignoring duplicate trigger", video_id)
            return False
        self._in_flight.add(video_id)
        return True

    # ── public operations ─────────────────────────────────────────────

    async def start_transcription(
        self,
        video_id: str,
        credentials: Credentials | None = None,
        provider: str | None = None,
        language: str | None = None,
    ) -> ProcessingStatus | None:
        """Run one attempt to its terminal status. Returns it, or None if nothing ran."""
        if not self._claim(video_id):
            return None
        try:
            return await self._transcribe(video_id, credentials, provider, language)
        finally:
            self._in_flight.discard(video_id)

    async def extract_audio_only(self, video_id: str) -> ProcessingStatus | None:
        if not self._claim(video_id):
            return None
        try:
            return await self._extract_only(video_id)
        finally:
            self._in_flight.discard(video_id)

    async def bulk_start_transcription(
        self,
        video_ids: Iterable[str],
        credentials: Credentials | None = None,
        provider: str | None = None,
        language: str | None = None,
    ) -> dict[str, ProcessingStatus | None]:
        """Fan out independent state machines; one video's outcome never affects another."""
        ids = list(dict.fromkeys(video_ids))
        results = await asyncio.gather(
            *(self.start_transcription(v, credentials, provider, language) for v in ids),
            return_exceptions=True,
        )
        outcome: dict[str, ProcessingStatus | None] = {}
        for video_id, result in zip(ids, results):
            if isinstance(result, BaseException):
                logger.error("bulk transcription for %s crashed: %s", video_id, result)
                outcome[video_id] = None
            else:
                outcome[video_id] = result
        return outcome

    # ── state machine ─────────────────────────────────────────────────

    async def _transcribe(self, video_id, credentials, provider, language) -> ProcessingStatus | None:
        flags = FeatureFlags.load(self.settings_source)
        provider = provider or flags.default_provider
        language = language or flags.language

        video = self.store.get_video(video_id)
        if video is None:
            logger.error("transcription requested for unknown video %s", video_id)
            return None

        reuse_audio = bool(video.audio_url) and video.audio_status == ProcessingStatus.completed

        # START
        start_fields = dict(
            transcript_status=ProcessingStatus.processing,
            transcript_job_id=None,
            error_message=None,
        )
        if not reuse_audio:
            start_fields["audio_status"] = ProcessingStatus.processing
        self.store.update_video(video_id, **start_fields)
        logger.info("transcription started for %s (provider=%s, reuse_audio=%s)", video_id, provider, reuse_audio)

        try:
            client = self.gateway.resolve_provider(provider, credentials)

            if client.extracts_audio:
                # provider fetches audio itself; audio_status is refined from poll ticks
                source = video_id
            elif reuse_audio:
                source = video.audio_url
            else:
                source = await self.gateway.ensure_audio(video_id, flags.audio_backends)
                self.store.update_video(video_id, audio_url=source, audio_status=ProcessingStatus.completed)
                logger.info("audio ready for %s", video_id)

            # SUBMIT
            job_id = await self.gateway.submit_transcription(source, provider, credentials, language)
            self.store.update_video(video_id, transcript_job_id=job_id)
            logger.info("transcription job %s submitted to %s for %s", job_id, provider, video_id)

            # POLL
            outcome = await poll_to_completion(
                lambda: self.gateway.poll_once(job_id, provider, credentials),
                self.policy,
                on_tick=self._tick_handler(video_id),
                sleep=self.sleep,
                label=f"{provider}:{job_id}",
            )

            if outcome.kind == OutcomeKind.failed:
                raise ProviderReportedFailure(outcome.error or "provider reported failure")
            if outcome.kind == OutcomeKind.timeout:
                raise PollTimeout(outcome.error or "transcription timed out")
            if not (outcome.text or "").strip():
                raise ProviderReportedFailure(f"{provider} completed job {job_id} with an empty transcript")

            done_fields = dict(
                transcript=outcome.text,
                transcript_status=ProcessingStatus.completed,
                transcript_model=provider,
                transcript_updated_at=utcnow(),
                error_message=None,
            )
            if client.extracts_audio:
                done_fields["audio_status"] = ProcessingStatus.completed
                if outcome.audio_url:
                    done_fields["audio_url"] = outcome.audio_url
            self.store.update_video(video_id, **done_fields)
            logger.info("transcription completed for %s (%d chars)", video_id, len(outcome.text))

        except TranscriptionError as e:
            return self._fail(video_id, e.message)
        except asyncio.CancelledError:
            # runner drained on shutdown; leave a terminal status behind
            self._fail(video_id, "orchestration cancelled during shutdown")
            raise
        except Exception as e:
            logger.exception("unexpected error while transcribing %s", video_id)
            return self._fail(video_id, str(e) or type(e).__name__)

        await self._maybe_create_blog(video_id, flags)
        return ProcessingStatus.completed

    def _tick_handler(self, video_id: str):
        refined = False

        def on_tick(status: PollStatus) -> None:
            nonlocal refined
            if status.state == JobState.transcribing and not refined:
                fields = {"audio_status": ProcessingStatus.completed}
                if status.audio_url:
                    fields["audio_url"] = status.audio_url
                self.store.update_video(video_id, **fields)
                refined = True

        return on_tick

    def _fail(self, video_id: str, message: str) -> ProcessingStatus:
        logger.error("transcription failed for %s: %s", video_id, message)
        self.store.update_video(video_id, transcript_status=ProcessingStatus.failed, error_message=message)
        self.store.fail_audio_if_processing(video_id)
        return ProcessingStatus.failed

    async def _extract_only(self, video_id: str) -> ProcessingStatus | None:
        flags = FeatureFlags.load(self.settings_source)
        if self.store.get_video(video_id) is None:
            logger.error("audio extraction requested for unknown video %s", video_id)
            return None

        self.store.update_video(video_id, audio_status=ProcessingStatus.processing, error_message=None)
        logger.info("audio extraction started for %s", video_id)
        try:
            audio_url = await self.gateway.ensure_audio(video_id, flags.audio_backends)
        except TranscriptionError as e:
            logger.error("audio extraction failed for %s: %s", video_id, e.message)
            self.store.update_video(video_id, error_message=e.message)
            self.store.fail_audio_if_processing(video_id)
            return ProcessingStatus.failed
        except asyncio.CancelledError:
            logger.error("audio extraction for %s cancelled during shutdown", video_id)
            self.store.update_video(video_id, error_message="audio extraction cancelled during shutdown")
            self.store.fail_audio_if_processing(video_id)
            raise

        self.store.update_video(video_id, audio_url=audio_url, audio_status=ProcessingStatus.completed)
        logger.info("audio extraction completed for %s", video_id)
        return ProcessingStatus.completed

    # ── auto-blog ─────────────────────────────────────────────────────

    async def _maybe_create_blog(self, video_id: str, flags: FeatureFlags) -> None:
        if not flags.auto_blog:
            return
        video = self.store.get_video(video_id)
        if video is None or video.blog_created or not (video.transcript or "").strip():
            return
        if self.blog_creator is None:
            logger.warning("auto_blog is on but no blog creator is configured (video=%s)", video_id)
            return
        try:
            post_id = await self.blog_creator.create_blog_from_transcript(video, publish=flags.auto_publish)
        except Exception as e:
            # transcript stays completed; the blog step is best-effort
            logger.error("auto-blog failed for %s: %s", video_id, e)
            return
        if not self.store.mark_blog_created(video_id, post_id):
            logger.warning("video %s already had a blog post; post %s left unlinked", video_id, post_id)
