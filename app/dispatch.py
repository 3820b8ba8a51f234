# app/dispatch.py
"""Hands orchestration work to a background runner so callers return immediately."""
from __future__ import annotations

import logging
from typing import Any

from app.celery_client import BULK_TRANSCRIBE_TASK, EXTRACT_AUDIO_TASK, TRANSCRIBE_TASK, celery_app
from app.orchestrator import TranscriptionOrchestrator
from app.task_runner import TaskRunner

logger = logging.getLogger(__name__)


class Dispatcher:
    def start_transcription(self, video_id: str, credentials: dict | None, provider: str | None,
                            language: str | None = None) -> None:
        raise NotImplementedError

    def extract_audio_only(self, video_id: str) -> None:
        raise NotImplementedError

    def bulk_start_transcription(self, video_ids: list[str], credentials: dict | None, provider: str | None,
                                 language: str | None = None) -> None:
        raise NotImplementedError

    async def shutdown(self) -> None:
        return None


class InProcessDispatcher(Dispatcher):
    def __init__(self, orchestrator: TranscriptionOrchestrator, runner: TaskRunner | None = None):
        self.orchestrator = orchestrator
        self.runner = runner or TaskRunner()

    def start_transcription(self, video_id, credentials, provider, language=None):
        self.runner.submit(
            self.orchestrator.start_transcription(video_id, credentials, provider, language),
            name=f"transcribe:{video_id}",
        )

    def extract_audio_only(self, video_id):
        self.runner.submit(self.orchestrator.extract_audio_only(video_id), name=f"extract:{video_id}")

    def bulk_start_transcription(self, video_ids, credentials, provider, language=None):
        self.runner.submit(
            self.orchestrator.bulk_start_transcription(video_ids, credentials, provider, language),
            name=f"bulk:{len(video_ids)}",
        )

    async def shutdown(self) -> None:
        await self.runner.drain(timeout=10)


class CeleryDispatcher(Dispatcher):
    def __init__(self, app: Any = celery_app):
        self.app = app

    def _send(self, task_name: str, **kwargs) -> str:
        async_res = self.app.send_task(task_name, kwargs=kwargs)
        logger.info("queued %s as celery task %s", task_name, async_res.id)
        return async_res.id

    def start_transcription(self, video_id, credentials, provider, language=None):
        self._send(TRANSCRIBE_TASK, video_id=video_id, credentials=credentials, provider=provider,
                   language=language)

    def extract_audio_only(self, video_id):
        self._send(EXTRACT_AUDIO_TASK, video_id=video_id)

    def bulk_start_transcription(self, video_ids, credentials, provider, language=None):
        self._send(BULK_TRANSCRIBE_TASK, video_ids=list(video_ids), credentials=credentials,
                   provider=provider, language=language)
