import logging
from celery import shared_task
from app.deps import get_orchestrator
from worker.tasks_helpers import run_orchestration, status_value

logger = logging.getLogger(__name__)

@shared_task(name="worker.tasks.transcribe_video_task", bind=True)
def transcribe_video_task(self, video_id: str, credentials: dict | None = None,
                          provider: str | None = None, language: str | None = None):
    self.update_state(state="STARTED", meta={"video_id": video_id, "phase": "transcribe"})
    status = run_orchestration(
        get_orchestrator().start_transcription(video_id, credentials, provider, language)
    )
    logger.info("celery transcription for %s finished: %s", video_id, status_value(status))
    return {"video_id": video_id, "transcript_status": status_value(status)}

@shared_task(name="worker.tasks.extract_audio_task", bind=True)
def extract_audio_task(self, video_id: str):
    self.update_state(state="STARTED", meta={"video_id": video_id, "phase": "extract_audio"})
    status = run_orchestration(get_orchestrator().extract_audio_only(video_id))
    return {"video_id": video_id, "audio_status": status_value(status)}

@shared_task(name="worker.tasks.bulk_transcribe_task", bind=True)
def bulk_transcribe_task(self, video_ids: list[str], credentials: dict | None = None,
                         provider: str | None = None, language: str | None = None):
    self.update_state(state="STARTED", meta={"video_ids": video_ids, "phase": "bulk_transcribe"})
    results = run_orchestration(
        get_orchestrator().bulk_start_transcription(video_ids, credentials, provider, language)
    )
    return {video_id: status_value(status) for video_id, status in results.items()}
