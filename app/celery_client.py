# app/celery_client.py
from celery import Celery
from app.settings import settings

TRANSCRIBE_TASK = "worker.tasks.transcribe_video_task"
EXTRACT_AUDIO_TASK = "worker.tasks.extract_audio_task"
BULK_TRANSCRIBE_TASK = "worker.tasks.bulk_transcribe_task"

# Extraction-only work is short and bursty; keep it off the long polling queue
TASK_ROUTES = {
    TRANSCRIBE_TASK: {"queue": "transcription"},
    BULK_TRANSCRIBE_TASK: {"queue": "transcription"},
    EXTRACT_AUDIO_TASK: {"queue": "audio"},
}

celery_app = Celery(
    settings.APP_NAME,
    broker=str(settings.CELERY_BROKER_URL),
    backend=str(settings.CELERY_RESULT_BACKEND),
)

# Client-side config: the API only sends tasks by name, it never imports them
celery_app.conf.update(
    task_routes=TASK_ROUTES,
    task_track_started=True,
    broker_connection_retry_on_startup=True,
    result_expires=3600,
    timezone="UTC",
    enable_utc=True,
)
