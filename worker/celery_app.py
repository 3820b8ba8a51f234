from celery import Celery
from celery.signals import setup_logging
from app.celery_client import TASK_ROUTES
from app.logging_setup import configure_logging
from app.settings import settings

# Run with: celery -A worker.celery_app worker -Q transcription,audio
celery_app = Celery(
    settings.APP_NAME,
    broker=str(settings.CELERY_BROKER_URL),
    backend=str(settings.CELERY_RESULT_BACKEND),
    include=["worker.tasks"],
)

celery_app.conf.update(
    task_routes=TASK_ROUTES,
    task_track_started=True,
    task_acks_late=True,
    # a transcription holds its worker slot for up to the whole polling window
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
    result_expires=3600,  # 1 hour
    timezone="UTC",
    enable_utc=True,
)

@setup_logging.connect
def _configure_worker_logging(**kwargs):
    # replaces Celery's own root-logger setup
    configure_logging(settings.LOG_LEVEL)
