# app/deps.py
from app.blog import BlogCreator
from app.dispatch import CeleryDispatcher, Dispatcher, InProcessDispatcher
from app.orchestrator import TranscriptionOrchestrator
from app.providers.gateway import ProviderGateway
from app.settings import settings
from app.store import SettingsStore, VideoStore

# Create singletons once
_video_store = VideoStore()
_settings_store = SettingsStore()
_orchestrator = TranscriptionOrchestrator(
    store=_video_store,
    gateway=ProviderGateway(),
    settings_source=_settings_store,
    blog_creator=BlogCreator(),
)
_dispatcher: Dispatcher = (
    CeleryDispatcher() if settings.TASK_RUNNER == "celery" else InProcessDispatcher(_orchestrator)
)

def get_video_store() -> VideoStore:
    return _video_store

def get_settings_store() -> SettingsStore:
    return _settings_store

def get_orchestrator() -> TranscriptionOrchestrator:
    return _orchestrator

def get_dispatcher() -> Dispatcher:
    return _dispatcher
