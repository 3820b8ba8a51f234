from datetime import datetime
from fastapi import APIRouter, HTTPException, Depends, status
from pydantic import BaseModel, Field

from app.deps import get_dispatcher, get_orchestrator, get_settings_store, get_video_store
from app.dispatch import Dispatcher
from app.flags import FeatureFlags
from app.models import VideoRecord
from app.orchestrator import TranscriptionOrchestrator
from app.store import SettingsStore, VideoStore

router = APIRouter(tags=["videos"])

class VideoIn(BaseModel):
    video_id: str = Field(..., min_length=1, max_length=64)
    title: str | None = None

class TranscribeRequest(BaseModel):
    provider: str | None = None
    api_key: str | None = None
    language: str | None = None

    def credentials(self) -> dict | None:
        return {"api_key": self.api_key} if self.api_key else None

class BulkTranscribeRequest(TranscribeRequest):
    video_ids: list[str] = Field(..., min_length=1)

class VideoResponse(BaseModel):
    id: str
    title: str | None = None
    audio_url: str | None = None
    audio_status: str
    transcript: str | None = None
    transcript_status: str
    transcript_job_id: str | None = None
    transcript_model: str | None = None
    transcript_updated_at: datetime | None = None
    blog_created: bool
    blog_post_id: int | None = None
    error_message: str | None = None

    @classmethod
    def from_record(cls, v: VideoRecord) -> "VideoResponse":
        return cls(
            id=v.id, title=v.title, audio_url=v.audio_url, audio_status=v.audio_status.value,
            transcript=v.transcript, transcript_status=v.transcript_status.value,
            transcript_job_id=v.transcript_job_id, transcript_model=v.transcript_model,
            transcript_updated_at=v.transcript_updated_at, blog_created=v.blog_created,
            blog_post_id=v.blog_post_id, error_message=v.error_message,
        )

class AcceptedResponse(BaseModel):
    status: str = "processing"
    video_ids: list[str]


def _known_provider(orchestrator: TranscriptionOrchestrator, provider: str | None) -> None:
    if provider and provider not in orchestrator.gateway.providers:
        raise HTTPException(status_code=400, detail=f"Unknown transcription provider: {provider}")


@router.post("/videos", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def ingest_video(
    req: VideoIn,
    store: VideoStore = Depends(get_video_store),
    settings_store: SettingsStore = Depends(get_settings_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Register a discovered video; kicks off transcription when auto_transcribe is on."""
    video, created = store.upsert_video(req.video_id, req.title)
    if created and FeatureFlags.load(settings_store).auto_transcribe:
        dispatcher.start_transcription(video.id, None, None)
    return VideoResponse.from_record(video)

@router.get("/videos/{video_id}", response_model=VideoResponse)
async def get_video(video_id: str, store: VideoStore = Depends(get_video_store)):
    video = store.get_video(video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return VideoResponse.from_record(video)

@router.post("/videos/transcribe/bulk", response_model=AcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def bulk_transcribe(
    req: BulkTranscribeRequest,
    store: VideoStore = Depends(get_video_store),
    orchestrator: TranscriptionOrchestrator = Depends(get_orchestrator),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    _known_provider(orchestrator, req.provider)
    known = [v for v in dict.fromkeys(req.video_ids) if store.get_video(v) is not None]
    if not known:
        raise HTTPException(status_code=404, detail="None of the videos exist")
    dispatcher.bulk_start_transcription(known, req.credentials(), req.provider, req.language)
    return AcceptedResponse(video_ids=known)

@router.post("/videos/{video_id}/transcribe", response_model=AcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def transcribe_video(
    video_id: str,
    req: TranscribeRequest | None = None,
    store: VideoStore = Depends(get_video_store),
    orchestrator: TranscriptionOrchestrator = Depends(get_orchestrator),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    req = req or TranscribeRequest()
    _known_provider(orchestrator, req.provider)
    if store.get_video(video_id) is None:
        raise HTTPException(status_code=404, detail="Video not found")
    dispatcher.start_transcription(video_id, req.credentials(), req.provider, req.language)
    return AcceptedResponse(video_ids=[video_id])

@router.post("/videos/{video_id}/extract-audio", response_model=AcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def extract_audio(
    video_id: str,
    store: VideoStore = Depends(get_video_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    if store.get_video(video_id) is None:
        raise HTTPException(status_code=404, detail="Video not found")
    dispatcher.extract_audio_only(video_id)
    return AcceptedResponse(video_ids=[video_id])
