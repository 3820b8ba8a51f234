# app/providers/audio_backends.py
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import httpx
import yt_dlp
from azure.storage.blob import BlobServiceClient

from app.poller import JobState, OutcomeKind, PollPolicy, PollStatus, Sleep, poll_to_completion
from app.providers.base import AudioBackend, HTTPProviderMixin, error_detail, youtube_url
from app.settings import settings

logger = logging.getLogger(__name__)

# Job states reported by the audio-processor service
_PROCESSOR_STATES = {
    "queued": JobState.queued,
    "pending": JobState.queued,
    "running": JobState.extracting,
    "extracting": JobState.extracting,
    "downloading": JobState.extracting,
    "transcribing": JobState.transcribing,
    "succeeded": JobState.completed,
    "completed": JobState.completed,
    "failed": JobState.failed,
    "error": JobState.failed,
    "canceled": JobState.failed,
}


def processor_state(raw: str | None) -> JobState:
    return _PROCESSOR_STATES.get((raw or "").lower(), JobState.queued)


def _pick_url(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    for key in ("audio_url", "url", "link", "download_url"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class AudioProcessorBackend(HTTPProviderMixin, AudioBackend):
    """Internal audio-processor microservice, audio-only extraction job."""
    name = "audio_processor"

    def __init__(self, base_url: str | None = None, token: str | None = None,
                 policy: PollPolicy | None = None, *, transport: httpx.AsyncBaseTransport | None = None,
                 sleep: Sleep = asyncio.sleep):
        self.base_url = (base_url or settings.AUDIO_PROCESSOR_URL or "").rstrip("/")
        self.token = token or settings.AUDIO_PROCESSOR_TOKEN
        self.policy = policy or PollPolicy(settings.POLL_INTERVAL_SEC, settings.EXTRACT_MAX_ATTEMPTS)
        self.transport = transport
        self.sleep = sleep

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def try_extract(self, video_id: str) -> str:
        if not self.base_url:
            raise RuntimeError("AUDIO_PROCESSOR_URL is not configured")

        async with self._client(headers=self._headers()) as client:
            resp = await client.post(
                f"{self.base_url}/v1/extractions",
                json={"video_id": video_id, "source_url": youtube_url(video_id)},
            )
            if resp.status_code >= 400:
                raise RuntimeError(f"extraction submit rejected: {error_detail(resp)}")
            job_id = resp.json().get("job_id")
            if not job_id:
                raise RuntimeError("extraction submit returned no job_id")

            async def check() -> PollStatus:
                r = await client.get(f"{self.base_url}/v1/extractions/{job_id}")
                r.raise_for_status()
                body = r.json()
                return PollStatus(processor_state(body.get("status")),
                                  error=body.get("error"), audio_url=_pick_url(body))

            outcome = await poll_to_completion(check, self.policy, sleep=self.sleep,
                                               label=f"{self.name}:{video_id}")

        if outcome.kind != OutcomeKind.completed:
            raise RuntimeError(outcome.error)
        if not outcome.audio_url:
            raise RuntimeError("extraction finished without an audio_url")
        return outcome.audio_url


class ExtractorServiceBackend(HTTPProviderMixin, AudioBackend):
    """Direct extractor service that answers with a URL in one call."""
    name = "extractor_service"

    def __init__(self, base_url: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (base_url or settings.EXTRACTOR_SERVICE_URL or "").rstrip("/")
        self.transport = transport

    async def try_extract(self, video_id: str) -> str:
        if not self.base_url:
            raise RuntimeError("EXTRACTOR_SERVICE_URL is not configured")
        async with self._client() as client:
            resp = await client.get(f"{self.base_url}/extract", params={"video_id": video_id})
        if resp.status_code >= 400:
            raise RuntimeError(error_detail(resp))
        url = _pick_url(resp.json())
        if not url:
            raise RuntimeError(f"malformed extractor response: {resp.text[:200]}")
        return url


class HostedConverterBackend(HTTPProviderMixin, AudioBackend):
    """Hosted YouTube-to-MP3 converter (RapidAPI-style auth headers).

    Answers {"status": "ok", "link": ...}; "processing" means ask again later.
    """
    name = "hosted_converter"

    def __init__(self, base_url: str | None = None, api_host: str | None = None, api_key: str | None = None,
                 policy: PollPolicy | None = None, *, transport: httpx.AsyncBaseTransport | None = None,
                 sleep: Sleep = asyncio.sleep):
        self.base_url = base_url or settings.HOSTED_CONVERTER_URL
        self.api_host = api_host or settings.HOSTED_CONVERTER_HOST
        self.api_key = api_key or settings.HOSTED_CONVERTER_KEY
        self.policy = policy or PollPolicy(settings.POLL_INTERVAL_SEC, 6)
        self.transport = transport
        self.sleep = sleep

    async def try_extract(self, video_id: str) -> str:
        if not self.base_url or not self.api_key:
            raise RuntimeError("hosted converter is not configured")
        headers = {"X-RapidAPI-Key": self.api_key}
        if self.api_host:
            headers["X-RapidAPI-Host"] = self.api_host

        async with self._client(headers=headers) as client:
            async def check() -> PollStatus:
                r = await client.get(self.base_url, params={"id": video_id})
                if r.status_code >= 400:
                    return PollStatus(JobState.failed, error=error_detail(r))
                body = r.json()
                status = str(body.get("status", "")).lower()
                url = _pick_url(body)
                if status == "ok" and url:
                    return PollStatus(JobState.completed, audio_url=url)
                if status == "processing":
                    return PollStatus(JobState.extracting)
                return PollStatus(JobState.failed, error=body.get("msg") or f"unexpected response: {body}")

            outcome = await poll_to_completion(check, self.policy, sleep=self.sleep,
                                               label=f"{self.name}:{video_id}")

        if outcome.kind != OutcomeKind.completed:
            raise RuntimeError(outcome.error)
        return outcome.audio_url


class YtDlpBackend(AudioBackend):
    """Local extraction with yt-dlp; publishes to Azure Blob Storage when configured."""
    name = "yt_dlp"

    def __init__(self, audio_dir: str | Path | None = None):
        self.audio_dir = Path(audio_dir or settings.YTDLP_AUDIO_DIR)

    async def try_extract(self, video_id: str) -> str:
        return await asyncio.to_thread(self._extract_sync, video_id)

    def _extract_sync(self, video_id: str) -> str:
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        ydl_opts = {
            "format": "bestaudio/best",
            "outtmpl": str(self.audio_dir / "%(id)s.%(ext)s"),
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "noplaylist": True,
        }
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(youtube_url(video_id), download=True)
            if not info:
                raise RuntimeError("yt-dlp returned no info")
            path = Path(ydl.prepare_filename(info))
        if not path.exists():
            raise RuntimeError(f"yt-dlp reported {path} but no file was written")

        blob_url = upload_to_blob(path)
        return blob_url or str(path.resolve())


def upload_to_blob(path: Path) -> str | None:
    """Upload a local audio file and return its blob URL, or None when storage is unset."""
    if not settings.AZURE_STORAGE_CONNECTION_STRING or not settings.AZURE_CONTAINER_NAME:
        return None
    blob_service_client = BlobServiceClient.from_connection_string(settings.AZURE_STORAGE_CONNECTION_STRING)
    container_client = blob_service_client.get_container_client(settings.AZURE_CONTAINER_NAME)
    blob_client = container_client.get_blob_client(path.name)
    with open(path, "rb") as f:
        blob_client.upload_blob(f, overwrite=True)
    logger.info("uploaded %s to blob storage", path.name)
    return blob_client.url


AUDIO_BACKENDS = {
    AudioProcessorBackend.name: AudioProcessorBackend,
    ExtractorServiceBackend.name: ExtractorServiceBackend,
    HostedConverterBackend.name: HostedConverterBackend,
    YtDlpBackend.name: YtDlpBackend,
}
