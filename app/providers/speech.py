# app/providers/speech.py
from __future__ import annotations

import logging

import httpx

from app.errors import SubmissionFailed
from app.poller import JobState, PollStatus
from app.providers.audio_backends import processor_state
from app.providers.base import Credentials, HTTPProviderMixin, TranscriptionProvider, error_detail, youtube_url
from app.settings import settings

logger = logging.getLogger(__name__)

_ASSEMBLYAI_STATES = {
    "queued": JobState.queued,
    "processing": JobState.transcribing,
    "completed": JobState.completed,
    "error": JobState.failed,
}


def _permanent_error(resp: httpx.Response) -> bool:
    # a 4xx will not fix itself by asking again; 429 is just throttling
    return 400 <= resp.status_code < 500 and resp.status_code != 429


class AssemblyAIProvider(HTTPProviderMixin, TranscriptionProvider):
    name = "assemblyai"

    def __init__(self, credentials: Credentials | None = None, base_url: str | None = None,
                 *, transport: httpx.AsyncBaseTransport | None = None):
        credentials = credentials or {}
        self.api_key = credentials.get("api_key") or settings.ASSEMBLYAI_API_KEY
        self.base_url = (base_url or settings.ASSEMBLYAI_BASE_URL).rstrip("/")
        self.transport = transport

    def _headers(self) -> dict:
        return {"authorization": self.api_key or ""}

    async def submit(self, source: str, language: str | None) -> str:
        if not self.api_key:
            raise SubmissionFailed("AssemblyAI API key is missing")
        payload: dict = {"audio_url": source}
        if language:
            payload["language_code"] = language
        else:
            payload["language_detection"] = True

        async with self._client(headers=self._headers()) as client:
            resp = await client.post(f"{self.base_url}/v2/transcript", json=payload)
        if resp.status_code >= 400:
            raise SubmissionFailed(f"AssemblyAI rejected the job: {error_detail(resp)}")
        body = resp.json()
        if body.get("status") == "error" or not body.get("id"):
            raise SubmissionFailed(f"AssemblyAI rejected the job: {body.get('error') or body}")
        return body["id"]

    async def poll_once(self, job_id: str) -> PollStatus:
        async with self._client(headers=self._headers()) as client:
            resp = await client.get(f"{self.base_url}/v2/transcript/{job_id}")
        if _permanent_error(resp):
            return PollStatus(JobState.failed, error=f"AssemblyAI status check failed: {error_detail(resp)}")
        resp.raise_for_status()
        body = resp.json()
        state = _ASSEMBLYAI_STATES.get(body.get("status"), JobState.queued)
        return PollStatus(state, text=body.get("text"), error=body.get("error"))


class AudioProcessorProvider(HTTPProviderMixin, TranscriptionProvider):
    """Internal audio-processor microservice: extraction and transcription in one job."""
    name = "audio_processor"
    extracts_audio = True

    def __init__(self, credentials: Credentials | None = None, base_url: str | None = None,
                 *, transport: httpx.AsyncBaseTransport | None = None):
        credentials = credentials or {}
        self.token = credentials.get("api_key") or settings.AUDIO_PROCESSOR_TOKEN
        self.base_url = (base_url or settings.AUDIO_PROCESSOR_URL or "").rstrip("/")
        self.transport = transport

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def submit(self, source: str, language: str | None) -> str:
        if not self.base_url:
            raise SubmissionFailed("AUDIO_PROCESSOR_URL is not configured")
        payload = {"video_id": source, "source_url": youtube_url(source), "language": language}
        async with self._client(headers=self._headers()) as client:
            resp = await client.post(f"{self.base_url}/v1/transcriptions", json=payload)
        if resp.status_code >= 400:
            raise SubmissionFailed(f"audio processor rejected the job: {error_detail(resp)}")
        job_id = resp.json().get("job_id")
        if not job_id:
            raise SubmissionFailed("audio processor returned no job_id")
        return job_id

    async def poll_once(self, job_id: str) -> PollStatus:
        async with self._client(headers=self._headers()) as client:
            resp = await client.get(f"{self.base_url}/v1/transcriptions/{job_id}")
        if _permanent_error(resp):
            return PollStatus(JobState.failed, error=f"audio processor status check failed: {error_detail(resp)}")
        resp.raise_for_status()
        body = resp.json()
        text = body.get("transcript") or body.get("text")
        result = body.get("result")
        if not text and isinstance(result, dict):
            text = result.get("text")
        return PollStatus(processor_state(body.get("status")), text=text,
                          error=body.get("error"), audio_url=body.get("audio_url"))


PROVIDERS = {
    AssemblyAIProvider.name: AssemblyAIProvider,
    AudioProcessorProvider.name: AudioProcessorProvider,
}
