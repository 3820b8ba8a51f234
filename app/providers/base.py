from __future__ import annotations

from typing import Any, Mapping

import httpx

from app.poller import PollStatus
from app.settings import settings

Credentials = Mapping[str, Any]


class HTTPProviderMixin:
    """Shared httpx plumbing; `transport` lets tests swap in httpx.MockTransport."""

    transport: httpx.AsyncBaseTransport | None = None
    timeout: float = settings.HTTP_TIMEOUT_SEC

    def _client(self, **kw) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout, **kw)


def error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text[:300]}"
    if isinstance(body, dict):
        for key in ("error", "message", "detail", "msg"):
            if body.get(key):
                return f"HTTP {resp.status_code}: {body[key]}"
    return f"HTTP {resp.status_code}: {body}"


class AudioBackend:
    """Turns a video id into a fetchable audio URL (or local handle).

    Raise on any failure; the gateway moves on to the next backend.
    """
    name: str = "base"

    async def try_extract(self, video_id: str) -> str:
        raise NotImplementedError


class TranscriptionProvider:
    """Speech-to-text job API: submit once, then check status by job id."""
    name: str = "base"
    # True when the provider fetches audio itself from the video id
    extracts_audio: bool = False

    async def submit(self, source: str, language: str | None) -> str:
        raise NotImplementedError

    async def poll_once(self, job_id: str) -> PollStatus:
        raise NotImplementedError


def youtube_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"
