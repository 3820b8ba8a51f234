# app/providers/gateway.py
"""
One front door for every audio-extraction backend and speech-to-text provider.

Extraction endpoints are unstable scraping targets, so `ensure_audio` walks the
whole configured chain and only gives up once every backend has failed.
"""
from __future__ import annotations

import logging
from typing import Callable, Mapping, Sequence

from app.errors import ExtractionFailed, SubmissionFailed, UnknownProvider
from app.poller import PollStatus
from app.providers.audio_backends import AUDIO_BACKENDS
from app.providers.base import AudioBackend, Credentials, TranscriptionProvider
from app.providers.speech import PROVIDERS
from app.settings import settings

logger = logging.getLogger(__name__)

AudioBackendFactory = Callable[[], AudioBackend]
ProviderFactory = Callable[[Credentials | None], TranscriptionProvider]


class ProviderGateway:
    def __init__(
        self,
        audio_backends: Mapping[str, AudioBackendFactory] | None = None,
        providers: Mapping[str, ProviderFactory] | None = None,
    ):
        self.audio_backends = dict(AUDIO_BACKENDS if audio_backends is None else audio_backends)
        self.providers = dict(PROVIDERS if providers is None else providers)

    def register_audio_backend(self, name: str, factory: AudioBackendFactory) -> None:
        self.audio_backends[name] = factory

    def register_provider(self, name: str, factory: ProviderFactory) -> None:
        self.providers[name] = factory

    # ── audio ──────────────────────────────────────────────────────────

    async def ensure_audio(self, video_id: str, backends: Sequence[str] | None = None) -> str:
        """Return the first non-empty audio URL any backend produces, in order."""
        order = list(backends) if backends is not None else list(settings.AUDIO_BACKENDS)
        attempts: list[tuple[str, str]] = []

        for name in order:
            factory = self.audio_backends.get(name)
            if factory is None:
                logger.warning("audio backend %r is not registered; skipping (video=%s)", name, video_id)
                attempts.append((name, "not registered"))
                continue
            try:
                url = await factory().try_extract(video_id)
            except Exception as e:
                logger.warning("audio backend %s failed for %s: %s", name, video_id, e)
                attempts.append((name, str(e) or type(e).__name__))
                continue
            if isinstance(url, str) and url.strip():
                logger.info("audio backend %s produced audio for %s", name, video_id)
                return url.strip()
            logger.warning("audio backend %s returned an empty result for %s", name, video_id)
            attempts.append((name, "empty result"))

        raise ExtractionFailed(video_id, attempts)

    # ── speech-to-text ─────────────────────────────────────────────────

    def resolve_provider(self, provider: str, credentials: Credentials | None = None) -> TranscriptionProvider:
        factory = self.providers.get(provider)
        if factory is None:
            raise UnknownProvider(f"unknown transcription provider {provider!r}")
        return factory(credentials)

    async def submit_transcription(self, source: str, provider: str, credentials: Credentials | None,
                                   language: str | None) -> str:
        client = self.resolve_provider(provider, credentials)
        try:
            job_id = await client.submit(source, language)
        except SubmissionFailed:
            raise
        except Exception as e:
            raise SubmissionFailed(f"{provider} submission error: {e}") from e
        if not job_id:
            raise SubmissionFailed(f"{provider} returned an empty job id")
        return job_id

    async def poll_once(self, job_id: str, provider: str, credentials: Credentials | None) -> PollStatus:
        return await self.resolve_provider(provider, credentials).poll_once(job_id)
