"""Provider and backend HTTP shapes, exercised through httpx.MockTransport."""

import json

import httpx
import pytest

from app.errors import SubmissionFailed
from app.poller import JobState, PollPolicy
from app.providers.audio_backends import (
    AudioProcessorBackend,
    ExtractorServiceBackend,
    HostedConverterBackend,
    processor_state,
)
from app.providers.speech import AssemblyAIProvider, AudioProcessorProvider
from fakes import fast_sleep


def transport_for(routes):
    """routes: {(method, path): callable(request) -> httpx.Response | list of responses}"""
    seen = []
    counters = {}

    def handler(request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        seen.append(request)
        target = routes[key]
        if isinstance(target, list):
            i = counters.get(key, 0)
            counters[key] = i + 1
            return target[min(i, len(target) - 1)]
        return target(request)

    return httpx.MockTransport(handler), seen


class TestAssemblyAI:

    @pytest.mark.asyncio
    async def test_submit_uses_caller_credentials(self):
        def create(request):
            body = json.loads(request.content)
            assert request.headers["authorization"] == "caller-key"
            assert body == {"audio_url": "https://audio/v1.mp3", "language_code": "tr"}
            return httpx.Response(200, json={"id": "aai-1", "status": "queued"})

        transport, seen = transport_for({("POST", "/v2/transcript"): create})
        provider = AssemblyAIProvider({"api_key": "caller-key"}, base_url="https://aai.test", transport=transport)

        assert await provider.submit("https://audio/v1.mp3", "tr") == "aai-1"
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_submit_without_language_enables_detection(self):
        def create(request):
            assert json.loads(request.content)["language_detection"] is True
            return httpx.Response(200, json={"id": "aai-2", "status": "queued"})

        transport, _ = transport_for({("POST", "/v2/transcript"): create})
        provider = AssemblyAIProvider({"api_key": "k"}, base_url="https://aai.test", transport=transport)
        assert await provider.submit("https://a", None) == "aai-2"

    @pytest.mark.asyncio
    async def test_submit_error_payload_is_propagated(self):
        transport, _ = transport_for({
            ("POST", "/v2/transcript"): lambda r: httpx.Response(401, json={"error": "Invalid API key"}),
        })
        provider = AssemblyAIProvider({"api_key": "bad"}, base_url="https://aai.test", transport=transport)

        with pytest.raises(SubmissionFailed, match="Invalid API key"):
            await provider.submit("https://a", "en")

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_any_request(self, monkeypatch):
        monkeypatch.setattr("app.providers.speech.settings.ASSEMBLYAI_API_KEY", None)
        transport, seen = transport_for({})
        provider = AssemblyAIProvider(None, base_url="https://aai.test", transport=transport)

        with pytest.raises(SubmissionFailed):
            await provider.submit("https://a", "en")
        assert seen == []

    @pytest.mark.asyncio
    async def test_poll_maps_statuses(self):
        transport, _ = transport_for({
            ("GET", "/v2/transcript/aai-1"): [
                httpx.Response(200, json={"id": "aai-1", "status": "processing"}),
                httpx.Response(200, json={"id": "aai-1", "status": "completed", "text": "merhaba"}),
                httpx.Response(200, json={"id": "aai-1", "status": "error", "error": "unsupported"}),
            ],
        })
        provider = AssemblyAIProvider({"api_key": "k"}, base_url="https://aai.test", transport=transport)

        first = await provider.poll_once("aai-1")
        second = await provider.poll_once("aai-1")
        third = await provider.poll_once("aai-1")

        assert first.state == JobState.transcribing
        assert second.state == JobState.completed and second.text == "merhaba"
        assert third.state == JobState.failed and third.error == "unsupported"

    @pytest.mark.asyncio
    async def test_client_error_on_status_check_is_terminal(self):
        transport, _ = transport_for({
            ("GET", "/v2/transcript/aai-1"): lambda r: httpx.Response(401, json={"error": "Invalid API key"}),
        })
        provider = AssemblyAIProvider({"api_key": "k"}, base_url="https://aai.test", transport=transport)

        status = await provider.poll_once("aai-1")

        assert status.state == JobState.failed
        assert "Invalid API key" in status.error

    @pytest.mark.asyncio
    async def test_throttled_status_check_is_retried(self):
        transport, _ = transport_for({
            ("GET", "/v2/transcript/aai-1"): lambda r: httpx.Response(429, json={"error": "slow down"}),
        })
        provider = AssemblyAIProvider({"api_key": "k"}, base_url="https://aai.test", transport=transport)

        # raising lets the poller count it as one attempt and ask again
        with pytest.raises(httpx.HTTPStatusError):
            await provider.poll_once("aai-1")


class TestAudioProcessorProvider:

    @pytest.mark.asyncio
    async def test_reports_extracting_then_transcribing(self):
        transport, _ = transport_for({
            ("POST", "/v1/transcriptions"): lambda r: httpx.Response(202, json={"job_id": "P1"}),
            ("GET", "/v1/transcriptions/P1"): [
                httpx.Response(200, json={"status": "extracting"}),
                httpx.Response(200, json={"status": "transcribing", "audio_url": "https://blob/v1.wav"}),
                httpx.Response(200, json={"status": "succeeded", "result": {"text": "selam"}}),
            ],
        })
        provider = AudioProcessorProvider(None, base_url="https://proc.test", transport=transport)

        assert provider.extracts_audio is True
        assert await provider.submit("V1", "tr") == "P1"
        assert (await provider.poll_once("P1")).state == JobState.extracting
        tick = await provider.poll_once("P1")
        assert tick.state == JobState.transcribing and tick.audio_url == "https://blob/v1.wav"
        done = await provider.poll_once("P1")
        assert done.state == JobState.completed and done.text == "selam"

    @pytest.mark.asyncio
    async def test_unknown_job_ends_polling(self):
        transport, _ = transport_for({
            ("GET", "/v1/transcriptions/P404"): lambda r: httpx.Response(404, json={"detail": "job not found"}),
        })
        provider = AudioProcessorProvider(None, base_url="https://proc.test", transport=transport)

        status = await provider.poll_once("P404")

        assert status.state == JobState.failed
        assert "job not found" in status.error


class TestAudioBackends:

    @pytest.mark.asyncio
    async def test_extractor_service_returns_url(self):
        def extract(request):
            assert request.url.params["video_id"] == "V1"
            return httpx.Response(200, json={"url": "https://cdn/v1.mp3"})

        transport, _ = transport_for({("GET", "/extract"): extract})
        backend = ExtractorServiceBackend("https://extractor.test", transport=transport)

        assert await backend.try_extract("V1") == "https://cdn/v1.mp3"

    @pytest.mark.asyncio
    async def test_extractor_service_malformed_response_raises(self):
        transport, _ = transport_for({("GET", "/extract"): lambda r: httpx.Response(200, json={"ok": True})})
        backend = ExtractorServiceBackend("https://extractor.test", transport=transport)

        with pytest.raises(RuntimeError, match="malformed"):
            await backend.try_extract("V1")

    @pytest.mark.asyncio
    async def test_hosted_converter_rechecks_while_processing(self):
        transport, seen = transport_for({
            ("GET", "/dl"): [
                httpx.Response(200, json={"status": "processing", "msg": "in queue"}),
                httpx.Response(200, json={"status": "ok", "link": "https://mp3/v1.mp3"}),
            ],
        })
        backend = HostedConverterBackend("https://conv.test/dl", "conv.test", "key",
                                         policy=PollPolicy(0.0, 5), transport=transport, sleep=fast_sleep)

        assert await backend.try_extract("V1") == "https://mp3/v1.mp3"
        assert len(seen) == 2
        assert seen[0].headers["X-RapidAPI-Key"] == "key"
        assert seen[0].url.params["id"] == "V1"

    @pytest.mark.asyncio
    async def test_hosted_converter_fail_status_raises(self):
        transport, _ = transport_for({
            ("GET", "/dl"): lambda r: httpx.Response(200, json={"status": "fail", "msg": "Invalid video id"}),
        })
        backend = HostedConverterBackend("https://conv.test/dl", None, "key",
                                         policy=PollPolicy(0.0, 5), transport=transport, sleep=fast_sleep)

        with pytest.raises(RuntimeError, match="Invalid video id"):
            await backend.try_extract("V1")

    @pytest.mark.asyncio
    async def test_audio_processor_backend_polls_extraction_job(self):
        transport, _ = transport_for({
            ("POST", "/v1/extractions"): lambda r: httpx.Response(202, json={"job_id": "E1"}),
            ("GET", "/v1/extractions/E1"): [
                httpx.Response(200, json={"status": "queued"}),
                httpx.Response(200, json={"status": "running"}),
                httpx.Response(200, json={"status": "succeeded", "audio_url": "https://blob/v1.wav"}),
            ],
        })
        backend = AudioProcessorBackend("https://proc.test", "tok", policy=PollPolicy(0.0, 10),
                                        transport=transport, sleep=fast_sleep)

        assert await backend.try_extract("V1") == "https://blob/v1.wav"

    @pytest.mark.asyncio
    async def test_audio_processor_backend_times_out(self):
        transport, seen = transport_for({
            ("POST", "/v1/extractions"): lambda r: httpx.Response(202, json={"job_id": "E1"}),
            ("GET", "/v1/extractions/E1"): [httpx.Response(200, json={"status": "running"})],
        })
        backend = AudioProcessorBackend("https://proc.test", None, policy=PollPolicy(0.0, 3),
                                        transport=transport, sleep=fast_sleep)

        with pytest.raises(RuntimeError, match="timed out"):
            await backend.try_extract("V1")
        assert len(seen) == 4  # submit + 3 checks

    @pytest.mark.asyncio
    async def test_unconfigured_backend_raises(self, monkeypatch):
        monkeypatch.setattr("app.providers.audio_backends.settings.EXTRACTOR_SERVICE_URL", None)
        with pytest.raises(RuntimeError, match="not configured"):
            await ExtractorServiceBackend().try_extract("V1")


def test_processor_state_mapping():
    assert processor_state("SUCCEEDED") == JobState.completed
    assert processor_state("canceled") == JobState.failed
    assert processor_state("transcribing") == JobState.transcribing
    assert processor_state(None) == JobState.queued
