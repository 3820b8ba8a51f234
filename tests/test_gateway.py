"""Tests for audio fallback and provider dispatch in the gateway."""

import pytest

from app.errors import ExtractionFailed, SubmissionFailed, UnknownProvider
from fakes import ScriptedBackend, ScriptedProvider, build_gateway


class TestEnsureAudio:

    @pytest.mark.asyncio
    async def test_first_success_wins_and_later_backends_are_not_tried(self):
        b1 = ScriptedBackend("b1", error=RuntimeError("403 from scraper"))
        b2 = ScriptedBackend("b2", error=ValueError("malformed json"))
        b3 = ScriptedBackend("b3", result="https://audio/v1.mp3")
        b4 = ScriptedBackend("b4", result="https://audio/never.mp3")
        gateway = build_gateway([b1, b2, b3, b4], [])

        url = await gateway.ensure_audio("V1", ["b1", "b2", "b3", "b4"])

        assert url == "https://audio/v1.mp3"
        assert b1.calls == b2.calls == b3.calls == ["V1"]
        assert b4.calls == []

    @pytest.mark.asyncio
    async def test_all_backends_fail(self):
        backends = [ScriptedBackend(f"b{i}", error=RuntimeError(f"boom {i}")) for i in range(3)]
        gateway = build_gateway(backends, [])

        with pytest.raises(ExtractionFailed) as exc_info:
            await gateway.ensure_audio("V1", ["b0", "b1", "b2"])

        for backend in backends:
            assert backend.calls == ["V1"]
        assert [name for name, _ in exc_info.value.attempts] == ["b0", "b1", "b2"]
        assert "boom 2" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_result_falls_through(self):
        empty = ScriptedBackend("empty", result="   ")
        good = ScriptedBackend("good", result=" https://audio/x.mp3 ")
        gateway = build_gateway([empty, good], [])

        assert await gateway.ensure_audio("V9", ["empty", "good"]) == "https://audio/x.mp3"

    @pytest.mark.asyncio
    async def test_unregistered_backend_is_skipped(self):
        good = ScriptedBackend("good", result="https://audio/x.mp3")
        gateway = build_gateway([good], [])

        assert await gateway.ensure_audio("V1", ["missing", "good"]) == "https://audio/x.mp3"

    @pytest.mark.asyncio
    async def test_empty_chain_fails(self):
        gateway = build_gateway([], [])
        with pytest.raises(ExtractionFailed, match="no audio backends configured"):
            await gateway.ensure_audio("V1", [])

    @pytest.mark.asyncio
    async def test_backend_list_is_swappable_at_runtime(self):
        b1 = ScriptedBackend("b1", result="https://one")
        gateway = build_gateway([b1], [])
        gateway.register_audio_backend("b2", lambda: ScriptedBackend("b2", result="https://two"))

        assert await gateway.ensure_audio("V1", ["b2", "b1"]) == "https://two"
        assert b1.calls == []


class TestSubmission:

    @pytest.mark.asyncio
    async def test_submit_returns_job_id(self):
        provider = ScriptedProvider("speechA", job_id="J1")
        gateway = build_gateway([], [provider])

        job_id = await gateway.submit_transcription("https://audio/v1.mp3", "speechA", None, "tr")

        assert job_id == "J1"
        assert provider.submitted == [("https://audio/v1.mp3", "tr")]

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_submission_failed(self):
        provider = ScriptedProvider("speechA", submit_error=ConnectionError("refused"))
        gateway = build_gateway([], [provider])

        with pytest.raises(SubmissionFailed, match="refused"):
            await gateway.submit_transcription("https://a", "speechA", None, None)

    @pytest.mark.asyncio
    async def test_empty_job_id_is_rejected(self):
        provider = ScriptedProvider("speechA", job_id="")
        gateway = build_gateway([], [provider])

        with pytest.raises(SubmissionFailed):
            await gateway.submit_transcription("https://a", "speechA", None, None)

    def test_unknown_provider(self):
        gateway = build_gateway([], [])
        with pytest.raises(UnknownProvider):
            gateway.resolve_provider("nope")

    @pytest.mark.asyncio
    async def test_registered_provider_receives_caller_credentials(self):
        seen = []

        def factory(creds):
            seen.append(creds)
            return ScriptedProvider("speechB", job_id="J9")

        gateway = build_gateway([], [])
        gateway.register_provider("speechB", factory)

        job_id = await gateway.submit_transcription("https://a", "speechB", {"api_key": "caller"}, "tr")

        assert job_id == "J9"
        assert seen == [{"api_key": "caller"}]
