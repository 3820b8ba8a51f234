"""
Error taxonomy for the transcription path.
"""


class TranscriptionError(Exception):
    """Base for every error the orchestrator turns into a persisted failure."""

    code = "ERR_TRANSCRIPTION"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"[{self.code}] {message}")


class ExtractionFailed(TranscriptionError):
    code = "ERR_EXTRACTION_FAILED"

    def __init__(self, video_id: str, attempts: list[tuple[str, str]]):
        self.video_id = video_id
        self.attempts = attempts
        if attempts:
            detail = "; ".join(f"{name}: {reason}" for name, reason in attempts)
        else:
            detail = "no audio backends configured"
        super().__init__(f"no audio backend produced a URL for {video_id} ({detail})")


class SubmissionFailed(TranscriptionError):
    code = "ERR_SUBMISSION_FAILED"


class ProviderReportedFailure(TranscriptionError):
    code = "ERR_PROVIDER_FAILED"


class PollTimeout(TranscriptionError):
    code = "ERR_TIMEOUT"


class DownstreamTriggerFailed(TranscriptionError):
    code = "ERR_DOWNSTREAM_FAILED"


class UnknownProvider(TranscriptionError):
    code = "ERR_UNKNOWN_PROVIDER"
