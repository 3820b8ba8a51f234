# app/poller.py
"""
Bounded polling of an asynchronous provider job.

`poll_to_completion` never raises for provider outcomes: it returns a
`PollOutcome` tagged completed / failed / timeout so callers can branch on
`outcome.kind` instead of nesting try/except.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class JobState(str, enum.Enum):
    queued = "queued"
    extracting = "extracting"      # provider is still fetching audio
    transcribing = "transcribing"  # audio is in hand, speech-to-text running
    completed = "completed"
    failed = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobState.completed, JobState.failed)


@dataclass(frozen=True)
class PollStatus:
    """One status check against a provider."""
    state: JobState
    text: str | None = None
    error: str | None = None
    audio_url: str | None = None


class OutcomeKind(str, enum.Enum):
    completed = "completed"
    failed = "failed"
    timeout = "timeout"


@dataclass(frozen=True)
class PollOutcome:
    kind: OutcomeKind
    text: str | None = None
    error: str | None = None
    audio_url: str | None = None
    attempts: int = 0


@dataclass(frozen=True)
class PollPolicy:
    interval_sec: float = 5.0
    max_attempts: int = 120


Sleep = Callable[[float], Awaitable[None]]


async def poll_to_completion(
    check: Callable[[], Awaitable[PollStatus]],
    policy: PollPolicy,
    on_tick: Callable[[PollStatus], None] | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
    label: str = "job",
) -> PollOutcome:
    """Call `check` until a terminal state or `policy.max_attempts` checks.

    A check that raises counts as an attempt and is retried; only the
    provider's own terminal status (or running out of attempts) ends the loop.
    `on_tick` sees every non-terminal status.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            status = await check()
        except Exception as e:
            logger.warning("%s: status check %d/%d failed: %s", label, attempt, policy.max_attempts, e)
            status = None

        if status is not None:
            if status.state == JobState.completed:
                return PollOutcome(OutcomeKind.completed, text=status.text,
                                   audio_url=status.audio_url, attempts=attempt)
            if status.state == JobState.failed:
                return PollOutcome(OutcomeKind.failed, error=status.error or "provider reported failure",
                                   attempts=attempt)
            if on_tick is not None:
                on_tick(status)

        if attempt < policy.max_attempts:
            await sleep(policy.interval_sec)

    waited = policy.interval_sec * max(policy.max_attempts - 1, 0)
    return PollOutcome(
        OutcomeKind.timeout,
        error=f"timed out after {policy.max_attempts} status checks (~{waited:.0f}s)",
        attempts=policy.max_attempts,
    )
