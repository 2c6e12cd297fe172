"""Background job lifecycle — submit, poll, resume and cancel by id.

Polling is split into a pure transition function, :func:`advance`, and a
thin async driver that sleeps and fetches. The manager keeps no state
between calls: everything needed to resume lives at the provider under
the job id.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Protocol, Union

from .client import CompletionRequest, ProviderResponse, extract_text
from .errors import ProviderError
from .models.jobs import (
    RESUMABLE_FAILURES,
    Job,
    JobFailure,
    JobResult,
    JobStatus,
    StatusSnapshot,
)
from .tracing import Trace, utc_now

logger = logging.getLogger(__name__)


class JobClient(Protocol):
    async def complete(self, request: CompletionRequest, *, max_retries: int = 3) -> ProviderResponse: ...

    async def retrieve(self, response_id: str) -> ProviderResponse: ...

    async def cancel(self, response_id: str) -> ProviderResponse: ...


# ── Poll state machine ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class PollPolicy:
    """Limits for one polling session. Each resume gets a fresh window."""

    interval: float = 5.0
    max_wait: float = 1800.0
    max_consecutive_errors: int = 3
    default_retry_after: float = 5.0


@dataclass(frozen=True)
class PollState:
    job: Job
    started: float
    next_delay: float
    consecutive_errors: int = 0
    polls: int = 0
    failure: JobFailure | None = None
    last_error: str | None = None
    last_status_code: int | None = None

    @property
    def done(self) -> bool:
        return self.failure is not None or not self.job.pending


@dataclass(frozen=True)
class PollSucceeded:
    job: Job


@dataclass(frozen=True)
class PollRateLimited:
    message: str
    retry_after: float | None = None


@dataclass(frozen=True)
class PollErrored:
    message: str
    status_code: int | None = None


@dataclass(frozen=True)
class PollDeadline:
    elapsed: float


PollEvent = Union[PollSucceeded, PollRateLimited, PollErrored, PollDeadline]


def start_polling(job: Job, now: float, policy: PollPolicy) -> PollState:
    return PollState(job=job, started=now, next_delay=policy.interval)


def advance(state: PollState, event: PollEvent, policy: PollPolicy) -> PollState:
    """Next poll state for one observed event. Never sleeps, never fetches.

    A successful fetch resets the consecutive-error counter. Rate limits
    and other fetch errors share that counter; reaching
    ``policy.max_consecutive_errors`` ends polling with a failure that
    names which kind of error hit the bound.
    """
    if isinstance(event, PollSucceeded):
        return replace(
            state,
            job=event.job,
            consecutive_errors=0,
            polls=state.polls + 1,
            next_delay=policy.interval,
            last_error=None,
            last_status_code=None,
        )

    if isinstance(event, PollDeadline):
        return replace(state, failure=JobFailure.TIMED_OUT)

    errors = state.consecutive_errors + 1
    if isinstance(event, PollRateLimited):
        failure = JobFailure.RATE_LIMITED if errors >= policy.max_consecutive_errors else None
        delay = event.retry_after if event.retry_after is not None else policy.default_retry_after
        return replace(
            state,
            consecutive_errors=errors,
            next_delay=delay,
            failure=failure,
            last_error=event.message,
            last_status_code=429,
        )

    failure = JobFailure.POLL_ERROR if errors >= policy.max_consecutive_errors else None
    return replace(
        state,
        consecutive_errors=errors,
        next_delay=policy.interval,
        failure=failure,
        last_error=event.message,
        last_status_code=event.status_code,
    )


# ── Manager ──────────────────────────────────────────────────────────────────


def _resume_hint(job_id: str) -> str:
    return f"Call research_resume with job_id={job_id!r} to keep waiting"


class BackgroundJobManager:
    """Submits background responses and drives them to a terminal state."""

    def __init__(
        self,
        client: JobClient,
        *,
        poll_interval: float = 5.0,
        max_wait: float = 1800.0,
        max_consecutive_errors: int = 3,
        default_retry_after: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.client = client
        self.policy = PollPolicy(
            interval=poll_interval,
            max_wait=max_wait,
            max_consecutive_errors=max_consecutive_errors,
            default_retry_after=default_retry_after,
        )
        self._clock = clock
        self._sleep = sleep or asyncio.sleep

    async def _fetch_event(self, job_id: str) -> PollEvent:
        try:
            resp = await self.client.retrieve(job_id)
        except ProviderError as exc:
            if exc.is_rate_limit:
                return PollRateLimited(str(exc), exc.retry_after)
            return PollErrored(str(exc), exc.status)
        return PollSucceeded(Job.from_payload(resp.raw, fallback_id=job_id))

    async def _poll(self, state: PollState, trace: Trace) -> PollState:
        job_id = state.job.id
        while not state.done:
            elapsed = self._clock() - state.started
            if elapsed >= self.policy.max_wait:
                state = advance(state, PollDeadline(elapsed), self.policy)
                trace.record("timeout", job_id=job_id, status=state.job.status, elapsed=round(elapsed))
                break

            await self._sleep(state.next_delay)
            event = await self._fetch_event(job_id)
            state = advance(state, event, self.policy)

            elapsed = round(self._clock() - state.started)
            if isinstance(event, PollSucceeded):
                trace.record("poll", status=state.job.status, elapsed=elapsed)
            elif isinstance(event, PollRateLimited):
                trace.record(
                    "rate_limit", retry_after=state.next_delay, attempt=state.consecutive_errors,
                )
                logger.warning(
                    "Rate limited polling %s (%d/%d)",
                    job_id, state.consecutive_errors, self.policy.max_consecutive_errors,
                )
            else:
                trace.record("poll_error", error=event.message, attempt=state.consecutive_errors)
                logger.warning("Poll error for %s: %s", job_id, event.message)
        return state

    def _finish(self, state: PollState, trace: Trace, *, started_at: str) -> JobResult:
        job = state.job
        result = JobResult(
            ok=False,
            job_id=job.id,
            status=job.status,
            started_at=started_at,
            raw_response=job.raw or None,
        )

        if state.failure is JobFailure.TIMED_OUT:
            result.failure = state.failure
            result.error = (
                f"Job still {job.status} after {self.policy.max_wait:g}s of polling"
            )
        elif state.failure is JobFailure.RATE_LIMITED:
            result.failure = state.failure
            result.status_code = 429
            result.error = (
                f"Rate limit exceeded after {state.consecutive_errors} consecutive polls"
            )
        elif state.failure is JobFailure.POLL_ERROR:
            result.failure = state.failure
            result.status_code = state.last_status_code
            result.error = state.last_error or "Polling failed"
        elif job.status == JobStatus.COMPLETED.value:
            result.ok = True
            result.answer = extract_text(job.raw)
            trace.record("complete", answer_len=len(result.answer))
        elif job.status == JobStatus.FAILED.value:
            result.failure = JobFailure.FAILED
            result.error = (job.error.message if job.error else None) or "Deep research failed"
            result.error_code = (job.error.code if job.error else None) or "unknown"
            trace.record("failed", error=result.error, error_code=result.error_code)
        elif job.status == JobStatus.CANCELLED.value:
            result.failure = JobFailure.CANCELLED
            result.error = "Research was cancelled"
            trace.record("cancelled")
        elif job.pending:
            # Only reachable when the caller chose not to wait.
            result.ok = True
            result.resume_hint = _resume_hint(job.id)
        else:
            result.failure = JobFailure.UNKNOWN_STATUS
            result.error = f"Unknown status: {job.status}"

        if result.failure in RESUMABLE_FAILURES:
            result.resume_hint = _resume_hint(job.id)
        result.finished_at = utc_now()
        result.trace = trace.events
        return result

    async def submit(
        self,
        request: CompletionRequest,
        *,
        wait: bool = True,
        max_retries: int = 3,
        trace: Trace | None = None,
    ) -> JobResult:
        """Create the response and, when ``wait``, poll it to a terminal state.

        Raises:
            ProviderError: The creating request itself failed.
        """
        trace = trace or Trace()
        started_at = utc_now()
        resp = await self.client.complete(request, max_retries=max_retries)
        job = Job.from_payload(resp.raw, fallback_id=resp.id or "")
        trace.record("submitted", job_id=job.id, status=job.status)
        logger.info("Submitted background job %s (%s)", job.id, job.status)

        state = start_polling(job, self._clock(), self.policy)
        if job.pending and wait:
            state = await self._poll(state, trace)
        return self._finish(state, trace, started_at=started_at)

    async def resume(self, job_id: str, *, trace: Trace | None = None) -> JobResult:
        """Fetch ``job_id`` once; if still pending, poll it with a fresh window."""
        trace = trace or Trace()
        started_at = utc_now()
        try:
            resp = await self.client.retrieve(job_id)
        except ProviderError as exc:
            trace.record("fetch_error", job_id=job_id, error=str(exc), status_code=exc.status)
            return JobResult(
                ok=False,
                job_id=job_id,
                failure=JobFailure.FETCH_ERROR,
                error=exc.provider_message or str(exc),
                error_code=exc.code,
                status_code=exc.status,
                resume_hint=_resume_hint(job_id) if exc.transient else None,
                started_at=started_at,
                finished_at=utc_now(),
                trace=trace.events,
            )

        job = Job.from_payload(resp.raw, fallback_id=job_id)
        trace.record("resume", job_id=job_id, status=job.status)

        state = start_polling(job, self._clock(), self.policy)
        if job.pending:
            state = await self._poll(state, trace)
        return self._finish(state, trace, started_at=started_at)

    async def status(self, job_id: str) -> StatusSnapshot:
        """One-shot status fetch, no polling."""
        try:
            resp = await self.client.retrieve(job_id)
        except ProviderError as exc:
            return StatusSnapshot(
                ok=False, job_id=job_id, error=exc.provider_message or str(exc), status_code=exc.status,
            )
        return StatusSnapshot(ok=True, job_id=job_id, status=resp.status, data=resp.raw)

    async def cancel(self, job_id: str) -> StatusSnapshot:
        """Ask the provider to cancel; a running poll loop sees it on its next fetch."""
        try:
            resp = await self.client.cancel(job_id)
        except ProviderError as exc:
            return StatusSnapshot(
                ok=False, job_id=job_id, error=exc.provider_message or str(exc), status_code=exc.status,
            )
        logger.info("Cancel requested for %s -> %s", job_id, resp.status)
        return StatusSnapshot(ok=True, job_id=job_id, status=resp.status, data=resp.raw)
