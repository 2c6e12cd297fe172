"""Background job models — remote status, terminal failures, and results."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """Provider-side lifecycle states of a background response."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


PENDING_STATUSES = frozenset({JobStatus.QUEUED.value, JobStatus.IN_PROGRESS.value})
TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED.value, JobStatus.FAILED.value, JobStatus.CANCELLED.value}
)


class JobFailure(str, Enum):
    """Why a job ended without an answer. Each value is distinguishable by callers."""

    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    RATE_LIMITED = "rate_limited"
    POLL_ERROR = "poll_error"
    FETCH_ERROR = "fetch_error"
    UNKNOWN_STATUS = "unknown_status"


RESUMABLE_FAILURES = frozenset(
    {JobFailure.TIMED_OUT, JobFailure.RATE_LIMITED, JobFailure.POLL_ERROR, JobFailure.FETCH_ERROR}
)


class JobError(BaseModel):
    """Provider-supplied error record, surfaced verbatim."""

    code: str | None = None
    message: str | None = None


class Job(BaseModel):
    """Snapshot of one background response as last seen from the provider.

    Status is kept as a plain string so statuses the provider adds later
    are carried through rather than rejected.
    """

    id: str
    status: str
    error: JobError | None = None
    raw: dict = Field(default_factory=dict)

    @property
    def pending(self) -> bool:
        return self.status in PENDING_STATUSES

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_payload(cls, data: dict, *, fallback_id: str = "") -> Job:
        error = data.get("error")
        return cls(
            id=str(data.get("id") or fallback_id),
            status=str(data.get("status") or "unknown"),
            error=JobError(
                code=None if error.get("code") is None else str(error["code"]),
                message=None if error.get("message") is None else str(error["message"]),
            )
            if isinstance(error, dict)
            else None,
            raw=data,
        )


class JobResult(BaseModel):
    """What ``run_research`` (deep-research path) and ``resume_job`` return."""

    ok: bool
    mode: str = "deep_research"
    job_id: str
    status: str | None = None
    answer: str | None = None
    failure: JobFailure | None = None
    error: str | None = None
    error_code: str | None = None
    status_code: int | None = None
    resume_hint: str | None = None
    question: str | None = None
    config: dict | None = None
    started_at: str | None = None
    finished_at: str | None = None
    raw_response: dict | None = None
    trace: list[dict] = Field(default_factory=list)


class StatusSnapshot(BaseModel):
    """One-shot status (or cancel) answer for a job id."""

    ok: bool
    job_id: str
    status: str | None = None
    error: str | None = None
    status_code: int | None = None
    data: Any = None
