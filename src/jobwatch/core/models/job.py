from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional, Union
from datetime import datetime, timezone
from enum import StrEnum


class JobFamily(StrEnum):
    quiz = "quiz"
    flashcard = "flashcard"
    content = "content"

    @property
    def path(self) -> str:
        """Route segment of the family's status endpoint (`{path}/status/{jobId}`)."""
        return "flashcards" if self is JobFamily.flashcard else self.value


class JobStatus(StrEnum):
    waiting = "waiting"
    active = "active"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.completed, JobStatus.failed}


class JobProgress(BaseModel):
    percent: Optional[float] = None
    message: Optional[str] = None


class JobSnapshot(BaseModel):
    """Single observation of a job as reported by the status endpoint.

    Field names mirror the wire format. `progress` arrives either as a bare
    number or as a `{percent, message}` object; use `progress_percent` and
    `progress_message` instead of inspecting it directly.
    """

    model_config = ConfigDict(extra="ignore")

    jobId: str
    status: JobStatus
    progress: Optional[Union[float, JobProgress]] = None
    result: Any = None
    error: Optional[str] = None

    @property
    def progress_percent(self) -> Optional[float]:
        if isinstance(self.progress, JobProgress):
            return self.progress.percent
        return self.progress

    @property
    def progress_message(self) -> Optional[str]:
        if isinstance(self.progress, JobProgress):
            return self.progress.message
        return None

    @classmethod
    def failed(cls, job_id: str, error: str) -> "JobSnapshot":
        """Build a synthetic failure (timeout, not found, exhausted transport retries)."""
        return cls(jobId=job_id, status=JobStatus.failed, progress=0, error=error)


class JobHandle(BaseModel):
    """Identity of the job a tracking session follows.

    Owned by exactly one session; a new handle is created for every
    `JobTracker.start` call so state never leaks between jobs.
    """

    model_config = ConfigDict(frozen=True)

    job_id: str
    family: JobFamily
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PollingState(BaseModel):
    attempt_count: int = Field(default=0, ge=0)
    previous_status: Optional[JobStatus] = None
    timed_out: bool = False

    def reset(self) -> None:
        self.attempt_count = 0
        self.previous_status = None
        self.timed_out = False
