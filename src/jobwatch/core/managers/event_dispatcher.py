"""JobEventDispatcher: exactly-once completion/failure delivery.

Snapshots reach the dispatcher from the poll loop and from the timeout
guard in no guaranteed order. Two rules make the observable outcome
order-independent:

1. An event fires only on a transition into its status
   (`previous_status` differs), so replayed terminal snapshots are no-ops.
2. The first terminal event settles the job; a later snapshot of the other
   terminal kind (e.g. a lagging `completed` after a timeout) is ignored.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from jobwatch.core.models.job import JobSnapshot, JobStatus, PollingState
from jobwatch.core.settings import logger
from jobwatch.core.utils.error_messages import normalize_job_error

DEFAULT_FAILURE_MESSAGE = "Job failed"

CompletedCallback = Callable[[Any], Union[None, Awaitable[None]]]
FailedCallback = Callable[[str], Union[None, Awaitable[None]]]


class JobEventDispatcher:

    def __init__(
        self,
        state: PollingState,
        on_completed: Optional[CompletedCallback] = None,
        on_failed: Optional[FailedCallback] = None,
    ) -> None:
        self._state = state
        self._on_completed = on_completed
        self._on_failed = on_failed
        self._settled: Optional[JobStatus] = None

    @property
    def settled(self) -> Optional[JobStatus]:
        """Terminal status whose event has been delivered, if any."""
        return self._settled

    def reset(self) -> None:
        self._settled = None

    async def dispatch(self, snapshot: JobSnapshot) -> Optional[JobStatus]:
        """Evaluate one snapshot; return the status whose event fired, if any."""
        previous = self._state.previous_status
        self._state.previous_status = snapshot.status

        if not snapshot.status.is_terminal or snapshot.status == previous:
            return None
        if self._settled is not None:
            logger.debug(
                f"[job:event] ignoring {snapshot.status} job_id={snapshot.jobId} "
                f"already settled as {self._settled}"
            )
            return None

        self._settled = snapshot.status
        if snapshot.status == JobStatus.completed:
            logger.info(f"[job:event] completed job_id={snapshot.jobId}")
            await self._invoke(self._on_completed, snapshot.result, snapshot.jobId)
        else:
            message = normalize_job_error(snapshot.error or "") or DEFAULT_FAILURE_MESSAGE
            logger.info(f"[job:event] failed job_id={snapshot.jobId} message={message}")
            await self._invoke(self._on_failed, message, snapshot.jobId)
        return snapshot.status

    async def _invoke(self, callback, payload: Any, job_id: str) -> None:
        if callback is None:
            return
        try:
            outcome = callback(payload)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            logger.error(
                f"[job:event:error] callback {getattr(callback, '__name__', type(callback).__name__)} "
                f"failed job_id={job_id} error={exc}"
            )
