import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from jobwatch.core.models.job import JobHandle, JobSnapshot, PollingState
from jobwatch.core.settings import logger

TIMEOUT_MESSAGE = (
    "The task is taking longer than expected. "
    "Please try again or contact support if the issue persists."
)


class TimeoutGuard:
    """Wall-clock watchdog for one tracked job.

    The budget runs from `handle.started_at`, not from the last poll, so
    re-arming after a pause only waits for whatever is left of it.
    """

    def __init__(self, budget: float) -> None:
        self.budget = budget
        self._task: Optional[asyncio.Task] = None

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def remaining(self, handle: JobHandle) -> float:
        elapsed = (datetime.now(timezone.utc) - handle.started_at).total_seconds()
        return max(0.0, self.budget - elapsed)

    def arm(
        self,
        handle: JobHandle,
        state: PollingState,
        sink: Callable[[JobSnapshot], Awaitable[None]],
    ) -> None:
        self.cancel()
        if state.timed_out:
            return
        delay = self.remaining(handle)
        logger.debug(f"[job:timeout] armed job_id={handle.job_id} remaining={delay:.2f}s")
        self._task = asyncio.create_task(self._expire(delay, handle, state, sink))

    async def _expire(self, delay, handle, state, sink) -> None:
        await asyncio.sleep(delay)
        if state.timed_out or (state.previous_status is not None and state.previous_status.is_terminal):
            return
        state.timed_out = True
        logger.warning(
            f"[job:timeout] no terminal status within {self.budget}s job_id={handle.job_id}"
        )
        await sink(JobSnapshot.failed(handle.job_id, TIMEOUT_MESSAGE))

    def cancel(self) -> None:
        task, self._task = self._task, None
        # The expiry task may be the one delivering the failure; let it finish.
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
