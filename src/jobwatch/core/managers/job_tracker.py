"""JobTracker: turns a job id into exactly one completion or failure event.

Responsibilities:
1. Own the per-job state (handle, polling state, latest snapshot, progress).
2. Run the poll loop, the timeout watchdog and the progress ticker as
   independent asyncio tasks.
3. Route every snapshot, whatever its origin, through one dispatcher so
   `on_completed` / `on_failed` fire at most once per job.
4. Discard everything belonging to the previous job when a new one starts
   or tracking stops, so no stale timer can reach the callbacks.
"""

from __future__ import annotations

import asyncio
import random
from functools import partial
from typing import Optional, Set

from jobwatch.core.config import JobTrackerConfig
from jobwatch.core.interfaces.retry import RetryPort
from jobwatch.core.interfaces.status_fetcher import StatusFetcherPort
from jobwatch.core.logging_config import job_id_var
from jobwatch.core.managers.event_dispatcher import (
    CompletedCallback,
    FailedCallback,
    JobEventDispatcher,
)
from jobwatch.core.managers.poll_scheduler import PollScheduler
from jobwatch.core.managers.progress_projector import ProgressListener, ProgressProjector
from jobwatch.core.managers.timeout_guard import TimeoutGuard
from jobwatch.core.models.job import (
    JobFamily,
    JobHandle,
    JobSnapshot,
    PollingState,
)
from jobwatch.core.settings import logger


class JobTracker:
    """Tracking session for at most one job at a time.

    Attributes:
        config: Immutable polling/timeout/progress configuration
    """

    def __init__(
        self,
        fetcher: StatusFetcherPort,
        config: Optional[JobTrackerConfig] = None,
        retry_port: Optional[RetryPort] = None,
        on_completed: Optional[CompletedCallback] = None,
        on_failed: Optional[FailedCallback] = None,
        on_progress: Optional[ProgressListener] = None,
        simulate_progress: bool = True,
        enabled: bool = True,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or JobTrackerConfig()
        self.state = PollingState()
        self.handle: Optional[JobHandle] = None
        self.latest: Optional[JobSnapshot] = None
        self._enabled = enabled
        self._scheduler = PollScheduler(fetcher, self.config, retry_port)
        self._guard = TimeoutGuard(self.config.timeout_budget)
        self._dispatcher = JobEventDispatcher(self.state, on_completed, on_failed)
        self.progress = ProgressProjector(
            self.config, simulate=simulate_progress, rng=rng, on_change=on_progress
        )
        self._poll_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._generation = 0
        self._settled = asyncio.Event()

    # ----------------- Public surface -----------------
    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def is_polling(self) -> bool:
        return (
            self._enabled
            and self.handle is not None
            and not self.state.timed_out
            and not (self.latest is not None and self.latest.status.is_terminal)
        )

    @property
    def displayed_progress(self) -> float:
        return self.progress.displayed_percent

    def start(self, job_id: str, family: JobFamily | str) -> JobHandle:
        """Begin tracking `job_id`, discarding any previously tracked job."""
        if self.handle is not None:
            logger.debug(
                f"[job:track] replacing job_id={self.handle.job_id} with job_id={job_id}"
            )
        self._discard()
        self.handle = JobHandle(job_id=job_id, family=JobFamily(family))
        logger.info(f"[job:track] start job_id={job_id} family={self.handle.family}")
        if self._enabled:
            self._resume()
        return self.handle

    def stop(self) -> None:
        """Stop tracking; no callback for the current job fires afterwards."""
        if self.handle is not None:
            logger.info(f"[job:track] stop job_id={self.handle.job_id}")
        self._discard()

    def set_enabled(self, enabled: bool) -> None:
        """Pause or resume all timers without losing the job's state."""
        if enabled == self._enabled:
            return
        self._enabled = enabled
        if not enabled:
            logger.debug("[job:track] paused")
            self._cancel_timers()
            self.progress.stop()
        elif self.handle is not None:
            logger.debug(f"[job:track] resumed job_id={self.handle.job_id}")
            self._resume()

    async def accept_initial(self, snapshot: JobSnapshot) -> None:
        """Feed a snapshot the caller already holds (e.g. a cached generation).

        An immediately terminal snapshot is a zero-length poll sequence: it
        is dispatched once and nothing is scheduled afterwards.
        """
        if self.handle is None:
            raise RuntimeError("No job is being tracked. Call start() first.")
        await self._on_snapshot(self._generation, snapshot)

    async def wait(self) -> Optional[JobSnapshot]:
        """Block until the current job settles; return its last snapshot."""
        await self._settled.wait()
        return self.latest

    async def aclose(self) -> None:
        """Stop tracking and wait for all cancelled tasks to unwind."""
        pending = list(self._tasks)
        self.stop()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ----------------- Internals -----------------
    def _resume(self) -> None:
        handle = self.handle
        if handle is None or self._is_finished():
            return
        sink = partial(self._on_snapshot, self._generation)
        token = job_id_var.set(handle.job_id)
        try:
            self._guard.arm(handle, self.state, sink)
            self._track_task(self._guard.task)
            if self._poll_task is None or self._poll_task.done():
                self._poll_task = asyncio.create_task(
                    self._scheduler.run(handle, self.state, sink)
                )
                self._track_task(self._poll_task)
            self.progress.activate()
            self._track_task(self.progress.task)
        finally:
            job_id_var.reset(token)

    def _is_finished(self) -> bool:
        return self.state.timed_out or self._dispatcher.settled is not None

    async def _on_snapshot(self, generation: int, snapshot: JobSnapshot) -> None:
        if generation != self._generation:
            logger.debug(f"[job:track] discarding stale snapshot job_id={snapshot.jobId}")
            return
        if self._dispatcher.settled is not None:
            logger.debug(
                f"[job:track] ignoring {snapshot.status} job_id={snapshot.jobId} "
                f"after settling as {self._dispatcher.settled}"
            )
            return

        self.latest = snapshot
        self.progress.observe(snapshot)
        await self._dispatcher.dispatch(snapshot)

        # A callback may have started another job or stopped tracking.
        if generation != self._generation:
            return
        if snapshot.status.is_terminal:
            self._cancel_timers()
            self._settled.set()

    def _cancel_timers(self) -> None:
        self._guard.cancel()
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _discard(self) -> None:
        self._generation += 1
        self._cancel_timers()
        self.progress.reset()
        self.state.reset()
        self._dispatcher.reset()
        self.handle = None
        self.latest = None
        # Waiters of the old job are released; the new job gets a fresh event.
        self._settled.set()
        self._settled = asyncio.Event()

    def _track_task(self, task: Optional[asyncio.Task]) -> None:
        if task is None:
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
