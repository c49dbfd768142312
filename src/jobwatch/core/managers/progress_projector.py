"""ProgressProjector: a display-only percentage for jobs with coarse progress.

While a job is running the projector performs a decaying random walk
towards `progress_cap` (95 by default): each tick adds a random amount of
at most `max(0.1, remaining * rate)`, so the number keeps moving but slows
down as it approaches the cap. A `completed` snapshot forces 100, a
`failed` one freezes the current value. When the backend reports real
numeric progress and simulation is off, that value is shown instead.

Nothing here feeds back into event dispatch.
"""

from __future__ import annotations

import asyncio
import random
from typing import Callable, Optional

from jobwatch.core.config import JobTrackerConfig
from jobwatch.core.models.job import JobSnapshot, JobStatus
from jobwatch.core.settings import logger

ProgressListener = Callable[[float, str], None]

_STAGES = (
    (20.0, "Initializing..."),
    (40.0, "Processing content..."),
    (70.0, "Generating results..."),
    (90.0, "Formatting output..."),
)


def stage_message(percent: float) -> str:
    for upper, message in _STAGES:
        if percent < upper:
            return message
    return "Finalizing..."


class ProgressProjector:

    def __init__(
        self,
        config: JobTrackerConfig,
        simulate: bool = True,
        rng: Optional[random.Random] = None,
        on_change: Optional[ProgressListener] = None,
    ) -> None:
        self.config = config
        self.simulate = simulate
        self._rng = rng or random.Random()
        self._on_change = on_change
        self._task: Optional[asyncio.Task] = None
        self.displayed_percent: float = 0.0
        self.final_status: Optional[JobStatus] = None
        self._backend_message: Optional[str] = None

    @property
    def message(self) -> str:
        if self.final_status == JobStatus.completed:
            return "Completed"
        if self.final_status == JobStatus.failed:
            return "Failed"
        return self._backend_message or stage_message(self.displayed_percent)

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    @property
    def ticking(self) -> bool:
        return self._task is not None and not self._task.done()

    def reset(self) -> None:
        self.stop()
        self.displayed_percent = 0.0
        self.final_status = None
        self._backend_message = None

    def activate(self) -> None:
        """Show motion right away and, when simulating, start the tick loop."""
        if self.final_status is not None:
            return
        if self.simulate:
            self._set(max(self.displayed_percent, self.config.progress_floor))
            if not self.ticking:
                self._task = asyncio.create_task(self._tick_loop())

    def advance(self) -> float:
        """Apply one simulation step and return the new value."""
        if self.final_status is not None:
            return self.displayed_percent
        remaining = self.config.progress_cap - self.displayed_percent
        increment = max(0.1, remaining * self.config.progress_rate)
        step = self._rng.uniform(0, increment)
        self._set(min(self.config.progress_cap, self.displayed_percent + step))
        return self.displayed_percent

    def observe(self, snapshot: JobSnapshot) -> None:
        """Reconcile with the latest real snapshot."""
        if self.final_status is not None:
            return
        if snapshot.progress_message:
            self._backend_message = snapshot.progress_message

        if snapshot.status == JobStatus.completed:
            self.final_status = JobStatus.completed
            self.stop()
            self._set(100.0)
        elif snapshot.status == JobStatus.failed:
            self.final_status = JobStatus.failed
            self.stop()
            self._notify()
        elif not self.simulate and snapshot.progress_percent is not None:
            self._set(min(100.0, max(0.0, float(snapshot.progress_percent))))

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _tick_loop(self) -> None:
        while self.final_status is None:
            await asyncio.sleep(self.config.progress_tick)
            self.advance()

    def _set(self, value: float) -> None:
        if value == self.displayed_percent and self.final_status is None:
            return
        self.displayed_percent = value
        self._notify()

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.displayed_percent, self.message)
        except Exception as exc:
            logger.error(f"[job:progress:error] listener failed error={exc}")
