"""PollScheduler: decides when to query the status endpoint and when to stop.

Poll delays grow as `base * multiplier ** attempt` up to a cap
(0.5s, 1.5s, 4.5s, 10s, 10s, ...). Transport failures are retried through
the injected RetryPort using the same backoff family; a 404 or exhausted
retries are turned into synthetic `failed` snapshots so the caller only ever
sees snapshots, never transport exceptions.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from jobwatch.core.config import JobTrackerConfig
from jobwatch.core.exceptions import JobNotFoundError, StatusFetchError
from jobwatch.core.interfaces.retry import RetryPort
from jobwatch.core.interfaces.status_fetcher import StatusFetcherPort
from jobwatch.core.models.job import JobHandle, JobSnapshot, PollingState
from jobwatch.core.settings import logger

SnapshotSink = Callable[[JobSnapshot], Awaitable[None]]

TRANSPORT_FAILURE_PREFIX = "Unable to reach the job status service"

# Connection resets and socket timeouts from custom fetchers are transport
# failures too; TimeoutError is an OSError.
RETRYABLE_ERRORS = (StatusFetchError, OSError)


def backoff_interval(attempt: int, config: JobTrackerConfig) -> float:
    """Delay before poll number `attempt + 1` (attempt is zero-based)."""
    return min(config.base_interval * config.multiplier ** attempt, config.cap_interval)


class PollScheduler:
    """Owns the fetch/backoff cycle for one tracked job.

    The scheduler never invokes the completion/failure callbacks itself; it
    hands every snapshot to a sink supplied by the tracking session.
    """

    def __init__(
        self,
        fetcher: StatusFetcherPort,
        config: JobTrackerConfig,
        retry_port: Optional[RetryPort] = None,
    ) -> None:
        self._fetcher = fetcher
        self._retry = retry_port
        self.config = config

    def next_interval(
        self, state: PollingState, snapshot: Optional[JobSnapshot] = None
    ) -> Optional[float]:
        """Return the delay before the next poll, or None when polling is over.

        Increments `state.attempt_count` for every poll it schedules.
        """
        last_status = snapshot.status if snapshot is not None else state.previous_status
        if state.timed_out or (last_status is not None and last_status.is_terminal):
            return None
        interval = backoff_interval(state.attempt_count, self.config)
        state.attempt_count += 1
        return interval

    async def poll_once(self, handle: JobHandle) -> JobSnapshot:
        """Fetch one snapshot, retrying transport failures with backoff.

        Always returns a snapshot: not-found, exhausted retries and any other
        fetcher error come back as synthetic failures.
        """
        try:
            if self._retry:
                return await self._retry.execute(
                    self._fetcher.fetch,
                    handle.job_id,
                    handle.family,
                    attempts=self.config.max_fetch_attempts,
                    wait_initial=self.config.base_interval,
                    wait_base=self.config.multiplier,
                    wait_max=self.config.cap_interval,
                    exception_types=RETRYABLE_ERRORS,  # 404 is terminal, never retried
                )
            # Fallback: single attempt without retry
            return await self._fetcher.fetch(handle.job_id, handle.family)

        except JobNotFoundError as exc:
            logger.info(f"[job:poll] job not found job_id={handle.job_id} message={exc.message}")
            return JobSnapshot.failed(handle.job_id, exc.message)

        except StatusFetchError as exc:
            logger.error(
                f"[job:poll] transport retries exhausted job_id={handle.job_id} "
                f"status={exc.status} error={exc.message}"
            )
            return JobSnapshot.failed(handle.job_id, f"{TRANSPORT_FAILURE_PREFIX}: {exc.message}")

        except Exception as exc:
            logger.error(
                f"[job:poll] status fetch failed job_id={handle.job_id} "
                f"error={type(exc).__name__}: {exc}"
            )
            return JobSnapshot.failed(handle.job_id, f"{TRANSPORT_FAILURE_PREFIX}: {exc}")

    async def run(self, handle: JobHandle, state: PollingState, sink: SnapshotSink) -> None:
        """Poll until a terminal snapshot arrives or the job times out.

        The first request is sent immediately; subsequent ones follow
        `next_interval`. Cancelling the surrounding task stops the loop at
        its current suspension point.
        """
        while not state.timed_out:
            snapshot = await self.poll_once(handle)
            if state.timed_out:
                logger.debug(f"[job:poll] dropping snapshot after timeout job_id={handle.job_id}")
                return

            await sink(snapshot)

            delay = self.next_interval(state, snapshot)
            if delay is None:
                logger.debug(
                    f"[job:poll] stopping job_id={handle.job_id} status={snapshot.status}"
                )
                return
            logger.debug(
                f"[job:poll] next poll in {delay:.2f}s job_id={handle.job_id} "
                f"attempt={state.attempt_count} status={snapshot.status}"
            )
            await asyncio.sleep(delay)
