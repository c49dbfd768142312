"""Shared fixtures: a scripted status fetcher and millisecond-scale config."""

import pytest

from jobwatch.core.config import JobTrackerConfig
from jobwatch.core.interfaces.status_fetcher import StatusFetcherPort
from jobwatch.core.models.job import JobFamily, JobSnapshot, JobStatus


def snap(job_id: str, status: str, **kwargs) -> JobSnapshot:
    return JobSnapshot(jobId=job_id, status=JobStatus(status), **kwargs)


class ScriptedFetcher(StatusFetcherPort):
    """Replays a per-job script of snapshots or exceptions.

    The last entry repeats once the script is exhausted.
    """

    def __init__(self, scripts=None):
        self.scripts = {job_id: list(items) for job_id, items in (scripts or {}).items()}
        self.calls: list[tuple[str, JobFamily]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def fetch(self, job_id: str, family: JobFamily) -> JobSnapshot:
        self.calls.append((job_id, family))
        script = self.scripts[job_id]
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        pass

    def count(self, job_id: str) -> int:
        return sum(1 for called_id, _ in self.calls if called_id == job_id)


@pytest.fixture
def fast_config():
    """Polling at 10ms/30ms/50ms, 1s timeout budget, 5ms progress ticks."""
    return JobTrackerConfig(
        base_interval=0.01,
        multiplier=3,
        cap_interval=0.05,
        max_fetch_attempts=5,
        timeout_budget=1.0,
        progress_tick=0.005,
    )


@pytest.fixture
def make_snapshot():
    return snap


@pytest.fixture
def make_fetcher():
    return ScriptedFetcher
