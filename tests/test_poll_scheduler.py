"""Unit tests for PollScheduler backoff, retry and error classification."""

import pytest
from unittest.mock import AsyncMock

from jobwatch.adapters.retry_tenacity import TenacityRetryAdapter
from jobwatch.core.config import JobTrackerConfig
from jobwatch.core.exceptions import JobNotFoundError, StatusFetchError
from jobwatch.core.managers.poll_scheduler import (
    TRANSPORT_FAILURE_PREFIX,
    PollScheduler,
    backoff_interval,
)
from jobwatch.core.models.job import JobFamily, JobHandle, JobStatus, PollingState


# --- Test Fixtures ---

@pytest.fixture
def handle():
    return JobHandle(job_id="job-123", family=JobFamily.quiz)


@pytest.fixture
def mock_fetcher():
    return AsyncMock()


@pytest.fixture
def retry_adapter():
    return TenacityRetryAdapter()


@pytest.fixture
def scheduler(mock_fetcher, fast_config, retry_adapter):
    return PollScheduler(mock_fetcher, fast_config, retry_adapter)


class TestNextInterval:

    def test_default_backoff_sequence(self, mock_fetcher):
        scheduler = PollScheduler(mock_fetcher, JobTrackerConfig())
        state = PollingState()

        intervals = [scheduler.next_interval(state) for _ in range(5)]

        assert intervals == [0.5, 1.5, 4.5, 10.0, 10.0]
        assert all(b >= a for a, b in zip(intervals, intervals[1:]))
        assert state.attempt_count == 5

    def test_backoff_interval_is_capped(self):
        config = JobTrackerConfig()
        assert backoff_interval(20, config) == config.cap_interval

    @pytest.mark.parametrize("status", ["completed", "failed"])
    def test_stops_after_terminal_snapshot(self, scheduler, make_snapshot, status):
        state = PollingState(attempt_count=2)

        assert scheduler.next_interval(state, make_snapshot("job-123", status)) is None
        assert state.attempt_count == 2

    def test_stops_after_terminal_previous_status(self, scheduler):
        state = PollingState(previous_status=JobStatus.completed)
        assert scheduler.next_interval(state) is None

    def test_stops_after_timeout(self, scheduler, make_snapshot):
        state = PollingState(timed_out=True)
        assert scheduler.next_interval(state, make_snapshot("job-123", "active")) is None


class TestPollOnce:

    @pytest.mark.asyncio
    async def test_returns_snapshot(self, scheduler, mock_fetcher, handle, make_snapshot):
        mock_fetcher.fetch.return_value = make_snapshot("job-123", "active", progress=40)

        snapshot = await scheduler.poll_once(handle)

        assert snapshot.status == JobStatus.active
        mock_fetcher.fetch.assert_awaited_once_with("job-123", JobFamily.quiz)

    @pytest.mark.asyncio
    async def test_not_found_becomes_failed_without_retry(self, scheduler, mock_fetcher, handle):
        mock_fetcher.fetch.side_effect = JobNotFoundError("job-123", "Job expired")

        snapshot = await scheduler.poll_once(handle)

        assert snapshot.status == JobStatus.failed
        assert snapshot.error == "Job expired"
        assert mock_fetcher.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, scheduler, mock_fetcher, handle, make_snapshot):
        mock_fetcher.fetch.side_effect = [
            StatusFetchError("connection reset"),
            StatusFetchError("502", status=502),
            make_snapshot("job-123", "completed", result="done"),
        ]

        snapshot = await scheduler.poll_once(handle)

        assert snapshot.status == JobStatus.completed
        assert mock_fetcher.fetch.await_count == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_become_failed(self, scheduler, mock_fetcher, handle):
        mock_fetcher.fetch.side_effect = StatusFetchError("connection refused")

        snapshot = await scheduler.poll_once(handle)

        assert snapshot.status == JobStatus.failed
        assert snapshot.error.startswith(TRANSPORT_FAILURE_PREFIX)
        assert "connection refused" in snapshot.error
        assert mock_fetcher.fetch.await_count == 5

    @pytest.mark.asyncio
    async def test_without_retry_port_single_attempt(self, mock_fetcher, fast_config, handle):
        scheduler = PollScheduler(mock_fetcher, fast_config)
        mock_fetcher.fetch.side_effect = StatusFetchError("down")

        snapshot = await scheduler.poll_once(handle)

        assert snapshot.status == JobStatus.failed
        assert mock_fetcher.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_is_retried_then_failed(self, scheduler, mock_fetcher, handle):
        mock_fetcher.fetch.side_effect = ConnectionError("socket reset")

        snapshot = await scheduler.poll_once(handle)

        assert snapshot.status == JobStatus.failed
        assert snapshot.error == f"{TRANSPORT_FAILURE_PREFIX}: socket reset"
        assert mock_fetcher.fetch.await_count == 5

    @pytest.mark.asyncio
    async def test_unexpected_fetcher_error_becomes_failed(self, scheduler, mock_fetcher, handle):
        mock_fetcher.fetch.side_effect = ValueError("unparsable body")

        snapshot = await scheduler.poll_once(handle)

        assert snapshot.status == JobStatus.failed
        assert snapshot.error == f"{TRANSPORT_FAILURE_PREFIX}: unparsable body"
        # Only transport errors are retried
        assert mock_fetcher.fetch.await_count == 1


class TestRun:

    @pytest.mark.asyncio
    async def test_polls_until_terminal(self, scheduler, mock_fetcher, handle, make_snapshot):
        mock_fetcher.fetch.side_effect = [
            make_snapshot("job-123", "waiting"),
            make_snapshot("job-123", "active"),
            make_snapshot("job-123", "completed", result={"id": 1}),
        ]
        state = PollingState()
        sink = AsyncMock()

        await scheduler.run(handle, state, sink)

        statuses = [call.args[0].status for call in sink.await_args_list]
        assert statuses == [JobStatus.waiting, JobStatus.active, JobStatus.completed]
        # Two delays were scheduled between three polls
        assert state.attempt_count == 2

    @pytest.mark.asyncio
    async def test_snapshot_after_timeout_is_dropped(self, scheduler, mock_fetcher, handle, make_snapshot):
        state = PollingState()

        async def fetch_then_time_out(job_id, family):
            state.timed_out = True
            return make_snapshot(job_id, "completed")

        mock_fetcher.fetch.side_effect = fetch_then_time_out
        sink = AsyncMock()

        await scheduler.run(handle, state, sink)

        sink.assert_not_awaited()
