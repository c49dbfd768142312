import asyncio
import pytest
from aioresponses import aioresponses
from yarl import URL

from jobwatch.adapters.aiohttp_status_fetcher import AioHttpStatusFetcher
from jobwatch.core.exceptions import JobNotFoundError, StatusFetchError
from jobwatch.core.models.job import JobFamily, JobStatus

"""
Tests for AioHttpStatusFetcher behavior.

Each test verifies how the adapter maps status endpoint responses and
errors into snapshots or domain exceptions. Expected outcomes:
- Snapshots are accepted bare or wrapped as {"data": snapshot}.
- 404 maps to JobNotFoundError (terminal, never retried), carrying the
    server's message when it sends one.
- Any other HTTP error, non-JSON body, timeout or connection problem maps
    to StatusFetchError so the poll scheduler can retry it.
"""

BASE = "http://api.test"


@pytest.mark.asyncio
async def test_fetch_plain_snapshot():
    url = f"{BASE}/quiz/status/job-1"
    with aioresponses() as m:
        m.get(url, payload={"jobId": "job-1", "status": "active", "progress": 42}, status=200)

        async with AioHttpStatusFetcher(BASE, access_token="tok") as fetcher:
            snapshot = await fetcher.fetch("job-1", JobFamily.quiz)

        assert snapshot.status == JobStatus.active
        assert snapshot.progress_percent == 42
        request = m.requests[("GET", URL(url))][0]
        assert request.kwargs["headers"]["Authorization"] == "Bearer tok"


@pytest.mark.asyncio
async def test_fetch_wrapped_snapshot():
    # The newer API wraps payloads in {"message", "status", "data"}; the
    # snapshot lives under "data".
    url = f"{BASE}/flashcards/status/job-2"
    body = {
        "message": "OK",
        "status": 200,
        "data": {
            "jobId": "job-2",
            "status": "completed",
            "progress": {"percent": 100, "message": "Done"},
            "result": {"setId": "s-1"},
        },
    }
    with aioresponses() as m:
        m.get(url, payload=body, status=200)

        async with AioHttpStatusFetcher(BASE + "/") as fetcher:
            snapshot = await fetcher.fetch("job-2", JobFamily.flashcard)

        assert snapshot.status == JobStatus.completed
        assert snapshot.result == {"setId": "s-1"}
        assert snapshot.progress_message == "Done"


@pytest.mark.asyncio
async def test_missing_job_id_defaults_to_requested_id():
    url = f"{BASE}/content/status/job-3"
    with aioresponses() as m:
        m.get(url, payload={"status": "waiting"}, status=200)

        async with AioHttpStatusFetcher(BASE) as fetcher:
            snapshot = await fetcher.fetch("job-3", JobFamily.content)

        assert snapshot.jobId == "job-3"


@pytest.mark.asyncio
async def test_404_with_server_message():
    url = f"{BASE}/quiz/status/gone"
    with aioresponses() as m:
        m.get(url, status=404, payload={"message": "Job expired"})

        async with AioHttpStatusFetcher(BASE) as fetcher:
            with pytest.raises(JobNotFoundError) as excinfo:
                await fetcher.fetch("gone", JobFamily.quiz)
        assert excinfo.value.message == "Job expired"


@pytest.mark.asyncio
async def test_404_without_body_uses_default_message():
    url = f"{BASE}/quiz/status/gone"
    with aioresponses() as m:
        m.get(url, status=404)

        async with AioHttpStatusFetcher(BASE) as fetcher:
            with pytest.raises(JobNotFoundError) as excinfo:
                await fetcher.fetch("gone", JobFamily.quiz)
        assert excinfo.value.message == "Job not found"


@pytest.mark.asyncio
async def test_500_maps_to_status_fetch_error():
    url = f"{BASE}/quiz/status/job-1"
    with aioresponses() as m:
        m.get(url, status=500, payload={"error": "database unavailable"})

        async with AioHttpStatusFetcher(BASE) as fetcher:
            with pytest.raises(StatusFetchError) as excinfo:
                await fetcher.fetch("job-1", JobFamily.quiz)
        assert excinfo.value.status == 500
        assert excinfo.value.message == "database unavailable"


@pytest.mark.asyncio
async def test_non_json_response_maps_to_status_fetch_error():
    url = f"{BASE}/quiz/status/job-1"
    with aioresponses() as m:
        m.get(url, body="<html>error</html>", status=200, headers={"Content-Type": "text/html"})

        async with AioHttpStatusFetcher(BASE) as fetcher:
            with pytest.raises(StatusFetchError):
                await fetcher.fetch("job-1", JobFamily.quiz)


@pytest.mark.asyncio
async def test_invalid_snapshot_maps_to_status_fetch_error():
    url = f"{BASE}/quiz/status/job-1"
    with aioresponses() as m:
        m.get(url, payload={"jobId": "job-1", "status": "exploded"}, status=200)

        async with AioHttpStatusFetcher(BASE) as fetcher:
            with pytest.raises(StatusFetchError):
                await fetcher.fetch("job-1", JobFamily.quiz)


@pytest.mark.asyncio
async def test_timeout_maps_to_status_fetch_error():
    url = f"{BASE}/quiz/status/slow"
    with aioresponses() as m:
        m.get(url, exception=asyncio.TimeoutError())

        async with AioHttpStatusFetcher(BASE) as fetcher:
            with pytest.raises(StatusFetchError) as excinfo:
                await fetcher.fetch("slow", JobFamily.quiz)
        assert excinfo.value.status is None


@pytest.mark.asyncio
async def test_fetch_requires_context_manager():
    fetcher = AioHttpStatusFetcher(BASE)
    with pytest.raises(RuntimeError):
        await fetcher.fetch("job-1", JobFamily.quiz)
