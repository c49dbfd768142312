# jobwatch/core/interfaces/status_fetcher.py
from abc import ABC, abstractmethod

from jobwatch.core.models.job import JobFamily, JobSnapshot


class StatusFetcherPort(ABC):
    @abstractmethod
    async def __aenter__(self) -> "StatusFetcherPort":
        """Async context manager entry method"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit method"""
        pass

    @abstractmethod
    async def fetch(self, job_id: str, family: JobFamily) -> JobSnapshot:
        """Return the current snapshot of a job.

        Raises JobNotFoundError when the endpoint reports the job as unknown
        and StatusFetchError for every other failure to obtain a snapshot.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying HTTP session"""
        pass
