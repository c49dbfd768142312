from typing import Optional


class StatusFetchError(Exception):
    """Transport failure while querying the job status endpoint.

    Raised for network errors, timeouts, unparsable bodies and any non-2xx
    response other than 404. These are retried with backoff by the poll
    scheduler.

    Attributes:
        message: Human-readable error description
        status: HTTP status code from the endpoint (if a response arrived)
        job_id: Optional job identifier
    """
    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        job_id: Optional[str] = None
    ):
        self.message = message
        self.status = status
        self.job_id = job_id
        super().__init__(message)


class JobNotFoundError(Exception):
    """Raised when the status endpoint answers 404 for a job.

    An expired or never-existing job is terminal, so this is never retried.
    """

    DEFAULT_MESSAGE = "Job not found"

    def __init__(self, job_id: str, message: Optional[str] = None):
        self.job_id = job_id
        self.message = message or self.DEFAULT_MESSAGE
        super().__init__(self.message)
