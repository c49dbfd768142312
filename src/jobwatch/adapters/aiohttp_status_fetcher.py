# jobwatch/adapters/aiohttp_status_fetcher.py
import asyncio
import aiohttp
from typing import Any, Dict, Optional

from pydantic import ValidationError

from jobwatch.core.interfaces.status_fetcher import StatusFetcherPort
from jobwatch.core.exceptions import JobNotFoundError, StatusFetchError
from jobwatch.core.models.job import JobFamily, JobSnapshot
from jobwatch.core.settings import logger


class AioHttpStatusFetcher(StatusFetcherPort):
    """Queries `GET {base_url}/{family}/status/{jobId}` with a bearer token.

    The endpoint answers either with the snapshot itself or wrapped as
    `{"data": snapshot}`; both are accepted. 404 is reported as
    JobNotFoundError, every other failure as StatusFetchError.
    """

    def __init__(self, base_url: str, access_token: Optional[str] = None, timeout: float = 10.0):
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._session: Optional[aiohttp.ClientSession] = None
        self._client_timeout = aiohttp.ClientTimeout(total=timeout)

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    def status_url(self, job_id: str, family: JobFamily) -> str:
        return f"{self._base_url}/{family.path}/status/{job_id}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def fetch(self, job_id: str, family: JobFamily) -> JobSnapshot:
        if self._session is None:
            raise RuntimeError("Status fetcher not initialized. Use 'async with' context manager.")

        url = self.status_url(job_id, family)
        try:
            async with self._session.get(
                url, headers=self._headers(), timeout=self._client_timeout
            ) as response:
                if response.status == 404:
                    message = await self._error_message(response)
                    logger.info("Job not found at status endpoint. URL: %s", url)
                    raise JobNotFoundError(job_id, message)

                if response.status >= 400:
                    message = await self._error_message(response)
                    logger.warning(
                        "HTTP error from status endpoint. URL: %s, Status: %s", url, response.status
                    )
                    raise StatusFetchError(
                        message or f"Failed to fetch job status (HTTP {response.status})",
                        status=response.status,
                        job_id=job_id,
                    )

                try:
                    body = await response.json()
                except (aiohttp.ContentTypeError, ValueError):
                    response_text = await response.text()
                    logger.error(
                        "Invalid JSON response from status endpoint. URL: %s, Content: %s",
                        url,
                        response_text[:500],
                    )
                    raise StatusFetchError(
                        "The status endpoint did not return valid JSON",
                        status=response.status,
                        job_id=job_id,
                    )

        except asyncio.TimeoutError:
            logger.error("Timeout when requesting status endpoint. URL: %s", url)
            raise StatusFetchError("The status request timed out.", job_id=job_id)

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when requesting status endpoint. URL: %s, Error: %s",
                url,
                str(client_error),
            )
            raise StatusFetchError(
                f"Connection error reaching the status endpoint: {client_error}", job_id=job_id
            )

        return self._parse_snapshot(job_id, body)

    def _parse_snapshot(self, job_id: str, body: Any) -> JobSnapshot:
        payload = body.get("data") if isinstance(body, dict) and isinstance(body.get("data"), dict) else body
        if not isinstance(payload, dict):
            raise StatusFetchError("Status response is not a JSON object", job_id=job_id)
        payload = {"jobId": job_id, **payload}
        try:
            return JobSnapshot.model_validate(payload)
        except ValidationError as exc:
            logger.error("Malformed job snapshot job_id=%s errors=%s", job_id, exc.errors())
            raise StatusFetchError("Status response is not a valid job snapshot", job_id=job_id) from exc

    async def _error_message(self, response: aiohttp.ClientResponse) -> Optional[str]:
        """Pull `message` or `error` out of an error body, if it is JSON."""
        try:
            data = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        message = data.get("message") or data.get("error")
        return message if isinstance(message, str) else None

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
