from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings
from rich import print

from jobwatch.adapters.logging_adapter import LoggingAdapter
from jobwatch.core.interfaces.logging import LoggingPort


# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class JobwatchSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    JOBWATCH_LOG_LEVEL: str = "INFO"
    JOBWATCH_API_URL: str = "http://localhost:3000"
    JOBWATCH_ACCESS_TOKEN: SecretStr = SecretStr("")
    # HTTP timeout for a single status request, seconds
    JOBWATCH_REQUEST_TIMEOUT: float = 10.0
    # Poll backoff: base * multiplier ** attempt, capped (seconds)
    JOBWATCH_POLL_BASE_INTERVAL: float = 0.5
    JOBWATCH_POLL_MULTIPLIER: float = 3.0
    JOBWATCH_POLL_CAP_INTERVAL: float = 10.0
    JOBWATCH_FETCH_MAX_ATTEMPTS: int = 5
    # Wall-clock budget per job, measured from the start of tracking
    JOBWATCH_TIMEOUT_BUDGET: float = 120.0
    JOBWATCH_PROGRESS_TICK: float = 0.5
    # Simulated progress starts at the floor and never passes the cap
    JOBWATCH_PROGRESS_FLOOR: float = 10.0
    JOBWATCH_PROGRESS_CAP: float = 95.0

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("Jobwatch Settings:")
        print(self)

    @field_validator("JOBWATCH_API_URL", mode="before")
    def strip_trailing_slash(cls, value: str) -> str:
        """Status paths are joined with '/', so drop a trailing one."""
        return value.rstrip("/") if isinstance(value, str) else value


class NoOpLogger(LoggingPort):
    """Swallows all output; for embedding the tracker where logs are unwanted."""

    def info(self, msg: str, *args):
        pass

    def warning(self, msg: str, *args):
        pass

    def error(self, msg: str, *args):
        pass

    def debug(self, msg: str, *args):
        pass


class _SwappableLogger(LoggingPort):
    # Modules bind `logger` at import time, so swapping happens behind this proxy.
    def __init__(self, target: LoggingPort):
        self._target = target

    def info(self, msg: str, *args):
        self._target.info(msg, *args)

    def warning(self, msg: str, *args):
        self._target.warning(msg, *args)

    def error(self, msg: str, *args):
        self._target.error(msg, *args)

    def debug(self, msg: str, *args):
        self._target.debug(msg, *args)


app_settings = JobwatchSettings()

logger = _SwappableLogger(LoggingAdapter("jobwatch", app_settings.JOBWATCH_LOG_LEVEL))


def set_logger(new_logger: LoggingPort) -> None:
    """Route all core log output to `new_logger`."""
    logger._target = new_logger
