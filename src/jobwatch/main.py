# main.py
import argparse
import asyncio
import sys

from rich import print

from jobwatch.adapters.aiohttp_status_fetcher import AioHttpStatusFetcher
from jobwatch.adapters.logging_adapter import LoggingAdapter
from jobwatch.adapters.retry_tenacity import TenacityRetryAdapter
from jobwatch.core.config import JobTrackerConfig
from jobwatch.core.logging_config import configure_logging
from jobwatch.core.managers.job_tracker import JobTracker
from jobwatch.core.managers.poll_scheduler import RETRYABLE_ERRORS
from jobwatch.core.models.job import JobFamily, JobStatus
from jobwatch.core.settings import app_settings, logger, set_logger
from jobwatch.core.utils.error_messages import sanitize_error_message


# main lives at the outermost layer (not in core)
# Instantiates all the concrete adapters
# Wires dependencies together
# Tracks one job until its terminal event

def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track a generation job until it completes or fails.")
    parser.add_argument("job_id")
    parser.add_argument("family", choices=[f.value for f in JobFamily])
    parser.add_argument(
        "--real-progress",
        action="store_true",
        help="show backend progress values instead of the simulated projection",
    )
    return parser.parse_args(argv)


def report_progress(percent: float, message: str) -> None:
    logger.info("[job:progress] %5.1f%% %s", percent, message)


def report_completed(result) -> None:
    print({"status": "completed", "result": result})


def report_failed(message: str) -> None:
    # Provider details (keys, auth, upstream hosts) stay in the log only
    logger.debug(f"[job:failed] raw message={message}")
    print(f"[bold red]failed:[/bold red] {sanitize_error_message(message)}")


async def main(argv=None) -> int:
    args = _parse_args(argv)

    # Central logging configuration BEFORE injecting adapter
    configure_logging(app_settings.JOBWATCH_LOG_LEVEL)
    set_logger(LoggingAdapter("jobwatch", app_settings.JOBWATCH_LOG_LEVEL))
    app_settings.print_settings(logger)

    config = JobTrackerConfig.from_app_settings(app_settings)
    retry_adapter = TenacityRetryAdapter(
        attempts=config.max_fetch_attempts,
        wait_initial=config.base_interval,
        wait_base=config.multiplier,
        wait_max=config.cap_interval,
        exception_types=RETRYABLE_ERRORS,
    )

    fetcher = AioHttpStatusFetcher(
        app_settings.JOBWATCH_API_URL,
        access_token=app_settings.JOBWATCH_ACCESS_TOKEN.get_secret_value() or None,
        timeout=app_settings.JOBWATCH_REQUEST_TIMEOUT,
    )
    async with fetcher:
        tracker = JobTracker(
            fetcher,
            config=config,
            retry_port=retry_adapter,
            on_completed=report_completed,
            on_failed=report_failed,
            on_progress=report_progress,
            simulate_progress=not args.real_progress,
        )
        tracker.start(args.job_id, args.family)
        try:
            final = await tracker.wait()
        finally:
            await tracker.aclose()

    return 0 if final is not None and final.status == JobStatus.completed else 1


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
