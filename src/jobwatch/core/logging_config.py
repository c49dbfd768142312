"""Central logging configuration utilities.

`configure_logging` is called once by the composition root. It wires
separate stdout/stderr sinks and stamps every record with the id of the
job currently being tracked. Core code and adapters never mutate global
logging; they only emit via `LoggingPort` or standard module loggers.

The job id lives in a context variable. `JobTracker` sets it inside the
tasks it spawns, so log lines from concurrent sessions stay attributable.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional
import contextvars

job_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "job_id", default="-"
)

DEFAULT_FORMAT = (
    "[%(asctime)s] %(levelname)s %(name)s job=%(job_id)s: %(message)s"
)


def coerce_level(level: int | str | None) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    return logging.getLevelNamesMapping().get(str(level).upper().strip(), logging.INFO)


class _JobIdFilter(logging.Filter):
    """Inject the tracked job id from contextvar into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - simple
        record.job_id = job_id_var.get()
        return True


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover
        return record.levelno <= self.max_level


class _MinLevelFilter(logging.Filter):
    def __init__(self, min_level: int):
        super().__init__()
        self.min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover
        return record.levelno >= self.min_level


def configure_logging(
    level: int | str | None = None,
    fmt: Optional[str] = None,
    quiet_http: bool = True,
) -> None:
    """Configure root logger with separate stdout/stderr sinks & job id.

    Notes
    -----
    * Existing root handlers are removed so repeated calls do not duplicate output.
    * `quiet_http` raises aiohttp's internal loggers to WARNING.
    """
    numeric_level = coerce_level(level)
    fmt = fmt or DEFAULT_FORMAT

    root = logging.getLogger()
    root.setLevel(numeric_level)

    for h in list(root.handlers):
        root.removeHandler(h)

    formatter = logging.Formatter(fmt)
    job_filter = _JobIdFilter()

    # stdout handler for DEBUG/INFO
    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(_MaxLevelFilter(logging.INFO))
    stdout_handler.addFilter(job_filter)
    stdout_handler.setFormatter(formatter)

    # stderr handler for WARNING+
    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.addFilter(_MinLevelFilter(logging.WARNING))
    stderr_handler.addFilter(job_filter)
    stderr_handler.setFormatter(formatter)

    root.addHandler(stdout_handler)
    root.addHandler(stderr_handler)

    if quiet_http:
        logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logging.getLogger("jobwatch").debug(
        "Logging configured level=%s quiet_http=%s", numeric_level, quiet_http
    )
