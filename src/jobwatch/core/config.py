"""Configuration model for the job tracking session.

Consolidates the polling, timeout and progress constants so that the
composition root can build them from environment settings and tests can
shrink every interval to milliseconds.
"""

from pydantic import BaseModel, Field, model_validator


class JobTrackerConfig(BaseModel):
    """Behavior knobs for `JobTracker` and its collaborators.

    All durations are seconds. Defaults reproduce the production cadence:
    polls at 0.5s, 1.5s, 4.5s, then every 10s; a 120s wall-clock budget.
    """

    base_interval: float = Field(
        default=0.5,
        gt=0,
        description="First poll delay; also the first transport retry delay"
    )

    multiplier: float = Field(
        default=3.0,
        ge=1,
        description="Growth factor applied per scheduled poll"
    )

    cap_interval: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for any poll or retry delay"
    )

    max_fetch_attempts: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Total status request attempts before a transport failure becomes terminal"
    )

    timeout_budget: float = Field(
        default=120.0,
        gt=0,
        description="Seconds from start of tracking until a synthetic timeout failure"
    )

    progress_tick: float = Field(
        default=0.5,
        gt=0,
        description="Interval of the simulated progress animation"
    )

    progress_floor: float = Field(default=10.0, ge=0, le=100)

    progress_cap: float = Field(
        default=95.0,
        gt=0,
        le=100,
        description="Simulated progress never passes this value before completion"
    )

    progress_rate: float = Field(
        default=0.05,
        gt=0,
        le=1,
        description="Fraction of remaining headroom that bounds a single tick's increment"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @model_validator(mode="after")
    def _check_bounds(self) -> "JobTrackerConfig":
        if self.cap_interval < self.base_interval:
            raise ValueError("cap_interval must be >= base_interval")
        if self.progress_floor > self.progress_cap:
            raise ValueError("progress_floor must be <= progress_cap")
        return self

    @classmethod
    def from_app_settings(cls, settings) -> "JobTrackerConfig":
        """Factory method to construct config from a JobwatchSettings instance."""
        return cls(
            base_interval=settings.JOBWATCH_POLL_BASE_INTERVAL,
            multiplier=settings.JOBWATCH_POLL_MULTIPLIER,
            cap_interval=settings.JOBWATCH_POLL_CAP_INTERVAL,
            max_fetch_attempts=settings.JOBWATCH_FETCH_MAX_ATTEMPTS,
            timeout_budget=settings.JOBWATCH_TIMEOUT_BUDGET,
            progress_tick=settings.JOBWATCH_PROGRESS_TICK,
            progress_floor=settings.JOBWATCH_PROGRESS_FLOOR,
            progress_cap=settings.JOBWATCH_PROGRESS_CAP,
        )
