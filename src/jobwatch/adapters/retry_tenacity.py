from typing import Any, Awaitable, Callable, Sequence, Type
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from jobwatch.core.settings import logger


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.debug(
        "[retry] attempt=%s failed err=%s; sleeping %.2fs",
        retry_state.attempt_number,
        exc,
        delay,
    )


class TenacityRetryAdapter:
    """Tenacity-based retry adapter implementing RetryPort.

    Waits grow as `wait_initial * wait_base ** (attempt - 1)` up to `wait_max`,
    i.e. the same family the poll scheduler uses (0.5s, 1.5s, 4.5s, 10s...).
    Call-time kwargs can override default policy parameters (attempts,
    wait_initial, wait_base, wait_max, exception_types).
    """

    def __init__(
        self,
        attempts: int = 5,
        wait_initial: float = 0.5,
        wait_base: float = 3.0,
        wait_max: float = 10.0,
        exception_types: Sequence[Type[Exception]] = (Exception,),
    ) -> None:
        self.attempts = attempts
        self.wait_initial = wait_initial
        self.wait_base = wait_base
        self.wait_max = wait_max
        self.exception_types = tuple(exception_types)

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        attempts = kwargs.pop("attempts", self.attempts)
        wait_initial = kwargs.pop("wait_initial", self.wait_initial)
        wait_base = kwargs.pop("wait_base", self.wait_base)
        wait_max = kwargs.pop("wait_max", self.wait_max)
        exception_types = tuple(kwargs.pop("exception_types", self.exception_types))

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=wait_initial, exp_base=wait_base, max=wait_max),
            retry=retry_if_exception_type(exception_types),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:  # pragma: no cover - control flow instrumentation
            with attempt:
                return await func(*args, **kwargs)
