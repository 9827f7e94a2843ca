# elementsync/core/retry.py
from __future__ import annotations

"""Retry executor
----------------
Runs an async operation under a RetryPolicy. Each attempt is captured as an
Ok/Err value and the loop decides on the value, so the retry bookkeeping never
depends on where an exception happened to be caught.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from elementsync.core.errors import RetryExhausted
from elementsync.utils.config import BackoffKind, Settings
from elementsync.utils.logger import get_logger
from elementsync.utils.timing import Clock, Sleeper, async_sleep_ms, now_ms

log = get_logger(__name__)

T = TypeVar("T")
Operation = Callable[[], Awaitable[T]]
RetryOn = Tuple[Type[BaseException], ...]


# ---------- Policy ----------


class RetryPolicy(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1)
    base_delay_ms: int = Field(default=100, ge=0)
    backoff: BackoffKind = BackoffKind.exponential
    total_timeout_ms: int = Field(default=30000, ge=0)
    max_delay_ms: Optional[int] = Field(default=None, ge=0)

    def delay_for(self, attempt: int) -> int:
        """Delay after failed attempt number `attempt` (1-based)."""
        attempt = max(1, attempt)
        if self.backoff is BackoffKind.none:
            delay = 0
        elif self.backoff is BackoffKind.linear:
            delay = self.base_delay_ms * attempt
        else:
            delay = self.base_delay_ms * (2 ** (attempt - 1))
        if self.max_delay_ms is not None:
            delay = min(delay, self.max_delay_ms)
        return delay

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            base_delay_ms=settings.RETRY_BASE_DELAY_MS,
            backoff=settings.RETRY_BACKOFF,
            total_timeout_ms=settings.RETRY_TOTAL_TIMEOUT_MS,
            max_delay_ms=settings.RETRY_MAX_DELAY_MS,
        )

    @classmethod
    def single(cls, total_timeout_ms: int = 30000) -> "RetryPolicy":
        """One attempt, no backoff."""
        return cls(max_attempts=1, base_delay_ms=0, backoff=BackoffKind.none, total_timeout_ms=total_timeout_ms)


# ---------- Attempt results ----------


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: BaseException


AttemptResult = Union[Ok[T], Err]


@dataclass
class RetryOutcome(Generic[T]):
    value: T
    attempts: int
    elapsed_ms: int
    delays_ms: List[int] = field(default_factory=list)
    errors: List[BaseException] = field(default_factory=list)


# ---------- Executor ----------


class RetryExecutor:
    def __init__(self, *, clock: Clock = now_ms, sleep: Sleeper = async_sleep_ms) -> None:
        self.clock = clock
        self.sleep = sleep

    async def _attempt(self, operation: Operation[T], retry_on: RetryOn, give_up_on: RetryOn) -> AttemptResult:
        try:
            return Ok(await operation())
        except give_up_on:
            raise
        except retry_on as e:  # type: ignore[misc]
            return Err(e)

    async def run_detailed(
        self,
        operation: Operation[T],
        policy: RetryPolicy,
        *,
        retry_on: RetryOn = (Exception,),
        give_up_on: RetryOn = (),
        description: str = "operation",
        before_retry: Optional[Callable[[int, BaseException], Any]] = None,
    ) -> RetryOutcome[T]:
        """
        Like run(), but returns a RetryOutcome with the attempt count and the
        delays actually slept.

        Errors outside `retry_on`, or inside `give_up_on`, escape from the attempt
        untouched.
        """
        start = self.clock()
        attempts = 0
        delays: List[int] = []
        errors: List[BaseException] = []

        while True:
            elapsed = self.clock() - start
            if attempts > 0 and elapsed >= policy.total_timeout_ms:
                log.debug(f"{description}: total budget {policy.total_timeout_ms} ms spent before attempt {attempts + 1}")
                break

            attempts += 1
            result = await self._attempt(operation, retry_on, give_up_on)
            if isinstance(result, Ok):
                if attempts > 1:
                    log.debug(f"{description} succeeded on attempt {attempts}")
                return RetryOutcome(result.value, attempts, self.clock() - start, delays, errors)

            errors.append(result.error)
            if attempts >= policy.max_attempts:
                break

            remaining = policy.total_timeout_ms - (self.clock() - start)
            if remaining <= 0:
                break
            delay = min(policy.delay_for(attempts), remaining)
            if before_retry is not None:
                before_retry(attempts, result.error)
            log.debug(
                f"{description}: retry {attempts}/{policy.max_attempts - 1} after error: {result.error!r} (sleep {delay} ms)"
            )
            delays.append(delay)
            await self.sleep(delay)

        last = errors[-1]
        exhausted = RetryExhausted(last, attempts, self.clock() - start, description=description)
        raise exhausted from last

    async def run(
        self,
        operation: Operation[T],
        policy: RetryPolicy,
        *,
        retry_on: RetryOn = (Exception,),
        give_up_on: RetryOn = (),
        description: str = "operation",
        before_retry: Optional[Callable[[int, BaseException], Any]] = None,
    ) -> T:
        outcome = await self.run_detailed(
            operation, policy, retry_on=retry_on, give_up_on=give_up_on, description=description, before_retry=before_retry
        )
        return outcome.value


async def with_retry(
    operation: Operation[T],
    policy: Optional[RetryPolicy] = None,
    *,
    retry_on: RetryOn = (Exception,),
    description: str = "operation",
    clock: Clock = now_ms,
    sleep: Sleeper = async_sleep_ms,
) -> T:
    """
    Retry an async operation with the given (or default) policy.

    Example:
        text = await with_retry(lambda: handle.inner_text(), RetryPolicy(max_attempts=5))
    """
    executor = RetryExecutor(clock=clock, sleep=sleep)
    return await executor.run(operation, policy or RetryPolicy(), retry_on=retry_on, description=description)


__all__ = [
    "RetryPolicy",
    "Ok",
    "Err",
    "AttemptResult",
    "RetryOutcome",
    "RetryExecutor",
    "with_retry",
]
