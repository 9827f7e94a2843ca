# elementsync/core/dispatcher.py
from __future__ import annotations

"""Action dispatcher
-------------------
acquire() = resolve, then wait for the requested state, under a retry policy.
Every acquisition walks its own small state machine:

    Idle → Resolving → ConditionPending → Ready
                  ↘            ↘
                   Failed ←────┘

and ends in exactly one typed error when it cannot reach Ready.
"""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from elementsync.core.errors import (
    ConditionTimeout,
    ElementAmbiguous,
    ElementNotFound,
    ElementSyncError,
    FrameNotFound,
    RetryExhausted,
    UnsupportedStrategy,
)
from elementsync.core.retry import RetryExecutor, RetryPolicy
from elementsync.detection.conditions import ConditionEngine, ElementConditions, ElementState, WaitCondition
from elementsync.selectors.descriptor import Resolvable, Target, coerce_target
from elementsync.selectors.driver import DomDriver, Handle
from elementsync.selectors.resolver import StrategyResolver
from elementsync.utils.logger import get_logger, log_with_context
from elementsync.utils.timing import Clock, now_ms

log = get_logger(__name__)

FailureHook = Callable[[Resolvable, BaseException], Union[None, Awaitable[None]]]
ConditionSpec = Union[ElementState, str, WaitCondition]

# errors worth another attempt; anything else escapes untouched
_RETRYABLE = (ElementNotFound, ElementAmbiguous, FrameNotFound, ConditionTimeout)


class AcquisitionState(str, Enum):
    idle = "idle"
    resolving = "resolving"
    condition_pending = "condition_pending"
    ready = "ready"
    failed = "failed"


@dataclass
class Acquisition:
    """Per-call record of the state machine. Never shared between calls."""
    descriptor: Resolvable
    condition: str
    state: AcquisitionState = AcquisitionState.idle
    attempts: int = 0
    transitions: List[Tuple[AcquisitionState, int]] = field(default_factory=list)

    def to(self, state: AcquisitionState, at_ms: int) -> None:
        self.state = state
        self.transitions.append((state, at_ms))

    @property
    def path(self) -> List[AcquisitionState]:
        return [s for s, _ in self.transitions]


@dataclass
class AcquiredElement:
    handle: Optional[Handle]
    condition: str
    elapsed_ms: int
    attempts: int
    descriptor: Resolvable
    acquisition: Optional[Acquisition] = None


class ActionDispatcher:
    def __init__(
        self,
        driver: DomDriver,
        resolver: StrategyResolver,
        conditions: ConditionEngine,
        retry: RetryExecutor,
        *,
        clock: Clock = now_ms,
        default_timeout_ms: int = 10000,
        poll_interval_ms: int = 100,
        default_policy: Optional[RetryPolicy] = None,
        stability_polls: int = 2,
        hooks: Optional[List[FailureHook]] = None,
    ) -> None:
        self.driver = driver
        self.resolver = resolver
        self.conditions = conditions
        self.retry = retry
        self.clock = clock
        self.default_timeout_ms = default_timeout_ms
        self.poll_interval_ms = poll_interval_ms
        self.default_policy = default_policy or RetryPolicy()
        self.stability_polls = stability_polls
        self.hooks: List[FailureHook] = list(hooks or [])

    def add_failure_hook(self, hook: FailureHook) -> None:
        self.hooks.append(hook)

    # ---------- Public ----------

    async def acquire(
        self,
        target: Target,
        condition: ConditionSpec = ElementState.visible,
        policy: Optional[RetryPolicy] = None,
        *,
        timeout_ms: Optional[int] = None,
        poll_interval_ms: Optional[int] = None,
        strict: Optional[bool] = None,
    ) -> AcquiredElement:
        """
        Wait until `target` is in `condition` and return its current handle.

        Without an explicit policy the default one is used with its total budget
        set to `timeout_ms`, so a single call never outlives its timeout.

        Raises exactly one of ElementNotFound, ElementAmbiguous, ConditionTimeout
        or FrameNotFound (with `attempts` and `elapsed_ms` set), or
        UnsupportedStrategy straight away.
        """
        descriptor = coerce_target(target)
        timeout = self.default_timeout_ms if timeout_ms is None else max(0, timeout_ms)
        interval = poll_interval_ms or self.poll_interval_ms
        strict = self.resolver.strict if strict is None else strict
        if policy is None:
            policy = self.default_policy.model_copy(update={"total_timeout_ms": timeout})

        factory = ElementConditions(self.resolver, self.driver, strict=strict, stability_polls=self.stability_polls)
        cond_name = condition.name if isinstance(condition, WaitCondition) else ElementState(condition).value
        acq = Acquisition(descriptor=descriptor, condition=cond_name)
        ctx = log_with_context(log, target=getattr(descriptor, "label", repr(descriptor)), condition=cond_name)
        start = self.clock()
        acq.to(AcquisitionState.idle, 0)

        async def attempt() -> Optional[Handle]:
            acq.attempts += 1
            attempt_start = self.clock()
            remaining_total = policy.total_timeout_ms - (attempt_start - start)
            budget = max(0, min(timeout, remaining_total))
            # fresh condition per attempt so probes like "stable" start clean
            cond = condition if isinstance(condition, WaitCondition) else factory.for_state(condition, descriptor)

            if cond.requires_match:
                acq.to(AcquisitionState.resolving, attempt_start - start)
                await self.conditions.satisfy(self._resolvable(descriptor, strict), budget, interval)

            acq.to(AcquisitionState.condition_pending, self.clock() - start)
            left = max(0, budget - (self.clock() - attempt_start))
            await self.conditions.satisfy(cond, left, interval)

            return await self._current_handle(factory, descriptor, strict, cond.requires_match)

        try:
            outcome = await self.retry.run_detailed(
                attempt,
                policy,
                retry_on=_RETRYABLE,
                give_up_on=(UnsupportedStrategy,),
                description=f"acquire {cond_name}",
            )
        except RetryExhausted as exhausted:
            err = self._classify(descriptor, acq, exhausted)
            acq.to(AcquisitionState.failed, self.clock() - start)
            ctx.debug(f"acquire failed: {type(err).__name__} after {acq.attempts} attempt(s)")
            await self._run_hooks(descriptor, err)
            raise err
        except UnsupportedStrategy as err:
            acq.to(AcquisitionState.failed, self.clock() - start)
            err.attempts = acq.attempts
            err.elapsed_ms = self.clock() - start
            await self._run_hooks(descriptor, err)
            raise

        elapsed = self.clock() - start
        acq.to(AcquisitionState.ready, elapsed)
        ctx.debug(f"acquired in {elapsed} ms ({outcome.attempts} attempt(s))")
        return AcquiredElement(
            handle=outcome.value,
            condition=cond_name,
            elapsed_ms=elapsed,
            attempts=outcome.attempts,
            descriptor=descriptor,
            acquisition=acq,
        )

    # ---------- Internals ----------

    def _resolvable(self, descriptor: Resolvable, strict: bool) -> WaitCondition:
        async def check() -> bool:
            resolved = await self.resolver.resolve(descriptor, self.driver, strict=strict, require=True)
            return resolved.count > 0

        label = getattr(descriptor, "label", repr(descriptor))
        return WaitCondition(name=f"resolve({label})", check=check, descriptor=descriptor)

    async def _current_handle(
        self, factory: ElementConditions, descriptor: Resolvable, strict: bool, requires_match: bool
    ) -> Optional[Handle]:
        """
        Handle to return once the condition held. Driver failures here (a node
        detached since the last tick) become ElementNotFound so the attempt is
        retried with a fresh resolution.
        """
        try:
            if not requires_match:
                handles = await factory.all_or_none(descriptor)
                return handles[0] if handles else None
            resolved = await self.resolver.resolve(descriptor, self.driver, strict=strict, require=True)
            return resolved.first
        except ElementSyncError:
            raise
        except Exception as e:
            label = getattr(descriptor, "label", repr(descriptor))
            raise ElementNotFound(f"{label} went stale after its condition held: {e}", descriptor=descriptor) from e

    def _classify(self, descriptor: Resolvable, acq: Acquisition, exhausted: RetryExhausted) -> ElementSyncError:
        """Map the last attempt's failure onto one public error type."""
        last = exhausted.last_error
        elapsed = exhausted.elapsed_ms
        label = getattr(descriptor, "label", repr(descriptor))
        in_resolution = acq.state is AcquisitionState.resolving

        concrete: BaseException = last
        if isinstance(last, ConditionTimeout) and in_resolution and last.last_error is not None:
            concrete = last.last_error

        err: ElementSyncError
        if isinstance(concrete, FrameNotFound):
            err = FrameNotFound(concrete.selector, descriptor=descriptor)
        elif isinstance(concrete, ElementAmbiguous):
            err = ElementAmbiguous(concrete.count, str(concrete), descriptor=descriptor)
        elif isinstance(concrete, ElementNotFound) or in_resolution:
            err = ElementNotFound(f"{label} not found within {elapsed} ms", descriptor=descriptor)
        elif isinstance(concrete, ConditionTimeout):
            err = ConditionTimeout(
                concrete.condition_names,
                concrete.elapsed_ms,
                last_error=concrete.last_error,
                message=f"element {label} did not become {acq.condition}",
                descriptor=descriptor,
            )
        else:
            err = ConditionTimeout([acq.condition], elapsed, last_error=concrete, descriptor=descriptor)

        err.attempts = exhausted.attempts
        err.elapsed_ms = elapsed
        err.__cause__ = concrete
        return err

    async def _run_hooks(self, descriptor: Resolvable, error: BaseException) -> None:
        for hook in self.hooks:
            try:
                out = hook(descriptor, error)
                if inspect.isawaitable(out):
                    await out
            except Exception as e:
                log.warning(f"failure hook {getattr(hook, '__name__', hook)!r} raised: {e!r}")


__all__ = [
    "AcquisitionState",
    "Acquisition",
    "AcquiredElement",
    "ActionDispatcher",
    "FailureHook",
]
