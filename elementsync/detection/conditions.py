# elementsync/detection/conditions.py
from __future__ import annotations

"""Wait conditions
-----------------
A WaitCondition is a named async predicate. The ConditionEngine polls one or
many of them on a fixed tick until they hold or the budget runs out.

Element conditions re-resolve their descriptor on every tick; no handle is
kept between ticks, so a re-rendered node is picked up on the next poll.
"""

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, Type, Union

from elementsync.core.errors import ConditionTimeout, ElementNotFound, FrameNotFound, UnsupportedStrategy
from elementsync.detection.stability import StabilityProbe
from elementsync.selectors.descriptor import Resolvable
from elementsync.selectors.driver import DomDriver, Handle
from elementsync.selectors.resolver import StrategyResolver
from elementsync.utils.logger import get_logger
from elementsync.utils.timing import Clock, Sleeper, async_sleep_ms, now_ms

log = get_logger(__name__)

CheckFn = Callable[[], Awaitable[bool]]


@dataclass
class WaitCondition:
    name: str
    check: CheckFn
    on_failure_message: Optional[str] = None
    descriptor: Optional[Resolvable] = None
    # hidden/detached hold with zero matches; everything else needs one
    requires_match: bool = True

    def __repr__(self) -> str:
        return f"WaitCondition({self.name!r})"


# ---------- Engine ----------


class ConditionEngine:
    """
    Fixed-interval poller. Every tick evaluates all conditions (scheduled
    together, results read back in declared order), so the earliest tick wins
    and ties go to the lowest index.
    """

    def __init__(
        self,
        *,
        clock: Clock = now_ms,
        sleep: Sleeper = async_sleep_ms,
        poll_interval_ms: int = 100,
        fatal: Tuple[Type[Exception], ...] = (UnsupportedStrategy,),
    ) -> None:
        self.clock = clock
        self.sleep = sleep
        self.poll_interval_ms = poll_interval_ms
        # configuration errors; polling again cannot fix them
        self.fatal = fatal

    async def satisfy(
        self,
        condition: WaitCondition,
        budget_ms: int,
        poll_interval_ms: Optional[int] = None,
    ) -> int:
        """Wait for one condition. Returns elapsed ms."""
        _, elapsed = await self._wait([condition], budget_ms, poll_interval_ms, mode="any")
        return elapsed

    async def wait_for_any(
        self,
        conditions: Sequence[WaitCondition],
        budget_ms: int,
        poll_interval_ms: Optional[int] = None,
    ) -> int:
        """Index of the first condition to hold."""
        index, _ = await self._wait(conditions, budget_ms, poll_interval_ms, mode="any")
        return index

    async def wait_for_all(
        self,
        conditions: Sequence[WaitCondition],
        budget_ms: int,
        poll_interval_ms: Optional[int] = None,
    ) -> int:
        """Wait until every condition holds on the same tick. Returns elapsed ms."""
        _, elapsed = await self._wait(conditions, budget_ms, poll_interval_ms, mode="all")
        return elapsed

    # ---------- Internals ----------

    async def _check(self, condition: WaitCondition) -> Tuple[bool, Optional[Exception]]:
        try:
            return bool(await condition.check()), None
        except self.fatal:
            raise
        except Exception as e:
            log.debug(f"condition {condition.name!r} raised during poll: {type(e).__name__}: {e}")
            return False, e

    async def _wait(
        self,
        conditions: Sequence[WaitCondition],
        budget_ms: int,
        poll_interval_ms: Optional[int],
        *,
        mode: str,
    ) -> Tuple[int, int]:
        conditions = list(conditions)
        if not conditions:
            raise ValueError("at least one wait condition is required")
        budget_ms = max(0, int(budget_ms))
        interval = max(1, int(poll_interval_ms or self.poll_interval_ms))

        start = self.clock()
        last_error: Optional[Exception] = None
        ticks = 0

        while True:
            ticks += 1
            outcomes = await asyncio.gather(*(self._check(c) for c in conditions))
            results = [ok for ok, _ in outcomes]
            for _, err in outcomes:
                if err is not None:
                    last_error = err
            elapsed = self.clock() - start

            if mode == "any":
                for i, ok in enumerate(results):
                    if ok:
                        log.debug(f"{conditions[i].name!r} satisfied after {elapsed} ms ({ticks} tick(s))")
                        return i, elapsed
            elif all(results):
                log.debug(f"all of {[c.name for c in conditions]} satisfied after {elapsed} ms")
                return len(conditions) - 1, elapsed

            if elapsed >= budget_ms:
                raise self._timeout(conditions, elapsed, last_error, mode)

            await self.sleep(min(interval, budget_ms - elapsed))

    def _timeout(
        self,
        conditions: List[WaitCondition],
        elapsed: int,
        last_error: Optional[Exception],
        mode: str,
    ) -> ConditionTimeout:
        names = [c.name for c in conditions]
        message = None
        if len(conditions) == 1:
            message = conditions[0].on_failure_message
        elif mode == "all":
            message = f"timed out waiting for all of [{', '.join(names)}]"
        else:
            message = f"timed out waiting for any of [{', '.join(names)}]"
        descriptor = conditions[0].descriptor if len(conditions) == 1 else None
        err = ConditionTimeout(names, elapsed, last_error=last_error, message=message, descriptor=descriptor)
        if last_error is not None:
            err.__cause__ = last_error
        return err


# ---------- Element conditions ----------


class ElementState(str, Enum):
    visible = "visible"
    hidden = "hidden"
    attached = "attached"
    detached = "detached"
    enabled = "enabled"
    disabled = "disabled"
    stable = "stable"


PredicateFn = Callable[..., Union[bool, Awaitable[bool]]]


async def _call_predicate(fn: PredicateFn, *args: Any) -> bool:
    out = fn(*args)
    if inspect.isawaitable(out):
        out = await out
    return bool(out)


class ElementConditions:
    """Builds WaitConditions for one resolver/driver pair."""

    def __init__(
        self,
        resolver: StrategyResolver,
        driver: DomDriver,
        *,
        strict: Optional[bool] = None,
        stability_polls: int = 2,
    ) -> None:
        self.resolver = resolver
        self.driver = driver
        self.strict = strict
        self.stability_polls = stability_polls

    async def _first(self, target: Resolvable) -> Handle:
        resolved = await self.resolver.resolve(target, self.driver, strict=self.strict, require=True)
        return resolved.handles[0]

    async def all_or_none(self, target: Resolvable) -> List[Handle]:
        """Current matches; a missing parent, frame or index past the end means none."""
        try:
            resolved = await self.resolver.resolve(target, self.driver, strict=False, require=False)
        except (ElementNotFound, FrameNotFound):
            return []
        return resolved.handles

    def _make(self, name: str, target: Resolvable, check: CheckFn, *, requires_match: bool = True) -> WaitCondition:
        label = getattr(target, "label", repr(target))
        return WaitCondition(
            name=f"{name}({label})",
            check=check,
            on_failure_message=f"element {label} did not become {name}",
            descriptor=target,
            requires_match=requires_match,
        )

    def visible(self, target: Resolvable) -> WaitCondition:
        async def check() -> bool:
            return await self.driver.is_visible(await self._first(target))
        return self._make("visible", target, check)

    def hidden(self, target: Resolvable) -> WaitCondition:
        async def check() -> bool:
            for h in await self.all_or_none(target):
                if await self.driver.is_visible(h):
                    return False
            return True
        return self._make("hidden", target, check, requires_match=False)

    def attached(self, target: Resolvable) -> WaitCondition:
        async def check() -> bool:
            await self._first(target)
            return True
        return self._make("attached", target, check)

    def detached(self, target: Resolvable) -> WaitCondition:
        async def check() -> bool:
            return not await self.all_or_none(target)
        return self._make("detached", target, check, requires_match=False)

    def enabled(self, target: Resolvable) -> WaitCondition:
        async def check() -> bool:
            return await self.driver.is_enabled(await self._first(target))
        return self._make("enabled", target, check)

    def disabled(self, target: Resolvable) -> WaitCondition:
        async def check() -> bool:
            return not await self.driver.is_enabled(await self._first(target))
        return self._make("disabled", target, check)

    def stable(self, target: Resolvable) -> WaitCondition:
        probe = StabilityProbe(self.driver, required_polls=self.stability_polls)

        async def check() -> bool:
            try:
                handle = await self._first(target)
            except ElementNotFound:
                probe.reset()
                raise
            return await probe.observe(handle)
        return self._make("stable", target, check)

    def has_text(self, target: Resolvable, text: str) -> WaitCondition:
        async def check() -> bool:
            return text in await self.driver.text_content(await self._first(target))
        cond = self._make("has_text", target, check)
        cond.on_failure_message = f"element {cond.descriptor.label} never contained {text!r}"  # type: ignore[union-attr]
        return cond

    def text_changed(self, target: Resolvable, from_text: str, to: Optional[str] = None) -> WaitCondition:
        """Text differs from `from_text`; with `to`, text must equal `to` exactly."""

        async def check() -> bool:
            current = await self.driver.text_content(await self._first(target))
            return current == to if to is not None else current != from_text
        cond = self._make("text_changed", target, check)
        if to is None:
            cond.on_failure_message = f"text of {cond.descriptor.label} stayed {from_text!r}"  # type: ignore[union-attr]
        else:
            cond.on_failure_message = f"text of {cond.descriptor.label} never became {to!r}"  # type: ignore[union-attr]
        return cond

    def has_value(self, target: Resolvable, value: Optional[str] = None) -> WaitCondition:
        """Input value equals `value`, or is non-empty when `value` is None."""

        async def check() -> bool:
            current = await self.driver.input_value(await self._first(target))
            return current == value if value is not None else bool(current)
        cond = self._make("has_value", target, check)
        wanted = repr(value) if value is not None else "a value"
        cond.on_failure_message = f"input {cond.descriptor.label} never had {wanted}"  # type: ignore[union-attr]
        return cond

    def value_changed(self, target: Resolvable, from_value: str, to: Optional[str] = None) -> WaitCondition:
        async def check() -> bool:
            current = await self.driver.input_value(await self._first(target))
            return current == to if to is not None else current != from_value
        cond = self._make("value_changed", target, check)
        cond.on_failure_message = f"value of {cond.descriptor.label} stayed {from_value!r}"  # type: ignore[union-attr]
        return cond

    def predicate(self, name: str, fn: PredicateFn, target: Optional[Resolvable] = None) -> WaitCondition:
        """Custom check. With a target, `fn` receives the current handle."""
        if target is None:
            return WaitCondition(name=name, check=lambda: _call_predicate(fn), on_failure_message=f"{name} never held")

        async def check() -> bool:
            return await _call_predicate(fn, await self._first(target))
        cond = self._make(name, target, check)
        cond.name = name
        return cond

    def for_state(self, state: Union[ElementState, str], target: Resolvable) -> WaitCondition:
        state = ElementState(state)
        return getattr(self, state.value)(target)


def element_condition(
    state: Union[ElementState, str],
    target: Resolvable,
    resolver: StrategyResolver,
    driver: DomDriver,
    *,
    strict: Optional[bool] = None,
    stability_polls: int = 2,
) -> WaitCondition:
    return ElementConditions(resolver, driver, strict=strict, stability_polls=stability_polls).for_state(state, target)


__all__ = [
    "WaitCondition",
    "ConditionEngine",
    "ElementState",
    "ElementConditions",
    "element_condition",
]
