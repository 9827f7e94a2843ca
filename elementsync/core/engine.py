# elementsync/core/engine.py
from __future__ import annotations

"""Element engine
-----------------
One explicit context per page: the driver, the settings-derived defaults and
the resolver/condition/retry/dispatcher collaborators. Nothing here is global,
so several engines (one per page) run side by side without sharing state.
"""

from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

from elementsync.core.dispatcher import AcquiredElement, ActionDispatcher, ConditionSpec, FailureHook
from elementsync.core.retry import RetryExecutor, RetryOn, RetryPolicy
from elementsync.detection.conditions import ConditionEngine, ElementConditions, ElementState, WaitCondition
from elementsync.selectors.descriptor import Target, coerce_target
from elementsync.selectors.driver import DomDriver
from elementsync.selectors.resolver import ResolvedSet, StrategyResolver
from elementsync.utils.config import Settings, get_settings
from elementsync.utils.logger import get_logger
from elementsync.utils.timing import Clock, Sleeper, async_sleep_ms, now_ms

T = TypeVar("T")


class ElementEngine:
    """Resolves, waits for and retries against elements of one page."""

    def __init__(
        self,
        driver: DomDriver,
        settings: Optional[Settings] = None,
        *,
        strict: Optional[bool] = None,
        clock: Clock = now_ms,
        sleep: Sleeper = async_sleep_ms,
        hooks: Optional[List[FailureHook]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.log = get_logger(__name__)
        self.driver = driver
        self.strict = self.settings.STRICT_MODE if strict is None else strict
        self.timeout_ms = self.settings.DEFAULT_TIMEOUT_MS
        self.poll_interval_ms = self.settings.POLL_INTERVAL_MS
        self.policy = RetryPolicy.from_settings(self.settings)

        self.resolver = StrategyResolver(strict=self.strict)
        self.conditions = ConditionEngine(clock=clock, sleep=sleep, poll_interval_ms=self.poll_interval_ms)
        self.retry = RetryExecutor(clock=clock, sleep=sleep)
        self.dispatcher = ActionDispatcher(
            driver,
            self.resolver,
            self.conditions,
            self.retry,
            clock=clock,
            default_timeout_ms=self.timeout_ms,
            poll_interval_ms=self.poll_interval_ms,
            default_policy=self.policy,
            stability_polls=self.settings.STABILITY_POLLS,
            hooks=hooks,
        )
        self._factory = ElementConditions(
            self.resolver, driver, strict=self.strict, stability_polls=self.settings.STABILITY_POLLS
        )

    @classmethod
    def for_page(cls, page: Any, settings: Optional[Settings] = None, **kwargs: Any) -> "ElementEngine":
        """
        Engine over a Playwright async Page. Adds the failure screenshot hook
        when SCREENSHOT_ON_FAILURE is on.
        """
        from elementsync.capture.screenshot import FailureScreenshotter
        from elementsync.selectors.locator import PlaywrightDomDriver

        s = settings or get_settings()
        engine = cls(PlaywrightDomDriver(page), s, **kwargs)
        if s.SCREENSHOT_ON_FAILURE:
            engine.add_failure_hook(FailureScreenshotter(page, settings=s))
        return engine

    def add_failure_hook(self, hook: FailureHook) -> None:
        self.dispatcher.add_failure_hook(hook)

    # ---------- Resolution ----------

    async def resolve(self, target: Target, *, strict: Optional[bool] = None, require: bool = True) -> ResolvedSet:
        return await self.resolver.resolve(coerce_target(target), self.driver, strict=strict, require=require)

    async def count(self, target: Target) -> int:
        return await self.resolver.count(coerce_target(target), self.driver)

    async def exists(self, target: Target) -> bool:
        return await self.count(target) > 0

    async def is_visible(self, target: Target) -> bool:
        resolved = await self.resolve(target, strict=False, require=False)
        return resolved.first is not None and await self.driver.is_visible(resolved.first)

    async def is_enabled(self, target: Target) -> bool:
        resolved = await self.resolve(target, strict=False, require=False)
        return resolved.first is not None and await self.driver.is_enabled(resolved.first)

    async def text_of(self, target: Target) -> str:
        resolved = await self.resolve(target)
        return await self.driver.text_content(resolved.handles[0])

    async def value_of(self, target: Target) -> str:
        resolved = await self.resolve(target)
        return await self.driver.input_value(resolved.handles[0])

    async def attribute_of(self, target: Target, name: str) -> Optional[str]:
        resolved = await self.resolve(target)
        return await self.driver.get_attribute(resolved.handles[0], name)

    async def state_of(self, target: Target) -> dict:
        """Snapshot of the first match: exists, visible, enabled, text and box."""
        rows = await self.describe(target, limit=1)
        if not rows:
            return {"exists": False, "visible": False, "enabled": False, "text": None, "box": None}
        row = rows[0]
        row.pop("index")
        return {"exists": True, **row}

    async def describe(self, target: Target, limit: int = 10) -> List[dict]:
        resolved = await self.resolve(target, strict=False, require=False)
        return await self.resolver.describe(resolved, self.driver, limit=limit)

    # ---------- Waiting ----------

    def condition(self, state: Union[ElementState, str], target: Target) -> WaitCondition:
        return self._factory.for_state(state, coerce_target(target))

    def has_text(self, target: Target, text: str) -> WaitCondition:
        return self._factory.has_text(coerce_target(target), text)

    def text_changed(self, target: Target, from_text: str, to: Optional[str] = None) -> WaitCondition:
        return self._factory.text_changed(coerce_target(target), from_text, to)

    def has_value(self, target: Target, value: Optional[str] = None) -> WaitCondition:
        return self._factory.has_value(coerce_target(target), value)

    def value_changed(self, target: Target, from_value: str, to: Optional[str] = None) -> WaitCondition:
        return self._factory.value_changed(coerce_target(target), from_value, to)

    def predicate(self, name: str, fn: Callable[..., Any], target: Optional[Target] = None) -> WaitCondition:
        return self._factory.predicate(name, fn, coerce_target(target) if target is not None else None)

    async def satisfy(self, condition: WaitCondition, *, timeout_ms: Optional[int] = None, poll_interval_ms: Optional[int] = None) -> int:
        return await self.conditions.satisfy(condition, self._budget(timeout_ms), poll_interval_ms)

    async def wait_for_any(
        self,
        conditions: Sequence[WaitCondition],
        *,
        timeout_ms: Optional[int] = None,
        poll_interval_ms: Optional[int] = None,
    ) -> int:
        return await self.conditions.wait_for_any(conditions, self._budget(timeout_ms), poll_interval_ms)

    async def wait_for_all(
        self,
        conditions: Sequence[WaitCondition],
        *,
        timeout_ms: Optional[int] = None,
        poll_interval_ms: Optional[int] = None,
    ) -> int:
        return await self.conditions.wait_for_all(conditions, self._budget(timeout_ms), poll_interval_ms)

    # ---------- Acquisition & retry ----------

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
        return await self.dispatcher.acquire(
            target,
            condition,
            policy,
            timeout_ms=timeout_ms,
            poll_interval_ms=poll_interval_ms,
            strict=strict,
        )

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        *,
        retry_on: RetryOn = (Exception,),
        description: str = "operation",
    ) -> T:
        return await self.retry.run(operation, policy or self.policy, retry_on=retry_on, description=description)

    def _budget(self, timeout_ms: Optional[int]) -> int:
        return self.timeout_ms if timeout_ms is None else timeout_ms


__all__ = ["ElementEngine"]
