# elementsync/core/actions.py
from __future__ import annotations

"""Element actions
------------------
Thin wrappers over Playwright handles: acquire the element in the state the
action needs, then forward the call. Idempotent actions run under the engine's
retry policy; the rest run once.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from elementsync.core.dispatcher import AcquiredElement
from elementsync.core.engine import ElementEngine
from elementsync.core.errors import ElementSyncError
from elementsync.detection.conditions import ElementState
from elementsync.selectors.descriptor import Target
from elementsync.utils.logger import get_logger, log_with_context
from elementsync.utils.timing import measure

log = get_logger(__name__)

HandleOp = Callable[[Any], Awaitable[Any]]


@dataclass
class ActionResult:
    ok: bool
    condition: str
    elapsed_ms: int
    attempts: int
    data: Any = None


class ElementActions:
    def __init__(self, engine: ElementEngine, *, timeout_ms: Optional[int] = None) -> None:
        self.engine = engine
        self.timeout_ms = timeout_ms

    async def _run(
        self,
        name: str,
        target: Target,
        state: ElementState,
        op: HandleOp,
        *,
        retry: bool,
        timeout_ms: Optional[int] = None,
    ) -> ActionResult:
        clock = self.engine.dispatcher.clock
        start = clock()
        timeout = timeout_ms if timeout_ms is not None else self.timeout_ms
        attempts = 0

        async def once() -> Any:
            nonlocal attempts
            acquired: AcquiredElement = await self.engine.acquire(target, state, timeout_ms=timeout)
            attempts += acquired.attempts
            return await op(acquired.handle)

        if retry:
            # acquisition failures were already retried inside acquire()
            data = await self.engine.retry.run(
                once,
                self.engine.policy,
                retry_on=(Exception,),
                give_up_on=(ElementSyncError,),
                description=name,
            )
        else:
            data = await once()

        elapsed = clock() - start
        log_with_context(log, action=name).debug(f"{name} done in {elapsed} ms")
        return ActionResult(ok=True, condition=state.value, elapsed_ms=elapsed, attempts=attempts, data=data)

    # ---------- Actions ----------

    @measure("click")
    async def click(self, target: Target, *, retry: bool = False, timeout_ms: Optional[int] = None, **kwargs: Any) -> ActionResult:
        return await self._run("click", target, ElementState.enabled, lambda h: h.click(**kwargs), retry=retry, timeout_ms=timeout_ms)

    @measure("double_click")
    async def double_click(self, target: Target, *, timeout_ms: Optional[int] = None, **kwargs: Any) -> ActionResult:
        return await self._run("double_click", target, ElementState.enabled, lambda h: h.dblclick(**kwargs), retry=False, timeout_ms=timeout_ms)

    @measure("fill")
    async def fill(self, target: Target, value: str, *, timeout_ms: Optional[int] = None) -> ActionResult:
        return await self._run("fill", target, ElementState.enabled, lambda h: h.fill(value), retry=True, timeout_ms=timeout_ms)

    @measure("type")
    async def type_text(self, target: Target, text: str, *, delay_ms: float = 0, timeout_ms: Optional[int] = None) -> ActionResult:
        """Key-by-key typing. Not idempotent, so never retried."""
        return await self._run(
            "type", target, ElementState.enabled, lambda h: h.press_sequentially(text, delay=delay_ms), retry=False, timeout_ms=timeout_ms
        )

    @measure("clear")
    async def clear(self, target: Target, *, timeout_ms: Optional[int] = None) -> ActionResult:
        return await self._run("clear", target, ElementState.enabled, lambda h: h.clear(), retry=False, timeout_ms=timeout_ms)

    @measure("hover")
    async def hover(self, target: Target, *, timeout_ms: Optional[int] = None) -> ActionResult:
        return await self._run("hover", target, ElementState.visible, lambda h: h.hover(), retry=True, timeout_ms=timeout_ms)

    @measure("check")
    async def check(self, target: Target, *, timeout_ms: Optional[int] = None) -> ActionResult:
        return await self._run("check", target, ElementState.enabled, lambda h: h.check(), retry=True, timeout_ms=timeout_ms)

    @measure("uncheck")
    async def uncheck(self, target: Target, *, timeout_ms: Optional[int] = None) -> ActionResult:
        return await self._run("uncheck", target, ElementState.enabled, lambda h: h.uncheck(), retry=False, timeout_ms=timeout_ms)

    @measure("select_option")
    async def select_option(
        self,
        target: Target,
        value: Optional[Union[str, Sequence[str]]] = None,
        *,
        label: Optional[Union[str, Sequence[str]]] = None,
        timeout_ms: Optional[int] = None,
    ) -> ActionResult:
        return await self._run(
            "select_option",
            target,
            ElementState.enabled,
            lambda h: h.select_option(value=value, label=label),
            retry=True,
            timeout_ms=timeout_ms,
        )

    @measure("press")
    async def press(self, target: Target, key: str, *, timeout_ms: Optional[int] = None) -> ActionResult:
        return await self._run("press", target, ElementState.enabled, lambda h: h.press(key), retry=False, timeout_ms=timeout_ms)

    @measure("text")
    async def text(self, target: Target, *, timeout_ms: Optional[int] = None) -> ActionResult:
        """Text content of the element; `data` holds the string."""

        async def read(h: Any) -> str:
            return (await h.text_content()) or ""

        return await self._run("text", target, ElementState.attached, read, retry=False, timeout_ms=timeout_ms)


__all__ = ["ActionResult", "ElementActions"]
