import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import pytest

from elementsync.core.engine import ElementEngine
from elementsync.core.errors import FrameNotFound, UnsupportedStrategy
from elementsync.selectors.descriptor import LocatorStrategy
from elementsync.utils.config import Settings


# ---------- Fake time ----------


class FakeClock:
    """Millisecond clock that only moves when FakeSleep sleeps."""

    def __init__(self, start: int = 0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now


class FakeSleep:
    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: List[int] = []

    async def __call__(self, ms: int) -> None:
        self.calls.append(ms)
        self.clock.now += max(0, ms)
        await asyncio.sleep(0)


# ---------- Fake DOM ----------


_DEFAULT_BOX = {"x": 10.0, "y": 20.0, "width": 100.0, "height": 30.0}


@dataclass(eq=False)
class FakeElement:
    """
    A node in the fake DOM. Presence and visibility are windows on the fake
    clock: present while appears_at <= now < disappears_at.
    """
    name: str
    clock: FakeClock
    text: str = ""
    value: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    visible: bool = True
    enabled: bool = True
    appears_at: int = 0
    disappears_at: Optional[int] = None
    visible_from: Optional[int] = None
    visible_until: Optional[int] = None
    enabled_from: Optional[int] = None
    animating_until: Optional[int] = None
    box_at: Optional[Callable[[int], Optional[Dict[str, float]]]] = None
    fail_next: int = 0
    actions: List[Tuple[str, Any]] = field(default_factory=list)

    def present(self) -> bool:
        now = self.clock()
        if now < self.appears_at:
            return False
        return self.disappears_at is None or now < self.disappears_at

    def is_visible(self) -> bool:
        now = self.clock()
        if self.visible_from is not None and now < self.visible_from:
            return False
        if self.visible_until is not None and now >= self.visible_until:
            return False
        return self.visible

    def is_enabled(self) -> bool:
        if self.enabled_from is not None:
            return self.clock() >= self.enabled_from
        return self.enabled

    def box(self) -> Optional[Dict[str, float]]:
        if self.box_at is not None:
            return self.box_at(self.clock())
        return dict(_DEFAULT_BOX)

    # Playwright-like handle methods used by ElementActions

    async def _act(self, name: str, arg: Any = None) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise RuntimeError(f"{name} failed: element detached")
        self.actions.append((name, arg))

    async def click(self, **kwargs: Any) -> None:
        await self._act("click", kwargs or None)

    async def dblclick(self, **kwargs: Any) -> None:
        await self._act("dblclick", kwargs or None)

    async def fill(self, value: str) -> None:
        await self._act("fill", value)
        self.text = value
        self.value = value

    async def press_sequentially(self, text: str, delay: float = 0) -> None:
        await self._act("type", text)
        self.text += text

    async def clear(self) -> None:
        await self._act("clear")
        self.text = ""

    async def hover(self) -> None:
        await self._act("hover")

    async def check(self) -> None:
        await self._act("check")

    async def uncheck(self) -> None:
        await self._act("uncheck")

    async def select_option(self, value: Any = None, label: Any = None) -> List[str]:
        await self._act("select_option", value or label)
        return [value or label]

    async def press(self, key: str) -> None:
        await self._act("press", key)

    async def text_content(self) -> str:
        return self.text


@dataclass(eq=False)
class FakeFrame:
    selector: str


class FakeDomDriver:
    """
    DomDriver over a registry of (strategy, value, scope) -> elements.
    Every call is recorded in `calls` so tests can check how scopes travel.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.registry: Dict[Tuple[LocatorStrategy, str, Any], List[FakeElement]] = {}
        self.frames: Dict[Tuple[str, Any], FakeFrame] = {}
        self.unsupported: Set[LocatorStrategy] = set()
        self.calls: List[Tuple[str, Any, Any, Any]] = []
        # n-th query call (1-based) -> error it raises, e.g. a node detached mid-acquire
        self.query_errors: Dict[int, Exception] = {}

    # ---- setup helpers ----

    def element(self, name: str, **kwargs: Any) -> FakeElement:
        return FakeElement(name=name, clock=self.clock, **kwargs)

    def add(self, value: str, *elements: FakeElement, strategy: LocatorStrategy = LocatorStrategy.css, scope: Any = None) -> None:
        self.registry.setdefault((LocatorStrategy(strategy), value, scope), []).extend(elements)

    def frame(self, selector: str, scope: Any = None) -> FakeFrame:
        f = FakeFrame(selector)
        self.frames[(selector, scope)] = f
        return f

    # ---- DomDriver ----

    async def query(self, strategy: LocatorStrategy, value: str, scope: Any = None) -> List[FakeElement]:
        self.calls.append(("query", strategy, value, scope))
        n = sum(1 for c in self.calls if c[0] == "query")
        if n in self.query_errors:
            raise self.query_errors.pop(n)
        if strategy in self.unsupported:
            raise UnsupportedStrategy(strategy)
        return [e for e in self.registry.get((strategy, value, scope), []) if e.present()]

    async def is_visible(self, handle: FakeElement) -> bool:
        return handle.present() and handle.is_visible()

    async def is_enabled(self, handle: FakeElement) -> bool:
        return handle.is_enabled()

    async def bounding_box(self, handle: FakeElement) -> Optional[Dict[str, float]]:
        return handle.box() if handle.present() else None

    async def text_content(self, handle: FakeElement) -> str:
        return handle.text

    async def input_value(self, handle: FakeElement) -> str:
        return handle.value

    async def get_attribute(self, handle: FakeElement, name: str) -> Optional[str]:
        return handle.attributes.get(name)

    async def resolve_frame(self, selector: str, scope: Any = None) -> FakeFrame:
        self.calls.append(("frame", None, selector, scope))
        try:
            return self.frames[(selector, scope)]
        except KeyError:
            raise FrameNotFound(selector) from None

    async def get_animations(self, handle: FakeElement) -> List[Any]:
        if handle.animating_until is not None and self.clock() < handle.animating_until:
            return [{"name": "fade", "state": "running"}]
        return []


# ---------- Fixtures ----------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.fixture
def dom(clock: FakeClock) -> FakeDomDriver:
    return FakeDomDriver(clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DEFAULT_TIMEOUT_MS=5000,
        POLL_INTERVAL_MS=100,
        STRICT_MODE=False,
        RETRY_MAX_ATTEMPTS=3,
        RETRY_BASE_DELAY_MS=100,
        RETRY_TOTAL_TIMEOUT_MS=30000,
        SCREENSHOT_ON_FAILURE=False,
    )


@pytest.fixture
def engine(dom: FakeDomDriver, settings: Settings, clock: FakeClock, sleep: FakeSleep) -> ElementEngine:
    return ElementEngine(dom, settings, clock=clock, sleep=sleep)
