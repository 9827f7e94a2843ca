# elementsync/utils/timing.py
from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, ParamSpec

from elementsync.utils.logger import get_logger

P = ParamSpec("P")

Clock = Callable[[], int]
Sleeper = Callable[[int], Awaitable[None]]


# ---------------- Monotonic time helpers ----------------

def now_ms() -> int:
    """Monotonic time in milliseconds."""
    return time.monotonic_ns() // 1_000_000


async def async_sleep_ms(ms: int) -> None:
    """Async sleep for `ms` milliseconds. Always yields to the loop, even for 0."""
    await asyncio.sleep(max(0, ms) / 1000.0)


# ---------------- Stopwatch ----------------

@dataclass
class Stopwatch:
    """Simple stopwatch usable as a context manager. `clock` is swappable for tests."""
    start_ms: Optional[int] = None
    clock: Clock = now_ms

    def start(self) -> "Stopwatch":
        self.start_ms = self.clock()
        return self

    def elapsed_ms(self) -> int:
        if self.start_ms is None:
            return 0
        return max(0, self.clock() - self.start_ms)

    def __enter__(self) -> "Stopwatch":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


def human_ms(ms: int) -> str:
    return f"{ms} ms" if ms < 1000 else f"{ms/1000:.3f} s"


# ---------------- measure decorator ----------------

def measure(label: str = "", level: str = "DEBUG") -> Callable[[Callable[P, Any]], Callable[P, Any]]:
    """
    Decorator to log the execution time of a function (sync or async).
    Example:
        @measure("click")
        async def click(...): ...
    """
    level = level.upper()
    log = get_logger(__name__)
    log_fn = getattr(log, level.lower(), log.info)

    def decorator(func: Callable[P, Any]) -> Callable[P, Any]:
        name = label or func.__name__

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                with Stopwatch() as sw:
                    try:
                        return await func(*args, **kwargs)
                    finally:
                        log_fn(f"{name} took {human_ms(sw.elapsed_ms())}")
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
            with Stopwatch() as sw:
                try:
                    return func(*args, **kwargs)
                finally:
                    log_fn(f"{name} took {human_ms(sw.elapsed_ms())}")
        return wrapper
    return decorator
